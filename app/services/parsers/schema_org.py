import json
import re
import logging
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from .base_parser import BaseExtractor, ExtractedRecipe, ExtractedIngredient, ExtractedStep

logger = logging.getLogger(__name__)


class StructuredDataExtractor(BaseExtractor):
    """Extracts schema.org Recipe markup (JSON-LD first, then microdata)"""

    def extract(self, html: str) -> Optional[ExtractedRecipe]:
        try:
            soup = BeautifulSoup(html or "", 'html.parser')
        except Exception as e:
            logger.debug(f"Structured data extractor could not load HTML: {e}")
            return None

        for script in soup.find_all('script', attrs={'type': self._is_json_ld_type}):
            content = script.string or script.get_text()
            if not content or not content.strip():
                continue

            try:
                data = json.loads(content)
            except ValueError:
                # Malformed block, keep scanning the remaining candidates
                continue

            recipe_node = self._find_recipe_node(data)
            if recipe_node is not None:
                return self._convert_json_ld(recipe_node)

        try:
            return self._extract_microdata(soup)
        except Exception as e:
            logger.debug(f"Microdata extraction failed: {e}")
            return None

    @staticmethod
    def _is_json_ld_type(value: Optional[str]) -> bool:
        return bool(value) and value.strip().lower().startswith('application/ld+json')

    def _is_recipe(self, node: Any) -> bool:
        if not isinstance(node, dict):
            return False
        node_type = node.get('@type')
        if isinstance(node_type, str):
            return node_type == 'Recipe'
        if isinstance(node_type, list):
            return 'Recipe' in node_type
        return False

    def _find_recipe_node(self, data: Any) -> Optional[Dict[str, Any]]:
        """Locate the first Recipe object in a single object, an array or a @graph"""
        if isinstance(data, list):
            for item in data:
                if self._is_recipe(item):
                    return item
            for item in data:
                if isinstance(item, dict) and isinstance(item.get('@graph'), list):
                    found = self._find_recipe_node(item)
                    if found is not None:
                        return found
            return None

        if isinstance(data, dict):
            if self._is_recipe(data):
                return data
            graph = data.get('@graph')
            if isinstance(graph, list):
                for item in graph:
                    if self._is_recipe(item):
                        return item

        return None

    def _convert_json_ld(self, node: Dict[str, Any]) -> ExtractedRecipe:
        name = node.get('name')
        name = self._clean_text(name) if isinstance(name, str) else ""

        ingredients_data = node.get('recipeIngredient')
        if ingredients_data is None:
            # Older schema.org vocabulary
            ingredients_data = node.get('ingredients')

        return ExtractedRecipe(
            name=name or None,
            ingredients=self._parse_ingredients(ingredients_data),
            steps=self._parse_instructions(node.get('recipeInstructions'))
        )

    def _parse_ingredients(self, ingredients_data: Any) -> List[ExtractedIngredient]:
        if not ingredients_data:
            return []
        if isinstance(ingredients_data, str):
            ingredients_data = [ingredients_data]
        if not isinstance(ingredients_data, list):
            return []

        ingredients = []
        for item in ingredients_data:
            if isinstance(item, dict):
                item = item.get('name') or item.get('text')
            if not isinstance(item, str):
                continue
            text = self._clean_text(self._strip_tags(item))
            if text:
                ingredients.append(ExtractedIngredient(name=text))
        return ingredients

    def _parse_instructions(self, instructions_data: Any) -> List[ExtractedStep]:
        """Normalize a delimited string, a list of strings or a list of HowToStep objects"""
        if not instructions_data:
            return []

        if isinstance(instructions_data, str):
            return [ExtractedStep(text=text) for text in self._split_instruction_block(instructions_data)]

        if isinstance(instructions_data, dict):
            instructions_data = [instructions_data]

        if not isinstance(instructions_data, list):
            return []

        steps = []
        for item in instructions_data:
            if isinstance(item, str):
                text = self._clean_step_text(self._strip_tags(item))
                if text:
                    steps.append(ExtractedStep(text=text))
            elif isinstance(item, dict):
                if self._is_section(item):
                    steps.extend(self._parse_instructions(item.get('itemListElement')))
                    continue
                raw_text = item.get('text') or item.get('name') or ''
                text = self._clean_step_text(self._strip_tags(raw_text)) if isinstance(raw_text, str) else ''
                if text:
                    steps.append(ExtractedStep(
                        text=text,
                        image_url=self._image_url(item.get('image'))
                    ))
        return steps

    def _is_section(self, item: Dict[str, Any]) -> bool:
        item_type = item.get('@type')
        if isinstance(item_type, list):
            return 'HowToSection' in item_type
        return item_type == 'HowToSection'

    def _split_instruction_block(self, block: str) -> List[str]:
        """Split a single instruction string into steps"""
        text = self._strip_tags(block)
        lines = [self._clean_step_text(line) for line in re.split(r'[\r\n]+', text)]
        lines = [line for line in lines if line]

        if len(lines) == 1:
            # One line holding numbered steps: "1. ... 2. ..."
            parts = [p for p in re.split(r'(?:^|\s)\d+[.、)]\s*', lines[0]) if p.strip()]
            if len(parts) > 1:
                return [self._clean_step_text(p) for p in parts]

        return [re.sub(r'^\d+[.、)]\s*', '', line) for line in lines]

    def _image_url(self, image: Any) -> Optional[str]:
        if isinstance(image, list):
            for item in image:
                url = self._image_url(item)
                if url:
                    return url
            return None
        if isinstance(image, dict):
            image = image.get('url') or image.get('contentUrl')
        if isinstance(image, str):
            return self._make_absolute_url(image)
        return None

    def _strip_tags(self, text: str) -> str:
        if '<' not in text:
            return text
        return BeautifulSoup(text, 'html.parser').get_text('\n')

    def _extract_microdata(self, soup: BeautifulSoup) -> Optional[ExtractedRecipe]:
        root = soup.select_one('[itemtype*="schema.org/Recipe"]')
        if root is None:
            return None

        name_elem = root.select_one('[itemprop="name"]')
        name = self._clean_text(name_elem.get_text()) if name_elem else ""

        ingredients = []
        for elem in root.select('[itemprop="recipeIngredient"], [itemprop="ingredients"]'):
            text = self._clean_text(elem.get_text())
            if text:
                ingredients.append(ExtractedIngredient(name=text))

        steps = []
        for elem in root.select('[itemprop="recipeInstructions"]'):
            items = elem.find_all('li') or [elem]
            for item in items:
                text = self._clean_step_text(item.get_text(' '))
                if not text:
                    continue
                img = item.find('img')
                image_url = None
                if img is not None:
                    image_url = self._make_absolute_url(img.get('src') or img.get('data-src'))
                steps.append(ExtractedStep(text=text, image_url=image_url))

        if not steps:
            return None

        return ExtractedRecipe(name=name or None, ingredients=ingredients, steps=steps)
