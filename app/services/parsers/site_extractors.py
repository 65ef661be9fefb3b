"""
Site-specific recipe extractors and the hostname registry.

Each extractor knows one site's markup. Scraping minified pages is fragile,
so every structure is tried independently and any breakage degrades to
"no result", letting the orchestrator fall through to the generic layers.
"""
import re
import logging
from typing import Any, Dict, Iterator, List, Optional

from bs4 import BeautifulSoup

from .base_parser import BaseExtractor, ExtractedRecipe, ExtractedIngredient, ExtractedStep
from .json_repair import loads_lenient

logger = logging.getLogger(__name__)

# Inline state assignments: window.__NUXT__ = {...}; / window.__INITIAL_STATE__ = {...};
STATE_BLOB_PATTERNS = [
    re.compile(r'window\.__NUXT__\s*=\s*(\{.*?\})\s*;?\s*</script>', re.S),
    re.compile(r'window\.__INITIAL_STATE__\s*=\s*(\{.*?\})\s*;?\s*</script>', re.S),
]

_BACKGROUND_URL = re.compile(r'url\(\s*([^)]+?)\s*\)')


def find_state_blobs(html: str, patterns: List[re.Pattern] = STATE_BLOB_PATTERNS) -> Iterator[Any]:
    """Yield every embedded state object that parses after repair"""
    for pattern in patterns:
        for match in pattern.finditer(html):
            try:
                yield loads_lenient(match.group(1))
            except ValueError:
                continue


class XiachufangExtractor(BaseExtractor):
    """Extractor for xiachufang.com (mobile markup, desktop markup, embedded state)"""

    IMAGE_HOST = "chuimg.com"
    IMAGE_SIZE_SUFFIX = "?imageView2/2/w/660/interlace/1/q/90"

    def extract(self, html: str) -> Optional[ExtractedRecipe]:
        try:
            soup = BeautifulSoup(html or "", 'html.parser')
        except Exception as e:
            logger.debug(f"Xiachufang extractor could not load HTML: {e}")
            return None

        strategies = [
            ("mobile", lambda: self._extract_mobile(soup)),
            ("desktop", lambda: self._extract_desktop(soup)),
            ("embedded-state", lambda: self._extract_embedded_state(html or "")),
        ]
        for label, strategy in strategies:
            try:
                recipe = strategy()
            except Exception as e:
                logger.debug(f"Xiachufang {label} structure failed: {e}")
                continue
            if recipe is not None and not recipe.is_empty:
                logger.debug(f"Xiachufang recipe found via {label} markup")
                return recipe

        return None

    def _extract_mobile(self, soup: BeautifulSoup) -> Optional[ExtractedRecipe]:
        name_elem = soup.select_one('.recipe-name')
        name = self._clean_text(name_elem.get_text()) if name_elem else ""

        ingredients = []
        for line in soup.select('.recipe-ingredient .ing-line'):
            ing_name = self._text_of(line, '.ing-name')
            ing_amount = self._text_of(line, '.ing-amount')
            if ing_name:
                ingredients.append(ExtractedIngredient(name=ing_name, amount=ing_amount or None))

        steps = []
        for block in soup.select('.step'):
            text = self._clean_step_text(self._text_of(block, '.step-text'))
            if not text:
                continue

            image_url = None
            cover = block.select_one('.step-cover')
            if cover is not None:
                match = _BACKGROUND_URL.search(cover.get('style') or '')
                if match:
                    image_url = match.group(1)
                else:
                    img = cover.find('img')
                    if img is not None:
                        image_url = img.get('src') or img.get('data-src')

            steps.append(ExtractedStep(text=text, image_url=self._expand_image_url(image_url)))

        if not steps:
            return None
        return ExtractedRecipe(name=name or None, ingredients=ingredients, steps=steps)

    def _extract_desktop(self, soup: BeautifulSoup) -> Optional[ExtractedRecipe]:
        name_elem = soup.select_one('h1.page-title')
        name = self._clean_text(name_elem.get_text()) if name_elem else ""

        ingredients = []
        for row in soup.select('.ings tr'):
            ing_name = self._text_of(row, '.name')
            ing_amount = self._text_of(row, '.unit')
            if ing_name:
                ingredients.append(ExtractedIngredient(name=ing_name, amount=ing_amount or None))

        steps = []
        for item in soup.select('.steps li'):
            text = self._clean_step_text(self._text_of(item, 'p.text') or item.get_text(' '))
            if not text:
                continue
            img = item.find('img')
            image_url = (img.get('src') or img.get('data-src')) if img is not None else None
            steps.append(ExtractedStep(text=text, image_url=self._expand_image_url(image_url)))

        if not steps:
            return None
        return ExtractedRecipe(name=name or None, ingredients=ingredients, steps=steps)

    def _extract_embedded_state(self, html: str) -> Optional[ExtractedRecipe]:
        for state in find_state_blobs(html):
            recipe_data = self._find_recipe_state(state)
            if recipe_data is None:
                continue
            recipe = self._convert_state_recipe(recipe_data)
            if recipe is not None:
                return recipe
        return None

    def _find_recipe_state(self, state: Any) -> Optional[Dict[str, Any]]:
        """Recipe node lives under "recipe" at the top level or in the first data entry"""
        if not isinstance(state, dict):
            return None
        candidates = [state.get('recipe')]
        data = state.get('data')
        if isinstance(data, list) and data and isinstance(data[0], dict):
            candidates.append(data[0].get('recipe'))
        elif isinstance(data, dict):
            candidates.append(data.get('recipe'))
        for candidate in candidates:
            if isinstance(candidate, dict):
                return candidate
        return None

    def _convert_state_recipe(self, data: Dict[str, Any]) -> Optional[ExtractedRecipe]:
        ingredients = []
        for ing in data.get('ings') or data.get('ingredients') or []:
            if not isinstance(ing, dict):
                continue
            ing_name = self._clean_text(ing.get('name'))
            amount = self._clean_text(ing.get('unit') or ing.get('amount'))
            if ing_name:
                ingredients.append(ExtractedIngredient(name=ing_name, amount=amount or None))

        steps = []
        for step in data.get('instruction') or data.get('steps') or []:
            if not isinstance(step, dict):
                continue
            text = self._clean_step_text(step.get('text') or step.get('content') or step.get('desc'))
            if not text:
                continue
            image = step.get('image')
            if isinstance(image, dict):
                image = image.get('url') or image.get('ident')
            steps.append(ExtractedStep(
                text=text,
                image_url=self._expand_image_url(image if isinstance(image, str) else None)
            ))

        if not steps:
            return None
        name = data.get('name')
        return ExtractedRecipe(
            name=self._clean_text(name) if isinstance(name, str) and name.strip() else None,
            ingredients=ingredients,
            steps=steps
        )

    def _expand_image_url(self, url: Optional[str]) -> Optional[str]:
        """Make CDN image references fetchable: absolute, with a sizing suffix"""
        url = self._make_absolute_url(url)
        if not url or not url.startswith(('http://', 'https://')):
            return None
        if self.IMAGE_HOST in url and '?' not in url:
            url += self.IMAGE_SIZE_SUFFIX
        return url

    def _text_of(self, parent, selector: str) -> str:
        elem = parent.select_one(selector)
        return self._clean_text(elem.get_text(' ')) if elem is not None else ""


_xiachufang = XiachufangExtractor()

# Exact hostname -> extractor; subdomains must be listed explicitly
EXTRACTORS: Dict[str, BaseExtractor] = {
    'xiachufang.com': _xiachufang,
    'www.xiachufang.com': _xiachufang,
    'm.xiachufang.com': _xiachufang,
}


def get_extractor(hostname: Optional[str]) -> Optional[BaseExtractor]:
    if not hostname:
        return None
    return EXTRACTORS.get(hostname.lower())
