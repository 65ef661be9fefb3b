import asyncio
import logging
from typing import List, Optional, Union
from urllib.parse import urlparse

from app.core.database import SessionLocal
from app.schemas.recipe import ParseRecipeRequest, ParsedRecipeData, ResolvedIngredient, ResolvedStep
from app.schemas.reference import VocabularySnapshot
from app.services.entity_resolver import EntityResolver
from app.services.inference_client import InferenceClient
from app.services.vocabulary_service import VocabularyStore
from app.services.parsers.base_parser import ExtractedIngredient, ExtractedRecipe, ExtractedStep
from app.services.parsers.content_reducer import reduce_html_to_text
from app.services.parsers.llm_parser import LLMIngredient, RecipeLLMParser
from app.services.parsers.request_utils import PageFetcher
from app.services.parsers.schema_org import StructuredDataExtractor
from app.services.parsers.site_extractors import get_extractor
from app.utils.image_downloader import ImageDownloader
from app.utils.storage_utils import BlobStorage

logger = logging.getLogger(__name__)


class ParsingService:
    """Turns a recipe URL or a set of recipe photos into a resolved recipe.

    URL input goes through three layers, first non-empty result wins:
    a site-specific extractor, schema.org structured data, then content
    reduction plus inference. Only a page fetch failure or a failure of the
    final inference layer reaches the caller.
    """

    def __init__(self, store: VocabularyStore, llm_parser: RecipeLLMParser,
                 image_downloader: ImageDownloader, fetcher: PageFetcher):
        self.store = store
        self.llm_parser = llm_parser
        self.image_downloader = image_downloader
        self.fetcher = fetcher
        self.structured_data = StructuredDataExtractor()
        self.resolver = EntityResolver(store, llm_parser)

    async def close(self) -> None:
        """Release connections held by the inference client"""
        await self.llm_parser.close()

    async def parse_recipe(self, request: ParseRecipeRequest) -> ParsedRecipeData:
        if request.images:
            return await self.parse_from_images(request.images)
        return await self.parse_from_url(request.url.strip())

    async def parse_from_url(self, url: str) -> ParsedRecipeData:
        html, snapshot = await asyncio.gather(self.fetcher.fetch(url), self.store.snapshot())

        recipe = self._extract_structured(url, html)
        if recipe is not None:
            return await self._finalize(recipe.name, recipe.ingredients, recipe.steps, snapshot)

        logger.info(f"No structured recipe found for {url}, falling back to inference")
        text = reduce_html_to_text(html, self.llm_parser.text_char_limit)
        payload = await self.llm_parser.parse_text(text, snapshot)
        steps = [ExtractedStep(text=step.text) for step in payload.steps]
        return await self._finalize(payload.name, payload.ingredients, steps, snapshot)

    async def parse_from_images(self, images: List[str]) -> ParsedRecipeData:
        snapshot = await self.store.snapshot()
        payload = await self.llm_parser.parse_images(images, snapshot)
        steps = [ExtractedStep(text=step.text) for step in payload.steps]
        return await self._finalize(payload.name, payload.ingredients, steps, snapshot)

    def _extract_structured(self, url: str, html: str) -> Optional[ExtractedRecipe]:
        """Run the site extractor and structured-data layers; None when both miss"""
        hostname = urlparse(url).hostname
        layers = []

        site_extractor = get_extractor(hostname)
        if site_extractor is not None:
            layers.append(("site", site_extractor))
        layers.append(("structured-data", self.structured_data))

        for layer_name, extractor in layers:
            try:
                recipe = extractor.extract(html)
            except Exception as e:
                logger.warning(f"{layer_name} extractor failed on {url}: {e}")
                continue

            if recipe is not None and not recipe.is_empty:
                logger.info(f"Recipe extracted from {url} by {layer_name} extractor")
                return recipe
            logger.debug(f"{layer_name} extractor found nothing on {url}")

        return None

    async def _resolve_ingredients(self, ingredients: List[Union[ExtractedIngredient, LLMIngredient]],
                                   snapshot: VocabularySnapshot) -> List[ResolvedIngredient]:
        if ingredients and isinstance(ingredients[0], ExtractedIngredient):
            ingredients = await self.llm_parser.parse_ingredient_lines(ingredients, snapshot)
        return self.resolver.resolve(ingredients, snapshot)

    async def _finalize(self, name: Optional[str], ingredients, steps: List[ExtractedStep],
                        snapshot: VocabularySnapshot) -> ParsedRecipeData:
        image_urls = {index: step.image_url for index, step in enumerate(steps) if step.image_url}

        resolved, downloads = await asyncio.gather(
            self._resolve_ingredients(ingredients, snapshot),
            self.image_downloader.download_many(image_urls),
        )

        report = await self.resolver.create_missing(resolved)

        resolved_steps = []
        for index, step in enumerate(steps):
            downloaded = downloads.get(index)
            resolved_steps.append(ResolvedStep(
                text=step.text,
                image=downloaded.url if downloaded else step.image_url,
                image_id=downloaded.id if downloaded else None,
            ))

        return ParsedRecipeData(
            name=name,
            ingredients=resolved,
            steps=resolved_steps,
            newly_created_ingredients=report.created or None,
            failed_ingredients=report.failed or None,
        )


def build_parsing_service() -> ParsingService:
    """Default wiring from settings"""
    llm_parser = RecipeLLMParser(InferenceClient())
    return ParsingService(
        store=VocabularyStore(SessionLocal),
        llm_parser=llm_parser,
        image_downloader=ImageDownloader(BlobStorage()),
        fetcher=PageFetcher(),
    )
