from .base_parser import BaseExtractor, ExtractedRecipe, ExtractedIngredient, ExtractedStep
from .errors import RecipeExtractionError, PageFetchError, RecipeParseError, InferenceServiceError
from .schema_org import StructuredDataExtractor
from .site_extractors import get_extractor
from .llm_parser import RecipeLLMParser

__all__ = ["BaseExtractor", "ExtractedRecipe", "ExtractedIngredient", "ExtractedStep",
           "RecipeExtractionError", "PageFetchError", "RecipeParseError", "InferenceServiceError",
           "StructuredDataExtractor", "get_extractor", "RecipeLLMParser"]
