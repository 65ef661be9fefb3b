from pydantic import BaseModel, model_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List


class CamelModel(BaseModel):
    """Base for API payloads; serialized with camelCase keys"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True

class ParseRecipeRequest(CamelModel):
    url: Optional[str] = None
    images: Optional[List[str]] = None  # Base64 payloads, data URL prefix allowed

    @model_validator(mode='after')
    def check_exactly_one_source(self):
        has_url = bool(self.url and self.url.strip())
        has_images = bool(self.images)
        if has_url == has_images:
            raise ValueError("Provide either a url or a list of images")
        return self

class ResolvedIngredient(CamelModel):
    name: str
    count: Optional[float] = None  # None means "to taste"
    unit: Optional[str] = None
    matched_ingredient_id: Optional[str] = None
    matched_unit_id: Optional[str] = None

class ResolvedStep(CamelModel):
    text: str
    image: Optional[str] = None
    image_id: Optional[str] = None

class NewIngredient(CamelModel):
    name: str
    category: str

class ParsedRecipeData(CamelModel):
    name: Optional[str] = None
    ingredients: List[ResolvedIngredient] = []
    steps: List[ResolvedStep] = []
    newly_created_ingredients: Optional[List[NewIngredient]] = None
    failed_ingredients: Optional[List[str]] = None
