from pydantic import BaseModel
from typing import List, Optional


class IngredientRef(BaseModel):
    id: str
    name: str
    category: Optional[str] = None

    class Config:
        from_attributes = True

class UnitRef(BaseModel):
    id: str
    name: str
    name_zh: str

    class Config:
        from_attributes = True

class VocabularySnapshot(BaseModel):
    """Read snapshot of the reference vocabulary, taken once per extraction request"""
    ingredients: List[IngredientRef] = []
    units: List[UnitRef] = []
