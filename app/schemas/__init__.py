from .recipe import (
    ParseRecipeRequest, ParsedRecipeData, ResolvedIngredient, ResolvedStep, NewIngredient
)
from .reference import IngredientRef, UnitRef, VocabularySnapshot

__all__ = [
    "ParseRecipeRequest", "ParsedRecipeData",
    "ResolvedIngredient", "ResolvedStep", "NewIngredient",
    "IngredientRef", "UnitRef", "VocabularySnapshot"
]
