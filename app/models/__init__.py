from app.core.database import Base
from .reference import Ingredient, Unit

__all__ = ["Base", "Ingredient", "Unit"]
