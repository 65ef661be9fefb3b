import asyncio
import logging
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.reference import Ingredient, Unit
from app.schemas.reference import IngredientRef, UnitRef, VocabularySnapshot

logger = logging.getLogger(__name__)


class VocabularyStore:
    """Reference vocabulary access for the extraction pipeline.

    Read-mostly: the only write is insert-if-absent for ingredients, made
    race-safe by the unique constraint on ``ingredients.name``. Every call
    opens its own session on an executor thread, so concurrent calls never
    share a session.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    def _list_ingredients_sync(self) -> List[IngredientRef]:
        with self.session_factory() as db:
            rows = db.query(Ingredient).order_by(Ingredient.name).all()
            return [IngredientRef.model_validate(row) for row in rows]

    def _list_units_sync(self) -> List[UnitRef]:
        with self.session_factory() as db:
            rows = db.query(Unit).order_by(Unit.name).all()
            return [UnitRef.model_validate(row) for row in rows]

    def _insert_ingredient_sync(self, name: str, category: str) -> Optional[str]:
        with self.session_factory() as db:
            ingredient = Ingredient(name=name, category=category)
            db.add(ingredient)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                logger.warning(f"Ingredient '{name}' was not created (already exists?): {e.orig}")
                return None
            return ingredient.id

    async def list_ingredients(self) -> List[IngredientRef]:
        return await self._run(self._list_ingredients_sync)

    async def list_units(self) -> List[UnitRef]:
        return await self._run(self._list_units_sync)

    async def snapshot(self) -> VocabularySnapshot:
        """Per-request read snapshot of ingredients and units"""
        ingredients, units = await asyncio.gather(self.list_ingredients(), self.list_units())
        return VocabularySnapshot(ingredients=ingredients, units=units)

    async def insert_ingredient_if_absent(self, name: str, category: str) -> Optional[str]:
        """Insert an ingredient; returns its id, or None when the name already exists"""
        return await self._run(self._insert_ingredient_sync, name, category)
