"""
Resolution of free-text ingredient and unit names against the reference
vocabulary, plus auto-creation of ingredients nobody has seen before.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from app.schemas.recipe import ResolvedIngredient, NewIngredient
from app.schemas.reference import IngredientRef, UnitRef, VocabularySnapshot
from app.services.parsers.llm_parser import LLMIngredient

logger = logging.getLogger(__name__)


def match_ingredient(name: str, candidates: Sequence[IngredientRef]) -> Optional[IngredientRef]:
    """Exact match first, then containment in either direction; first hit wins"""
    name = (name or "").strip()
    if not name:
        return None

    for candidate in candidates:
        if candidate.name == name:
            return candidate

    for candidate in candidates:
        if candidate.name and (name in candidate.name or candidate.name in name):
            return candidate

    return None


def match_unit(unit: Optional[str], units: Sequence[UnitRef]) -> Optional[UnitRef]:
    """Case-insensitive exact match on the unit token only"""
    if not unit or not unit.strip():
        return None
    lowered = unit.strip().lower()
    for candidate in units:
        if candidate.name.lower() == lowered:
            return candidate
    return None


@dataclass
class CreationReport:
    created: List[NewIngredient] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class EntityResolver:
    """Matches parsed ingredients to vocabulary ids and creates missing ingredients"""

    def __init__(self, store, llm_parser):
        self.store = store
        self.llm_parser = llm_parser

    def resolve(self, ingredients: List[LLMIngredient], snapshot: VocabularySnapshot) -> List[ResolvedIngredient]:
        resolved = []
        for ing in ingredients:
            matched = match_ingredient(ing.name, snapshot.ingredients)
            matched_unit = match_unit(ing.unit, snapshot.units)
            resolved.append(ResolvedIngredient(
                name=matched.name if matched else ing.name,
                count=ing.count,
                unit=ing.unit,
                matched_ingredient_id=matched.id if matched else None,
                matched_unit_id=matched_unit.id if matched_unit else None,
            ))
        return resolved

    async def create_missing(self, resolved: List[ResolvedIngredient]) -> CreationReport:
        """Categorize and insert every unmatched name; updates ``resolved`` in place.

        Insert conflicts (the name was created concurrently by another request)
        are logged and reported as failed, never raised.
        """
        report = CreationReport()

        missing = []
        for ing in resolved:
            if ing.matched_ingredient_id is None and ing.name and ing.name not in missing:
                missing.append(ing.name)

        if not missing:
            return report

        categories = await self.llm_parser.categorize_ingredients(missing)

        for name in missing:
            category = categories[name]
            try:
                new_id = await self.store.insert_ingredient_if_absent(name, category)
            except Exception as e:
                logger.warning(f"Failed to create ingredient {name}: {e}")
                new_id = None

            if new_id is None:
                logger.warning(f"Ingredient {name} ships without a matched id")
                report.failed.append(name)
                continue

            for ing in resolved:
                if ing.name == name:
                    ing.matched_ingredient_id = new_id
            report.created.append(NewIngredient(name=name, category=category))
            logger.info(f"Created ingredient {name} ({category})")

        return report
