from fastapi import APIRouter, Depends, HTTPException, status, Request
from typing import Optional
import logging
from app.core.config import settings
from app.schemas.recipe import ParseRecipeRequest, ParsedRecipeData
from app.services.parsing_service import ParsingService, build_parsing_service
from app.services.parsers.errors import RecipeExtractionError
from app.middleware.rate_limit import limiter

logger = logging.getLogger(__name__)

router = APIRouter()


_parsing_service: Optional[ParsingService] = None


def get_parsing_service() -> ParsingService:
    """Process-wide service, built on first use"""
    global _parsing_service
    if _parsing_service is None:
        _parsing_service = build_parsing_service()
    return _parsing_service


async def close_parsing_service() -> None:
    global _parsing_service
    if _parsing_service is not None:
        await _parsing_service.close()
        _parsing_service = None


@router.post("/parse", response_model=ParsedRecipeData)
@limiter.limit(settings.PARSING_RATE_LIMIT)
async def parse_recipe(
    parse_request: ParseRecipeRequest,
    request: Request,
    parsing_service: ParsingService = Depends(get_parsing_service)
):
    """Parse a recipe from a page URL or from base64-encoded photos"""
    try:
        return await parsing_service.parse_recipe(parse_request)
    except RecipeExtractionError as e:
        logger.info(f"Recipe extraction failed ({e.error_type}): {e.message}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error_type": e.error_type,
                "message": e.message,
            }
        )
