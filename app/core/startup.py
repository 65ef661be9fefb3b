"""
Startup validation and checks for the recipe extraction backend
"""

import logging
import os
import sys
from typing import List, Tuple
from app.core.config import settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

class StartupValidationError(Exception):
    """Raised when startup validation fails"""
    pass

def configure_logging(level: str = None) -> None:
    """Configure root logging from LOG_LEVEL"""
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
    )

def validate_database_url() -> Tuple[bool, List[str]]:
    """
    Validate the DATABASE_URL configuration

    Returns:
        Tuple of (is_valid, list_of_issues)
    """
    issues = []

    if not settings.DATABASE_URL:
        issues.append("DATABASE_URL is not set")
        return False, issues

    if settings.DATABASE_URL.startswith("sqlite") and ":memory:" in settings.DATABASE_URL:
        logger.warning("DATABASE_URL points at an in-memory database, vocabulary will not persist")

    return len(issues) == 0, issues

def validate_inference_service() -> Tuple[bool, List[str]]:
    """
    Validate inference service configuration

    A missing key is only a warning: URL extraction still works for pages
    with site-specific or structured data, only the fallback layer needs it.
    """
    issues = []

    if not settings.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY is not set, inference-based parsing will fail")

    if settings.LLM_TEXT_CHAR_LIMIT <= 0:
        issues.append("LLM_TEXT_CHAR_LIMIT must be positive")

    return len(issues) == 0, issues

def validate_media_dir() -> Tuple[bool, List[str]]:
    """
    Validate that downloaded images can be written to MEDIA_DIR

    Returns:
        Tuple of (is_valid, list_of_issues)
    """
    issues = []

    try:
        os.makedirs(settings.MEDIA_DIR, exist_ok=True)
    except OSError as e:
        issues.append(f"MEDIA_DIR {settings.MEDIA_DIR} cannot be created: {e}")
        return False, issues

    if not os.access(settings.MEDIA_DIR, os.W_OK):
        issues.append(f"MEDIA_DIR {settings.MEDIA_DIR} is not writable")

    return len(issues) == 0, issues

def validate_cors_origins() -> Tuple[bool, List[str]]:
    """
    Validate CORS origins configuration

    Returns:
        Tuple of (is_valid, list_of_issues)
    """
    issues = []

    if not settings.ALLOWED_ORIGINS:
        issues.append("ALLOWED_ORIGINS is not set")
        return False, issues

    if all("localhost" in origin for origin in settings.ALLOWED_ORIGINS):
        logger.warning("CORS validation warnings: All CORS origins are localhost. Update for production deployment.")

    return True, issues

def perform_startup_validation(strict: bool = False) -> bool:
    """
    Perform all startup validations

    Args:
        strict: If True, any issue raises instead of being logged

    Returns:
        True if all validations pass, False otherwise

    Raises:
        StartupValidationError: If critical validations fail
    """
    logger.info("Starting application validation...")

    all_issues = []

    validations = [
        ("Database URL", validate_database_url),
        ("Inference Service", validate_inference_service),
        ("Media Directory", validate_media_dir),
        ("CORS Origins", validate_cors_origins),
    ]

    for name, validator in validations:
        try:
            is_valid, issues = validator()
            if not is_valid:
                logger.error(f"{name} validation failed: {'; '.join(issues)}")
                all_issues.extend([f"{name}: {issue}" for issue in issues])
            else:
                logger.info(f"{name} validation passed")
        except Exception as e:
            error_msg = f"{name} validation error: {str(e)}"
            logger.error(error_msg)
            all_issues.append(error_msg)

    if all_issues:
        error_summary = "\n".join([f"  - {issue}" for issue in all_issues])
        logger.error(f"Startup validation failed with {len(all_issues)} issues:\n{error_summary}")

        if strict:
            raise StartupValidationError(f"Startup validation failed: {'; '.join(all_issues)}")
        return False

    logger.info("All startup validations passed successfully")
    return True

async def startup_event():
    """FastAPI startup event handler"""
    try:
        perform_startup_validation(strict=False)
        logger.info("Application startup validation completed successfully")
    except Exception as e:
        logger.error(f"Unexpected error during startup validation: {str(e)}")

if __name__ == "__main__":
    configure_logging()
    try:
        success = perform_startup_validation(strict=True)
        if success:
            print("All startup validations passed")
            sys.exit(0)
    except StartupValidationError as e:
        print(f"Critical validation error: {str(e)}")
    sys.exit(1)
