class RecipeExtractionError(Exception):
    """Base class for failures surfaced to the caller with a user-facing message"""
    error_type = "extraction_failed"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PageFetchError(RecipeExtractionError):
    """Raised when the recipe page itself cannot be retrieved"""
    error_type = "page_fetch"


class RecipeParseError(RecipeExtractionError):
    """Raised when the terminal inference layer cannot produce a recipe"""
    error_type = "unparseable_recipe"


class InferenceServiceError(Exception):
    """Raised when the inference service is unavailable or the call fails"""
    pass
