from .parsing import router as parsing_router

__all__ = ["parsing_router"]
