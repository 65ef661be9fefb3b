from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from typing import Callable
from app.core.config import settings
import logging

logger = logging.getLogger(__name__)

class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Rejects requests whose declared Content-Length exceeds MAX_REQUEST_SIZE.
    Image parsing requests carry base64 photos, so the limit is generous.
    """

    def __init__(self, app, max_request_size: int = None):
        super().__init__(app)
        self.max_request_size = max_request_size or settings.MAX_REQUEST_SIZE

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_request_size:
            logger.warning(
                f"Request size limit exceeded: {content_length} bytes "
                f"from IP {request.client.host if request.client else 'unknown'}"
            )
            return JSONResponse(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                content={
                    "error_type": "request_too_large",
                    "message": f"Request size too large. Maximum allowed: {self.max_request_size} bytes",
                }
            )

        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Request processing error: {str(e)}")
            raise

def create_request_limit_middleware():
    """
    Create the request size limit middleware.
    """
    logger.info(f"Request size limiting enabled with max size: {settings.MAX_REQUEST_SIZE} bytes")
    return RequestSizeLimitMiddleware
