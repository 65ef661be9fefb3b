"""
Page fetching for URL extraction.
"""
import logging
from typing import Optional

import httpx

from app.core.config import settings
from app.services.parsers.errors import PageFetchError

logger = logging.getLogger(__name__)

DEFAULT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
DEFAULT_ACCEPT_LANGUAGE = "zh-CN,zh;q=0.9,en;q=0.8"


class PageFetcher:
    """Retrieves the HTML of a recipe page"""

    def __init__(self, timeout: Optional[float] = None, user_agent: Optional[str] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout or settings.PAGE_FETCH_TIMEOUT
        self.user_agent = user_agent or settings.USER_AGENT
        self.transport = transport

    def get_headers(self) -> dict:
        return {
            "User-Agent": self.user_agent,
            "Accept": DEFAULT_ACCEPT,
            "Accept-Language": DEFAULT_ACCEPT_LANGUAGE,
        }

    async def fetch(self, url: str) -> str:
        """Return the page body as text.

        Raises:
            PageFetchError: on network failure or a non-2xx response.
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True,
                                         transport=self.transport) as client:
                response = await client.get(url, headers=self.get_headers())
                response.raise_for_status()
                return response.text
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            logger.warning(f"Failed to fetch {url!r}: {e}")
            raise PageFetchError("Could not fetch the recipe page") from e
