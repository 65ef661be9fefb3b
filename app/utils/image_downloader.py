"""
Concurrent download of remote step images into local blob storage.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Hashable, Optional
from urllib.parse import urlparse

import httpx

from app.core.config import settings
from app.utils.id_utils import generate_id
from app.utils.storage_utils import BlobStorage

logger = logging.getLogger(__name__)

CONTENT_TYPE_EXTENSIONS = {
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}
DEFAULT_EXTENSION = ".jpg"


@dataclass
class DownloadedImage:
    id: str
    local_path: str
    url: str
    source_url: str


def extension_for_content_type(content_type: Optional[str]) -> str:
    media_type = (content_type or "").split(";")[0].strip().lower()
    return CONTENT_TYPE_EXTENSIONS.get(media_type, DEFAULT_EXTENSION)


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}/"


class ImageDownloader:
    """Fetches images with browser-like headers and stores them locally.

    Failures are per image: a failed download is logged and left out of the
    result, it never aborts the batch.
    """

    def __init__(self, storage: BlobStorage, timeout: Optional[float] = None,
                 user_agent: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.storage = storage
        self.timeout = timeout or settings.IMAGE_DOWNLOAD_TIMEOUT
        self.user_agent = user_agent or settings.USER_AGENT
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self.transport,
        )

    async def download(self, url: str, client: Optional[httpx.AsyncClient] = None) -> Optional[DownloadedImage]:
        """Download a single image; returns None on any failure"""
        if client is None:
            async with self._client() as own_client:
                return await self.download(url, own_client)

        try:
            if not url or urlparse(url).scheme not in ("http", "https"):
                logger.debug(f"Skipping non-http image url: {url!r}")
                return None

            headers = {
                "User-Agent": self.user_agent,
                "Referer": origin_of(url),
            }
            response = await client.get(url, headers=headers)
            response.raise_for_status()
            data = response.content

            image_id = generate_id()
            extension = extension_for_content_type(response.headers.get("content-type"))

            loop = asyncio.get_running_loop()
            local_path = await loop.run_in_executor(None, self.storage.save, data, extension, image_id)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError, OSError) as e:
            # Malformed scraped urls fail here too (bad IPv6 host, control characters)
            logger.warning(f"Failed to download image from {url!r}: {e}")
            return None

        return DownloadedImage(
            id=image_id,
            local_path=local_path,
            url=self.storage.public_url(local_path),
            source_url=url,
        )

    async def download_many(self, urls: Dict[Hashable, str]) -> Dict[Hashable, DownloadedImage]:
        """Download every url concurrently, keyed by the caller's correlation key"""
        if not urls:
            return {}

        keys = list(urls.keys())
        async with self._client() as client:
            results = await asyncio.gather(*(self.download(urls[key], client) for key in keys))

        downloaded = {key: result for key, result in zip(keys, results) if result is not None}
        logger.info(f"Downloaded {len(downloaded)}/{len(keys)} images")
        return downloaded
