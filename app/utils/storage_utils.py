from pathlib import Path
from typing import Optional
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


class BlobStorage:
    """Local file storage for downloaded media, served under MEDIA_URL_PREFIX"""

    def __init__(self, base_dir: Optional[str] = None, url_prefix: Optional[str] = None, subdir: str = "images"):
        self.base_dir = Path(base_dir or settings.MEDIA_DIR)
        self.url_prefix = (url_prefix or settings.MEDIA_URL_PREFIX).rstrip("/")
        self.subdir = subdir
        (self.base_dir / self.subdir).mkdir(parents=True, exist_ok=True)

    def save(self, data: bytes, suggested_extension: str, stem: str) -> str:
        """Write bytes to disk and return the relative path inside the store"""
        extension = suggested_extension if suggested_extension.startswith(".") else f".{suggested_extension}"
        relative_path = f"{self.subdir}/{stem}{extension}"
        file_path = self.base_dir / relative_path

        with open(file_path, 'wb') as f:
            f.write(data)

        logger.debug(f"Stored {len(data)} bytes at {file_path}")
        return relative_path

    def public_url(self, relative_path: str) -> str:
        return f"{self.url_prefix}/{relative_path}"
