from abc import ABC, abstractmethod
from typing import Optional, List
from urllib.parse import urljoin
from pydantic import BaseModel
import re


class ExtractedIngredient(BaseModel):
    name: str
    amount: Optional[str] = None  # Free text, e.g. "300克", "适量"


class ExtractedStep(BaseModel):
    text: str
    image_url: Optional[str] = None


class ExtractedRecipe(BaseModel):
    """Raw recipe shape produced by an extraction layer"""
    name: Optional[str] = None
    ingredients: List[ExtractedIngredient] = []
    steps: List[ExtractedStep] = []

    @property
    def is_empty(self) -> bool:
        return not self.steps


class BaseExtractor(ABC):
    """Abstract base class for HTML recipe extractors.

    Implementations return None when their expected structure is absent and
    must not raise for malformed or missing data.
    """

    @abstractmethod
    def extract(self, html: str) -> Optional[ExtractedRecipe]:
        """Extract a recipe from page HTML, or None"""
        pass

    def _clean_text(self, text: Optional[str]) -> str:
        """Collapse whitespace"""
        if not text:
            return ""
        return re.sub(r'\s+', ' ', text).strip()

    def _clean_step_text(self, text: Optional[str]) -> str:
        """Collapse whitespace and drop trailing Chinese sentence punctuation"""
        text = self._clean_text(text)
        return re.sub(r'[；;。]+$', '', text).strip()

    def _make_absolute_url(self, url: Optional[str], base_url: Optional[str] = None) -> Optional[str]:
        """Convert protocol-relative and relative URLs to absolute URLs"""
        if not url:
            return None

        url = url.strip().strip('\'"')
        if not url:
            return None

        # Already absolute
        if url.startswith(('http://', 'https://')):
            return url

        # Protocol relative
        if url.startswith('//'):
            return 'https:' + url

        if base_url:
            return urljoin(base_url, url)
        return url
