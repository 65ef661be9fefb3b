import os
import tempfile

# Settings are read at import time; keep tests off the real database and media dir
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("MEDIA_DIR", tempfile.mkdtemp(prefix="recipe-media-"))
os.environ.setdefault("OPENAI_API_KEY", "")

from typing import Callable, Dict, List, Optional, Union

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.models import Base
from app.schemas.reference import IngredientRef, UnitRef, VocabularySnapshot
from app.utils.image_downloader import DownloadedImage


class FakeInferenceClient:
    """Stands in for InferenceClient; replies come from a callable or a fixed string"""

    def __init__(self, reply: Union[str, Exception, Callable, None] = None):
        self.reply = reply
        self.calls = []
        self.closed = False

    async def complete(self, system, prompt, images=None, max_tokens=None) -> str:
        self.calls.append({"system": system, "prompt": prompt, "images": images})
        reply = self.reply(system, prompt, images) if callable(self.reply) else self.reply
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def close(self):
        self.closed = True


class FakeVocabularyStore:
    """In-memory vocabulary store with the VocabularyStore interface"""

    def __init__(self, snapshot: VocabularySnapshot, conflicts=()):
        self._snapshot = snapshot
        self.conflicts = set(conflicts)
        self.inserted = []

    async def snapshot(self) -> VocabularySnapshot:
        return self._snapshot

    async def insert_ingredient_if_absent(self, name: str, category: str) -> Optional[str]:
        if name in self.conflicts:
            return None
        self.inserted.append((name, category))
        return f"new-{len(self.inserted)}"


class FakeImageDownloader:
    """Succeeds for every url except those listed in ``failing``"""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.requested: Dict = {}

    async def download_many(self, urls: Dict) -> Dict:
        self.requested = dict(urls)
        results = {}
        for key, url in urls.items():
            if url in self.failing:
                continue
            results[key] = DownloadedImage(
                id=f"img{key}",
                local_path=f"images/img{key}.jpg",
                url=f"/media/images/img{key}.jpg",
                source_url=url,
            )
        return results


class FakePageFetcher:
    def __init__(self, html: str = "", error: Optional[Exception] = None):
        self.html = html
        self.error = error
        self.fetched: List[str] = []

    async def fetch(self, url: str) -> str:
        self.fetched.append(url)
        if self.error is not None:
            raise self.error
        return self.html


@pytest.fixture
def snapshot():
    return VocabularySnapshot(
        ingredients=[
            IngredientRef(id="ing-egg", name="鸡蛋", category="蛋奶"),
            IngredientRef(id="ing-free-range-egg", name="土鸡蛋", category="蛋奶"),
            IngredientRef(id="ing-tomato", name="番茄", category="蔬菜"),
            IngredientRef(id="ing-salt", name="盐", category="调料"),
        ],
        units=[
            UnitRef(id="unit-piece", name="piece", name_zh="个"),
            UnitRef(id="unit-gram", name="g", name_zh="克"),
            UnitRef(id="unit-spoon", name="tbsp", name_zh="勺"),
        ],
    )


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()
