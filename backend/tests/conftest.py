import os

# Settings are read on first import of the app
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")
os.environ.setdefault("UNSPLASH_ACCESS_KEY", "unsplash-test")
os.environ.setdefault("APP_ENV", "test")

import re
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, Union

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from recipe_lab.core import deps
from recipe_lab.db.drafts import MongoDraftRepository
from recipe_lab.db.grocery import GroceryStore
from recipe_lab.db.recipes import RecipeStore
from recipe_lab.main import app


# ------------------------------
# in-memory motor stand-ins
# ------------------------------

def _matches(doc: Dict[str, Any], flt: Dict[str, Any]) -> bool:
    for key, cond in flt.items():
        value = doc.get(key)
        if isinstance(cond, dict) and "$regex" in cond:
            flags = re.I if "i" in cond.get("$options", "") else 0
            if not isinstance(value, str) or not re.search(cond["$regex"], value, flags):
                return False
        elif value != cond:
            return False
    return True


class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]]) -> None:
        self._docs = docs

    def sort(self, key: Union[str, list], direction: Optional[int] = None) -> "FakeCursor":
        keys = [(key, direction or 1)] if isinstance(key, str) else list(key)
        for k, d in reversed(keys):
            self._docs.sort(key=lambda doc: (doc.get(k) is not None, doc.get(k)), reverse=d < 0)
        return self

    def __aiter__(self):
        self._it = iter(self._docs)
        return self

    async def __anext__(self):
        try:
            return next(self._it)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    def __init__(self) -> None:
        self.docs: List[Dict[str, Any]] = []

    def _find(self, flt: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return next((d for d in self.docs if _matches(d, flt)), None)

    def find(self, flt: Optional[Dict[str, Any]] = None) -> FakeCursor:
        return FakeCursor([dict(d) for d in self.docs if _matches(d, flt or {})])

    async def find_one(self, flt: Dict[str, Any]):
        doc = self._find(flt)
        return dict(doc) if doc else None

    async def insert_one(self, doc: Dict[str, Any]):
        stored = dict(doc)
        stored.setdefault("_id", ObjectId())
        self.docs.append(stored)
        return SimpleNamespace(inserted_id=stored["_id"])

    async def find_one_and_update(self, flt, update, return_document=None):
        doc = self._find(flt)
        if doc is None:
            return None
        doc.update(update.get("$set", {}))
        return dict(doc)

    async def update_one(self, flt, update):
        doc = self._find(flt)
        if doc is not None:
            doc.update(update.get("$set", {}))
        return SimpleNamespace(matched_count=1 if doc is not None else 0)

    async def replace_one(self, flt, doc, upsert=False):
        existing = self._find(flt)
        if existing is not None:
            self.docs.remove(existing)
        elif not upsert:
            return SimpleNamespace(matched_count=0)
        self.docs.append({**doc, **flt})
        return SimpleNamespace(matched_count=1 if existing is not None else 0)

    async def delete_one(self, flt):
        doc = self._find(flt)
        if doc is not None:
            self.docs.remove(doc)
        return SimpleNamespace(deleted_count=1 if doc is not None else 0)

    async def delete_many(self, flt):
        doomed = [d for d in self.docs if _matches(d, flt)]
        for d in doomed:
            self.docs.remove(d)
        return SimpleNamespace(deleted_count=len(doomed))

    async def create_index(self, keys, **kwargs):
        return "_".join(f"{k}_{d}" for k, d in keys)


class FakeDatabase:
    def __init__(self) -> None:
        self._cols: Dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        return self._cols.setdefault(name, FakeCollection())

    async def command(self, name: str):
        return {"ok": 1}


# ------------------------------
# external API stand-ins
# ------------------------------

Reply = Union[str, Exception, Callable[[str, str], str]]


class FakeLLM:
    """Returns queued replies in order; an Exception reply is raised."""

    def __init__(self, *replies: Reply) -> None:
        self.replies = list(replies)
        self.calls: List[Dict[str, Any]] = []

    async def complete(self, system: str, user: str, **kwargs) -> str:
        self.calls.append({"system": system, "user": user, **kwargs})
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(system, user)
        return reply


def make_photo(photo_id: str, username: str = "janedoe") -> Dict[str, Any]:
    return {
        "id": photo_id,
        "alt_description": f"photo {photo_id}",
        "urls": {
            "raw": f"https://images.unsplash.com/{photo_id}",
            "full": f"https://images.unsplash.com/{photo_id}?full",
            "regular": f"https://images.unsplash.com/{photo_id}?w=1080",
            "small": f"https://images.unsplash.com/{photo_id}?w=400",
            "thumb": f"https://images.unsplash.com/{photo_id}?w=200",
        },
        "user": {"name": "Jane Doe", "username": username},
        "links": {
            "html": f"https://unsplash.com/photos/{photo_id}",
            "download_location": f"https://api.unsplash.com/photos/{photo_id}/download",
        },
    }


class FakePhotos:
    def __init__(self, results: Optional[Dict[str, List[Dict[str, Any]]]] = None, error: Optional[Exception] = None) -> None:
        self.results = results or {}
        self.error = error
        self.queries: List[Dict[str, Any]] = []
        self.tracked: List[str] = []

    async def search_photos(self, query: str, page: int = 1, per_page: int = 10, orientation=None):
        self.queries.append({"query": query, "page": page, "per_page": per_page})
        if self.error is not None:
            raise self.error
        photos = self.results.get(query, [])
        return {"total": len(photos), "total_pages": 1, "results": photos}

    def track_download(self, location: str) -> None:
        self.tracked.append(location)


# ------------------------------
# fixtures
# ------------------------------

@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM("{}")


@pytest.fixture
def photos() -> FakePhotos:
    return FakePhotos()


@pytest.fixture
def client(fake_db, llm, photos):
    app.dependency_overrides[deps.get_recipe_store] = lambda: RecipeStore(fake_db)
    app.dependency_overrides[deps.get_grocery_store] = lambda: GroceryStore(fake_db)
    app.dependency_overrides[deps.get_draft_repo] = lambda: MongoDraftRepository(fake_db)
    app.dependency_overrides[deps.get_llm] = lambda: llm
    app.dependency_overrides[deps.get_photo_client] = lambda: photos
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()


def recipe_payload(**overrides) -> Dict[str, Any]:
    body = {
        "title": "Lemon Chicken",
        "description": "Bright weeknight chicken.",
        "ingredients": [
            {"quantity": 200, "unit": "g", "name": "chicken breast"},
            {"quantity": 1, "unit": "", "name": "lemon"},
            {"quantity": 2, "unit": "tbsp", "name": "olive oil"},
        ],
        "steps": ["Season the chicken.", "Pan-fry until golden."],
        "servings": 2,
        "tags": ["dinner"],
    }
    body.update(overrides)
    return body
