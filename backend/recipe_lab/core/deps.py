# recipe_lab/core/deps.py
# 공용 의존성: 저장소/외부 API 클라이언트 (테스트에서는 dependency_overrides로 교체)

from __future__ import annotations

from typing import Optional

from fastapi import Request

from recipe_lab.core.config import get_settings
from recipe_lab.db.drafts import DraftRepository, MongoDraftRepository
from recipe_lab.db.grocery import GroceryStore
from recipe_lab.db.init import get_db
from recipe_lab.db.recipes import RecipeStore
from recipe_lab.services.openai_client import LLMClient
from recipe_lab.services.unsplash import UnsplashClient

# 프로세스당 1개 (첫 요청 때 생성)
_llm: Optional[LLMClient] = None
_photos: Optional[UnsplashClient] = None


def get_recipe_store() -> RecipeStore:
    return RecipeStore(get_db())


def get_grocery_store() -> GroceryStore:
    return GroceryStore(get_db())


def get_draft_repo() -> DraftRepository:
    return MongoDraftRepository(get_db())


def get_llm() -> LLMClient:
    global _llm
    if _llm is None:
        s = get_settings()
        _llm = LLMClient(s.OPENAI_API_KEY, s.OPENAI_RECIPE_MODEL)
    return _llm


def get_photo_client() -> UnsplashClient:
    global _photos
    if _photos is None:
        _photos = UnsplashClient(get_settings().UNSPLASH_ACCESS_KEY)
    return _photos


def get_utm_source() -> str:
    return get_settings().UNSPLASH_UTM_SOURCE


def get_req_id(request: Request) -> str:
    return getattr(request.state, "req_id", "-")


async def close_clients() -> None:
    # 앱 종료 시 정리
    global _llm, _photos
    if _photos is not None:
        await _photos.aclose()
    _llm = None
    _photos = None
