# recipe_lab/db/drafts.py
# 드래프트 저장소: 인터페이스(get/save/delete/list_all) + Mongo 구현
# 라우터는 DraftRepository만 알고, 구현은 의존성 주입으로 바뀐다

from __future__ import annotations

import random
import string
import time
from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from recipe_lab.db.recipes import now_iso
from recipe_lab.models.draft import DRAFT_ID_PREFIX, DraftPreview, RecipeDraft
from recipe_lab.models.recipe import Ingredient, ensure_ingredient_ids

COLLECTION = "drafts"


def generate_draft_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=7))
    return f"{DRAFT_ID_PREFIX}{int(time.time() * 1000)}_{suffix}"


def is_draft_id(value: str) -> bool:
    return value.startswith(DRAFT_ID_PREFIX)


class DraftRepository(ABC):
    @abstractmethod
    async def get(self, draft_id: str) -> Optional[RecipeDraft]: ...

    @abstractmethod
    async def save(self, draft: RecipeDraft) -> RecipeDraft: ...

    @abstractmethod
    async def delete(self, draft_id: str) -> bool: ...

    @abstractmethod
    async def list_all(self) -> List[RecipeDraft]: ...


def _to_draft(doc: Mapping[str, Any]) -> RecipeDraft:
    data = {k: v for k, v in doc.items() if k != "_id"}
    data["id"] = str(doc["_id"])
    return RecipeDraft.model_validate(data)


class MongoDraftRepository(DraftRepository):
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.col = db[COLLECTION]

    async def get(self, draft_id: str) -> Optional[RecipeDraft]:
        if not is_draft_id(draft_id):
            return None
        doc = await self.col.find_one({"_id": draft_id})
        return _to_draft(doc) if doc else None

    async def save(self, draft: RecipeDraft) -> RecipeDraft:
        updated = draft.model_copy(update={"updatedAt": now_iso()})
        body = updated.model_dump(exclude_none=True, exclude={"id"})
        await self.col.replace_one({"_id": draft.id}, body, upsert=True)
        return updated

    async def delete(self, draft_id: str) -> bool:
        result = await self.col.delete_one({"_id": draft_id})
        return result.deleted_count > 0

    async def list_all(self) -> List[RecipeDraft]:
        cur = self.col.find({}).sort("updatedAt", -1)
        return [_to_draft(doc) async for doc in cur]


# ------------------------------
# 드래프트 동작 (저장소 무관)
# ------------------------------

async def create_draft_from_preview(repo: DraftRepository, preview: DraftPreview) -> RecipeDraft:
    now = now_iso()
    ingredients = ensure_ingredient_ids(preview.ingredients)
    draft = RecipeDraft(
        **preview.model_dump(exclude={"ingredients"}),
        id=generate_draft_id(),
        ingredients=ingredients,
        originalIngredients=[ing.model_copy() for ing in ingredients],
        createdAt=now,
        updatedAt=now,
    )
    return await repo.save(draft)


async def update_draft_ingredients(
    repo: DraftRepository, draft_id: str, ingredients: List[Ingredient]
) -> Optional[RecipeDraft]:
    draft = await repo.get(draft_id)
    if draft is None:
        return None
    return await repo.save(draft.model_copy(update={"ingredients": ensure_ingredient_ids(ingredients)}))


async def reset_draft_ingredients(repo: DraftRepository, draft_id: str) -> Optional[RecipeDraft]:
    draft = await repo.get(draft_id)
    if draft is None:
        return None
    restored = [ing.model_copy() for ing in draft.originalIngredients]
    return await repo.save(draft.model_copy(update={"ingredients": restored}))
