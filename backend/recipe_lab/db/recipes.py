# recipe_lab/db/recipes.py
# recipes 컬렉션 접근: 저장은 문서 통째로 교체 (마지막 저장이 이김)

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from recipe_lab.models.recipe import Recipe, RecipeImage, RecipeIn, ensure_ingredient_ids

log = logging.getLogger(__name__)

COLLECTION = "recipes"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def to_object_id(value: str) -> Optional[ObjectId]:
    # 24-hex 아니면 None (→ 404 처리)
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


def _to_recipe(doc: Mapping[str, Any]) -> Recipe:
    data = {k: v for k, v in doc.items() if k != "_id"}
    data["id"] = str(doc["_id"])
    return Recipe.model_validate(data)


def _missing_ingredient_ids(doc: Mapping[str, Any]) -> bool:
    return any(not (isinstance(i, dict) and i.get("id")) for i in doc.get("ingredients") or [])


def _to_document(recipe: RecipeIn) -> Dict[str, Any]:
    payload = recipe.model_copy(update={"ingredients": ensure_ingredient_ids(recipe.ingredients)})
    return payload.model_dump(exclude_none=True, exclude={"id", "createdAt", "updatedAt"})


class RecipeStore:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.col = db[COLLECTION]

    async def _load(self, doc: Mapping[str, Any]) -> Recipe:
        recipe = _to_recipe(doc)
        if not _missing_ingredient_ids(doc):
            return recipe

        # 구 문서: 처음 읽을 때 부여한 재료 id를 저장해서 이후 읽기에도 같은 id
        ingredients = ensure_ingredient_ids(recipe.ingredients)
        result = await self.col.update_one(
            {"_id": doc["_id"], "ingredients": doc.get("ingredients")},
            {"$set": {"ingredients": [i.model_dump(exclude_none=True) for i in ingredients]}},
        )
        if result.matched_count == 0:
            # 동시에 다른 요청이 먼저 저장함 → 저장된 id를 쓴다
            fresh = await self.col.find_one({"_id": doc["_id"]})
            if fresh is not None and not _missing_ingredient_ids(fresh):
                return _to_recipe(fresh)
        log.info("assigned ingredient ids to legacy recipe id=%s", doc["_id"])
        return recipe.model_copy(update={"ingredients": ingredients})

    async def list_all(self) -> List[Recipe]:
        cur = self.col.find({}).sort("createdAt", -1)
        return [await self._load(doc) async for doc in cur]

    async def get(self, recipe_id: str) -> Optional[Recipe]:
        oid = to_object_id(recipe_id)
        if oid is None:
            return None
        doc = await self.col.find_one({"_id": oid})
        return await self._load(doc) if doc else None

    async def add(self, recipe: RecipeIn) -> Recipe:
        now = now_iso()
        document = {**_to_document(recipe), "createdAt": now, "updatedAt": now}
        result = await self.col.insert_one(document)
        document["_id"] = result.inserted_id
        return _to_recipe(document)

    async def update(self, recipe_id: str, updates: RecipeIn) -> Optional[Recipe]:
        oid = to_object_id(recipe_id)
        if oid is None:
            return None
        existing = await self.col.find_one({"_id": oid})
        if existing is None:
            return None
        # 통째로 교체, createdAt만 유지
        document = {
            **_to_document(updates),
            "createdAt": existing.get("createdAt") or now_iso(),
            "updatedAt": now_iso(),
        }
        await self.col.replace_one({"_id": oid}, document)
        document["_id"] = oid
        return _to_recipe(document)

    async def set_images(self, recipe_id: str, images: List[RecipeImage]) -> bool:
        oid = to_object_id(recipe_id)
        if oid is None:
            return False
        result = await self.col.update_one(
            {"_id": oid},
            {"$set": {"images": [img.model_dump() for img in images], "updatedAt": now_iso()}},
        )
        return result.matched_count > 0

    async def delete(self, recipe_id: str) -> bool:
        oid = to_object_id(recipe_id)
        if oid is None:
            return False
        result = await self.col.delete_one({"_id": oid})
        return result.deleted_count > 0
