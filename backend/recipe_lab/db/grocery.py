# recipe_lab/db/grocery.py
# grocery_items 컬렉션 접근 + 같은 재료(이름 대소문자 무시 & 단위 동일) 수량 합치기

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from recipe_lab.db.recipes import now_iso, to_object_id
from recipe_lab.models.grocery import GroceryItem, GroceryItemIn, GroceryItemUpdate

log = logging.getLogger(__name__)

COLLECTION = "grocery_items"


def _to_item(doc: Mapping[str, Any]) -> GroceryItem:
    data = {k: v for k, v in doc.items() if k != "_id"}
    data["id"] = str(doc["_id"])
    return GroceryItem.model_validate(data)


def name_matcher(name: str) -> Dict[str, str]:
    # 정확히 같은 이름, 대소문자만 무시
    return {"$regex": f"^{re.escape(name.strip())}$", "$options": "i"}


class GroceryStore:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.col = db[COLLECTION]

    async def list_all(self) -> List[GroceryItem]:
        # 미구매 먼저, 그 안에서 최신순
        cur = self.col.find({}).sort([("isPurchased", 1), ("createdAt", -1)])
        return [_to_item(doc) async for doc in cur]

    async def add(self, item: GroceryItemIn) -> GroceryItem:
        now = now_iso()
        document = {**item.model_dump(exclude_none=True), "createdAt": now, "updatedAt": now}
        result = await self.col.insert_one(document)
        document["_id"] = result.inserted_id
        return _to_item(document)

    async def find_mergeable(self, name: str, unit: str) -> Optional[GroceryItem]:
        doc = await self.col.find_one({
            "ingredientName": name_matcher(name),
            "unit": unit,
            "isPurchased": False,
        })
        return _to_item(doc) if doc else None

    async def add_or_merge(
        self, items: List[GroceryItemIn]
    ) -> Tuple[List[GroceryItem], List[Dict[str, Any]]]:
        """Merge each item into a matching unpurchased entry, else insert it.

        Items are handled one at a time, so a later item in the same payload can
        merge into an entry inserted for an earlier one. Not transactional: a
        failure part way leaves earlier merges and inserts applied.
        """
        added: List[GroceryItem] = []
        merged: List[Dict[str, Any]] = []
        for item in items:
            existing = await self.find_mergeable(item.ingredientName, item.unit)
            if existing is None:
                added.append(await self.add(item))
                continue

            quantity = existing.quantity + item.quantity
            await self.update(existing.id, GroceryItemUpdate(quantity=quantity))
            merged.append({"id": existing.id, "quantity": quantity})
            log.debug("merged grocery item id=%s name=%s qty=%s", existing.id, item.ingredientName, quantity)

        # 같은 요청에서 추가됐다가 곧바로 합쳐진 항목은 최종 수량으로 보여준다
        final_qty = {m["id"]: m["quantity"] for m in merged}
        added = [
            a.model_copy(update={"quantity": final_qty[a.id]}) if a.id in final_qty else a
            for a in added
        ]
        return added, merged

    async def update(self, item_id: str, updates: GroceryItemUpdate) -> Optional[GroceryItem]:
        oid = to_object_id(item_id)
        if oid is None:
            return None
        doc = await self.col.find_one_and_update(
            {"_id": oid},
            {"$set": {**updates.model_dump(exclude_none=True), "updatedAt": now_iso()}},
            return_document=ReturnDocument.AFTER,
        )
        return _to_item(doc) if doc else None

    async def delete(self, item_id: str) -> bool:
        oid = to_object_id(item_id)
        if oid is None:
            return False
        result = await self.col.delete_one({"_id": oid})
        return result.deleted_count > 0

    async def clear_purchased(self) -> int:
        result = await self.col.delete_many({"isPurchased": True})
        return result.deleted_count
