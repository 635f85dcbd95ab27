# recipe_lab/api/routes_grocery.py
# 장보기 목록 CRUD + 구매 단위 정규화: 에러 응답은 {"error": ...}

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from openai import APIError, APIStatusError

from recipe_lab.core.deps import get_grocery_store, get_llm
from recipe_lab.core.errors import ApiError
from recipe_lab.db.grocery import GroceryStore
from recipe_lab.models.grocery import AddGroceryItemsIn, NormalizeIn, PatchGroceryItemIn
from recipe_lab.services.conversion import normalize_ingredients
from recipe_lab.services.json_extract import Fatal
from recipe_lab.services.openai_client import LLMClient, LLMEmptyResponse

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/grocery", tags=["grocery"])


def _dump(item) -> dict:
    return item.model_dump(exclude_none=True)


@router.get("")
async def list_items(store: GroceryStore = Depends(get_grocery_store)):
    items = await store.list_all()
    return {"items": [_dump(i) for i in items]}


@router.post("")
async def add_items(body: AddGroceryItemsIn, store: GroceryStore = Depends(get_grocery_store)):
    added, merged = await store.add_or_merge(body.items)
    log.info("grocery add: added=%d merged=%d", len(added), len(merged))
    return {"added": [_dump(i) for i in added], "merged": merged}


@router.patch("")
async def patch_item(body: PatchGroceryItemIn, store: GroceryStore = Depends(get_grocery_store)):
    if not body.id:
        raise ApiError(400, "Invalid item ID", key="error")
    item = await store.update(body.id, body.updates)
    if item is None:
        raise ApiError(404, "Item not found", key="error")
    return {"item": _dump(item)}


@router.delete("")
async def delete_item(
    id: Optional[str] = None,
    clearPurchased: Optional[str] = None,
    store: GroceryStore = Depends(get_grocery_store),
):
    if clearPurchased == "true":
        deleted = await store.clear_purchased()
        log.info("cleared purchased grocery items n=%d", deleted)
        return {"deletedCount": deleted}

    if not id:
        raise ApiError(400, "Item ID required", key="error")
    if not await store.delete(id):
        raise ApiError(404, "Item not found", key="error")
    return {"success": True}


@router.post("/normalize")
async def normalize(body: NormalizeIn, llm: LLMClient = Depends(get_llm)):
    try:
        outcome = await normalize_ingredients(llm, body.ingredients, body.recipeContext)
    except LLMEmptyResponse:
        raise ApiError(500, "No response from AI", key="error")
    except APIError as e:
        log.error("normalization upstream error: %s", e)
        status = e.status_code if isinstance(e, APIStatusError) else 500
        raise ApiError(status, "Failed to normalize ingredients", key="error", details=e.body)

    if isinstance(outcome, Fatal):
        raise ApiError(500, "Failed to parse AI response", key="error")
    return {"normalizedIngredients": [n.model_dump(exclude_none=True) for n in outcome.value]}
