# recipe_lab/api/routes_recipes.py
# 레시피 CRUD: 목록/단건/생성/수정/삭제
# 에러 응답은 {"message": ...}

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends

from recipe_lab.core.deps import get_recipe_store
from recipe_lab.core.errors import ApiError
from recipe_lab.db.recipes import RecipeStore
from recipe_lab.models.recipe import Recipe, RecipeIn

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recipes", tags=["recipes"])

NOT_FOUND = "Recipe not found."


def validate_recipe_payload(payload: RecipeIn) -> None:
    # 저장 전 필수값 검사 (실패 시 아무것도 저장하지 않는다)
    if not payload.title.strip() or not payload.description.strip():
        raise ApiError(400, "Title and description are required.")
    if not payload.ingredients:
        raise ApiError(400, "At least one ingredient is required.")
    if not payload.steps:
        raise ApiError(400, "At least one step is required.")


@router.get("", response_model=List[Recipe], response_model_exclude_none=True)
async def list_recipes(store: RecipeStore = Depends(get_recipe_store)):
    return await store.list_all()


@router.post("", status_code=201, response_model=Recipe, response_model_exclude_none=True)
async def create_recipe(payload: RecipeIn, store: RecipeStore = Depends(get_recipe_store)):
    validate_recipe_payload(payload)
    created = await store.add(payload)
    log.info("recipe created id=%s title=%r", created.id, created.title)
    return created


@router.get("/{recipe_id}", response_model=Recipe, response_model_exclude_none=True)
async def get_recipe(recipe_id: str, store: RecipeStore = Depends(get_recipe_store)):
    recipe = await store.get(recipe_id)
    if recipe is None:
        raise ApiError(404, NOT_FOUND)
    return recipe


@router.put("/{recipe_id}", response_model=Recipe, response_model_exclude_none=True)
async def update_recipe(recipe_id: str, payload: RecipeIn, store: RecipeStore = Depends(get_recipe_store)):
    # 존재 확인이 먼저 (없는 id면 본문 검사 전에 404)
    if await store.get(recipe_id) is None:
        raise ApiError(404, NOT_FOUND)
    validate_recipe_payload(payload)

    updated = await store.update(recipe_id, payload)
    if updated is None:
        # 사이에 삭제됨
        raise ApiError(404, NOT_FOUND)
    return updated


@router.delete("/{recipe_id}")
async def delete_recipe(recipe_id: str, store: RecipeStore = Depends(get_recipe_store)):
    if not await store.delete(recipe_id):
        raise ApiError(404, NOT_FOUND)
    log.info("recipe deleted id=%s", recipe_id)
    return {"success": True}
