# recipe_lab/api/routes_drafts.py
# 저장 전 레시피 드래프트: 생성/조회/재료 수정/되돌리기/발행
# 에러 응답은 {"message": ...}

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends

from recipe_lab.api.routes_recipes import validate_recipe_payload
from recipe_lab.core.deps import get_draft_repo, get_recipe_store
from recipe_lab.core.errors import ApiError
from recipe_lab.db.drafts import (
    DraftRepository,
    create_draft_from_preview,
    reset_draft_ingredients,
    update_draft_ingredients,
)
from recipe_lab.db.recipes import RecipeStore
from recipe_lab.models.draft import DraftIngredientsIn, DraftPreview, PublishDraftIn, RecipeDraft
from recipe_lab.models.recipe import RecipeIn

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/drafts", tags=["drafts"])

NOT_FOUND = "Draft not found."


@router.get("", response_model=List[RecipeDraft], response_model_exclude_none=True)
async def list_drafts(repo: DraftRepository = Depends(get_draft_repo)):
    return await repo.list_all()


@router.post("", status_code=201, response_model=RecipeDraft, response_model_exclude_none=True)
async def create_draft(body: DraftPreview, repo: DraftRepository = Depends(get_draft_repo)):
    draft = await create_draft_from_preview(repo, body)
    log.info("draft created id=%s", draft.id)
    return draft


@router.get("/{draft_id}", response_model=RecipeDraft, response_model_exclude_none=True)
async def get_draft(draft_id: str, repo: DraftRepository = Depends(get_draft_repo)):
    draft = await repo.get(draft_id)
    if draft is None:
        raise ApiError(404, NOT_FOUND)
    return draft


@router.delete("/{draft_id}")
async def delete_draft(draft_id: str, repo: DraftRepository = Depends(get_draft_repo)):
    if not await repo.delete(draft_id):
        raise ApiError(404, NOT_FOUND)
    return {"success": True}


@router.put("/{draft_id}/ingredients", response_model=RecipeDraft, response_model_exclude_none=True)
async def put_draft_ingredients(
    draft_id: str, body: DraftIngredientsIn, repo: DraftRepository = Depends(get_draft_repo)
):
    draft = await update_draft_ingredients(repo, draft_id, body.ingredients)
    if draft is None:
        raise ApiError(404, NOT_FOUND)
    return draft


@router.post("/{draft_id}/reset", response_model=RecipeDraft, response_model_exclude_none=True)
async def reset_draft(draft_id: str, repo: DraftRepository = Depends(get_draft_repo)):
    draft = await reset_draft_ingredients(repo, draft_id)
    if draft is None:
        raise ApiError(404, NOT_FOUND)
    return draft


@router.post("/{draft_id}/publish", status_code=201)
async def publish_draft(
    draft_id: str,
    body: Optional[PublishDraftIn] = None,
    repo: DraftRepository = Depends(get_draft_repo),
    store: RecipeStore = Depends(get_recipe_store),
):
    draft = await repo.get(draft_id)
    if draft is None:
        raise ApiError(404, NOT_FOUND)

    recipe = RecipeIn(
        **draft.model_dump(include=set(DraftPreview.model_fields)),
        macros=body.macros if body else None,
    )
    validate_recipe_payload(recipe)

    created = await store.add(recipe)
    await repo.delete(draft_id)
    log.info("draft published draft=%s recipe=%s", draft_id, created.id)
    return {"recipe": created.model_dump(exclude_none=True)}
