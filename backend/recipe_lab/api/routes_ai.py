# recipe_lab/api/routes_ai.py
# AI 레시피: 재생성(저장 안 함) / 생성(미리보기) / 생성+이미지+저장
# 에러 응답은 {"message": ...} (레시피 계열)

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from openai import APIError, APIStatusError

from recipe_lab.core.deps import (
    get_llm,
    get_photo_client,
    get_recipe_store,
    get_req_id,
    get_utm_source,
)
from recipe_lab.core.errors import ApiError
from recipe_lab.db.recipes import RecipeStore
from recipe_lab.models.ai import GenerateRequest, RecipeDraftRequest
from recipe_lab.models.changes import RegenerateRequest
from recipe_lab.services.ai_recipe import RecipeInputError, generate_recipe_draft
from recipe_lab.services.images import pick_images
from recipe_lab.services.json_extract import Fallback, Fatal, JsonExtractError, ShapeError
from recipe_lab.services.openai_client import LLMClient, LLMEmptyResponse
from recipe_lab.services.regenerate import ChangeSetError, regenerate_recipe
from recipe_lab.services.unsplash import UnsplashClient

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recipes", tags=["ai"])


def _upstream(e: APIError, message: str) -> ApiError:
    # OpenAI 상태코드/본문 그대로 전달 (상태 없으면 500)
    status = e.status_code if isinstance(e, APIStatusError) else 500
    return ApiError(status, message, details=e.body)


async def _draft(llm: LLMClient, req_id: str, **kwargs):
    try:
        return await generate_recipe_draft(llm, **kwargs)
    except RecipeInputError as e:
        raise ApiError(400, str(e))
    except (JsonExtractError, ShapeError) as e:
        log.warning("[%s] recipe draft unparsable: %s", req_id, e)
        raise ApiError(500, "Failed to parse recipe JSON from model.")
    except LLMEmptyResponse as e:
        raise ApiError(500, str(e))
    except APIError as e:
        log.error("[%s] recipe draft upstream error: %s", req_id, e)
        raise _upstream(e, "Failed to generate recipe.")


@router.post("/{recipe_id}/ai-regenerate")
async def ai_regenerate(
    recipe_id: str,
    body: RegenerateRequest,
    store: RecipeStore = Depends(get_recipe_store),
    llm: LLMClient = Depends(get_llm),
    req_id: str = Depends(get_req_id),
):
    original = body.originalRecipe
    if original is None:
        original = await store.get(recipe_id)
        if original is None:
            raise ApiError(404, "Recipe not found.")

    try:
        outcome = await regenerate_recipe(llm, original, body)
    except ChangeSetError as e:
        raise ApiError(400, str(e))
    except APIError as e:
        log.error("[%s] regeneration upstream error: %s", req_id, e)
        raise _upstream(e, "Failed to regenerate recipe.")

    if isinstance(outcome, Fatal):
        log.error("[%s] regeneration failed: %s", req_id, outcome.error)
        raise ApiError(500, str(outcome.error))

    payload = outcome.value.model_dump(exclude_none=True)
    if isinstance(outcome, Fallback):
        payload["_fallback"] = True
    return payload


@router.post("/generate")
async def generate(
    body: GenerateRequest,
    llm: LLMClient = Depends(get_llm),
    req_id: str = Depends(get_req_id),
):
    recipe = await _draft(llm, req_id, description=body.prompt, pantry_items=body.pantryItems)
    return {"recipe": recipe.model_dump(exclude_none=True)}


@router.post("/ai-add", status_code=201)
async def ai_add(
    body: RecipeDraftRequest,
    store: RecipeStore = Depends(get_recipe_store),
    llm: LLMClient = Depends(get_llm),
    photos: UnsplashClient = Depends(get_photo_client),
    utm_source: str = Depends(get_utm_source),
    req_id: str = Depends(get_req_id),
):
    recipe = await _draft(
        llm,
        req_id,
        title=body.title,
        description=body.description,
        pantry_items=body.pantryItems,
        cooking_mode=body.cookingMode,
        constraints=body.constraints,
        palate_level=body.palateLevel,
        preferences=body.preferences,
    )

    images = await pick_images(recipe, photos, utm_source)
    if images:
        recipe = recipe.model_copy(update={"images": images})
    else:
        log.info("[%s] no images found for %r", req_id, recipe.title)

    created = await store.add(recipe)
    log.info("[%s] ai recipe saved id=%s images=%d", req_id, created.id, len(images))
    return {"recipe": created.model_dump(exclude_none=True)}
