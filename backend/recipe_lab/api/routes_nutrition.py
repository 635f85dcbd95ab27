# recipe_lab/api/routes_nutrition.py
# 매크로 추정 / 그램 변환: 에러 응답은 {"error": ...}

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from openai import APIError, APIStatusError

from recipe_lab.core.deps import get_llm
from recipe_lab.core.errors import ApiError
from recipe_lab.models.ai import ConvertIngredientsIn, EstimateMacrosIn
from recipe_lab.services.conversion import convert_ingredients
from recipe_lab.services.json_extract import Fallback
from recipe_lab.services.macros import (
    MacroInputError,
    check_servings,
    estimate_macros,
    valid_ingredients,
)
from recipe_lab.services.openai_client import LLMClient, LLMEmptyResponse

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["nutrition"])


@router.post("/estimate-macros")
async def post_estimate_macros(body: EstimateMacrosIn, llm: LLMClient = Depends(get_llm)):
    if not body.ingredients:
        raise ApiError(400, "Ingredients array is required", key="error")
    try:
        servings = check_servings(body.servings)
    except MacroInputError as e:
        raise ApiError(400, str(e), key="error")

    ingredients = valid_ingredients(body.ingredients)
    if not ingredients:
        raise ApiError(400, "No valid ingredients found", key="error")

    outcome = await estimate_macros(llm, ingredients, servings)
    payload = outcome.value.model_dump(exclude_none=True)
    if isinstance(outcome, Fallback):
        payload["_fallback"] = True
    return payload


@router.post("/convert-ingredients")
async def post_convert_ingredients(body: ConvertIngredientsIn, llm: LLMClient = Depends(get_llm)):
    if body.ingredients is None:
        raise ApiError(400, "Invalid ingredients array", key="error")

    try:
        outcome = await convert_ingredients(llm, body.ingredients)
    except LLMEmptyResponse:
        raise ApiError(500, "No response from AI", key="error")
    except APIError as e:
        log.error("conversion upstream error: %s", e)
        status = e.status_code if isinstance(e, APIStatusError) else 500
        raise ApiError(status, "Failed to convert ingredients", key="error", details=e.body)

    if isinstance(outcome, Fallback):
        return {"convertedIngredients": outcome.value, "warning": outcome.reason}
    return {"convertedIngredients": outcome.value}
