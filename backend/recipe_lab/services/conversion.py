# recipe_lab/services/conversion.py
# 재료 단위 변환 (→ 그램) / 장보기 구매 단위 정규화

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

from pydantic import ValidationError

from recipe_lab.models.grocery import GROCERY_CATEGORIES, NormalizedIngredient, RecipeContext
from recipe_lab.models.recipe import Ingredient
from recipe_lab.services.json_extract import (
    Fallback,
    Fatal,
    JsonExtractError,
    Ok,
    Outcome,
    ShapeError,
    check_fields,
    extract_json,
    require_list,
)
from recipe_lab.services.openai_client import LLMClient

log = logging.getLogger(__name__)

CONVERT_WARNING = "Could not parse AI response, returning original ingredients"

CONVERT_SYSTEM = (
    "1. You are a culinary assistant that converts recipe ingredient measurements to weight. "
    "Always return valid JSON arrays only, with no markdown formatting or explanations. "
    "Be decisive, never leave 'clove' or 'piece' units unconverted; use an average gram value if needed."
)

NORMALIZE_SYSTEM = (
    "You are a grocery shopping assistant. Convert recipe ingredients into realistic grocery "
    "store purchasing units. Always return valid JSON arrays only, with no markdown formatting "
    "or explanations. Be practical and consider standard package sizes available in grocery stores."
)


def _convert_prompt(ingredients: List[Any]) -> str:
    return f"""Convert these ingredients to grams. Return ONLY a JSON array.

Rules:
- Skip ingredients with quantity 0 or "to taste" - return them unchanged
- Convert volume (cups, tbsp, tsp) and count units (cloves, pieces) to grams
- Keep existing gram/mg measurements unchanged

{json.dumps(ingredients)}

Format:
[{{"quantity": number, "unit": "g", "name": string, "note": string|null, "tooltip": string|null}}]"""


def _normalize_prompt(ingredients: List[Ingredient], context: Optional[RecipeContext]) -> str:
    ctx = ""
    if context:
        ctx = f"Recipe: {context.title}"
        if context.servings:
            ctx += f" ({context.servings} servings)"
    payload = json.dumps([i.model_dump(exclude_none=True, exclude={"id"}) for i in ingredients])
    return f"""Convert these recipe ingredients into realistic grocery purchasing units.

{ctx}

Ingredients:
{payload}

Rules:
- Convert to standard package weights (e.g., 430g crushed tomatoes → 1 × 400g can)
- Use common can/jar sizes
- Prefer whole item counts where appropriate (e.g., 45g parsley → 1 bunch)
- For very small quantities (< 15ml/g), suggest omitting or note "use existing"
- Categorize each item into: produce, meat-fish, dairy, pantry, frozen, or other
- Provide confidence level: low, medium, or high

Return ONLY a JSON array with this exact structure:
[{{
  "ingredientName": string,
  "suggestedQuantity": number,
  "suggestedUnit": string,
  "packageDescription": string (optional, e.g., "400g can" or "family pack"),
  "confidenceLevel": "low" | "medium" | "high",
  "category": "produce" | "meat-fish" | "dairy" | "pantry" | "frozen" | "other"
}}]"""


def parse_converted(text: str) -> List[dict]:
    items = require_list(extract_json(text, "array"))
    out = []
    for item in items:
        check_fields(item, numbers=("quantity",), strings=("unit", "name"))
        # null → 필드 없음
        out.append({k: v for k, v in item.items() if not (k in ("note", "tooltip") and v is None)})
    return out


def parse_normalized(text: str) -> List[NormalizedIngredient]:
    items = require_list(extract_json(text, "array"))
    out: List[NormalizedIngredient] = []
    for item in items:
        check_fields(
            item,
            numbers=("suggestedQuantity",),
            strings=("ingredientName", "suggestedUnit", "confidenceLevel", "category"),
        )
        if item["category"] not in GROCERY_CATEGORIES:
            item = {**item, "category": "other"}
        if item["confidenceLevel"] not in ("low", "medium", "high"):
            item = {**item, "confidenceLevel": "medium"}
        out.append(NormalizedIngredient.model_validate(item))
    return out


async def convert_ingredients(llm: LLMClient, ingredients: List[Any]) -> Outcome[List[Any]]:
    """Ok with converted ingredients, or Fallback with the input unchanged."""
    text = await llm.complete(CONVERT_SYSTEM, _convert_prompt(ingredients), temperature=0.3)
    try:
        return Ok(parse_converted(text))
    except (JsonExtractError, ShapeError) as e:
        log.warning("conversion reply unusable (%s); returning original ingredients", e)
        return Fallback(ingredients, reason=CONVERT_WARNING)


async def normalize_ingredients(
    llm: LLMClient, ingredients: List[Ingredient], context: Optional[RecipeContext] = None
) -> Outcome[List[NormalizedIngredient]]:
    text = await llm.complete(NORMALIZE_SYSTEM, _normalize_prompt(ingredients, context), temperature=0.3)
    try:
        return Ok(parse_normalized(text))
    except (JsonExtractError, ShapeError, ValidationError) as e:
        log.error("normalization reply unusable: %s", e)
        return Fatal(e)
