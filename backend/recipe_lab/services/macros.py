# recipe_lab/services/macros.py
# 1인분 매크로 추정: LLM 우선, 실패하면 키워드 휴리스틱(Fallback)

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Tuple

from recipe_lab.models.recipe import (
    MACRO_OPTIONAL_FIELDS,
    MACRO_REQUIRED_FIELDS,
    Ingredient,
    MacroInformation,
)
from recipe_lab.services.json_extract import (
    Fallback,
    Ok,
    Outcome,
    ShapeError,
    extract_json,
    require_object,
)
from recipe_lab.services.openai_client import LLMClient

log = logging.getLogger(__name__)

MAX_TOKENS = 200
MIN_SERVINGS, MAX_SERVINGS = 1, 50

SYSTEM_PROMPT = "You are a precise nutrition calculator. Always return valid JSON with numeric macro values."

# (키워드들, kcal, protein, carbs, fat): 수량 1단위당
HEURISTICS: List[Tuple[Tuple[str, ...], float, float, float, float]] = [
    (("chicken", "turkey"), 165, 31, 0, 3.6),
    (("beef",), 250, 26, 0, 15),
    (("rice", "pasta"), 130, 2.7, 28, 0),
    (("oil", "butter"), 884, 0, 0, 100),
    (("vegetable", "onion", "tomato"), 25, 0, 5, 0),
]
DEFAULT_HEURISTIC = (150, 5, 15, 8)


class MacroInputError(ValueError):
    pass


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def valid_ingredients(raw: List[Any]) -> List[Ingredient]:
    # 이름 없음 / 수량 <= 0 은 버린다
    out: List[Ingredient] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        name, qty = item.get("name"), item.get("quantity")
        if not isinstance(name, str) or not name.strip() or not _is_number(qty) or qty <= 0:
            log.debug("filtering out invalid ingredient: %r", item)
            continue
        unit = item.get("unit")
        out.append(Ingredient(quantity=qty, unit=unit if isinstance(unit, str) else "", name=name.strip()))
    return out


def check_servings(servings: Any) -> int:
    if not _is_number(servings) or not (MIN_SERVINGS <= servings <= MAX_SERVINGS):
        raise MacroInputError("Valid servings number is required (1-50)")
    return int(servings)


def round_half_up(value: float, places: int = 0) -> float:
    # round()는 짝수 쪽으로 반올림하므로 .5는 항상 올린다 (82.5 -> 83)
    exp = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(exp, rounding=ROUND_HALF_UP))


def fallback_macros(ingredients: List[Ingredient], servings: int) -> MacroInformation:
    calories = protein = carbs = fat = 0.0
    for ing in ingredients:
        name = ing.name.lower()
        q = ing.quantity
        per = next((h[1:] for h in HEURISTICS if any(k in name for k in h[0])), DEFAULT_HEURISTIC)
        calories += q * per[0]
        protein += q * per[1]
        carbs += q * per[2]
        fat += q * per[3]

    return MacroInformation(
        calories=round_half_up(calories / servings),
        protein=round_half_up(protein / servings, 1),
        carbohydrates=round_half_up(carbs / servings, 1),
        fat=round_half_up(fat / servings, 1),
    )


def build_prompt(ingredients: List[Ingredient], servings: int) -> str:
    lines = "\n".join(f"{ing.quantity:g} {ing.unit} {ing.name}".replace("  ", " ").strip() for ing in ingredients)
    return f"""You are a nutrition calculator. Given the following ingredients and number of servings, estimate the macro information per serving.

Ingredients:
{lines}

Servings: {servings}

Return ONLY a JSON object with these exact fields and numeric values:
{{
  "calories": number,
  "protein": number,
  "carbohydrates": number,
  "fat": number,
  "fiber": number,
  "sugar": number,
  "sodium": number,
  "cholesterol": number,
  "saturatedFat": number,
  "unsaturatedFat": number
}}

Rules:
- All values should be per serving
- Protein, carbs, fat, fiber, sugar, saturatedFat, unsaturatedFat should be in grams
- Sodium and cholesterol should be in milligrams
- Round to 1 decimal place for grams, whole numbers for calories and milligrams
- If a macro is negligible, use 0
- Be conservative with estimates - it's better to underestimate than overestimate
- Consider cooking methods (oil absorption, water loss, etc.)
- Account for the fact that some ingredients lose weight during cooking

Return ONLY the JSON object, no explanation."""


def parse_macros(data: Dict[str, Any]) -> MacroInformation:
    for f in MACRO_REQUIRED_FIELDS:
        v = data.get(f)
        if not _is_number(v) or v < 0:
            raise ShapeError(f"Invalid or missing {f} in response")
    # 선택 필드는 잘못됐으면 버린다
    clean = {f: data[f] for f in MACRO_REQUIRED_FIELDS}
    for f in MACRO_OPTIONAL_FIELDS:
        v = data.get(f)
        if _is_number(v) and v >= 0:
            clean[f] = v
    return MacroInformation(**clean)


async def estimate_macros(
    llm: LLMClient, ingredients: List[Ingredient], servings: int
) -> Outcome[MacroInformation]:
    """Never fails once inputs are valid: any model problem yields the heuristic."""
    try:
        text = await llm.complete(
            SYSTEM_PROMPT, build_prompt(ingredients, servings),
            max_tokens=MAX_TOKENS, temperature=0.1, json_mode=True,
        )
        return Ok(parse_macros(require_object(extract_json(text, "object"))))
    except Exception as e:
        log.warning("macro estimation failed (%s: %s); using heuristic", type(e).__name__, e)
        return Fallback(fallback_macros(ingredients, servings), reason=str(e))
