# recipe_lab/services/ai_recipe.py
# 설명/팬트리 재료 → LLM 레시피 초안 (저장은 라우터가 결정)

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from recipe_lab.models.ai import CookingConstraints, CookingMode, DietaryPreferences
from recipe_lab.models.recipe import Ingredient, RecipeIn, ensure_ingredient_ids
from recipe_lab.services.json_extract import extract_json, require_object
from recipe_lab.services.openai_client import LLMClient

log = logging.getLogger(__name__)

MAX_TOKENS = 2000
MAX_PANTRY_ITEMS = 20

SYSTEM_PROMPT = """You are a helpful culinary assistant who creates approachable, flavorful recipes.
Always respond with valid JSON matching this exact structure:
{
  "title": "string",
  "description": "string (1-2 sentences)",
  "ingredients": [
    { "quantity": number, "unit": "string", "name": "string" }
  ],
  "steps": ["string"],
  "prepTimeMinutes": number,
  "cookTimeMinutes": number,
  "servings": number,
  "tags": ["string"]
}

Rules:
- All fields are required
- ingredients must have at least 1 item
- steps must have at least 1 item
- Use real-world units (grams, cups, tbsp, etc.)
- Steps should be concise sentences in chronological order
- Do NOT include markdown, code blocks, or explanations - just the JSON object"""

PREFERENCE_TEXT = {
    "highProtein": "high protein",
    "quickMeal": "ready in 30 minutes or less",
    "lowCalorie": "low-calorie",
    "mealPrepFriendly": "meal-prep friendly",
    "lowCost": "low cost",
    "budgetFriendly": "budget-friendly",
    "lowCarb": "low-carb",
    "glutenFree": "gluten-free",
}


class RecipeInputError(ValueError):
    pass


def palate_label(level: int) -> str:
    if level <= 3:
        return "Mild & Familiar"
    if level <= 7:
        return "Moderate"
    return "Bold & Adventurous"


def clean_pantry(items: List[str]) -> List[str]:
    return [i.strip() for i in items if i and i.strip()][:MAX_PANTRY_ITEMS]


def build_user_prompt(
    title: Optional[str],
    description: Optional[str],
    pantry: List[str],
    cooking_mode: CookingMode = "beginner",
    constraints: Optional[CookingConstraints] = None,
    palate_level: Optional[int] = None,
    preferences: Optional[DietaryPreferences] = None,
) -> str:
    parts: List[str] = []
    if title:
        parts.append(f"Recipe name: {title}")
    if description:
        parts.append(f"Description: {description}")
    else:
        parts.append("Create a seasonal, crowd-pleasing dish.")
    if pantry:
        parts.append(f"Use these pantry items: {', '.join(pantry)}")

    if constraints:
        parts.append(f"Cooking mode: {cooking_mode}")
        parts.append(f"Technique complexity: {constraints.techniqueComplexity}")
        parts.append(f"Allowed variations: {constraints.allowedVariations}")
        parts.append(f"Specialty ingredients: {'allowed' if constraints.specialtyIngredients else 'not allowed'}")
        parts.append(f"Guidance level: {constraints.guidanceLevel}")

    if palate_level is not None:
        parts.append(f"Flavor profile: {palate_label(palate_level)} (level {palate_level}/10)")

    prefs = (preferences or DietaryPreferences()).model_dump()
    needs = [text for key, text in PREFERENCE_TEXT.items() if prefs.get(key)]
    if needs:
        parts.append(f"Dietary requirements: {', '.join(needs)}")

    return "\n".join(parts)


def _num(v: Any) -> float:
    try:
        return max(float(v), 0.0)
    except (TypeError, ValueError):
        return 0.0


def _opt_int(v: Any) -> Optional[int]:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    return int(round(v))


def normalize_recipe(parsed: Dict[str, Any]) -> RecipeIn:
    title = parsed.get("title")
    description = parsed.get("description")

    raw_ings = parsed.get("ingredients")
    ingredients = [
        Ingredient(
            quantity=_num(ing.get("quantity")),
            unit=ing.get("unit") if isinstance(ing.get("unit"), str) else "",
            name=ing.get("name") if isinstance(ing.get("name"), str) else "",
        )
        for ing in raw_ings
        if isinstance(ing, dict)
    ] if isinstance(raw_ings, list) else []
    if not ingredients:
        ingredients = [Ingredient(quantity=1, unit="unit", name="Ingredient")]

    raw_steps = parsed.get("steps")
    steps = [s.strip() for s in raw_steps if isinstance(s, str) and s.strip()] if isinstance(raw_steps, list) else []
    if not steps:
        steps = ["Combine ingredients and enjoy."]

    raw_tags = parsed.get("tags")
    tags = [t.strip() for t in raw_tags if isinstance(t, str) and t.strip()] if isinstance(raw_tags, list) else None

    return RecipeIn(
        title=title.strip() if isinstance(title, str) and title.strip() else "Chef's Choice",
        description=description.strip() if isinstance(description, str) and description.strip() else "A delicious dish.",
        ingredients=ensure_ingredient_ids(ingredients),
        steps=steps,
        prepTimeMinutes=_opt_int(parsed.get("prepTimeMinutes")),
        cookTimeMinutes=_opt_int(parsed.get("cookTimeMinutes")),
        servings=_opt_int(parsed.get("servings")),
        tags=tags,
    )


async def generate_recipe_draft(
    llm: LLMClient,
    *,
    title: Optional[str] = None,
    description: Optional[str] = None,
    pantry_items: Optional[List[str]] = None,
    cooking_mode: CookingMode = "beginner",
    constraints: Optional[CookingConstraints] = None,
    palate_level: Optional[int] = None,
    preferences: Optional[DietaryPreferences] = None,
) -> RecipeIn:
    """Ask the model for a new recipe.

    Raises RecipeInputError when neither a description nor a pantry item is
    given. A reply that is not a JSON object raises JsonExtractError/ShapeError.
    """
    title = (title or "").strip() or None
    description = (description or "").strip() or None
    pantry = clean_pantry(pantry_items or [])

    if not description and not pantry:
        raise RecipeInputError("Provide a description or at least one pantry item.")

    user_prompt = build_user_prompt(
        title, description, pantry, cooking_mode, constraints, palate_level, preferences,
    )
    text = await llm.complete(SYSTEM_PROMPT, user_prompt, max_tokens=MAX_TOKENS, json_mode=True)
    parsed = require_object(extract_json(text, "object"))

    recipe = normalize_recipe(parsed)
    log.info("generated recipe draft title=%r n_ing=%d", recipe.title, len(recipe.ingredients))
    return recipe
