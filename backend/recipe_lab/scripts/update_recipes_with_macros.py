# recipe_lab/scripts/update_recipes_with_macros.py
# 매크로 없는 레시피에 1인분 매크로 채우기 (LLM 실패 시 휴리스틱 값)
# 실행: python -m recipe_lab.scripts.update_recipes_with_macros

import asyncio

from recipe_lab.core.config import get_settings
from recipe_lab.db.init import close_db, get_db, init_db
from recipe_lab.db.recipes import RecipeStore
from recipe_lab.models.recipe import RecipeIn
from recipe_lab.services.json_extract import Fallback
from recipe_lab.services.macros import MAX_SERVINGS, estimate_macros, valid_ingredients
from recipe_lab.services.openai_client import LLMClient


async def main():
    settings = get_settings()
    await init_db()
    store = RecipeStore(get_db())
    llm = LLMClient(settings.OPENAI_API_KEY, settings.OPENAI_RECIPE_MODEL)

    updated = skipped = failed = 0
    try:
        recipes = await store.list_all()
        print(f"[macros] {len(recipes)} recipes")

        for recipe in recipes:
            if recipe.macros:
                skipped += 1
                continue

            ingredients = valid_ingredients([i.model_dump() for i in recipe.ingredients])
            if not ingredients:
                print(f"  no usable ingredients: {recipe.title!r}")
                failed += 1
                continue

            servings = min(max(recipe.servings or 1, 1), MAX_SERVINGS)
            outcome = await estimate_macros(llm, ingredients, servings)
            macros = outcome.value

            payload = RecipeIn(**recipe.model_dump(exclude={"id", "createdAt", "updatedAt"}))
            saved = await store.update(recipe.id, payload.model_copy(update={"macros": macros}))
            if saved is None:
                failed += 1
                continue

            note = " (fallback)" if isinstance(outcome, Fallback) else ""
            print(
                f"  {recipe.title}: {macros.calories:g} kcal | P {macros.protein:g}g | "
                f"C {macros.carbohydrates:g}g | F {macros.fat:g}g{note}"
            )
            updated += 1
    finally:
        await close_db()

    print(f"[macros] updated={updated} skipped={skipped} failed={failed}")


if __name__ == "__main__":
    asyncio.run(main())
