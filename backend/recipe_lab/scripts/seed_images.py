# recipe_lab/scripts/seed_images.py
# 저장된 레시피마다 Unsplash 이미지 2~3장 채우기
# 실행: python -m recipe_lab.scripts.seed_images [--utm-source X] [--per-page N] [--dry-run] [--skip-existing]

import argparse
import asyncio

from recipe_lab.core.config import get_settings
from recipe_lab.db.init import close_db, get_db, init_db
from recipe_lab.db.recipes import RecipeStore
from recipe_lab.services.images import pick_images
from recipe_lab.services.unsplash import Pacer, UnsplashClient


def parse_args(argv=None) -> argparse.Namespace:
    settings = get_settings()
    p = argparse.ArgumentParser(description="Attach Unsplash images to stored recipes.")
    p.add_argument("--utm-source", default=settings.UNSPLASH_UTM_SOURCE)
    p.add_argument("--per-page", type=int, default=10)
    p.add_argument("--dry-run", action="store_true")
    p.add_argument("--skip-existing", action="store_true")
    return p.parse_args(argv)


async def main(argv=None):
    opts = parse_args(argv)
    await init_db()
    store = RecipeStore(get_db())
    photos = UnsplashClient(get_settings().UNSPLASH_ACCESS_KEY)

    try:
        recipes = await store.list_all()
        print(f"[seed_images] {len(recipes)} recipes")

        for i, recipe in enumerate(recipes, 1):
            print(f"[{i}/{len(recipes)}] {recipe.title}")
            if opts.skip_existing and recipe.images:
                print("  skip: images already present")
                continue

            images = await pick_images(recipe, photos, opts.utm_source, opts.per_page, Pacer())
            for img in images:
                print(f"  selected {img.photoId} - {img.alt or '(no alt)'}")

            if opts.dry_run:
                print(f"  {len(images)} images would be saved (dry run)")
            elif images:
                ok = await store.set_images(recipe.id, images)
                print(f"  saved {len(images)} images" if ok else "  failed to save images")
    finally:
        await photos.aclose()
        await close_db()

    print("[seed_images] dry run complete" if opts.dry_run else "[seed_images] done")


if __name__ == "__main__":
    asyncio.run(main())
