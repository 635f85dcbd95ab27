# recipe_lab/services/images.py
# Unsplash 사진 → RecipeImage 변환 + 레시피별 이미지 2~3장 고르기
# 쿼리: 완성 요리(제목) / 주재료 / 분위기(태그)

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Set
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

import httpx

from recipe_lab.models.recipe import RecipeImage, RecipeIn
from recipe_lab.services.unsplash import Pacer, UnsplashApiError, UnsplashClient

log = logging.getLogger(__name__)

UNSPLASH_BASE = "https://unsplash.com"
SKIP_TAGS = {"test", "simple", "quick"}
MAX_QUERIES = 3
UTM_KEYS = ("utm_source", "utm_medium", "utm_campaign")

_PARENS_RE = re.compile(r"\s*\(.*?\)\s*")


def _utm(utm_source: str) -> str:
    return f"utm_source={quote(utm_source)}&utm_medium=referral&utm_campaign=api-credit"


def _with_utm(url: str, utm: str) -> str:
    # 기존 utm_* 는 걷어내고 우리 utm을 한 번만 붙인다 (#fragment 유지)
    parts = urlsplit(url)
    kept = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in UTM_KEYS]
    query = "&".join(q for q in (urlencode(kept, quote_via=quote), utm) if q)
    return urlunsplit(parts._replace(query=query))


def build_attribution(photo: Mapping[str, Any], utm_source: str) -> Dict[str, str]:
    utm = _utm(utm_source)
    username = photo["user"]["username"]
    return {
        "creditUrl": _with_utm(f"{UNSPLASH_BASE}/@{quote(username, safe='')}", utm),
        "sourceUrl": _with_utm(photo["links"]["html"], utm),
    }


def to_recipe_image(photo: Mapping[str, Any], utm_source: str) -> RecipeImage:
    credit = build_attribution(photo, utm_source)
    urls = photo["urls"]
    return RecipeImage(
        photoId=photo["id"],
        urlSmall=urls["small"],
        urlRegular=urls["regular"],
        urlFull=urls["full"],
        alt=photo.get("alt_description") or "",
        creditName=photo["user"]["name"],
        creditUsername=photo["user"]["username"],
        **credit,
    )


def generate_queries(recipe: RecipeIn) -> List[str]:
    queries: List[str] = []

    hero = _PARENS_RE.sub(" ", recipe.title).strip()
    if hero:
        queries.append(hero)

    if recipe.ingredients:
        queries.append(recipe.ingredients[0].name)

    if recipe.tags:
        context = next((t for t in recipe.tags if t.lower() not in SKIP_TAGS), recipe.tags[0])
        queries.append(f"{context} food")
    elif len(recipe.ingredients) >= 2:
        queries.append(f"{recipe.ingredients[0].name} {recipe.ingredients[1].name}")
    else:
        queries.append("delicious food")

    return [q for q in queries if q.strip()][:MAX_QUERIES]


async def pick_images(
    recipe: RecipeIn,
    client: UnsplashClient,
    utm_source: str,
    per_page: int = 10,
    pacer: Optional[Pacer] = None,
) -> List[RecipeImage]:
    """Search each query in turn and keep the first photo not already picked.

    A failed search skips that query. Selected photos have their download
    tracked without waiting on it.
    """
    pacer = pacer or Pacer()
    images: List[RecipeImage] = []
    used: Set[str] = set()

    for query in generate_queries(recipe):
        await pacer.wait()
        try:
            res = await client.search_photos(query, page=1, per_page=per_page)
        except UnsplashApiError as e:
            log.warning("image search failed query=%r status=%d", query, e.status)
            continue
        except httpx.HTTPError as e:
            log.warning("image search failed query=%r err=%s", query, e)
            continue

        top = next((p for p in res.get("results", []) if p.get("id") not in used), None)
        if top is None:
            log.info("no unique photo for query=%r", query)
            continue

        used.add(top["id"])
        images.append(to_recipe_image(top, utm_source))
        location = (top.get("links") or {}).get("download_location")
        if location:
            client.track_download(location)

    return images
