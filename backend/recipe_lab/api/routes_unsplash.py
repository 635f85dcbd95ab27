# recipe_lab/api/routes_unsplash.py
# Unsplash 검색 프록시 (UI용 축약 payload) + 다운로드 트래킹 트리거

from __future__ import annotations

import logging
import math
from typing import Any, Optional
from urllib.parse import urlparse

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from recipe_lab.core.deps import get_photo_client
from recipe_lab.core.errors import ApiError
from recipe_lab.services.unsplash import API_HOST, UnsplashApiError, UnsplashClient

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/unsplash", tags=["unsplash"])

CACHE_HEADERS = {"Cache-Control": "public, max-age=60"}


class DownloadIn(BaseModel):
    downloadLocation: str


def clamp_per_page(value: Any) -> int:
    try:
        num = float(value)
    except (TypeError, ValueError):
        return 10
    if math.isnan(num) or num < 1:
        return 10
    if num > 30:
        return 30
    return int(num)


@router.get("/search")
async def search(
    query: Optional[str] = None,
    perPage: Optional[str] = None,
    photos: UnsplashClient = Depends(get_photo_client),
):
    if not query or len(query.strip()) < 2:
        raise ApiError(400, "Invalid query: must be at least 2 characters", key="error")

    try:
        res = await photos.search_photos(query, page=1, per_page=clamp_per_page(perPage))
    except UnsplashApiError as e:
        log.warning("unsplash search error status=%d", e.status)
        raise ApiError(e.status, e.message, key="error", details=e.details)
    except httpx.HTTPError as e:
        log.error("unsplash search transport error: %s", e)
        raise ApiError(500, "Internal server error", key="error")

    results = [
        {
            "id": p.get("id"),
            "alt": p.get("alt_description") or "",
            "urls": p.get("urls"),
            "user": p.get("user"),
            "links": p.get("links"),
        }
        for p in res.get("results", [])
    ]
    return JSONResponse(
        {"total": res.get("total", 0), "total_pages": res.get("total_pages", 0), "results": results},
        headers=CACHE_HEADERS,
    )


@router.post("/download", status_code=202)
async def track_download(body: DownloadIn, photos: UnsplashClient = Depends(get_photo_client)):
    # 키가 실린 요청이므로 Unsplash API 호스트만 허용
    parsed = urlparse(body.downloadLocation)
    if parsed.scheme != "https" or parsed.hostname != API_HOST:
        raise ApiError(400, "Invalid download location", key="error")
    photos.track_download(body.downloadLocation)
    return {"accepted": True}
