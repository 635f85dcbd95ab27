# recipe_lab/services/unsplash.py
# Unsplash 검색 API 래퍼 (서버 전용)
# - 429/5xx/타임아웃은 짧게 재시도, 그 외 비정상 응답은 UnsplashApiError
# - 다운로드 트래킹은 fire-and-forget

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Dict, Optional, Set

import httpx

log = logging.getLogger(__name__)

API_BASE = "https://api.unsplash.com"
API_HOST = "api.unsplash.com"

TIMEOUT = httpx.Timeout(20.0)
RETRY_STATUSES = {429, 500, 502, 503, 504}


class UnsplashApiError(Exception):
    def __init__(self, status: int, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.message = message
        self.details = details


class Pacer:
    """Sleeps a jittered interval before every call but the first."""

    def __init__(self, min_delay: float = 0.25, max_delay: float = 0.5) -> None:
        self.min_delay = min_delay
        self.max_delay = max_delay
        self._started = False

    async def wait(self) -> None:
        if self._started:
            await asyncio.sleep(random.uniform(self.min_delay, self.max_delay))
        self._started = True


class UnsplashClient:
    def __init__(
        self,
        access_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        tries: int = 3,
    ) -> None:
        self.access_key = access_key
        self.tries = tries
        self._http = http_client or httpx.AsyncClient(timeout=TIMEOUT)
        self._pending: Set[asyncio.Task] = set()

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Client-ID {self.access_key}",
            "Accept-Version": "v1",
        }

    async def _get_with_retry(self, url: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        last: Optional[Exception] = None
        for i in range(self.tries):
            try:
                r = await self._http.get(url, params=params, headers=self._headers())
            except (httpx.ConnectTimeout, httpx.ReadTimeout, httpx.ConnectError) as e:
                last = e
            else:
                if r.status_code not in RETRY_STATUSES or i == self.tries - 1:
                    return r
                last = None
                log.warning("unsplash %s -> %d, retrying", url, r.status_code)
            if i < self.tries - 1:
                # 0.5, 1.0초 + 작은 지터
                await asyncio.sleep(0.5 * (i + 1) + random.random() * 0.25)
        # 마지막 예외 재던지기
        assert last is not None
        raise last

    async def search_photos(
        self,
        query: str,
        page: int = 1,
        per_page: int = 10,
        orientation: Optional[str] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"query": query, "page": page, "per_page": per_page}
        if orientation:
            params["orientation"] = orientation

        r = await self._get_with_retry(f"{API_BASE}/search/photos", params)
        if r.status_code >= 400:
            try:
                details = r.json()
            except ValueError:
                details = None
            raise UnsplashApiError(
                r.status_code,
                f"Unsplash API error: {r.status_code} {r.reason_phrase}",
                details,
            )
        return r.json()

    async def _track(self, download_location: str) -> None:
        try:
            r = await self._get_with_retry(download_location)
            if r.status_code >= 400:
                log.warning("download tracking failed status=%d url=%s", r.status_code, download_location)
        except httpx.HTTPError as e:
            log.warning("download tracking failed url=%s err=%s", download_location, e)

    def track_download(self, download_location: str) -> asyncio.Task:
        # 응답을 기다리지 않는다. task 참조만 보관 (GC 방지)
        task = asyncio.create_task(self._track(download_location))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def aclose(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        await self._http.aclose()
