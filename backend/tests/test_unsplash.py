import asyncio

import httpx
import pytest

from conftest import FakePhotos, make_photo
from recipe_lab.services.unsplash import UnsplashApiError, UnsplashClient


def make_client(handler) -> UnsplashClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return UnsplashClient("key-123", http_client=http)


@pytest.mark.asyncio
async def test_search_sends_auth_and_params() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"total": 1, "total_pages": 1, "results": [make_photo("p1")]})

    client = make_client(handler)
    res = await client.search_photos("pasta", page=2, per_page=5, orientation="landscape")
    await client.aclose()

    assert res["results"][0]["id"] == "p1"
    req = seen[0]
    assert req.url.path == "/search/photos"
    assert req.url.params["query"] == "pasta"
    assert req.url.params["page"] == "2"
    assert req.url.params["per_page"] == "5"
    assert req.url.params["orientation"] == "landscape"
    assert req.headers["Authorization"] == "Client-ID key-123"
    assert req.headers["Accept-Version"] == "v1"


@pytest.mark.asyncio
async def test_search_retries_rate_limit() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(429, json={"errors": ["Rate Limit Exceeded"]})
        return httpx.Response(200, json={"total": 0, "total_pages": 0, "results": []})

    client = make_client(handler)
    res = await client.search_photos("soup")
    await client.aclose()

    assert len(calls) == 2
    assert res["total"] == 0


@pytest.mark.asyncio
async def test_search_error_carries_status_and_details() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"errors": ["OAuth error: The access token is invalid"]})

    client = make_client(handler)
    with pytest.raises(UnsplashApiError) as info:
        await client.search_photos("soup")
    await client.aclose()

    assert info.value.status == 401
    assert info.value.details == {"errors": ["OAuth error: The access token is invalid"]}
    assert "401" in info.value.message


@pytest.mark.asyncio
async def test_track_download_is_fire_and_forget() -> None:
    hits = []

    def handler(request: httpx.Request) -> httpx.Response:
        hits.append(str(request.url))
        return httpx.Response(500)

    client = make_client(handler)
    client.tries = 1
    task = client.track_download("https://api.unsplash.com/photos/p1/download")
    assert isinstance(task, asyncio.Task)
    await client.aclose()

    assert hits == ["https://api.unsplash.com/photos/p1/download"]
    assert task.done() and task.exception() is None


# ------------------------------
# routes
# ------------------------------

def test_search_route_shapes_results(client, photos: FakePhotos) -> None:
    photos.results["tacos"] = [make_photo("t1")]
    r = client.get("/api/unsplash/search", params={"query": "tacos", "perPage": "99"})

    assert r.status_code == 200
    assert r.headers["cache-control"] == "public, max-age=60"
    body = r.json()
    assert body["total"] == 1
    assert body["results"][0]["id"] == "t1"
    assert body["results"][0]["alt"] == "photo t1"
    assert set(body["results"][0]) == {"id", "alt", "urls", "user", "links"}
    assert photos.queries[0]["per_page"] == 30


@pytest.mark.parametrize("raw,expected", (("abc", 10), ("0", 10), ("12", 12), (None, 10)))
def test_search_route_clamps_per_page(client, photos: FakePhotos, raw, expected: int) -> None:
    params = {"query": "tacos"}
    if raw is not None:
        params["perPage"] = raw
    assert client.get("/api/unsplash/search", params=params).status_code == 200
    assert photos.queries[-1]["per_page"] == expected


def test_search_route_rejects_short_query(client) -> None:
    r = client.get("/api/unsplash/search", params={"query": " a "})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid query: must be at least 2 characters"}


def test_search_route_forwards_upstream_error(client, photos: FakePhotos) -> None:
    photos.error = UnsplashApiError(403, "Unsplash API error: 403 Forbidden", {"errors": ["Rate Limit Exceeded"]})
    r = client.get("/api/unsplash/search", params={"query": "tacos"})
    assert r.status_code == 403
    assert r.json() == {"error": "Unsplash API error: 403 Forbidden", "details": {"errors": ["Rate Limit Exceeded"]}}


def test_download_route_only_accepts_unsplash_api(client, photos: FakePhotos) -> None:
    ok = client.post("/api/unsplash/download", json={"downloadLocation": "https://api.unsplash.com/photos/p1/download"})
    assert ok.status_code == 202
    assert photos.tracked == ["https://api.unsplash.com/photos/p1/download"]

    bad = client.post("/api/unsplash/download", json={"downloadLocation": "https://evil.example/steal"})
    assert bad.status_code == 400
    assert photos.tracked == ["https://api.unsplash.com/photos/p1/download"]
