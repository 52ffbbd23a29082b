"""Tests for the avatar proxy."""

from typing import Any

import httpx
import pytest
from httpx import AsyncClient

from src.services import avatars
from src.utils import cache as cache_module

AVATAR_URL = "https://avatars.githubusercontent.com/u/583231?v=4"
PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


class MemoryCache:
    """In-memory stand-in for the Redis cache."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}
        self.ttls: dict[str, Any] = {}

    async def get(self, key: str) -> Any | None:
        return self.data.get(key)

    async def set(self, key: str, value: Any, ttl=None) -> bool:
        self.data[key] = value
        self.ttls[key] = ttl
        return True


@pytest.fixture
def avatar_host(monkeypatch: pytest.MonkeyPatch) -> list[httpx.Request]:
    """Serve avatars from a mock transport and record the requests."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path.endswith("/missing"):
            return httpx.Response(404)
        if request.url.path.endswith("/down"):
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"})

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    monkeypatch.setattr(avatars, "get_avatar_http_client", lambda: http)
    return requests


@pytest.fixture
def memory_cache(monkeypatch: pytest.MonkeyPatch) -> MemoryCache:
    fake = MemoryCache()
    monkeypatch.setattr(cache_module, "cache", fake)
    return fake


class TestAvatarProxy:
    """Tests for GET /avatars."""

    @pytest.mark.asyncio
    async def test_serves_image(self, client: AsyncClient, avatar_host: list[httpx.Request]):
        """Test that the image is proxied with long-lived cache headers."""
        response = await client.get("/avatars", params={"url": AVATAR_URL})

        assert response.status_code == 200
        assert response.content == PNG_BYTES
        assert response.headers["content-type"] == "image/png"
        assert response.headers["cache-control"] == "public, max-age=2592000"
        assert str(avatar_host[0].url) == AVATAR_URL

    @pytest.mark.asyncio
    async def test_fetched_once(
        self, client: AsyncClient, avatar_host: list[httpx.Request], memory_cache: MemoryCache
    ):
        """Test that repeated requests are served from the cache."""
        for _ in range(3):
            response = await client.get("/avatars", params={"url": AVATAR_URL})
            assert response.content == PNG_BYTES

        assert len(avatar_host) == 1
        key = avatars.avatar_cache_key(AVATAR_URL)
        assert memory_cache.data[key]["content_type"] == "image/png"
        assert memory_cache.ttls[key].days == 30

    @pytest.mark.asyncio
    async def test_not_found(
        self, client: AsyncClient, avatar_host: list[httpx.Request], memory_cache: MemoryCache
    ):
        """Test that missing avatars are 404 and not cached."""
        response = await client.get("/avatars", params={"url": "https://avatars.example.com/missing"})

        assert response.status_code == 404
        assert memory_cache.data == {}

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("avatar_host")
    async def test_host_unreachable(self, client: AsyncClient):
        """Test that network errors are 500."""
        response = await client.get("/avatars", params={"url": "https://avatars.example.com/down"})

        assert response.status_code == 500

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["", "   ", "ftp://example.com/a.png", "javascript:alert(1)"])
    async def test_invalid_url(self, client: AsyncClient, url: str):
        """Test that only http(s) URLs are accepted."""
        response = await client.get("/avatars", params={"url": url})

        assert response.status_code == 400


class TestAvatarCacheKey:
    """Tests for avatar cache keys."""

    def test_key_is_stable_and_short(self):
        """Test that long URLs map to fixed-length keys."""
        key = avatars.avatar_cache_key(AVATAR_URL + "&" + "x" * 500)

        assert key.startswith("avatar:")
        assert len(key) == len("avatar:") + 64
        assert key == avatars.avatar_cache_key(AVATAR_URL + "&" + "x" * 500)
