"""Best-effort Redis cache for JSON values.

Used for data that is expensive to fetch and safe to lose, such as avatar
images. When Redis is down, reads miss and writes are dropped; callers never
see a Redis error.
"""

import hashlib
import json
from collections.abc import Callable
from datetime import timedelta
from functools import wraps
from typing import Any, TypeVar

import redis.asyncio as redis

from src.config import get_settings
from src.constants import CACHE_TTL_AVATAR
from src.utils.logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

CACHE_TTL_DEFAULT = timedelta(hours=6)
CACHE_TTL_AVATARS = timedelta(seconds=CACHE_TTL_AVATAR)

MAX_KEY_LENGTH = 200


class RedisCache:
    """Lazily connected Redis client storing JSON-serialized values."""

    def __init__(self, url: str | None = None) -> None:
        self._url = url
        self._client: redis.Redis | None = None
        self._connected = False

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                self._url or str(get_settings().redis_url),
                encoding="utf-8",
                decode_responses=True,
            )
        return self._client

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> bool:
        """Ping Redis and enable the cache if it answers.

        Returns:
            True if Redis is reachable
        """
        try:
            await self.client.ping()
        except Exception as e:
            logger.warning(f"Redis cache unavailable: {e}")
            self._connected = False
        else:
            self._connected = True
        return self._connected

    async def ping(self) -> bool:
        """Ping Redis, raising if it is unreachable (used by /health)."""
        return await self.client.ping()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
        self._client = None
        self._connected = False

    async def get(self, key: str) -> Any | None:
        """Get a cached value, or None on a miss or when Redis is down."""
        if not self._connected:
            return None
        try:
            raw = await self.client.get(key)
        except Exception as e:
            logger.debug(f"Cache get failed for {key}: {e}")
            return None
        return json.loads(raw) if raw else None

    async def set(self, key: str, value: Any, ttl: timedelta | None = None) -> bool:
        """Store a JSON-serializable value for `ttl` (default 6 hours).

        Returns:
            True if the value was written
        """
        if not self._connected:
            return False
        seconds = int((ttl or CACHE_TTL_DEFAULT).total_seconds())
        try:
            await self.client.setex(key, seconds, json.dumps(value, default=str))
        except Exception as e:
            logger.debug(f"Cache set failed for {key}: {e}")
            return False
        return True


cache = RedisCache()


def make_cache_key(namespace: str, *args: Any, **kwargs: Any) -> str:
    """Build "namespace:arg1:arg2:key=value" from call arguments.

    None values are left out. Keys longer than MAX_KEY_LENGTH are replaced
    by "namespace:<hash>".
    """
    parts = [namespace, *(str(arg) for arg in args if arg is not None)]
    parts += [f"{name}={value}" for name, value in sorted(kwargs.items()) if value is not None]
    key = ":".join(parts)

    if len(key) > MAX_KEY_LENGTH:
        key = f"{namespace}:{hashlib.md5(key.encode()).hexdigest()[:12]}"
    return key


def cached(
    namespace: str,
    ttl: timedelta | None = None,
    key_builder: Callable[..., str] | None = None,
) -> Callable[[F], F]:
    """Cache the result of an async function in Redis.

    None results are not cached, so a failed lookup is retried next time.

    Example:
        @cached("avatar", ttl=CACHE_TTL_AVATARS, key_builder=avatar_cache_key)
        async def fetch_avatar(url: str) -> dict | None:
            ...
    """

    def decorator(func: F) -> F:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            if key_builder is not None:
                key = key_builder(*args, **kwargs)
            else:
                # Bound methods: leave self out of the key
                key_args = args[1:] if args and hasattr(args[0], func.__name__) else args
                key = make_cache_key(namespace, *key_args, **kwargs)

            hit = await cache.get(key)
            if hit is not None:
                logger.debug(f"Cache hit: {key}")
                return hit

            result = await func(*args, **kwargs)
            if result is not None:
                await cache.set(key, result, ttl or CACHE_TTL_DEFAULT)
            return result

        return wrapper  # type: ignore

    return decorator
