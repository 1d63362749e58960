"""Redis cache backend, selected when ``REDIS_URL`` is set.

Keys are stored under a ``taskdeck:`` namespace so deployments can share one
Redis; callers always see bare keys. Reads degrade to misses and writes report
``False`` on failure. Deletes are retried because a lost analytics
invalidation would keep stale figures alive for a full TTL.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from redis.asyncio import Redis
from redis.exceptions import RedisError

from src.core.config import Constants


logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def with_retry(
    max_retries: int = Constants.REDIS_RETRY_ATTEMPTS,
    base_delay: float = Constants.REDIS_RETRY_BASE_DELAY_SECONDS,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Retry a Redis call on ``RedisError``, doubling the delay each time.

    The last error is re-raised once ``max_retries`` calls have failed.
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except RedisError as e:
                    if attempt >= max_retries:
                        logger.error(
                            "redis_retry_exhausted",
                            extra={"operation": func.__name__, "attempts": attempt, "error": str(e)},
                        )
                        raise
                    delay = base_delay * 2 ** (attempt - 1)
                    logger.warning(
                        "redis_retry",
                        extra={"operation": func.__name__, "attempt": attempt, "delay": delay, "error": str(e)},
                    )
                    await asyncio.sleep(delay)
                    attempt += 1

        return wrapper

    return decorator


class RedisClient:
    """``CacheBackend`` over a pooled async Redis connection."""

    def __init__(self, url: str, *, namespace: str = Constants.CACHE_NAMESPACE) -> None:
        self._client: Redis = Redis.from_url(
            url,
            decode_responses=True,
            max_connections=Constants.REDIS_MAX_CONNECTIONS,
        )
        self._prefix = f"{namespace}:"
        logger.info("redis_cache_initialized", extra={"namespace": namespace})

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    @property
    def is_available(self) -> bool:
        return True

    async def get(self, key: str) -> str | None:
        try:
            return await self._client.get(self._key(key))
        except RedisError as e:
            logger.warning("redis_get_failed", extra={"key": key, "error": str(e)})
            return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> bool:
        try:
            await self._client.set(self._key(key), value, ex=ttl_seconds)
        except RedisError as e:
            logger.warning("redis_set_failed", extra={"key": key, "error": str(e)})
            return False
        return True

    @with_retry()
    async def _delete(self, names: list[str]) -> None:
        await self._client.delete(*names)

    async def delete(self, *keys: str) -> bool:
        """Delete keys; ``False`` when nothing was given or every retry failed."""
        if not keys:
            return False
        try:
            await self._delete([self._key(key) for key in keys])
        except RedisError:
            return False
        return True

    async def keys(self, pattern: str) -> list[str]:
        """Bare keys matching a glob pattern, found with SCAN."""
        try:
            return [key.removeprefix(self._prefix) async for key in self._client.scan_iter(match=self._key(pattern))]
        except RedisError as e:
            logger.warning("redis_scan_failed", extra={"pattern": pattern, "error": str(e)})
            return []

    async def increment(self, key: str) -> int | None:
        # Not retried: a lost reply after a successful INCR would count twice
        try:
            return await self._client.incr(self._key(key))
        except RedisError as e:
            logger.warning("redis_incr_failed", extra={"key": key, "error": str(e)})
            return None

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        try:
            return bool(await self._client.expire(self._key(key), ttl_seconds))
        except RedisError as e:
            logger.warning("redis_expire_failed", extra={"key": key, "error": str(e)})
            return False

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())  # type: ignore[misc]
        except RedisError as e:
            logger.warning("redis_ping_failed", extra={"error": str(e)})
            return False

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("redis_cache_closed")
