"""Cache backends with TTL support.

Analytics responses and rate limit counters live here. The default backend is
process-local; setting ``REDIS_URL`` switches every caller to a shared Redis
store without touching call sites.
"""

import fnmatch
import logging
import threading
import time
from typing import Protocol

from src.core.config import settings
from src.core.redis_client import RedisClient


logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    """Interface shared by the in-memory and Redis caches."""

    @property
    def is_available(self) -> bool: ...

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> bool: ...

    async def delete(self, *keys: str) -> bool: ...

    async def keys(self, pattern: str) -> list[str]: ...

    async def increment(self, key: str) -> int | None: ...

    async def expire(self, key: str, ttl_seconds: int) -> bool: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


class InMemoryCache:
    """Thread-safe in-memory cache with TTL support."""

    def __init__(self) -> None:
        """Initialize in-memory cache."""
        self._data: dict[str, str] = {}
        self._expiry: dict[str, float] = {}
        self._lock = threading.Lock()

    @property
    def is_available(self) -> bool:
        """Check if cache is available (always true for in-memory)."""
        return True

    def _cleanup_expired(self, keys: list[str] | None = None) -> None:
        """Clean up expired entries.

        Args:
            keys: Specific keys to check. If None, checks all keys.
        """
        now = time.time()
        keys_to_check = list(self._expiry.keys()) if keys is None else keys

        for key in keys_to_check:
            expiry = self._expiry.get(key)
            if expiry and expiry < now:
                self._data.pop(key, None)
                self._expiry.pop(key, None)

    async def get(self, key: str) -> str | None:
        """Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found or expired
        """
        with self._lock:
            self._cleanup_expired([key])

            value = self._data.get(key)
            if value:
                logger.debug("Cache hit for key: %s", key)
            return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Set value in cache with TTL.

        Args:
            key: Cache key
            value: Value to cache
            ttl_seconds: Time-to-live in seconds

        Returns:
            True if successful
        """
        with self._lock:
            self._data[key] = value
            if ttl_seconds > 0:
                self._expiry[key] = time.time() + ttl_seconds
            else:
                self._expiry.pop(key, None)
            logger.debug("Cached key: %s (TTL: %ds)", key, ttl_seconds)
            return True

    async def delete(self, *keys: str) -> bool:
        """Delete one or more keys from cache."""
        if not keys:
            return False

        with self._lock:
            for key in keys:
                self._data.pop(key, None)
                self._expiry.pop(key, None)
            logger.debug("Deleted %d cache key(s)", len(keys))
            return True

    async def keys(self, pattern: str) -> list[str]:
        """Find keys matching a glob pattern (e.g., 'analytics:12:*')."""
        with self._lock:
            self._cleanup_expired()
            return [key for key in self._data if fnmatch.fnmatchcase(key, pattern)]

    async def increment(self, key: str) -> int | None:
        """Increment key value atomically.

        Returns:
            New value after increment, or None if the stored value is not numeric
        """
        with self._lock:
            self._cleanup_expired([key])

            current_value = self._data.get(key)
            if current_value is None:
                new_value = 1
            else:
                try:
                    new_value = int(current_value) + 1
                except ValueError:
                    logger.warning("Cannot increment non-numeric key: %s", key)
                    return None

            self._data[key] = str(new_value)
            return new_value

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        """Set TTL on existing key.

        Returns:
            True if successful, False if key doesn't exist
        """
        with self._lock:
            self._cleanup_expired([key])

            if key not in self._data:
                return False

            if ttl_seconds > 0:
                self._expiry[key] = time.time() + ttl_seconds
            else:
                self._expiry.pop(key, None)
            return True

    async def ping(self) -> bool:
        """Always True for the in-memory cache."""
        return True

    async def close(self) -> None:
        """Drop all entries."""
        with self._lock:
            self._data.clear()
            self._expiry.clear()
        logger.info("In-memory cache closed")


def create_cache_client() -> CacheBackend:
    """Build the cache backend selected by configuration."""
    if settings.redis_url:
        return RedisClient(settings.redis_url)
    logger.info("Redis URL not configured. Using in-memory cache.")
    return InMemoryCache()


# Global cache client instance
cache_client: CacheBackend = create_cache_client()
