"""Fixed-window rate limiting on top of the cache backend."""

import logging
from datetime import UTC, datetime

from src.core import cache_client as cache_module
from src.core.config import Constants
from src.core.errors import RateLimitExceededError


logger = logging.getLogger(__name__)


class RateLimiter:
    """Rate limiter using per-window counters in the cache."""

    async def check_rate_limit(
        self,
        scope: str,
        identifier: str,
        limit: int,
        window_seconds: int,
        message: str = "Too many requests",
    ) -> None:
        """Check if request is within rate limit.

        - Increment counter for the current window
        - Set expiry on first increment
        - Raise exception if limit exceeded

        Args:
            scope: Rate limit scope (e.g., 'notifications', 'analytics')
            identifier: Unique identifier (e.g., user_id)
            limit: Maximum requests allowed
            window_seconds: Time window in seconds
            message: Message returned to the client when the limit is hit

        Raises:
            RateLimitExceededError: If rate limit is exceeded
        """
        cache = cache_module.cache_client
        if not cache.is_available:
            logger.debug("rate_limit_check_skipped", extra={"reason": "cache_unavailable"})
            return

        now = datetime.now(UTC)
        window_start = int(now.timestamp()) // window_seconds
        key = f"ratelimit:{scope}:{identifier}:{window_start}"

        try:
            count = await cache.increment(key)

            if count is None:
                logger.warning("rate_limit_check_failed", extra={"reason": "cache_increment_failed"})
                return

            if count == 1:
                await cache.expire(key, window_seconds)
        except (RuntimeError, ConnectionError, OSError):
            logger.exception("rate_limit_check_error")
            # Fail open
            return

        if count > limit:
            retry_after = window_seconds - (int(now.timestamp()) % window_seconds)
            logger.warning(
                "rate_limit_exceeded",
                extra={
                    "scope": scope,
                    "identifier": identifier,
                    "count": count,
                    "limit": limit,
                    "retry_after": retry_after,
                },
            )
            raise RateLimitExceededError(message, retry_after=retry_after, limit=limit)

        logger.debug(
            "rate_limit_check_passed",
            extra={"scope": scope, "identifier": identifier, "count": count, "limit": limit},
        )

    async def check_notification_creation_rate_limit(self, user_id: str) -> None:
        """Check per-user limit on manually created notifications."""
        await self.check_rate_limit(
            scope="notifications:create",
            identifier=user_id,
            limit=Constants.MAX_NOTIFICATIONS_CREATED_PER_HOUR,
            window_seconds=Constants.NOTIFICATION_RATE_LIMIT_WINDOW_SECONDS,
            message="Too many notifications created. Please try again later.",
        )

    async def check_analytics_rate_limit(self, user_id: str) -> None:
        """Check per-user analytics request limit."""
        await self.check_rate_limit(
            scope="analytics",
            identifier=user_id,
            limit=Constants.MAX_ANALYTICS_REQUESTS_PER_WINDOW,
            window_seconds=Constants.ANALYTICS_RATE_LIMIT_WINDOW_SECONDS,
            message="Too many analytics requests, please try again later.",
        )


# Global rate limiter instance
rate_limiter = RateLimiter()
