"""Rate limiting service using Redis."""
import redis
from datetime import datetime, timezone
from typing import Tuple

import structlog

from chatrelay.errors import RateLimitExceededError

logger = structlog.get_logger()


class RateLimiter:
    """Redis-based fixed window rate limiter."""

    def __init__(self, redis_client: redis.Redis, limit: int = 30, window: int = 60):
        self.redis = redis_client
        self.limit = limit
        self.window = window

    def check_rate_limit(self, key: str) -> Tuple[bool, int]:
        """
        Check if a request is within the rate limit.

        Uses fixed window algorithm:
        - Window resets every `window` seconds
        - Allows up to `limit` requests per window

        Args:
            key: Unique identifier (the client IP for chat requests)

        Returns:
            Tuple of (allowed: bool, current_count: int)
        """
        window_key = self._get_window_key(key)

        current = self.redis.get(window_key)
        if current and int(current) >= self.limit:
            return False, int(current)

        # Increment counter atomically
        pipe = self.redis.pipeline()
        pipe.incr(window_key)
        pipe.expire(window_key, self.window)
        results = pipe.execute()

        new_count = results[0]
        return new_count <= self.limit, new_count

    def enforce(self, key: str) -> int:
        """
        Count a request and raise when the window is exhausted.

        Returns:
            Remaining requests in the current window

        Raises:
            RateLimitExceededError: If the limit is already reached
        """
        try:
            allowed, count = self.check_rate_limit(key)
        except redis.RedisError as e:
            # Redis down: let the request through rather than failing chat
            logger.warning("rate_limiter_unavailable", error=str(e))
            return self.limit

        if not allowed:
            logger.warning(
                "rate_limit_exceeded",
                key=key,
                count=count,
                limit=self.limit,
                window=self.window
            )
            raise RateLimitExceededError(self.limit, self.window)
        return max(0, self.limit - count)

    def _get_window_key(self, key: str) -> str:
        """Generate Redis key for current time window."""
        now = datetime.now(timezone.utc)

        if self.window == 60:
            window_id = now.strftime('%Y%m%d%H%M')
        elif self.window == 3600:
            window_id = now.strftime('%Y%m%d%H')
        else:
            window_id = str(int(now.timestamp()) // self.window)

        return f"rate_limit:{key}:{window_id}"

