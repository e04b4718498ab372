from upstash_redis import Redis
from typing import Optional
import logging

from swipematch.config import settings


logger = logging.getLogger(__name__)

# Global Redis client
redis_client: Optional[Redis] = None


async def init_redis():
    """Initialize Upstash Redis connection."""
    global redis_client
    redis_client = Redis(
        url=settings.UPSTASH_REDIS_URL,
        token=settings.UPSTASH_REDIS_TOKEN,
    )
    logger.info("Redis (Upstash) initialized")


async def close_redis():
    """Close Redis connection."""
    global redis_client
    redis_client = None
    logger.info("Redis connection closed")


def get_redis() -> Redis:
    """Get Redis client instance."""
    if redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return redis_client


class RedisService:
    """
    Counters for request throttling.
    Each check costs at most two commands (Upstash bills per command).
    """

    def __init__(self, client: Optional[Redis] = None):
        self.client = client or get_redis()

    async def check_swipe_limit(self, user_id: str) -> tuple[bool, int]:
        """
        Check if user has exceeded daily swipe limit.
        Returns (is_allowed, remaining_swipes).
        """
        allowed, remaining, _ = await self.check_rate_limit(
            identifier=str(user_id),
            action="swipe",
            max_attempts=settings.SWIPE_LIMIT_PER_DAY,
            window_seconds=86400,
        )
        if not allowed:
            logger.warning("Daily swipe limit reached for user %s", user_id)
        return allowed, remaining

    async def check_rate_limit(
        self,
        identifier: str,
        action: str,
        max_attempts: int,
        window_seconds: int
    ) -> tuple[bool, int, int]:
        """
        Fixed-window rate limiter.

        Args:
            identifier: Unique identifier (IP, user_id)
            action: Action type (swipe, message)
            max_attempts: Maximum attempts allowed in the window
            window_seconds: Window length in seconds

        Returns:
            (is_allowed, remaining_attempts, seconds_until_reset)
        """
        key = f"ratelimit:{action}:{identifier}"
        count = self.client.get(key)

        if count is None:
            # First attempt in this window
            self.client.setex(key, window_seconds, "1")
            return True, max_attempts - 1, window_seconds

        ttl = self.client.ttl(key)
        reset_in = ttl if ttl > 0 else window_seconds

        current_count = int(count)
        if current_count >= max_attempts:
            return False, 0, reset_in

        self.client.incr(key)
        return True, max_attempts - current_count - 1, reset_in

    async def check_message_rate_limit(self, user_id: str) -> tuple[bool, int, int]:
        """API_RATE_LIMIT_PER_MINUTE messages per user per minute."""
        return await self.check_rate_limit(
            identifier=str(user_id),
            action="message",
            max_attempts=settings.API_RATE_LIMIT_PER_MINUTE,
            window_seconds=60,
        )
