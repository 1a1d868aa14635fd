"""Notification rate limiting."""

from redis.asyncio import Redis

from taskrules.storage.auxiliary import RateLimiter


class NotificationRateLimiter:
    """Rate limiter for automation notifications."""

    def __init__(self, redis: Redis | None = None):
        self._rate_limiter = RateLimiter(redis)

    async def check_allowed(self, user_id: str, max_per_minute: int = 30) -> tuple[bool, str]:
        """Check if a notification to a user is allowed.

        Args:
            user_id: Recipient user ID
            max_per_minute: Maximum notifications per minute

        Returns:
            Tuple of (allowed, reason)
        """
        if not await self._rate_limiter.check_rate_limit(user_id, max_per_minute):
            return False, f"Rate limit exceeded ({max_per_minute}/min)"
        return True, "Allowed"
