"""In-app notification delivery."""

import uuid

from redis.asyncio import Redis

from taskrules.core.config import Settings, get_settings
from taskrules.core.logging import get_logger
from taskrules.models.notification import Notification
from taskrules.notification.rate_limiter import NotificationRateLimiter
from taskrules.observability.metrics import NOTIFICATIONS_SENT
from taskrules.storage.base import NotificationService
from taskrules.storage.redis_client import RedisKeys, get_redis

logger = get_logger(__name__)


class InboxNotificationService(NotificationService):
    """Delivers notifications to per-user inbox lists in Redis."""

    def __init__(self, redis: Redis | None = None, settings: Settings | None = None):
        """Initialize service.

        Args:
            redis: Redis client
            settings: Application settings
        """
        self._redis = redis
        self._settings = settings or get_settings()
        self._rate_limiter = NotificationRateLimiter(redis)

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def notify(
        self,
        user_id: str,
        title: str,
        message: str,
        related_task_id: str | None = None,
        action_url: str | None = None,
    ) -> bool:
        """Deliver a notification unless the user is over the rate limit.

        Returns:
            True if the notification was delivered
        """
        allowed, reason = await self._rate_limiter.check_allowed(
            user_id,
            max_per_minute=self._settings.notification_max_per_minute,
        )
        if not allowed:
            logger.info("Notification skipped", user_id=user_id, reason=reason)
            NOTIFICATIONS_SENT.labels(status="rate_limited").inc()
            return False

        notification = Notification(
            notification_id=f"notify_{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            title=title,
            message=message,
            related_task_id=related_task_id,
            action_url=action_url,
        )
        key = RedisKeys.inbox(user_id)
        await self.redis.lpush(key, notification.model_dump_json())
        await self.redis.ltrim(key, 0, self._settings.notification_inbox_size - 1)

        NOTIFICATIONS_SENT.labels(status="delivered").inc()
        logger.info(
            "Notification delivered",
            notification_id=notification.notification_id,
            user_id=user_id,
            related_task_id=related_task_id,
        )
        return True

    async def list_inbox(self, user_id: str, limit: int = 50) -> list[Notification]:
        """Most recent notifications of a user, newest first."""
        items = await self.redis.lrange(RedisKeys.inbox(user_id), 0, limit - 1)
        return [Notification.model_validate_json(item) for item in items]
