"""Auxiliary storage operations (idempotency, dedup, activity, rate limits)."""

import uuid
from datetime import datetime, timezone
from typing import Any

from redis.asyncio import Redis

from taskrules.core.config import get_settings
from taskrules.models.notification import ActivityEntry
from taskrules.storage.base import ActivityLog, ExecutionGuard
from taskrules.storage.redis_client import RedisKeys, get_redis


class IdempotencyStore:
    """Remembers processed task event IDs."""

    def __init__(self, redis: Redis | None = None, ttl_seconds: int | None = None):
        self._redis = redis
        self._ttl = ttl_seconds or get_settings().event_idempotency_ttl_seconds

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def is_processed(self, event_id: str) -> bool:
        key = RedisKeys.processed(event_id)
        return await self.redis.exists(key) > 0

    async def mark_processed(self, event_id: str) -> bool:
        """Mark event as processed.

        Args:
            event_id: Event ID to mark

        Returns:
            True if newly marked, False if already existed
        """
        key = RedisKeys.processed(event_id)
        result = await self.redis.setnx(key, "1")
        if result:
            await self.redis.expire(key, self._ttl)
        return bool(result)


class ExecutionDedupStore(ExecutionGuard):
    """Claims scheduled execution keys so a scan runs each rule once per task and day."""

    def __init__(self, redis: Redis | None = None, ttl_seconds: int | None = None):
        self._redis = redis
        self._ttl = ttl_seconds or get_settings().scan_dedup_ttl_seconds

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def claim(self, key: str) -> bool:
        result = await self.redis.set(RedisKeys.execution_dedup(key), "1", nx=True, ex=self._ttl)
        return bool(result)


class ActivityStore(ActivityLog):
    """Per-task activity timeline stored as a Redis list, newest first."""

    MAX_ENTRIES = 500

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def append(
        self,
        task_id: str,
        user_id: str,
        activity_type: str,
        description: str,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        entry = ActivityEntry(
            activity_id=f"act_{uuid.uuid4().hex[:12]}",
            task_id=task_id,
            user_id=user_id,
            activity_type=activity_type,
            description=description,
            metadata=metadata or {},
        )
        key = RedisKeys.activity(task_id)
        await self.redis.lpush(key, entry.model_dump_json())
        await self.redis.ltrim(key, 0, self.MAX_ENTRIES - 1)
        return entry.activity_id

    async def list(self, task_id: str, limit: int = 50) -> list[ActivityEntry]:
        items = await self.redis.lrange(RedisKeys.activity(task_id), 0, limit - 1)
        return [ActivityEntry.model_validate_json(item) for item in items]


class RateLimiter:
    """Per-user notification rate limiting over one-minute windows."""

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def check_rate_limit(self, user_id: str, max_per_minute: int) -> bool:
        """Count one notification for the user in the current minute.

        Args:
            user_id: Recipient user ID
            max_per_minute: Maximum notifications per minute

        Returns:
            True if within limit
        """
        minute = datetime.now(timezone.utc).strftime("%Y%m%d%H%M")
        key = RedisKeys.notify_rate(user_id, minute)

        count = await self.redis.incr(key)
        if count == 1:
            await self.redis.expire(key, 120)

        return count <= max_per_minute
