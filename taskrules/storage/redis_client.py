"""Redis client management."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as redis
from redis.asyncio import Redis

from taskrules.core.config import get_settings

# Global connection pool
_pool: redis.ConnectionPool | None = None


async def init_redis_pool() -> None:
    """Initialize Redis connection pool."""
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = redis.ConnectionPool.from_url(
            settings.redis_url,
            decode_responses=True,
            max_connections=20,
        )


async def close_redis_pool() -> None:
    """Close Redis connection pool."""
    global _pool
    if _pool is not None:
        await _pool.disconnect()
        _pool = None


def get_redis() -> Redis:
    """Get Redis client from pool.

    Raises:
        RuntimeError: If pool not initialized
    """
    if _pool is None:
        raise RuntimeError("Redis pool not initialized. Call init_redis_pool() first.")
    return redis.Redis(connection_pool=_pool)


@asynccontextmanager
async def redis_client() -> AsyncIterator[Redis]:
    """Context manager for a pooled Redis client."""
    client = get_redis()
    try:
        yield client
    finally:
        await client.aclose()


class RedisKeys:
    """Redis key patterns."""

    # Rules
    RULE_DETAIL = "taskrules:rules:detail:{rule_id}"
    RULE_ALL = "taskrules:rules:all"
    RULE_USER = "taskrules:rules:user:{user_id}"
    RULE_TRIGGER = "taskrules:rules:trigger:{trigger}"

    # Execution history
    EXECUTIONS_RULE = "taskrules:executions:rule:{rule_id}"
    EXECUTIONS_USER = "taskrules:executions:user:{user_id}"

    # Tasks
    TASK_DETAIL = "taskrules:tasks:detail:{task_id}"
    TASK_USER = "taskrules:tasks:user:{user_id}"
    TASK_DUE = "taskrules:tasks:due:{user_id}"
    TASK_CLIENT = "taskrules:tasks:client:{client_id}"
    TASK_PARENT = "taskrules:tasks:parent:{parent_id}"
    TASK_DEPENDENTS = "taskrules:tasks:dependents:{task_id}"
    DEPENDENCY = "taskrules:dependencies:{dependency_id}"
    ASSIGNMENT = "taskrules:assignments:{assignment_id}"

    # Auxiliary
    PROCESSED = "taskrules:processed:{event_id}"
    EXECUTION_DEDUP = "taskrules:dedup:{key}"
    INBOX = "taskrules:inbox:{user_id}"
    ACTIVITY = "taskrules:activity:{task_id}"
    NOTIFY_RATE = "taskrules:notify:rate:{user_id}:{minute}"

    @classmethod
    def rule_detail(cls, rule_id: str) -> str:
        return cls.RULE_DETAIL.format(rule_id=rule_id)

    @classmethod
    def rule_user(cls, user_id: str) -> str:
        return cls.RULE_USER.format(user_id=user_id)

    @classmethod
    def rule_trigger(cls, trigger: str) -> str:
        return cls.RULE_TRIGGER.format(trigger=trigger)

    @classmethod
    def executions_rule(cls, rule_id: str) -> str:
        return cls.EXECUTIONS_RULE.format(rule_id=rule_id)

    @classmethod
    def executions_user(cls, user_id: str) -> str:
        return cls.EXECUTIONS_USER.format(user_id=user_id)

    @classmethod
    def task_detail(cls, task_id: str) -> str:
        return cls.TASK_DETAIL.format(task_id=task_id)

    @classmethod
    def task_user(cls, user_id: str) -> str:
        return cls.TASK_USER.format(user_id=user_id)

    @classmethod
    def task_due(cls, user_id: str) -> str:
        return cls.TASK_DUE.format(user_id=user_id)

    @classmethod
    def task_client(cls, client_id: str) -> str:
        return cls.TASK_CLIENT.format(client_id=client_id)

    @classmethod
    def task_parent(cls, parent_id: str) -> str:
        return cls.TASK_PARENT.format(parent_id=parent_id)

    @classmethod
    def task_dependents(cls, task_id: str) -> str:
        return cls.TASK_DEPENDENTS.format(task_id=task_id)

    @classmethod
    def dependency(cls, dependency_id: str) -> str:
        return cls.DEPENDENCY.format(dependency_id=dependency_id)

    @classmethod
    def assignment(cls, assignment_id: str) -> str:
        return cls.ASSIGNMENT.format(assignment_id=assignment_id)

    @classmethod
    def processed(cls, event_id: str) -> str:
        return cls.PROCESSED.format(event_id=event_id)

    @classmethod
    def execution_dedup(cls, key: str) -> str:
        return cls.EXECUTION_DEDUP.format(key=key)

    @classmethod
    def inbox(cls, user_id: str) -> str:
        return cls.INBOX.format(user_id=user_id)

    @classmethod
    def activity(cls, task_id: str) -> str:
        return cls.ACTIVITY.format(task_id=task_id)

    @classmethod
    def notify_rate(cls, user_id: str, minute: str) -> str:
        return cls.NOTIFY_RATE.format(user_id=user_id, minute=minute)
