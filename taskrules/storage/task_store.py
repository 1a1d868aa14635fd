"""Task storage operations."""

import uuid
from datetime import datetime, timezone
from typing import Any

from redis.asyncio import Redis

from taskrules.models.task import Task
from taskrules.storage.base import TaskRepository
from taskrules.storage.redis_client import RedisKeys, get_redis


def _generate_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class TaskStore(TaskRepository):
    """Task, dependency and assignment storage using Redis.

    Tasks are stored as JSON strings. Per-user sorted sets index tasks by
    creation time and by due date; client, parent and dependent sets back the
    relationship queries.
    """

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def get_task(self, task_id: str) -> Task | None:
        data = await self.redis.get(RedisKeys.task_detail(task_id))
        if not data:
            return None
        return Task.model_validate_json(data)

    async def _get_many(self, task_ids: list[str] | set[str]) -> list[Task]:
        tasks = []
        for task_id in task_ids:
            task = await self.get_task(task_id)
            if task:
                tasks.append(task)
        return tasks

    async def save(self, task: Task, previous: Task | None = None) -> Task:
        """Write a task and keep its indexes in step.

        Args:
            task: Task to store
            previous: Stored version being replaced, if any

        Returns:
            Stored task
        """
        await self.redis.set(RedisKeys.task_detail(task.id), task.model_dump_json())
        await self.redis.zadd(RedisKeys.task_user(task.user_id), {task.id: task.created_at.timestamp()})

        if task.due_date is not None:
            await self.redis.zadd(RedisKeys.task_due(task.user_id), {task.id: task.due_date.timestamp()})
        else:
            await self.redis.zrem(RedisKeys.task_due(task.user_id), task.id)

        if previous is not None and previous.client_id and previous.client_id != task.client_id:
            await self.redis.srem(RedisKeys.task_client(previous.client_id), task.id)
        if task.client_id:
            await self.redis.sadd(RedisKeys.task_client(task.client_id), task.id)

        if previous is not None and previous.parent_task_id and previous.parent_task_id != task.parent_task_id:
            await self.redis.srem(RedisKeys.task_parent(previous.parent_task_id), task.id)
        if task.parent_task_id:
            await self.redis.sadd(RedisKeys.task_parent(task.parent_task_id), task.id)

        return task

    async def create_task(self, fields: dict[str, Any]) -> Task:
        task = Task.model_validate({**fields, "id": fields.get("id") or _generate_id("task")})
        return await self.save(task)

    async def update_task(self, task_id: str, fields: dict[str, Any]) -> Task:
        existing = await self.get_task(task_id)
        if existing is None:
            raise KeyError(task_id)

        data = existing.model_dump()
        data.update(fields)
        data["id"] = task_id
        data["updated_at"] = datetime.now(timezone.utc)
        return await self.save(Task.model_validate(data), previous=existing)

    async def create_subtask(self, parent_id: str, fields: dict[str, Any]) -> Task:
        return await self.create_task({**fields, "parent_task_id": parent_id})

    async def query_overdue_tasks(self, user_id: str, as_of: datetime) -> list[Task]:
        task_ids = await self.redis.zrangebyscore(RedisKeys.task_due(user_id), "-inf", f"({as_of.timestamp()}")
        return [task for task in await self._get_many(task_ids) if not task.is_closed]

    async def query_tasks_due_within(self, user_id: str, start: datetime, end: datetime) -> list[Task]:
        task_ids = await self.redis.zrangebyscore(RedisKeys.task_due(user_id), start.timestamp(), end.timestamp())
        return [task for task in await self._get_many(task_ids) if not task.is_closed]

    async def create_dependency(self, task_id: str, depends_on_task_id: str) -> str:
        dependency_id = _generate_id("dep")
        await self.redis.hset(
            RedisKeys.dependency(dependency_id),
            mapping={
                "task_id": task_id,
                "depends_on_task_id": depends_on_task_id,
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
        )
        await self.redis.sadd(RedisKeys.task_dependents(depends_on_task_id), task_id)
        return dependency_id

    async def query_dependents(self, task_id: str) -> list[Task]:
        task_ids = await self.redis.smembers(RedisKeys.task_dependents(task_id))
        return await self._get_many(sorted(task_ids))

    async def bulk_update_by_client_or_parent(
        self,
        *,
        field: str,
        value: Any,
        exclude_id: str,
        client_id: str | None = None,
        parent_id: str | None = None,
    ) -> list[str]:
        if client_id:
            task_ids = await self.redis.smembers(RedisKeys.task_client(client_id))
        elif parent_id:
            task_ids = await self.redis.smembers(RedisKeys.task_parent(parent_id))
        else:
            return []

        updated = []
        for task_id in sorted(task_ids):
            if task_id == exclude_id:
                continue
            await self.update_task(task_id, {field: value})
            updated.append(task_id)
        return updated

    async def create_assignment(self, task_id: str, user_id: str, assigned_by: str | None = None) -> str:
        assignment_id = _generate_id("assign")
        await self.redis.hset(
            RedisKeys.assignment(assignment_id),
            mapping={
                "task_id": task_id,
                "user_id": user_id,
                "assigned_by": assigned_by or "",
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
        )
        return assignment_id

    async def get_assignment(self, assignment_id: str) -> dict[str, str] | None:
        data = await self.redis.hgetall(RedisKeys.assignment(assignment_id))
        return data or None

    async def list_recent_tasks(self, user_id: str, limit: int = 100) -> list[Task]:
        task_ids = await self.redis.zrevrange(RedisKeys.task_user(user_id), 0, limit - 1)
        return await self._get_many(task_ids)
