"""Pytest configuration and fixtures."""

from datetime import datetime
from typing import Any, AsyncIterator

import fakeredis
import pytest
import pytest_asyncio

from taskrules.actions.dispatcher import ActionDispatcher
from taskrules.core.config import Settings
from taskrules.engine.orchestrator import ExecutionOrchestrator
from taskrules.models.execution import ExecutionRecord
from taskrules.models.rule import AutomationRule, TriggerEvent
from taskrules.models.task import CLOSED_STATUSES, Task
from taskrules.storage.base import (
    ActivityLog,
    ExecutionGuard,
    NotificationService,
    RuleRepository,
    TaskRepository,
)


class InMemoryTaskRepository(TaskRepository):
    """Dict-backed task repository."""

    def __init__(self, tasks: list[Task] | None = None):
        self.tasks: dict[str, Task] = {task.id: task for task in tasks or []}
        self.dependencies: list[tuple[str, str]] = []
        self.assignments: list[dict[str, Any]] = []
        self._counter = 0

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}_{self._counter}"

    async def get_task(self, task_id: str) -> Task | None:
        return self.tasks.get(task_id)

    async def update_task(self, task_id: str, fields: dict[str, Any]) -> Task:
        task = self.tasks[task_id]
        updated = Task.model_validate({**task.model_dump(), **fields})
        self.tasks[task_id] = updated
        return updated

    async def create_task(self, fields: dict[str, Any]) -> Task:
        task = Task.model_validate({"id": self._next_id("new"), **fields})
        self.tasks[task.id] = task
        return task

    async def query_overdue_tasks(self, user_id: str, as_of: datetime) -> list[Task]:
        return [
            task
            for task in self.tasks.values()
            if task.user_id == user_id
            and task.status not in CLOSED_STATUSES
            and task.due_date is not None
            and task.due_date < as_of
        ]

    async def query_tasks_due_within(self, user_id: str, start: datetime, end: datetime) -> list[Task]:
        return [
            task
            for task in self.tasks.values()
            if task.user_id == user_id
            and task.status not in CLOSED_STATUSES
            and task.due_date is not None
            and start <= task.due_date <= end
        ]

    async def create_dependency(self, task_id: str, depends_on_task_id: str) -> str:
        self.dependencies.append((task_id, depends_on_task_id))
        return self._next_id("dep")

    async def query_dependents(self, task_id: str) -> list[Task]:
        return [self.tasks[dependent] for dependent, target in self.dependencies if target == task_id]

    async def create_subtask(self, parent_id: str, fields: dict[str, Any]) -> Task:
        return await self.create_task({**fields, "parent_task_id": parent_id})

    async def bulk_update_by_client_or_parent(
        self,
        *,
        field: str,
        value: Any,
        exclude_id: str,
        client_id: str | None = None,
        parent_id: str | None = None,
    ) -> list[str]:
        updated = []
        for task in list(self.tasks.values()):
            if task.id == exclude_id:
                continue
            if client_id is not None and task.client_id != client_id:
                continue
            if parent_id is not None and task.parent_task_id != parent_id:
                continue
            await self.update_task(task.id, {field: value})
            updated.append(task.id)
        return sorted(updated)

    async def create_assignment(self, task_id: str, user_id: str, assigned_by: str | None = None) -> str:
        self.assignments.append({"task_id": task_id, "user_id": user_id, "assigned_by": assigned_by})
        return self._next_id("asg")

    async def list_recent_tasks(self, user_id: str, limit: int = 100) -> list[Task]:
        tasks = [task for task in self.tasks.values() if task.user_id == user_id]
        return sorted(tasks, key=lambda task: task.created_at, reverse=True)[:limit]


class InMemoryRuleRepository(RuleRepository):
    """List-backed rule repository that keeps every record."""

    def __init__(self, rules: list[AutomationRule] | None = None):
        self.rules = list(rules or [])
        self.records: list[ExecutionRecord] = []
        self.increments: dict[str, int] = {}
        self.fail_loading = False

    async def list_active_rules_by_trigger(self, user_id: str, trigger: TriggerEvent) -> list[AutomationRule]:
        if self.fail_loading:
            raise ConnectionError("rule store unavailable")
        return [
            rule
            for rule in self.rules
            if rule.user_id == user_id and rule.trigger == trigger and rule.is_active
        ]

    async def list_users_with_active_rules(self, triggers: list[TriggerEvent]) -> list[str]:
        return sorted({rule.user_id for rule in self.rules if rule.is_active and rule.trigger in triggers})

    async def increment_execution(self, rule_id: str, executed_at: datetime) -> None:
        self.increments[rule_id] = self.increments.get(rule_id, 0) + 1

    async def record_execution(self, record: ExecutionRecord) -> None:
        self.records.append(record)


class RecordingNotifications(NotificationService):
    """Collects notifications instead of delivering them."""

    def __init__(self):
        self.sent: list[dict[str, Any]] = []
        self.fail = False

    async def notify(
        self,
        user_id: str,
        title: str,
        message: str,
        related_task_id: str | None = None,
        action_url: str | None = None,
    ) -> bool:
        if self.fail:
            raise ConnectionError("notification backend down")
        self.sent.append(
            {
                "user_id": user_id,
                "title": title,
                "message": message,
                "related_task_id": related_task_id,
                "action_url": action_url,
            }
        )
        return True


class RecordingActivity(ActivityLog):
    """Collects activity entries; can be switched to fail."""

    def __init__(self):
        self.entries: list[dict[str, Any]] = []
        self.fail = False

    async def append(
        self,
        task_id: str,
        user_id: str,
        activity_type: str,
        description: str,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        if self.fail:
            raise ConnectionError("activity log unavailable")
        self.entries.append(
            {
                "task_id": task_id,
                "user_id": user_id,
                "activity_type": activity_type,
                "description": description,
                "metadata": metadata or {},
            }
        )
        return f"act_{len(self.entries)}"


class MemoryGuard(ExecutionGuard):
    def __init__(self):
        self.claimed: set[str] = set()

    async def claim(self, key: str) -> bool:
        if key in self.claimed:
            return False
        self.claimed.add(key)
        return True


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def task_repo() -> InMemoryTaskRepository:
    return InMemoryTaskRepository()


@pytest.fixture
def rule_repo() -> InMemoryRuleRepository:
    return InMemoryRuleRepository()


@pytest.fixture
def notifications() -> RecordingNotifications:
    return RecordingNotifications()


@pytest.fixture
def activity() -> RecordingActivity:
    return RecordingActivity()


@pytest.fixture
def guard() -> MemoryGuard:
    return MemoryGuard()


@pytest.fixture
def dispatcher(task_repo, notifications, activity, settings) -> ActionDispatcher:
    return ActionDispatcher(task_repo, notifications, activity, settings)


@pytest.fixture
def orchestrator(rule_repo, dispatcher, guard, settings) -> ExecutionOrchestrator:
    return ExecutionOrchestrator(rule_repo, dispatcher, guard=guard, settings=settings)


@pytest_asyncio.fixture
async def fake_redis() -> AsyncIterator[fakeredis.FakeAsyncRedis]:
    """In-process Redis for store tests."""
    redis = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield redis
    await redis.flushall()
    await redis.aclose()
