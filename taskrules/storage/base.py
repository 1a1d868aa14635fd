"""Abstract collaborator interfaces consumed by the rule engine."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from taskrules.models.execution import ExecutionRecord
from taskrules.models.rule import AutomationRule, TriggerEvent
from taskrules.models.task import Task


class TaskRepository(ABC):
    """Owner of task, dependency and assignment state."""

    @abstractmethod
    async def get_task(self, task_id: str) -> Task | None:
        """Get a task by ID."""

    @abstractmethod
    async def update_task(self, task_id: str, fields: dict[str, Any]) -> Task:
        """Apply a partial update and return the updated task.

        Raises:
            KeyError: If the task does not exist
        """

    @abstractmethod
    async def create_task(self, fields: dict[str, Any]) -> Task:
        """Create a task from field values."""

    @abstractmethod
    async def query_overdue_tasks(self, user_id: str, as_of: datetime) -> list[Task]:
        """Open tasks of a user whose due date is before ``as_of``."""

    @abstractmethod
    async def query_tasks_due_within(self, user_id: str, start: datetime, end: datetime) -> list[Task]:
        """Open tasks of a user due between ``start`` and ``end`` inclusive."""

    @abstractmethod
    async def create_dependency(self, task_id: str, depends_on_task_id: str) -> str:
        """Record that ``task_id`` depends on ``depends_on_task_id``; returns the dependency ID."""

    @abstractmethod
    async def query_dependents(self, task_id: str) -> list[Task]:
        """Tasks that depend on ``task_id``."""

    @abstractmethod
    async def create_subtask(self, parent_id: str, fields: dict[str, Any]) -> Task:
        """Create a subtask under ``parent_id``."""

    @abstractmethod
    async def bulk_update_by_client_or_parent(
        self,
        *,
        field: str,
        value: Any,
        exclude_id: str,
        client_id: str | None = None,
        parent_id: str | None = None,
    ) -> list[str]:
        """Set one field on all tasks sharing a client or parent; returns updated IDs."""

    @abstractmethod
    async def create_assignment(self, task_id: str, user_id: str, assigned_by: str | None = None) -> str:
        """Assign a user to a task; returns the assignment ID."""

    @abstractmethod
    async def list_recent_tasks(self, user_id: str, limit: int = 100) -> list[Task]:
        """Most recently created tasks of a user."""


class RuleRepository(ABC):
    """Owner of automation rules and their execution history."""

    @abstractmethod
    async def list_active_rules_by_trigger(self, user_id: str, trigger: TriggerEvent) -> list[AutomationRule]:
        """Active rules of a user for one trigger."""

    @abstractmethod
    async def list_users_with_active_rules(self, triggers: list[TriggerEvent]) -> list[str]:
        """Users owning at least one active rule for any of the triggers."""

    @abstractmethod
    async def increment_execution(self, rule_id: str, executed_at: datetime) -> None:
        """Increment ``execution_count`` and set ``last_executed``."""

    @abstractmethod
    async def record_execution(self, record: ExecutionRecord) -> None:
        """Persist an execution record."""


class NotificationService(ABC):
    """Delivers notifications to users."""

    @abstractmethod
    async def notify(
        self,
        user_id: str,
        title: str,
        message: str,
        related_task_id: str | None = None,
        action_url: str | None = None,
    ) -> bool:
        """Send a notification.

        Returns:
            True if the notification was delivered
        """


class ActivityLog(ABC):
    """Task activity timeline."""

    @abstractmethod
    async def append(
        self,
        task_id: str,
        user_id: str,
        activity_type: str,
        description: str,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Append an activity entry; returns its ID."""


class ExecutionGuard(ABC):
    """Claims dedup keys for scheduled executions."""

    @abstractmethod
    async def claim(self, key: str) -> bool:
        """Claim a key.

        Returns:
            True if newly claimed, False if already claimed
        """
