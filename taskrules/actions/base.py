"""Shared types and helpers for action executors."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable

from taskrules.core.config import Settings
from taskrules.core.exceptions import ActionExecutionError
from taskrules.engine.dates import resolve_due_date
from taskrules.models.actions import ActionParameters
from taskrules.models.rule import AutomationRule
from taskrules.models.task import Task
from taskrules.storage.base import ActivityLog, NotificationService, TaskRepository


@dataclass
class ActionContext:
    """Collaborators and trigger data available to an executor."""

    tasks: TaskRepository
    notifications: NotificationService
    activity: ActivityLog
    settings: Settings
    now: datetime
    rule: AutomationRule | None = None
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def actor_id(self) -> str | None:
        return self.rule.user_id if self.rule else None

    def task_url(self, task_id: str) -> str:
        return self.settings.task_url_template.format(task_id=task_id)


# Executors take typed parameters, the triggering task and the action context
Executor = Callable[[Any, Task, ActionContext], Awaitable[dict[str, Any]]]


def resolve_date_param(action_type: str, spec: Any, ctx: ActionContext) -> str | None:
    """Resolve an optional date parameter, failing the action if it is unparseable."""
    if spec is None:
        return None
    resolved = resolve_due_date(spec, ctx.now)
    if resolved is None:
        raise ActionExecutionError(action_type, f"Unparseable date: {spec!r}")
    return resolved


def resolve_recipients(params: ActionParameters, task: Task) -> list[str]:
    """Resolve notification recipients from ``recipient`` / ``recipient_id``.

    An explicit ``recipient_id`` wins; ``assignees`` falls back to the task
    owner when nobody is assigned; the default is the owner.
    """
    recipient_id = getattr(params, "recipient_id", None)
    if recipient_id:
        return [recipient_id]

    if getattr(params, "recipient", None) == "assignees":
        assignees = list(dict.fromkeys(task.assignee_ids))
        return assignees or [task.user_id]

    return [task.user_id]
