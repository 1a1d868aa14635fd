"""Automation rule domain models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class TriggerEvent(str, Enum):
    """Events an automation rule can be attached to."""

    TASK_COMPLETED = "task_completed"
    TASK_OVERDUE = "task_overdue"
    STATUS_CHANGED = "status_changed"
    TIME_TRACKED = "time_tracked"
    DUE_DATE_APPROACHING = "due_date_approaching"


# Triggers fired by the periodic scan rather than by the host application
SCHEDULED_TRIGGERS = (TriggerEvent.TASK_OVERDUE, TriggerEvent.DUE_DATE_APPROACHING)


class ActionType(str, Enum):
    """Closed set of automation action types."""

    CREATE_TASK = "create_task"
    UPDATE_STATUS = "update_status"
    UPDATE_PRIORITY = "update_priority"
    SEND_NOTIFICATION = "send_notification"
    ASSIGN_USER = "assign_user"
    CREATE_FOLLOW_UP = "create_follow_up"
    RESCHEDULE = "reschedule"
    ADD_DEPENDENCY = "add_dependency"
    CREATE_SUBTASKS = "create_subtasks"
    UPDATE_RELATED_TASKS = "update_related_tasks"
    UPDATE_DEPENDENCIES = "update_dependencies"
    LOG_ACTIVITY = "log_activity"
    UPDATE_ESTIMATES = "update_estimates"
    CREATE_REPORT = "create_report"
    CREATE_REMINDER = "create_reminder"


class Action(BaseModel):
    """A single side-effecting step of a rule.

    ``type`` stays a plain string so rules carrying a tag this build does not
    know can still be loaded; the dispatcher rejects them at run time.
    """

    type: str = Field(..., min_length=1, description="Action type tag")
    parameters: dict[str, Any] = Field(
        default_factory=dict,
        description="Type-specific parameters",
    )

    @property
    def action_type(self) -> ActionType | None:
        try:
            return ActionType(self.type)
        except ValueError:
            return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AutomationRule(BaseModel):
    """User-authored automation rule."""

    id: str = Field(..., description="Rule unique identifier")
    user_id: str = Field(..., description="Owning user")
    name: str = Field(..., description="Rule name")
    description: str = Field(default="", description="Rule description")
    trigger: TriggerEvent = Field(..., description="Event the rule reacts to")
    conditions: dict[str, Any] = Field(
        default_factory=dict,
        description="Field path to condition spec; all must pass",
    )
    actions: list[Action] = Field(..., min_length=1, description="Ordered actions")
    is_active: bool = Field(default=True, description="Whether the rule is active")
    execution_count: int = Field(default=0, ge=0, description="Number of recorded executions")
    last_executed: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def matches_trigger(self, event: TriggerEvent | str) -> bool:
        """Check if the rule reacts to the given event."""
        return self.trigger == TriggerEvent(event)
