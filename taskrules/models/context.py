"""Trigger context model."""

import math
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, field_validator

from taskrules.models.rule import TriggerEvent
from taskrules.models.task import Task, TimeEntry

_SECONDS_PER_DAY = 86400


class TriggerContext(BaseModel):
    """Everything known about the event that fired a trigger."""

    event: TriggerEvent = Field(..., description="Trigger event")
    task: Task = Field(..., description="Current task snapshot")
    previous_task: dict[str, Any] | None = Field(
        default=None,
        description="Previous (possibly partial) task snapshot, for status changes",
    )
    time_entry: TimeEntry | None = Field(default=None, description="Logged time, for time_tracked")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Free-form event metadata")
    occurred_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Reference time for derived day counts",
    )

    @field_validator("occurred_at")
    @classmethod
    def _normalize_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def days_overdue(self) -> int | None:
        if self.task.due_date is None:
            return None
        delta = (self.occurred_at - self.task.due_date).total_seconds()
        return math.floor(delta / _SECONDS_PER_DAY)

    @property
    def days_until_due(self) -> int | None:
        if self.task.due_date is None:
            return None
        delta = (self.task.due_date - self.occurred_at).total_seconds()
        return math.floor(delta / _SECONDS_PER_DAY)

    def to_context(self) -> dict[str, Any]:
        """Build the ``context`` mapping used by conditions and templates."""
        context: dict[str, Any] = {
            "event": self.event.value,
            "metadata": dict(self.metadata),
            "occurred_at": self.occurred_at.isoformat(),
        }

        if self.task.due_date is not None:
            context["days_overdue"] = self.days_overdue
            context["days_until_due"] = self.days_until_due
            context["is_overdue"] = self.days_overdue > 0

        if self.previous_task is not None:
            context["previous_task"] = dict(self.previous_task)
            context["from_status"] = self.previous_task.get("status")
            context["to_status"] = self.task.status.value

        if self.time_entry is not None:
            context["time_entry"] = self.time_entry.as_scope()

        return context
