"""Task event models received from the host application."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, model_validator

from taskrules.models.context import TriggerContext
from taskrules.models.rule import TriggerEvent
from taskrules.models.task import Task, TaskStatus, TimeEntry


class TaskEvent(BaseModel):
    """A task change published by the host application."""

    event_id: str = Field(..., description="Event unique identifier for idempotency")
    event_type: TriggerEvent = Field(..., description="Trigger the event fires")
    task: Task = Field(..., description="Task snapshot after the change")
    old_status: TaskStatus | None = Field(default=None, description="Status before a status change")
    previous_task: dict[str, Any] | None = Field(default=None, description="Snapshot before the change")
    time_entry: TimeEntry | None = Field(default=None, description="Logged time, for time_tracked")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Free-form event metadata")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Event timestamp",
    )

    @model_validator(mode="after")
    def _check_payload(self) -> "TaskEvent":
        if self.event_type == TriggerEvent.TIME_TRACKED and self.time_entry is None:
            raise ValueError("time_tracked events require a time_entry")
        if self.event_type == TriggerEvent.STATUS_CHANGED and self.old_status is None:
            if not self.previous_task or "status" not in self.previous_task:
                raise ValueError("status_changed events require old_status")
        return self

    def to_trigger_context(self) -> TriggerContext:
        """Build the trigger context for the orchestrator."""
        previous = self.previous_task
        if self.old_status is not None:
            previous = {**(previous or {}), "status": self.old_status.value}

        return TriggerContext(
            event=self.event_type,
            task=self.task,
            previous_task=previous,
            time_entry=self.time_entry,
            metadata={**self.metadata, "event_id": self.event_id},
            occurred_at=self.timestamp,
        )
