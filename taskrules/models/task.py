"""Task domain models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TaskStatus(str, Enum):
    """Task status enumeration."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    BLOCKED = "blocked"


class TaskPriority(str, Enum):
    """Task priority enumeration."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


# Statuses excluded from overdue and due-soon scans
CLOSED_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELLED})


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Task(BaseModel):
    """Snapshot of a task as owned by the task repository."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Task unique identifier")
    user_id: str = Field(..., description="Owning user")
    client_id: str | None = Field(default=None, description="Related client")
    title: str = Field(..., description="Task title")
    description: str | None = Field(default=None, description="Task description")
    status: TaskStatus = Field(default=TaskStatus.PENDING)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    tag: str | None = Field(default=None, description="Task tag, e.g. 'follow-up' or 'meeting'")
    due_date: datetime | None = Field(default=None, description="Due date")
    parent_task_id: str | None = Field(default=None, description="Parent task for subtasks")
    estimated_hours: float | None = Field(default=None, ge=0)
    actual_hours: float = Field(default=0.0, ge=0)
    progress_percentage: int = Field(default=0, ge=0, le=100)
    ai_generated: bool = Field(default=False, description="Created by automation or AI")
    ai_confidence_score: float | None = Field(default=None, ge=0.0, le=1.0)
    assignee_ids: list[str] = Field(default_factory=list, description="Assigned user IDs")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("due_date", "created_at", "updated_at")
    @classmethod
    def _normalize_timezone(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_STATUSES

    def as_scope(self) -> dict[str, Any]:
        """Render the task as plain JSON data for condition and template lookups."""
        return self.model_dump(mode="json")


class TimeEntry(BaseModel):
    """Time logged against a task."""

    id: str = Field(..., description="Time entry identifier")
    task_id: str = Field(..., description="Task the time was logged against")
    user_id: str = Field(..., description="User who logged the time")
    start_time: datetime = Field(..., description="Start of the tracked period")
    end_time: datetime | None = Field(default=None)
    duration_minutes: int | None = Field(default=None, gt=0)
    description: str | None = Field(default=None)
    is_manual: bool = Field(default=False)

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_timezone(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @property
    def duration(self) -> int | None:
        """Duration in minutes, derived from the period when not stored."""
        if self.duration_minutes is not None:
            return self.duration_minutes
        if self.end_time is not None:
            return int((self.end_time - self.start_time).total_seconds() // 60)
        return None

    def as_scope(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["duration"] = self.duration
        return data
