"""Notification and activity domain models."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


class Notification(BaseModel):
    """In-app notification delivered to a user's inbox."""

    notification_id: str = Field(..., description="Notification unique identifier")
    user_id: str = Field(..., description="Recipient")
    title: str = Field(..., description="Notification title")
    message: str = Field(..., description="Notification body")
    type: str = Field(default="automation", description="Notification category")
    related_task_id: str | None = Field(default=None)
    action_url: str | None = Field(default=None)
    read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ActivityEntry(BaseModel):
    """Entry in a task's activity timeline."""

    activity_id: str = Field(..., description="Activity unique identifier")
    task_id: str = Field(..., description="Task the activity belongs to")
    user_id: str = Field(..., description="Acting user")
    activity_type: str = Field(..., description="Activity category")
    description: str = Field(default="")
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
