"""Rule API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from taskrules.models.rule import Action, TriggerEvent


class RuleCreate(BaseModel):
    """Schema for creating a new rule.

    Structural checks beyond field types (non-empty actions, known action
    types, parameters) are done by the rule validator so that every problem
    is reported at once.
    """

    user_id: str = Field(..., min_length=1, description="Owning user")
    name: str = Field(..., min_length=1, max_length=100, description="Rule name")
    description: str = Field(default="", max_length=500, description="Rule description")
    trigger: TriggerEvent = Field(..., description="Event the rule reacts to")
    conditions: dict[str, Any] = Field(default_factory=dict, description="Field path to condition spec")
    actions: list[Action] = Field(default_factory=list, description="Ordered actions")
    is_active: bool = Field(default=True, description="Whether the rule is active")


class RuleUpdate(BaseModel):
    """Schema for partially updating a rule."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    trigger: TriggerEvent | None = None
    conditions: dict[str, Any] | None = None
    actions: list[Action] | None = None
    is_active: bool | None = None


class RuleStatusUpdate(BaseModel):
    """Schema for enabling or disabling a rule."""

    is_active: bool = Field(..., description="Whether the rule is active")


class RuleResponse(BaseModel):
    """Schema for rule response."""

    id: str
    user_id: str
    name: str
    description: str
    trigger: TriggerEvent
    conditions: dict[str, Any]
    actions: list[Action]
    is_active: bool
    execution_count: int
    last_executed: datetime | None
    created_at: datetime
    updated_at: datetime


class RuleCreateResponse(BaseModel):
    """Schema for rule creation response."""

    rule_id: str = Field(..., description="Created rule ID")
    created_at: datetime = Field(..., description="Creation timestamp")
    warnings: list[str] = Field(default_factory=list, description="Validator warnings")
