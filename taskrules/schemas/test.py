"""Rule validation, dry-run and manual execution schemas."""

from typing import Any

from pydantic import BaseModel, Field, model_validator

from taskrules.models.execution import ExecutionRecord
from taskrules.models.task import Task, TaskStatus, TimeEntry
from taskrules.schemas.rule import RuleCreate


class ValidateRequest(BaseModel):
    """Request schema for rule validation."""

    rule_config: dict[str, Any] = Field(..., description="Rule definition to validate")


class ValidateResponse(BaseModel):
    """Response schema for rule validation."""

    valid: bool = Field(..., description="Whether the rule is valid")
    errors: list[str] = Field(default_factory=list, description="Validation errors")
    warnings: list[str] = Field(default_factory=list, description="Validation warnings")


class TriggerInput(BaseModel):
    """Event details used to build a trigger context for a given task."""

    old_status: TaskStatus | None = Field(default=None, description="Status before a status change")
    previous_task: dict[str, Any] | None = Field(default=None, description="Snapshot before the change")
    time_entry: TimeEntry | None = Field(default=None, description="Logged time, for time_tracked")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Event metadata")


class TestRequest(TriggerInput):
    """Request schema for a rule dry run.

    The rule is either a stored rule (``rule_id``) or an inline definition;
    the task is either a stored task (``task_id``) or an inline snapshot.
    """

    rule_id: str | None = Field(default=None, description="Stored rule to test")
    rule: RuleCreate | None = Field(default=None, description="Inline rule definition")
    task_id: str | None = Field(default=None, description="Stored task to test against")
    task: Task | None = Field(default=None, description="Inline task snapshot")

    @model_validator(mode="after")
    def _check_sources(self) -> "TestRequest":
        if (self.rule_id is None) == (self.rule is None):
            raise ValueError("Exactly one of rule_id or rule is required")
        if (self.task_id is None) == (self.task is None):
            raise ValueError("Exactly one of task_id or task is required")
        return self


class TestResponse(BaseModel):
    """Response schema for a rule dry run."""

    valid: bool = Field(..., description="Whether the rule is valid")
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    would_execute: bool = Field(..., description="Whether the conditions match")
    planned_actions: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Actions with placeholders interpolated",
    )
    context: dict[str, Any] = Field(default_factory=dict, description="Trigger context used")
    error: str | None = Field(default=None)


class ExecuteRequest(TriggerInput):
    """Request schema for a manual rule execution."""

    task_id: str = Field(..., description="Task to run the rule against")


class ExecuteResponse(BaseModel):
    """Response schema for a manual rule execution."""

    matched: bool = Field(..., description="Whether the conditions matched")
    record: ExecutionRecord | None = Field(default=None, description="Execution record, if any")
