"""Execution record domain models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ExecutionStatus(str, Enum):
    """Overall outcome of one rule execution."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class ActionOutcome(BaseModel):
    """Result of one action within a rule execution."""

    type: str = Field(..., description="Action type tag")
    parameters: dict[str, Any] = Field(default_factory=dict, description="Action parameters as declared")
    result: dict[str, Any] | None = Field(default=None, description="Executor result on success")
    error: str | None = Field(default=None, description="Error message on failure")
    executed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def succeeded(self) -> bool:
        return self.error is None


class ExecutionRecord(BaseModel):
    """Immutable record of one orchestrated rule execution."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Execution unique identifier")
    rule_id: str = Field(..., description="Rule that was executed")
    user_id: str = Field(..., description="Rule owner")
    task_id: str = Field(..., description="Task the rule ran against")
    trigger_event: str = Field(..., description="Trigger event")
    executed_actions: list[ActionOutcome] = Field(default_factory=list)
    status: ExecutionStatus = Field(..., description="Overall status")
    error_message: str | None = Field(default=None, description="Top-level error message")
    executed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def status_for(cls, outcomes: list[ActionOutcome]) -> ExecutionStatus:
        """Derive the overall status from per-action outcomes."""
        succeeded = sum(1 for outcome in outcomes if outcome.succeeded)
        if outcomes and succeeded == len(outcomes):
            return ExecutionStatus.SUCCESS
        if succeeded > 0:
            return ExecutionStatus.PARTIAL
        return ExecutionStatus.FAILED
