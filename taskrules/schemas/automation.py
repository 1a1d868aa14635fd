"""Automation event, scan and catalog schemas."""

from pydantic import BaseModel, Field

from taskrules.engine.orchestrator import ProcessResult
from taskrules.models.execution import ExecutionStatus


class RuleOutcomeResponse(BaseModel):
    """Outcome of one candidate rule."""

    rule_id: str
    matched: bool
    execution_id: str | None = None
    status: ExecutionStatus | None = None
    skipped_reason: str | None = None
    error: str | None = None


class ProcessResponse(BaseModel):
    """Outcome of processing one task event."""

    trigger: str
    task_id: str
    duplicate: bool = Field(default=False, description="Event was already processed")
    executed_count: int = 0
    outcomes: list[RuleOutcomeResponse] = Field(default_factory=list)
    error: str | None = None

    @classmethod
    def from_result(cls, result: ProcessResult) -> "ProcessResponse":
        return cls(
            trigger=result.trigger.value,
            task_id=result.task_id,
            executed_count=result.executed_count,
            outcomes=[
                RuleOutcomeResponse(
                    rule_id=outcome.rule_id,
                    matched=outcome.matched,
                    execution_id=outcome.record.id if outcome.record else None,
                    status=outcome.record.status if outcome.record else None,
                    skipped_reason=outcome.skipped_reason,
                    error=outcome.error,
                )
                for outcome in result.outcomes
            ],
            error=result.error,
        )


class UserScanResponse(BaseModel):
    user_id: str
    tasks_scanned: int
    automations_executed: int
    errors: list[str] = Field(default_factory=list)


class ScanResponse(BaseModel):
    """Summary of one scheduled scan."""

    users_processed: int
    automations_executed: int
    duration_ms: int
    results: list[UserScanResponse] = Field(default_factory=list)
