"""Rule validation, dry-run and manual execution routes."""

from fastapi import APIRouter, HTTPException

from taskrules.api.deps import OrchestratorDep, RuleStoreDep, TaskStoreDep
from taskrules.engine.validator import get_rule_validator
from taskrules.models.context import TriggerContext
from taskrules.models.rule import AutomationRule, TriggerEvent
from taskrules.models.task import Task
from taskrules.schemas.common import APIResponse
from taskrules.schemas.test import (
    ExecuteRequest,
    ExecuteResponse,
    TestRequest,
    TestResponse,
    TriggerInput,
    ValidateRequest,
    ValidateResponse,
)

router = APIRouter(prefix="/rules", tags=["rules"])


def build_trigger_context(event: TriggerEvent, task: Task, data: TriggerInput) -> TriggerContext:
    """Build a trigger context from request event details."""
    previous = data.previous_task
    if data.old_status is not None:
        previous = {**(previous or {}), "status": data.old_status.value}

    return TriggerContext(
        event=event,
        task=task,
        previous_task=previous,
        time_entry=data.time_entry,
        metadata=data.metadata,
    )


@router.post("/validate", response_model=APIResponse[ValidateResponse])
async def validate_rule(
    data: ValidateRequest,
) -> APIResponse[ValidateResponse]:
    """Validate a rule definition without storing it."""
    result = get_rule_validator().validate(data.rule_config)

    return APIResponse(
        data=ValidateResponse(
            valid=result.is_valid,
            errors=result.errors,
            warnings=result.warnings,
        )
    )


@router.post("/test", response_model=APIResponse[TestResponse])
async def test_rule(
    data: TestRequest,
    store: RuleStoreDep,
    tasks: TaskStoreDep,
    orchestrator: OrchestratorDep,
) -> APIResponse[TestResponse]:
    """Dry-run a rule against a task.

    Conditions are evaluated and action parameters interpolated, but no
    action is executed and nothing is recorded.
    """
    if data.rule_id is not None:
        rule = await store.get(data.rule_id)
        if not rule:
            raise HTTPException(status_code=404, detail=f"Rule {data.rule_id} not found")
    else:
        validation = get_rule_validator().validate(data.rule.model_dump(mode="json"))
        if not validation.is_valid:
            return APIResponse(
                data=TestResponse(
                    valid=False,
                    errors=validation.errors,
                    warnings=validation.warnings,
                    would_execute=False,
                )
            )
        rule = AutomationRule(id="dry_run", **data.rule.model_dump())

    if data.task_id is not None:
        task = await tasks.get_task(data.task_id)
        if not task:
            raise HTTPException(status_code=404, detail=f"Task {data.task_id} not found")
    else:
        task = data.task

    result = await orchestrator.test_rule(rule, build_trigger_context(rule.trigger, task, data))

    return APIResponse(
        data=TestResponse(
            valid=result.validation.is_valid,
            errors=result.validation.errors,
            warnings=result.validation.warnings,
            would_execute=result.matched,
            planned_actions=result.planned_actions,
            context=result.context,
            error=result.error,
        )
    )


@router.post("/{rule_id}/execute", response_model=APIResponse[ExecuteResponse])
async def execute_rule(
    rule_id: str,
    data: ExecuteRequest,
    store: RuleStoreDep,
    tasks: TaskStoreDep,
    orchestrator: OrchestratorDep,
) -> APIResponse[ExecuteResponse]:
    """Run a rule against a task now, with real side effects."""
    rule = await store.get(rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")

    task = await tasks.get_task(data.task_id)
    if not task:
        raise HTTPException(status_code=404, detail=f"Task {data.task_id} not found")

    outcome = await orchestrator.execute_rule(rule, build_trigger_context(rule.trigger, task, data))

    return APIResponse(data=ExecuteResponse(matched=outcome.matched, record=outcome.record))
