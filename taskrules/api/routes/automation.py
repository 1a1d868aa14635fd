"""Automation trigger, scan, catalog and suggestion routes."""

from fastapi import APIRouter, Query

from taskrules.api.deps import EventHandlerDep, ScannerDep, TaskStoreDep
from taskrules.engine.catalog import TRIGGER_CATALOG, TriggerDefinition
from taskrules.engine.suggestions import RuleSuggestion, suggest_rules
from taskrules.models.event import TaskEvent
from taskrules.schemas.automation import ProcessResponse, ScanResponse
from taskrules.schemas.common import APIResponse

router = APIRouter(prefix="/automation", tags=["automation"])


@router.post("/events", response_model=APIResponse[ProcessResponse])
async def submit_event(
    event: TaskEvent,
    handler: EventHandlerDep,
) -> APIResponse[ProcessResponse]:
    """Process a task event synchronously.

    Events are idempotent by ``event_id``; a repeated event runs nothing.
    """
    result = await handler.handle_event(event)
    if result is None:
        return APIResponse(
            message="Event already processed",
            data=ProcessResponse(
                trigger=event.event_type.value,
                task_id=event.task.id,
                duplicate=True,
            ),
        )
    return APIResponse(data=ProcessResponse.from_result(result))


@router.post("/scan", response_model=APIResponse[ScanResponse])
async def run_scan(scanner: ScannerDep) -> APIResponse[ScanResponse]:
    """Run the scheduled overdue and due-soon scan now."""
    report = await scanner.run_scheduled_scan()
    return APIResponse(data=ScanResponse.model_validate(report.to_dict()))


@router.get("/triggers", response_model=APIResponse[list[TriggerDefinition]])
async def list_triggers() -> APIResponse[list[TriggerDefinition]]:
    """Supported triggers with their typical conditions and actions."""
    return APIResponse(data=list(TRIGGER_CATALOG))


@router.get("/suggestions", response_model=APIResponse[list[RuleSuggestion]])
async def get_suggestions(
    tasks: TaskStoreDep,
    user_id: str = Query(..., min_length=1, description="User to analyse"),
    limit: int = Query(default=100, ge=1, le=500, description="Recent tasks analysed"),
) -> APIResponse[list[RuleSuggestion]]:
    """Suggest rules from patterns in a user's recent tasks."""
    recent = await tasks.list_recent_tasks(user_id, limit=limit)
    return APIResponse(data=suggest_rules(recent))
