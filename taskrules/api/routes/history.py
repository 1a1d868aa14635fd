"""Execution history API routes."""

from fastapi import APIRouter, HTTPException, Query

from taskrules.api.deps import PaginationDep, RuleStoreDep
from taskrules.models.execution import ExecutionRecord, ExecutionStatus
from taskrules.schemas.common import PaginatedResponse, PaginationParams

router = APIRouter(tags=["history"])


def _paginate(
    records: list[ExecutionRecord],
    pagination: PaginationParams,
    status: ExecutionStatus | None,
) -> PaginatedResponse[ExecutionRecord]:
    if status is not None:
        records = [record for record in records if record.status == status]
    return PaginatedResponse(
        data=pagination.slice(records),
        total=len(records),
        page=pagination.page,
        page_size=pagination.page_size,
    )


@router.get("/rules/{rule_id}/history", response_model=PaginatedResponse[ExecutionRecord])
async def get_rule_history(
    rule_id: str,
    store: RuleStoreDep,
    pagination: PaginationDep,
    status: ExecutionStatus | None = Query(default=None, description="Filter by execution status"),
) -> PaginatedResponse[ExecutionRecord]:
    """Execution records of one rule, newest first."""
    rule = await store.get(rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")

    records = await store.list_executions(rule_id=rule_id)
    return _paginate(records, pagination, status)


@router.get("/executions", response_model=PaginatedResponse[ExecutionRecord])
async def list_executions(
    store: RuleStoreDep,
    pagination: PaginationDep,
    user_id: str = Query(..., min_length=1, description="Rule owner"),
    status: ExecutionStatus | None = Query(default=None, description="Filter by execution status"),
) -> PaginatedResponse[ExecutionRecord]:
    """Execution records across all rules of a user, newest first."""
    records = await store.list_executions(user_id=user_id)
    return _paginate(records, pagination, status)
