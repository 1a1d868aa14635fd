"""Executors acting on assignments, dependencies and related tasks."""

from typing import Any

from taskrules.actions.base import ActionContext, resolve_date_param
from taskrules.core.exceptions import ActionExecutionError
from taskrules.core.logging import get_logger
from taskrules.models.actions import (
    AddDependencyParams,
    AssignUserParams,
    UpdateDependenciesParams,
    UpdateRelatedTasksParams,
)
from taskrules.models.rule import ActionType
from taskrules.models.task import Task, TaskStatus

logger = get_logger(__name__)


async def assign_user(params: AssignUserParams, task: Task, ctx: ActionContext) -> dict[str, Any]:
    assignment_id = await ctx.tasks.create_assignment(
        task.id,
        params.user_id,
        assigned_by=ctx.actor_id or task.user_id,
    )
    return {
        "assignment_id": assignment_id,
        "task_id": task.id,
        "assigned_user_id": params.user_id,
    }


async def add_dependency(params: AddDependencyParams, task: Task, ctx: ActionContext) -> dict[str, Any]:
    task_id = params.task_id or task.id
    if task_id == params.depends_on_task_id:
        raise ActionExecutionError(ActionType.ADD_DEPENDENCY.value, "A task cannot depend on itself")

    dependency_id = await ctx.tasks.create_dependency(task_id, params.depends_on_task_id)
    return {
        "dependency_id": dependency_id,
        "task_id": task_id,
        "depends_on_task_id": params.depends_on_task_id,
    }


async def update_related_tasks(
    params: UpdateRelatedTasksParams, task: Task, ctx: ActionContext
) -> dict[str, Any]:
    """Propagate one field to tasks sharing the client or the parent task.

    Without an explicit relationship the client is preferred when the task has
    one. The parent relationship covers siblings under the same parent, or the
    task's own subtasks when it has no parent.
    """
    relationship = params.relationship or ("client" if task.client_id else "parent")

    value = params.value
    if params.field == "due_date":
        value = resolve_date_param(ActionType.UPDATE_RELATED_TASKS.value, value, ctx)

    if relationship == "client":
        if not task.client_id:
            return {"updated_count": 0, "skipped": True, "reason": "Task has no client"}
        updated_ids = await ctx.tasks.bulk_update_by_client_or_parent(
            field=params.field,
            value=value,
            exclude_id=task.id,
            client_id=task.client_id,
        )
    else:
        updated_ids = await ctx.tasks.bulk_update_by_client_or_parent(
            field=params.field,
            value=value,
            exclude_id=task.id,
            parent_id=task.parent_task_id or task.id,
        )

    logger.info(
        "Related tasks updated",
        task_id=task.id,
        relationship=relationship,
        field=params.field,
        count=len(updated_ids),
    )
    return {
        "relationship": relationship,
        "field": params.field,
        "value": value,
        "updated_task_ids": updated_ids,
        "updated_count": len(updated_ids),
    }


async def update_dependencies(
    params: UpdateDependenciesParams, task: Task, ctx: ActionContext
) -> dict[str, Any]:
    """Start pending dependents once their prerequisite is completed."""
    if task.status != TaskStatus.COMPLETED:
        return {"started_task_ids": [], "count": 0, "skipped": True, "reason": "Task is not completed"}
    if not params.auto_start:
        return {"started_task_ids": [], "count": 0, "skipped": True, "reason": "auto_start is disabled"}

    started: list[str] = []
    for dependent in await ctx.tasks.query_dependents(task.id):
        if dependent.status != TaskStatus.PENDING:
            continue
        await ctx.tasks.update_task(dependent.id, {"status": TaskStatus.IN_PROGRESS.value})
        started.append(dependent.id)

    return {"started_task_ids": started, "count": len(started)}
