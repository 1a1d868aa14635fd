"""Executors that create or modify tasks."""

from typing import Any

from taskrules.actions.base import ActionContext, resolve_date_param
from taskrules.core.logging import get_logger
from taskrules.models.actions import (
    CreateFollowUpParams,
    CreateSubtasksParams,
    CreateTaskParams,
    RescheduleParams,
    UpdateEstimatesParams,
    UpdatePriorityParams,
    UpdateStatusParams,
)
from taskrules.models.rule import ActionType
from taskrules.models.task import Task, TaskStatus

logger = get_logger(__name__)


def _generated_fields(task: Task, ctx: ActionContext) -> dict[str, Any]:
    """Fields every machine-generated task carries."""
    return {
        "user_id": task.user_id,
        "ai_generated": True,
        "ai_confidence_score": ctx.settings.generated_task_confidence,
    }


async def create_task(params: CreateTaskParams, task: Task, ctx: ActionContext) -> dict[str, Any]:
    due_date = resolve_date_param(ActionType.CREATE_TASK.value, params.due_date, ctx)
    fields = {
        **_generated_fields(task, ctx),
        "title": params.title,
        "description": params.description,
        "client_id": params.client_id or task.client_id,
        "priority": params.priority.value,
        "status": params.status.value,
        "tag": params.tag,
        "due_date": due_date,
        "estimated_hours": params.estimated_hours,
        "parent_task_id": params.parent_task_id,
    }
    created = await ctx.tasks.create_task(fields)

    logger.info("Automation created task", task_id=created.id, source_task_id=task.id)
    return {
        "created_task_id": created.id,
        "title": created.title,
        "due_date": due_date,
    }


async def create_follow_up(params: CreateFollowUpParams, task: Task, ctx: ActionContext) -> dict[str, Any]:
    due_spec = params.due_date or ctx.settings.follow_up_default_due
    due_date = resolve_date_param(ActionType.CREATE_FOLLOW_UP.value, due_spec, ctx)
    fields = {
        **_generated_fields(task, ctx),
        "title": params.title or f"Follow up: {task.title}",
        "description": params.description,
        "client_id": params.client_id or task.client_id,
        "priority": params.priority.value,
        "status": TaskStatus.PENDING.value,
        "tag": params.tag,
        "due_date": due_date,
        "estimated_hours": params.estimated_hours,
    }
    created = await ctx.tasks.create_task(fields)

    logger.info("Automation created follow-up", task_id=created.id, source_task_id=task.id)
    return {
        "created_task_id": created.id,
        "title": created.title,
        "due_date": due_date,
        "follow_up_for": task.id,
    }


async def create_subtasks(params: CreateSubtasksParams, task: Task, ctx: ActionContext) -> dict[str, Any]:
    created_ids: list[str] = []
    for spec in params.subtasks:
        fields = {
            **_generated_fields(task, ctx),
            "title": spec.title,
            "description": spec.description,
            "client_id": spec.client_id or task.client_id,
            "priority": spec.priority.value,
            "status": TaskStatus.PENDING.value,
            "tag": spec.tag or task.tag,
            "due_date": resolve_date_param(ActionType.CREATE_SUBTASKS.value, spec.due_date, ctx),
            "estimated_hours": spec.estimated_hours,
        }
        subtask = await ctx.tasks.create_subtask(task.id, fields)
        created_ids.append(subtask.id)

    return {
        "parent_task_id": task.id,
        "created_subtask_ids": created_ids,
        "count": len(created_ids),
    }


async def update_status(params: UpdateStatusParams, task: Task, ctx: ActionContext) -> dict[str, Any]:
    await ctx.tasks.update_task(task.id, {"status": params.status.value})
    return {
        "updated_task_id": task.id,
        "old_status": task.status.value,
        "new_status": params.status.value,
    }


async def update_priority(params: UpdatePriorityParams, task: Task, ctx: ActionContext) -> dict[str, Any]:
    await ctx.tasks.update_task(task.id, {"priority": params.priority.value})
    return {
        "updated_task_id": task.id,
        "old_priority": task.priority.value,
        "new_priority": params.priority.value,
    }


async def reschedule(params: RescheduleParams, task: Task, ctx: ActionContext) -> dict[str, Any]:
    new_due_date = resolve_date_param(ActionType.RESCHEDULE.value, params.due_date, ctx)
    await ctx.tasks.update_task(task.id, {"due_date": new_due_date})
    return {
        "updated_task_id": task.id,
        "old_due_date": task.due_date.isoformat() if task.due_date else None,
        "new_due_date": new_due_date,
    }


async def update_estimates(params: UpdateEstimatesParams, task: Task, ctx: ActionContext) -> dict[str, Any]:
    """Set an explicit estimate, or re-estimate from tracked hours plus a buffer.

    Actual hours include the triggering time entry, if any. Re-estimation only
    happens once actual hours exceed the current estimate.
    """
    old_estimate = task.estimated_hours
    actual = task.actual_hours
    time_entry = ctx.context.get("time_entry")
    if isinstance(time_entry, dict) and time_entry.get("duration"):
        actual += time_entry["duration"] / 60

    if params.estimated_hours is not None:
        new_estimate = params.estimated_hours
    else:
        if actual <= 0:
            return {"skipped": True, "reason": "No tracked time on task"}
        if old_estimate is not None and actual <= old_estimate:
            return {
                "skipped": True,
                "reason": "Actual hours within estimate",
                "estimated_hours": old_estimate,
                "actual_hours": round(actual, 2),
            }
        new_estimate = round(actual * (1 + params.buffer_percent / 100), 2)

    await ctx.tasks.update_task(task.id, {"estimated_hours": new_estimate})
    return {
        "updated_task_id": task.id,
        "old_estimated_hours": old_estimate,
        "new_estimated_hours": new_estimate,
    }
