"""Executors that notify users or record activity."""

from typing import Any

from taskrules.actions.base import ActionContext, resolve_date_param, resolve_recipients
from taskrules.core.logging import get_logger
from taskrules.models.actions import (
    CreateReminderParams,
    CreateReportParams,
    LogActivityParams,
    SendNotificationParams,
)
from taskrules.models.rule import ActionType
from taskrules.models.task import Task

logger = get_logger(__name__)


async def _notify_all(
    recipients: list[str],
    title: str,
    message: str,
    task: Task,
    ctx: ActionContext,
    action_url: str | None = None,
) -> list[str]:
    """Send one notification per recipient; returns recipients that were reached."""
    delivered = []
    for user_id in recipients:
        sent = await ctx.notifications.notify(
            user_id,
            title,
            message,
            related_task_id=task.id,
            action_url=action_url or ctx.task_url(task.id),
        )
        if sent:
            delivered.append(user_id)
    return delivered


async def send_notification(
    params: SendNotificationParams, task: Task, ctx: ActionContext
) -> dict[str, Any]:
    title = params.title or (f"Automation: {ctx.rule.name}" if ctx.rule else "Task automation")
    recipients = resolve_recipients(params, task)
    delivered = await _notify_all(recipients, title, params.message, task, ctx, params.action_url)

    return {
        "notification_sent": bool(delivered),
        "recipient_count": len(delivered),
        "recipients": delivered,
        "message": params.message,
        "type": params.type,
    }


async def log_activity(params: LogActivityParams, task: Task, ctx: ActionContext) -> dict[str, Any]:
    """Append an activity entry; a failing activity log is reported, not raised."""
    metadata = {
        **params.metadata,
        "event": ctx.context.get("event"),
    }
    if ctx.rule:
        metadata["rule_id"] = ctx.rule.id
        metadata["rule_name"] = ctx.rule.name

    try:
        activity_id = await ctx.activity.append(
            task.id,
            ctx.actor_id or task.user_id,
            params.activity_type,
            params.description,
            metadata,
        )
    except Exception as e:
        logger.warning("Activity log append failed", task_id=task.id, error=str(e))
        return {"logged": False, "error": str(e)}

    return {"logged": True, "activity_id": activity_id}


def build_report(task: Task, ctx: ActionContext) -> dict[str, Any]:
    """Summarize a task's time and progress."""
    variance = None
    if task.estimated_hours is not None:
        variance = round(task.actual_hours - task.estimated_hours, 2)

    time_entry = ctx.context.get("time_entry") or {}
    return {
        "task_id": task.id,
        "title": task.title,
        "status": task.status.value,
        "priority": task.priority.value,
        "estimated_hours": task.estimated_hours,
        "actual_hours": task.actual_hours,
        "variance_hours": variance,
        "progress_percentage": task.progress_percentage,
        "due_date": task.due_date.isoformat() if task.due_date else None,
        "days_until_due": ctx.context.get("days_until_due"),
        "time_entry_minutes": time_entry.get("duration"),
        "generated_at": ctx.now.isoformat(),
    }


def _report_message(report: dict[str, Any]) -> str:
    lines = [
        f"**{report['title']}**",
        "",
        f"**Status:** {report['status']}",
        f"**Priority:** {report['priority']}",
        f"**Progress:** {report['progress_percentage']}%",
        f"**Actual Hours:** {report['actual_hours']}",
    ]
    if report["estimated_hours"] is not None:
        lines.append(f"**Estimated Hours:** {report['estimated_hours']}")
        lines.append(f"**Variance:** {report['variance_hours']:+}")
    if report["due_date"]:
        lines.append(f"**Due:** {report['due_date']}")
    return "\n".join(lines)


async def create_report(params: CreateReportParams, task: Task, ctx: ActionContext) -> dict[str, Any]:
    report = build_report(task, ctx)
    title = params.title or f"Task report: {task.title}"
    recipients = resolve_recipients(params, task)
    delivered = await _notify_all(recipients, title, _report_message(report), task, ctx)

    return {
        "report": report,
        "notification_sent": bool(delivered),
        "recipient_count": len(delivered),
    }


async def create_reminder(params: CreateReminderParams, task: Task, ctx: ActionContext) -> dict[str, Any]:
    remind_spec = params.remind_at or ctx.settings.reminder_default_due
    remind_at = resolve_date_param(ActionType.CREATE_REMINDER.value, remind_spec, ctx)

    message = params.message
    if not message:
        message = f"Reminder: {task.title}"
        if task.due_date:
            message += f" is due {task.due_date.strftime('%Y-%m-%d')}"
    message = f"{message} (remind at {remind_at})"

    recipients = resolve_recipients(params, task)
    delivered = await _notify_all(recipients, params.title, message, task, ctx)

    return {
        "reminder_sent": bool(delivered),
        "remind_at": remind_at,
        "recipients": delivered,
    }
