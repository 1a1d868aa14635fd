"""Rule suggestions derived from a user's task history."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from taskrules.models.rule import TriggerEvent
from taskrules.models.task import Task, TaskStatus

FOLLOW_UP_TAGS = ("meeting", "call")
FOLLOW_UP_THRESHOLD = 3
OVERDUE_THRESHOLD = 2


class RuleSuggestion(BaseModel):
    """A proposed rule with the pattern that motivated it."""

    type: str = Field(..., description="Suggestion kind")
    title: str = Field(..., description="Short title")
    description: str = Field(..., description="What the rule would automate")
    confidence: float = Field(..., ge=0, le=1)
    evidence_count: int = Field(default=0, description="Tasks matching the pattern")
    suggested_rule: dict[str, Any] = Field(..., description="Rule payload ready to create")


def suggest_rules(tasks: list[Task], now: datetime | None = None) -> list[RuleSuggestion]:
    """Propose rules for repeated patterns in a user's tasks.

    Args:
        tasks: Recent tasks of one user
        now: Reference time for overdue detection

    Returns:
        Suggestions, most confident first
    """
    now = now or datetime.now(timezone.utc)
    suggestions: list[RuleSuggestion] = []

    follow_ups = [
        task for task in tasks if task.status == TaskStatus.COMPLETED and task.tag in FOLLOW_UP_TAGS
    ]
    if len(follow_ups) > FOLLOW_UP_THRESHOLD:
        suggestions.append(
            RuleSuggestion(
                type="follow_up_automation",
                title="Automate Follow-up Tasks",
                description="Create follow-up tasks automatically after completing meetings or calls",
                confidence=0.8,
                evidence_count=len(follow_ups),
                suggested_rule={
                    "name": "Follow up after meetings and calls",
                    "trigger": TriggerEvent.TASK_COMPLETED.value,
                    "conditions": {"task.tag": list(FOLLOW_UP_TAGS)},
                    "actions": [
                        {
                            "type": "create_task",
                            "parameters": {
                                "title": "Follow up on {task.title}",
                                "tag": "follow-up",
                                "due_date": "+3 days",
                                "priority": "medium",
                            },
                        }
                    ],
                },
            )
        )

    overdue = [
        task
        for task in tasks
        if task.due_date is not None and task.due_date < now and not task.is_closed
    ]
    if len(overdue) > OVERDUE_THRESHOLD:
        suggestions.append(
            RuleSuggestion(
                type="overdue_management",
                title="Automate Overdue Task Management",
                description="Automatically increase priority and send notifications for overdue tasks",
                confidence=0.7,
                evidence_count=len(overdue),
                suggested_rule={
                    "name": "Escalate overdue tasks",
                    "trigger": TriggerEvent.TASK_OVERDUE.value,
                    "conditions": {"days_overdue": {">": 1}},
                    "actions": [
                        {"type": "update_priority", "parameters": {"priority": "high"}},
                        {
                            "type": "send_notification",
                            "parameters": {
                                "message": 'Task "{task.title}" is overdue and needs attention',
                                "type": "overdue_alert",
                            },
                        },
                    ],
                },
            )
        )

    return sorted(suggestions, key=lambda suggestion: suggestion.confidence, reverse=True)
