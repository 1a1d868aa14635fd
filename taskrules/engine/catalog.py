"""Catalog of supported triggers for rule authoring."""

from pydantic import BaseModel, Field

from taskrules.models.rule import ActionType, TriggerEvent


class TriggerDefinition(BaseModel):
    """Describes one trigger and what rules on it typically use."""

    id: TriggerEvent = Field(..., description="Trigger event")
    name: str = Field(..., description="Display name")
    description: str = Field(..., description="When the trigger fires")
    available_conditions: list[str] = Field(default_factory=list, description="Useful condition paths")
    available_actions: list[ActionType] = Field(default_factory=list, description="Suggested actions")


TRIGGER_CATALOG: tuple[TriggerDefinition, ...] = (
    TriggerDefinition(
        id=TriggerEvent.TASK_COMPLETED,
        name="Task Completed",
        description="Triggered when a task is marked as completed",
        available_conditions=["task.priority", "task.tag", "task.client_id", "task.parent_task_id"],
        available_actions=[
            ActionType.CREATE_TASK,
            ActionType.SEND_NOTIFICATION,
            ActionType.UPDATE_RELATED_TASKS,
            ActionType.CREATE_FOLLOW_UP,
            ActionType.UPDATE_DEPENDENCIES,
        ],
    ),
    TriggerDefinition(
        id=TriggerEvent.TASK_OVERDUE,
        name="Task Overdue",
        description="Triggered when a task becomes overdue",
        available_conditions=["task.priority", "task.tag", "task.client_id", "days_overdue"],
        available_actions=[
            ActionType.UPDATE_PRIORITY,
            ActionType.SEND_NOTIFICATION,
            ActionType.RESCHEDULE,
            ActionType.ASSIGN_USER,
        ],
    ),
    TriggerDefinition(
        id=TriggerEvent.STATUS_CHANGED,
        name="Status Changed",
        description="Triggered when a task status changes",
        available_conditions=["from_status", "to_status", "task.status", "task.priority", "task.client_id"],
        available_actions=[
            ActionType.CREATE_TASK,
            ActionType.SEND_NOTIFICATION,
            ActionType.UPDATE_DEPENDENCIES,
            ActionType.LOG_ACTIVITY,
        ],
    ),
    TriggerDefinition(
        id=TriggerEvent.TIME_TRACKED,
        name="Time Tracked",
        description="Triggered when time is tracked on a task",
        available_conditions=["time_entry.duration", "task.estimated_hours", "task.actual_hours"],
        available_actions=[
            ActionType.SEND_NOTIFICATION,
            ActionType.UPDATE_ESTIMATES,
            ActionType.CREATE_REPORT,
        ],
    ),
    TriggerDefinition(
        id=TriggerEvent.DUE_DATE_APPROACHING,
        name="Due Date Approaching",
        description="Triggered when a task due date is approaching",
        available_conditions=["days_until_due", "task.priority", "task.status", "task.client_id"],
        available_actions=[
            ActionType.SEND_NOTIFICATION,
            ActionType.UPDATE_PRIORITY,
            ActionType.CREATE_REMINDER,
        ],
    ),
)


def get_trigger(event: TriggerEvent | str) -> TriggerDefinition:
    """Look up the catalog entry for a trigger.

    Raises:
        ValueError: If the trigger is unknown
    """
    event = TriggerEvent(event)
    for definition in TRIGGER_CATALOG:
        if definition.id == event:
            return definition
    raise ValueError(f"No catalog entry for trigger: {event.value}")
