"""Typed parameter models for each automation action type.

Every action type has its own parameter model. Models accept unknown keys so
new parameters can be introduced without breaking stored rules, and
``RawParameters`` carries actions whose type is not part of this build.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from taskrules.models.rule import ActionType
from taskrules.models.task import TaskPriority, TaskStatus

RecipientKind = Literal["assignees", "owner"]


class ActionParameters(BaseModel):
    """Base class for action parameters."""

    model_config = ConfigDict(extra="allow")


class RawParameters(ActionParameters):
    """Fallback variant for unforeseen action types."""


class CreateTaskParams(ActionParameters):
    title: str = Field(..., min_length=1, description="Title of the new task")
    description: str | None = None
    client_id: str | None = Field(default=None, description="Defaults to the triggering task's client")
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    tag: str = "follow-up"
    due_date: str | None = Field(default=None, description="Relative ('+3 days') or absolute date")
    estimated_hours: float | None = Field(default=None, ge=0)
    parent_task_id: str | None = None


class CreateFollowUpParams(ActionParameters):
    title: str | None = Field(default=None, description="Defaults to 'Follow up: <task title>'")
    description: str | None = None
    client_id: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    tag: str = "follow-up"
    due_date: str | None = None
    estimated_hours: float | None = Field(default=None, ge=0)


class SubtaskSpec(ActionParameters):
    title: str = Field(..., min_length=1)
    description: str | None = None
    client_id: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    tag: str | None = Field(default=None, description="Defaults to the parent's tag")
    due_date: str | None = None
    estimated_hours: float | None = Field(default=None, ge=0)


class CreateSubtasksParams(ActionParameters):
    subtasks: list[SubtaskSpec] = Field(..., min_length=1)


class UpdateStatusParams(ActionParameters):
    status: TaskStatus


class UpdatePriorityParams(ActionParameters):
    priority: TaskPriority


class SendNotificationParams(ActionParameters):
    title: str | None = None
    message: str = "Task notification"
    type: str = "general"
    recipient: RecipientKind | None = None
    recipient_id: str | None = None
    action_url: str | None = None


class AssignUserParams(ActionParameters):
    user_id: str = Field(..., min_length=1)


class RescheduleParams(ActionParameters):
    due_date: str = Field(..., min_length=1, description="Relative ('+1 week') or absolute date")


class AddDependencyParams(ActionParameters):
    depends_on_task_id: str = Field(..., min_length=1)
    task_id: str | None = Field(default=None, description="Dependent task; defaults to the triggering task")


RELATED_TASK_FIELDS = ("status", "priority", "tag", "due_date", "estimated_hours")


class UpdateRelatedTasksParams(ActionParameters):
    field: Literal["status", "priority", "tag", "due_date", "estimated_hours"]
    value: Any
    relationship: Literal["client", "parent"] | None = None

    @model_validator(mode="after")
    def _check_value(self) -> "UpdateRelatedTasksParams":
        if self.field == "status":
            self.value = TaskStatus(self.value).value
        elif self.field == "priority":
            self.value = TaskPriority(self.value).value
        return self


class UpdateDependenciesParams(ActionParameters):
    auto_start: bool = False


class LogActivityParams(ActionParameters):
    activity_type: str = "automation"
    description: str = "Automation rule executed"
    metadata: dict[str, Any] = Field(default_factory=dict)


class UpdateEstimatesParams(ActionParameters):
    estimated_hours: float | None = Field(default=None, ge=0)
    buffer_percent: float = Field(default=20.0, ge=0)


class CreateReportParams(ActionParameters):
    title: str | None = None
    recipient: RecipientKind | None = None
    recipient_id: str | None = None


class CreateReminderParams(ActionParameters):
    title: str = "Reminder"
    message: str | None = None
    remind_at: str | None = None
    recipient: RecipientKind | None = None
    recipient_id: str | None = None


PARAMETER_MODELS: dict[ActionType, type[ActionParameters]] = {
    ActionType.CREATE_TASK: CreateTaskParams,
    ActionType.UPDATE_STATUS: UpdateStatusParams,
    ActionType.UPDATE_PRIORITY: UpdatePriorityParams,
    ActionType.SEND_NOTIFICATION: SendNotificationParams,
    ActionType.ASSIGN_USER: AssignUserParams,
    ActionType.CREATE_FOLLOW_UP: CreateFollowUpParams,
    ActionType.RESCHEDULE: RescheduleParams,
    ActionType.ADD_DEPENDENCY: AddDependencyParams,
    ActionType.CREATE_SUBTASKS: CreateSubtasksParams,
    ActionType.UPDATE_RELATED_TASKS: UpdateRelatedTasksParams,
    ActionType.UPDATE_DEPENDENCIES: UpdateDependenciesParams,
    ActionType.LOG_ACTIVITY: LogActivityParams,
    ActionType.UPDATE_ESTIMATES: UpdateEstimatesParams,
    ActionType.CREATE_REPORT: CreateReportParams,
    ActionType.CREATE_REMINDER: CreateReminderParams,
}


def parse_action_parameters(action_type: ActionType | str, raw: dict[str, Any]) -> ActionParameters:
    """Parse raw parameters into the typed variant for an action type.

    Args:
        action_type: Action type tag
        raw: Raw parameter mapping

    Returns:
        Typed parameter model, or RawParameters for unknown types

    Raises:
        pydantic.ValidationError: If parameters do not fit the type's model
    """
    try:
        model = PARAMETER_MODELS[ActionType(action_type)]
    except ValueError:
        return RawParameters.model_validate(raw)
    return model.model_validate(raw)
