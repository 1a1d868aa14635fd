"""Action dispatcher routing action types to their executors."""

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from taskrules.actions import notify, relations, tasks
from taskrules.actions.base import ActionContext, Executor
from taskrules.core.config import Settings, get_settings
from taskrules.core.exceptions import ActionExecutionError, AutomationError, UnknownActionType
from taskrules.core.logging import get_logger
from taskrules.engine.templates import interpolate
from taskrules.models.actions import parse_action_parameters
from taskrules.models.rule import Action, ActionType, AutomationRule
from taskrules.models.task import Task
from taskrules.storage.base import ActivityLog, NotificationService, TaskRepository

logger = get_logger(__name__)

DEFAULT_EXECUTORS: dict[ActionType, Executor] = {
    ActionType.CREATE_TASK: tasks.create_task,
    ActionType.UPDATE_STATUS: tasks.update_status,
    ActionType.UPDATE_PRIORITY: tasks.update_priority,
    ActionType.SEND_NOTIFICATION: notify.send_notification,
    ActionType.ASSIGN_USER: relations.assign_user,
    ActionType.CREATE_FOLLOW_UP: tasks.create_follow_up,
    ActionType.RESCHEDULE: tasks.reschedule,
    ActionType.ADD_DEPENDENCY: relations.add_dependency,
    ActionType.CREATE_SUBTASKS: tasks.create_subtasks,
    ActionType.UPDATE_RELATED_TASKS: relations.update_related_tasks,
    ActionType.UPDATE_DEPENDENCIES: relations.update_dependencies,
    ActionType.LOG_ACTIVITY: notify.log_activity,
    ActionType.UPDATE_ESTIMATES: tasks.update_estimates,
    ActionType.CREATE_REPORT: notify.create_report,
    ActionType.CREATE_REMINDER: notify.create_reminder,
}


def _format_validation_error(e: PydanticValidationError) -> str:
    parts = []
    for error in e.errors():
        location = ".".join(str(item) for item in error["loc"]) or "parameters"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


class ActionDispatcher:
    """Executes single actions against the task repository and services."""

    def __init__(
        self,
        tasks: TaskRepository,
        notifications: NotificationService,
        activity: ActivityLog,
        settings: Settings | None = None,
    ):
        """Initialize dispatcher.

        Args:
            tasks: Task repository
            notifications: Notification service
            activity: Activity log
            settings: Application settings
        """
        self._tasks = tasks
        self._notifications = notifications
        self._activity = activity
        self._settings = settings or get_settings()
        self._executors: dict[str, Executor] = {
            action_type.value: executor for action_type, executor in DEFAULT_EXECUTORS.items()
        }

    @property
    def supported_types(self) -> list[str]:
        return list(self._executors)

    def register(self, action_type: ActionType | str, executor: Executor) -> None:
        """Register or replace the executor for an action type."""
        key = action_type.value if isinstance(action_type, ActionType) else action_type
        self._executors[key] = executor

    async def execute(
        self,
        action: Action,
        task: Task,
        context: Mapping[str, Any] | None = None,
        *,
        rule: AutomationRule | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Execute one action.

        Args:
            action: Action to execute
            task: Triggering task snapshot
            context: Trigger context mapping
            rule: Rule the action belongs to
            now: Reference time for relative dates

        Returns:
            Executor result

        Raises:
            UnknownActionType: If no executor is registered for the action type
            ActionExecutionError: If parameters are malformed or the side effect fails
        """
        executor = self._executors.get(action.type)
        if executor is None:
            raise UnknownActionType(action.type)

        context = dict(context or {})
        raw = interpolate(action.parameters, task, context)
        try:
            params = parse_action_parameters(action.type, raw)
        except PydanticValidationError as e:
            raise ActionExecutionError(
                action.type, f"Invalid parameters for {action.type}: {_format_validation_error(e)}"
            ) from e

        ctx = ActionContext(
            tasks=self._tasks,
            notifications=self._notifications,
            activity=self._activity,
            settings=self._settings,
            now=now or datetime.now(timezone.utc),
            rule=rule,
            context=context,
        )

        try:
            result = await executor(params, task, ctx)
        except AutomationError:
            raise
        except Exception as e:
            raise ActionExecutionError(action.type, f"{type(e).__name__}: {e}") from e

        logger.debug("Action executed", action_type=action.type, task_id=task.id)
        return result
