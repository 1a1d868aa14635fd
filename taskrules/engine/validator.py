"""Static validation of automation rule definitions."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from taskrules.core.exceptions import ValidationError
from taskrules.engine.conditions import OPERATORS
from taskrules.engine.dates import resolve_datetime
from taskrules.engine.templates import PLACEHOLDER_PATTERN
from taskrules.models.actions import PARAMETER_MODELS
from taskrules.models.rule import ActionType, AutomationRule, TriggerEvent

# Parameters holding relative or absolute dates, per action type
DATE_PARAMETERS: dict[ActionType, tuple[str, ...]] = {
    ActionType.CREATE_TASK: ("due_date",),
    ActionType.CREATE_FOLLOW_UP: ("due_date",),
    ActionType.RESCHEDULE: ("due_date",),
    ActionType.CREATE_REMINDER: ("remind_at",),
}


@dataclass
class ValidationResult:
    """Outcome of validating one rule."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _has_placeholder(value: Any) -> bool:
    return isinstance(value, str) and PLACEHOLDER_PATTERN.search(value) is not None


def _describe_errors(e: PydanticValidationError) -> list[str]:
    messages = []
    for error in e.errors():
        location = ".".join(str(item) for item in error["loc"])
        messages.append(f"{location}: {error['msg']}" if location else error["msg"])
    return messages


class RuleValidator:
    """Checks rule structure before a rule is stored or run.

    Validation is pure: it never touches storage and never executes actions.
    """

    def validate(self, rule: AutomationRule | Mapping[str, Any]) -> ValidationResult:
        """Validate a rule.

        Args:
            rule: Rule model or raw rule mapping

        Returns:
            Validation result with errors and warnings
        """
        if isinstance(rule, AutomationRule):
            data: Mapping[str, Any] = rule.model_dump(mode="json")
        else:
            data = rule

        result = ValidationResult()

        name = data.get("name")
        if name is not None and not str(name).strip():
            result.errors.append("Rule name cannot be empty")

        trigger = self._check_trigger(data.get("trigger"), result)
        self._check_conditions(data.get("conditions"), result)
        actions = self._check_actions(data.get("actions"), result)

        if trigger == TriggerEvent.STATUS_CHANGED:
            self._check_loops(actions, result)

        return result

    def ensure_valid(self, rule: AutomationRule | Mapping[str, Any]) -> ValidationResult:
        """Validate a rule and raise if it has errors.

        Raises:
            ValidationError: If the rule is invalid
        """
        result = self.validate(rule)
        if not result.is_valid:
            raise ValidationError(result.errors)
        return result

    def _check_trigger(self, trigger: Any, result: ValidationResult) -> TriggerEvent | None:
        if trigger is None or trigger == "":
            result.errors.append("Trigger event is required")
            return None
        try:
            return TriggerEvent(trigger)
        except ValueError:
            result.errors.append(f"Invalid trigger event: {trigger}")
            return None

    def _check_conditions(self, conditions: Any, result: ValidationResult) -> None:
        if conditions is None:
            return
        if not isinstance(conditions, Mapping):
            result.errors.append("Conditions must be an object mapping field paths to conditions")
            return

        for path, spec in conditions.items():
            if not isinstance(path, str) or not path.strip():
                result.errors.append("Condition field path cannot be empty")
                continue
            if not isinstance(spec, Mapping):
                continue
            if not spec:
                result.errors.append(f"Condition for '{path}' has no operator")
                continue
            if len(spec) > 1:
                result.errors.append(f"Condition for '{path}' must have exactly one operator")
                continue
            for operator, operand in spec.items():
                if operator not in OPERATORS:
                    result.errors.append(f"Unknown operator '{operator}' for '{path}'")
                elif operator in ("in", "not_in") and not isinstance(operand, list):
                    result.errors.append(f"Operator '{operator}' for '{path}' requires a list")

    def _check_actions(self, actions: Any, result: ValidationResult) -> list[tuple[ActionType, dict]]:
        if not actions:
            result.errors.append("At least one action is required")
            return []
        if not isinstance(actions, list):
            result.errors.append("Actions must be a list")
            return []

        known: list[tuple[ActionType, dict]] = []
        for index, action in enumerate(actions):
            prefix = f"Action {index + 1}"
            if not isinstance(action, Mapping):
                result.errors.append(f"{prefix}: must be an object")
                continue

            action_type = action.get("type")
            if not action_type:
                result.errors.append(f"{prefix}: type is required")
                continue
            try:
                action_type = ActionType(action_type)
            except ValueError:
                result.errors.append(f"{prefix}: unknown action type '{action_type}'")
                continue

            parameters = action.get("parameters") or {}
            if not isinstance(parameters, Mapping):
                result.errors.append(f"{prefix} ({action_type.value}): parameters must be an object")
                continue

            try:
                PARAMETER_MODELS[action_type].model_validate(dict(parameters))
            except PydanticValidationError as e:
                for message in _describe_errors(e):
                    result.errors.append(f"{prefix} ({action_type.value}): {message}")
                continue

            for param in DATE_PARAMETERS.get(action_type, ()):
                value = parameters.get(param)
                if value is None or _has_placeholder(value):
                    continue
                if resolve_datetime(value) is None:
                    result.errors.append(f"{prefix} ({action_type.value}): invalid date for {param}: {value!r}")

            known.append((action_type, dict(parameters)))

        return known

    def _check_loops(self, actions: list[tuple[ActionType, dict]], result: ValidationResult) -> None:
        for action_type, parameters in actions:
            if action_type == ActionType.UPDATE_STATUS:
                result.warnings.append(
                    "update_status on a status_changed trigger may cause an automation loop"
                )
            elif action_type == ActionType.UPDATE_RELATED_TASKS and parameters.get("field") == "status":
                result.warnings.append(
                    "update_related_tasks on status for a status_changed trigger may cause an automation loop"
                )


_validator: RuleValidator | None = None


def get_rule_validator() -> RuleValidator:
    """Get the shared rule validator."""
    global _validator
    if _validator is None:
        _validator = RuleValidator()
    return _validator
