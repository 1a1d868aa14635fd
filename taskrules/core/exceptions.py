"""Automation engine error taxonomy."""


class AutomationError(Exception):
    """Base class for rule engine errors."""


class ValidationError(AutomationError):
    """A rule or action definition is malformed.

    Raised by the rule validator only, never while executing a rule.
    """

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("Invalid automation rule: " + ", ".join(self.errors))


class UnknownActionType(AutomationError):
    """The dispatcher has no executor for an action type."""

    def __init__(self, action_type: str):
        self.action_type = action_type
        super().__init__(f"Unknown action type: {action_type}")


class ActionExecutionError(AutomationError):
    """A single action's side effect failed."""

    def __init__(self, action_type: str, message: str):
        self.action_type = action_type
        super().__init__(message)


class ConditionEvaluationError(AutomationError):
    """Unexpected internal failure while evaluating a rule's conditions."""


class OrchestrationError(AutomationError):
    """Candidate rules could not be loaded for a trigger."""
