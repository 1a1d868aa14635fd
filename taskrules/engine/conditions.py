"""Condition evaluation for automation rules."""

import math
from collections.abc import Mapping
from typing import Any

from taskrules.engine.paths import MISSING, build_scope, is_missing, resolve
from taskrules.models.task import Task

COMPARISON_OPERATORS = ("=", "!=")
NUMERIC_OPERATORS = (">", ">=", "<", "<=")
MEMBERSHIP_OPERATORS = ("in", "not_in")
STRING_OPERATORS = ("contains", "starts_with", "ends_with")
CHANGE_OPERATORS = ("changed_to", "changed_from")

OPERATORS = (
    *COMPARISON_OPERATORS,
    *NUMERIC_OPERATORS,
    *MEMBERSHIP_OPERATORS,
    *STRING_OPERATORS,
    *CHANGE_OPERATORS,
)

_PREVIOUS_PREFIX = "previous_task."


class ConditionEvaluator:
    """Evaluates a rule's condition mapping against a task and its context.

    Conditions are ANDed. Each condition maps a dotted field path to a spec:
    a literal (strict equality), a list (membership), or a mapping carrying
    an operator key. Malformed or missing operands make a condition false;
    evaluation never raises for bad data.
    """

    def evaluate_conditions(
        self,
        conditions: Mapping[str, Any] | None,
        task: Task | Mapping[str, Any],
        context: Mapping[str, Any] | None = None,
    ) -> bool:
        """Evaluate all conditions.

        Args:
            conditions: Field path to condition spec
            task: Task snapshot
            context: Trigger context mapping

        Returns:
            True if every condition passes (or there are none)
        """
        if not conditions:
            return True

        scope = build_scope(task, context)
        for path, spec in conditions.items():
            actual = resolve(path, scope)
            if not self.evaluate_condition(actual, spec, path=path, scope=scope):
                return False
        return True

    def evaluate_condition(
        self,
        actual: Any,
        spec: Any,
        path: str | None = None,
        scope: Mapping[str, Any] | None = None,
    ) -> bool:
        """Evaluate a single condition spec against a resolved value.

        Args:
            actual: Resolved value (may be MISSING)
            spec: Condition spec
            path: Field path, needed by change operators
            scope: Evaluation scope, needed by change operators

        Returns:
            Condition result
        """
        if isinstance(spec, Mapping):
            operators = [key for key in spec if key in OPERATORS]
            if operators:
                return all(
                    self._apply(operator, actual, spec[operator], path, scope)
                    for operator in operators
                )
            return _strict_equals(actual, spec)

        if isinstance(spec, (list, tuple)):
            return _is_member(actual, spec)

        return _strict_equals(actual, spec)

    def _apply(
        self,
        operator: str,
        actual: Any,
        expected: Any,
        path: str | None,
        scope: Mapping[str, Any] | None,
    ) -> bool:
        if operator == "=":
            return _strict_equals(actual, expected)
        if operator == "!=":
            return not is_missing(actual) and not _strict_equals(actual, expected)

        if operator in NUMERIC_OPERATORS:
            return _compare_numbers(operator, actual, expected)

        if operator == "in":
            return _is_member(actual, expected)
        if operator == "not_in":
            return is_missing(actual) or not _is_member(actual, expected)

        if operator in STRING_OPERATORS:
            return _match_string(operator, actual, expected)

        previous = self._previous_value(path, scope)
        if is_missing(previous) or is_missing(actual):
            return False
        if operator == "changed_to":
            return _strict_equals(actual, expected) and not _strict_equals(previous, expected)
        return _strict_equals(previous, expected) and not _strict_equals(actual, expected)

    @staticmethod
    def _previous_value(path: str | None, scope: Mapping[str, Any] | None) -> Any:
        """Resolve the same task field on the previous task snapshot."""
        if not path or scope is None or not path.startswith("task."):
            return MISSING
        return resolve(_PREVIOUS_PREFIX + path[len("task."):], scope)


def _strict_equals(actual: Any, expected: Any) -> bool:
    if is_missing(actual):
        return False
    if isinstance(actual, bool) != isinstance(expected, bool):
        return False
    return actual == expected


def _is_member(actual: Any, values: Any) -> bool:
    if is_missing(actual):
        return False
    if not isinstance(values, (list, tuple, set, frozenset)):
        values = [values]
    return any(_strict_equals(actual, value) for value in values)


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None or is_missing(value):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(number) else number


def _compare_numbers(operator: str, actual: Any, expected: Any) -> bool:
    left = _to_number(actual)
    right = _to_number(expected)
    if left is None or right is None:
        return False
    if operator == ">":
        return left > right
    if operator == ">=":
        return left >= right
    if operator == "<":
        return left < right
    return left <= right


def _normalize_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).lower()


def _match_string(operator: str, actual: Any, expected: Any) -> bool:
    if is_missing(actual) or actual is None or expected is None:
        return False

    needle = _normalize_text(expected)

    if isinstance(actual, (list, tuple)):
        if operator != "contains":
            return False
        return any(item is not None and _normalize_text(item) == needle for item in actual)

    haystack = _normalize_text(actual)
    if operator == "contains":
        return needle in haystack
    if operator == "starts_with":
        return haystack.startswith(needle)
    return haystack.endswith(needle)


# Singleton instance
_evaluator: ConditionEvaluator | None = None


def get_condition_evaluator() -> ConditionEvaluator:
    """Get condition evaluator singleton."""
    global _evaluator
    if _evaluator is None:
        _evaluator = ConditionEvaluator()
    return _evaluator


def evaluate_conditions(
    conditions: Mapping[str, Any] | None,
    task: Task | Mapping[str, Any],
    context: Mapping[str, Any] | None = None,
) -> bool:
    """Evaluate conditions using the singleton evaluator.

    Args:
        conditions: Field path to condition spec
        task: Task snapshot
        context: Trigger context mapping

    Returns:
        True if every condition passes
    """
    return get_condition_evaluator().evaluate_conditions(conditions, task, context)
