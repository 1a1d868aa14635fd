"""Placeholder interpolation for action parameters."""

import re
from collections.abc import Mapping
from typing import Any

from taskrules.engine.paths import build_scope, is_missing, resolve
from taskrules.models.task import Task

PLACEHOLDER_PATTERN = re.compile(r"\{([A-Za-z_][\w]*(?:\.[\w]+)*)\}")


def render_value(value: Any) -> str:
    """Coerce a resolved value to its template string form."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def interpolate_scope(template: Any, scope: Mapping[str, Any]) -> Any:
    """Interpolate a template against a prebuilt scope.

    Args:
        template: String, mapping, list or any other leaf
        scope: Evaluation scope from build_scope()

    Returns:
        Template of the same shape with placeholders substituted
    """
    if isinstance(template, str):
        if "{" not in template:
            return template

        def _substitute(match: re.Match[str]) -> str:
            value = resolve(match.group(1), scope)
            if is_missing(value):
                return match.group(0)
            return render_value(value)

        return PLACEHOLDER_PATTERN.sub(_substitute, template)

    if isinstance(template, Mapping):
        return {key: interpolate_scope(value, scope) for key, value in template.items()}

    if isinstance(template, list):
        return [interpolate_scope(item, scope) for item in template]

    return template


def interpolate(
    template: Any,
    task: Task | Mapping[str, Any],
    context: Mapping[str, Any] | None = None,
) -> Any:
    """Substitute ``{task.field}`` / ``{context.field}`` placeholders.

    Unresolvable placeholders are left verbatim; this never raises.

    Args:
        template: String or nested mapping/list template
        task: Task snapshot
        context: Trigger context mapping

    Returns:
        Interpolated template
    """
    return interpolate_scope(template, build_scope(task, context))
