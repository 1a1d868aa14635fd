"""Tests for the trigger catalog and rule suggestions."""

from datetime import timedelta

import pytest

from tests.factories import NOW, make_task
from taskrules.engine.catalog import TRIGGER_CATALOG, get_trigger
from taskrules.engine.suggestions import suggest_rules
from taskrules.engine.validator import RuleValidator
from taskrules.models.rule import ActionType, TriggerEvent
from taskrules.models.task import TaskStatus


def test_catalog_covers_every_trigger() -> None:
    assert {definition.id for definition in TRIGGER_CATALOG} == set(TriggerEvent)


def test_get_trigger() -> None:
    definition = get_trigger("task_overdue")

    assert definition.name == "Task Overdue"
    assert ActionType.UPDATE_PRIORITY in definition.available_actions

    with pytest.raises(ValueError):
        get_trigger("task_deleted")


def test_no_suggestions_without_patterns() -> None:
    assert suggest_rules([make_task()], now=NOW) == []


def test_suggestions_for_meetings_and_overdue_tasks() -> None:
    meetings = [make_task(f"m{i}", tag="meeting", status=TaskStatus.COMPLETED) for i in range(4)]
    overdue = [make_task(f"o{i}", due_date=NOW - timedelta(days=i + 1)) for i in range(3)]

    suggestions = suggest_rules(meetings + overdue, now=NOW)

    assert [s.type for s in suggestions] == ["follow_up_automation", "overdue_management"]
    assert suggestions[0].evidence_count == 4
    assert suggestions[1].evidence_count == 3


def test_thresholds_are_exclusive() -> None:
    meetings = [make_task(f"m{i}", tag="call", status=TaskStatus.COMPLETED) for i in range(3)]
    overdue = [make_task(f"o{i}", due_date=NOW - timedelta(days=1)) for i in range(2)]

    assert suggest_rules(meetings + overdue, now=NOW) == []


def test_suggested_rules_pass_validation() -> None:
    meetings = [make_task(f"m{i}", tag="meeting", status=TaskStatus.COMPLETED) for i in range(4)]
    overdue = [make_task(f"o{i}", due_date=NOW - timedelta(days=2)) for i in range(3)]
    validator = RuleValidator()

    for suggestion in suggest_rules(meetings + overdue, now=NOW):
        assert validator.validate(suggestion.suggested_rule).is_valid
