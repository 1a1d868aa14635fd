"""Tests for rule management and execution routes."""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from tests.factories import make_task
from taskrules.api.routes import history as history_api
from taskrules.api.routes import rules as rules_api
from taskrules.api.routes import test as test_api
from taskrules.core.exceptions import ValidationError
from taskrules.models.execution import ExecutionStatus
from taskrules.models.rule import Action, TriggerEvent
from taskrules.models.task import TaskPriority
from taskrules.schemas.common import PaginationParams
from taskrules.schemas.rule import RuleCreate, RuleStatusUpdate, RuleUpdate
from taskrules.schemas.test import ExecuteRequest
from taskrules.services import build_services


@pytest.fixture
def services(fake_redis, settings):
    return build_services(fake_redis, settings)


def _create_payload(**overrides) -> RuleCreate:
    data = {
        "user_id": "user_1",
        "name": "Escalate overdue",
        "trigger": TriggerEvent.TASK_OVERDUE,
        "conditions": {"days_overdue": {">": 3}},
        "actions": [Action(type="update_priority", parameters={"priority": "urgent"})],
    }
    data.update(overrides)
    return RuleCreate(**data)


async def _list(store, **filters):
    params = {"user_id": None, "trigger": None, "is_active": None, "name_contains": None}
    params.update(filters)
    return await rules_api.list_rules(store=store, pagination=PaginationParams(page=1, page_size=20), **params)


@pytest.mark.asyncio
async def test_create_rule_stores_rule_and_returns_warnings(services) -> None:
    payload = _create_payload(
        trigger=TriggerEvent.STATUS_CHANGED,
        conditions={},
        actions=[Action(type="update_status", parameters={"status": "blocked"})],
    )

    response = await rules_api.create_rule(payload, services.rules)

    assert response.data.rule_id.startswith("rule_")
    assert len(response.data.warnings) == 1
    stored = await services.rules.get(response.data.rule_id)
    assert stored.name == "Escalate overdue"


@pytest.mark.asyncio
async def test_create_rule_rejects_empty_actions(services) -> None:
    with pytest.raises(ValidationError) as exc_info:
        await rules_api.create_rule(_create_payload(actions=[]), services.rules)

    assert exc_info.value.errors == ["At least one action is required"]
    assert await services.rules.list_all() == []


@pytest.mark.asyncio
async def test_list_rules_filters_and_sorts_newest_first(services) -> None:
    first = await rules_api.create_rule(_create_payload(name="Overdue escalation"), services.rules)
    second = await rules_api.create_rule(
        _create_payload(name="Completion follow-up", trigger=TriggerEvent.TASK_COMPLETED),
        services.rules,
    )
    await rules_api.create_rule(_create_payload(user_id="user_2"), services.rules)

    everything = await _list(services.rules)
    assert everything.total == 3

    mine = await _list(services.rules, user_id="user_1")
    assert [rule.id for rule in mine.data] == [second.data.rule_id, first.data.rule_id]

    by_trigger = await _list(services.rules, user_id="user_1", trigger=TriggerEvent.TASK_COMPLETED)
    assert [rule.id for rule in by_trigger.data] == [second.data.rule_id]

    by_name = await _list(services.rules, name_contains="ESCALATION")
    assert [rule.id for rule in by_name.data] == [first.data.rule_id]


@pytest.mark.asyncio
async def test_patch_merges_and_revalidates(services) -> None:
    created = await rules_api.create_rule(_create_payload(), services.rules)
    rule_id = created.data.rule_id

    response = await rules_api.update_rule(rule_id, RuleUpdate(name="Renamed"), services.rules)
    assert response.data.name == "Renamed"
    assert response.data.trigger == TriggerEvent.TASK_OVERDUE

    with pytest.raises(ValidationError):
        await rules_api.update_rule(rule_id, RuleUpdate(actions=[]), services.rules)


@pytest.mark.asyncio
async def test_status_toggle_and_delete(services) -> None:
    created = await rules_api.create_rule(_create_payload(), services.rules)
    rule_id = created.data.rule_id

    response = await rules_api.update_rule_status(rule_id, RuleStatusUpdate(is_active=False), services.rules)
    assert response.data.is_active is False

    deleted = await rules_api.delete_rule(rule_id, services.rules)
    assert deleted.message == f"Rule {rule_id} deleted"

    with pytest.raises(HTTPException) as exc_info:
        await rules_api.get_rule(rule_id, services.rules)
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_manual_execution_records_history(services) -> None:
    created = await rules_api.create_rule(_create_payload(conditions={}), services.rules)
    rule_id = created.data.rule_id
    await services.tasks.save(make_task(due_date=datetime.now(timezone.utc) - timedelta(days=5)))

    response = await test_api.execute_rule(
        rule_id,
        ExecuteRequest(task_id="task_1"),
        services.rules,
        services.tasks,
        services.orchestrator,
    )

    assert response.data.matched is True
    assert response.data.record.status == ExecutionStatus.SUCCESS
    assert (await services.tasks.get_task("task_1")).priority == TaskPriority.URGENT
    assert (await services.rules.get(rule_id)).execution_count == 1

    history = await history_api.get_rule_history(
        rule_id, services.rules, PaginationParams(page=1, page_size=20), status=None
    )
    assert history.total == 1
    assert history.data[0].task_id == "task_1"

    failed_only = await history_api.list_executions(
        services.rules, PaginationParams(page=1, page_size=20), user_id="user_1", status=ExecutionStatus.FAILED
    )
    assert failed_only.total == 0


@pytest.mark.asyncio
async def test_manual_execution_of_missing_task(services) -> None:
    created = await rules_api.create_rule(_create_payload(), services.rules)

    with pytest.raises(HTTPException) as exc_info:
        await test_api.execute_rule(
            created.data.rule_id,
            ExecuteRequest(task_id="missing"),
            services.rules,
            services.tasks,
            services.orchestrator,
        )

    assert exc_info.value.detail == "Task missing not found"


def test_trigger_context_from_request_merges_old_status() -> None:
    data = ExecuteRequest(task_id="task_1", old_status="in_progress", previous_task={"priority": "low"})

    context = test_api.build_trigger_context(TriggerEvent.STATUS_CHANGED, make_task(), data)

    assert context.previous_task == {"priority": "low", "status": "in_progress"}
