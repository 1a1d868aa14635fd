"""Tests for trigger detection, the scheduled scan and event handling."""

import json
from datetime import timedelta

import pytest

from tests.factories import NOW, make_rule, make_task
from taskrules.engine.scanner import TriggerScanner
from taskrules.messaging.consumer import parse_message
from taskrules.messaging.handler import TaskEventHandler
from taskrules.models.event import TaskEvent
from taskrules.models.rule import TriggerEvent
from taskrules.models.task import TaskStatus, TimeEntry
from taskrules.storage.auxiliary import IdempotencyStore


@pytest.fixture
def scanner(orchestrator, task_repo, rule_repo, settings) -> TriggerScanner:
    return TriggerScanner(orchestrator, task_repo, rule_repo, settings)


@pytest.mark.asyncio
async def test_status_changed_fires_with_transition(scanner, rule_repo) -> None:
    rule_repo.rules.append(
        make_rule(
            "done",
            TriggerEvent.STATUS_CHANGED,
            conditions={"task.status": {"changed_to": "completed"}},
        )
    )
    task = make_task(status=TaskStatus.COMPLETED)

    result = await scanner.status_changed(task, TaskStatus.IN_PROGRESS)

    assert result.executed_count == 1


@pytest.mark.asyncio
async def test_unchanged_status_runs_nothing(scanner, rule_repo) -> None:
    rule_repo.rules.append(make_rule("any", TriggerEvent.STATUS_CHANGED))

    result = await scanner.status_changed(make_task(), "pending")

    assert result.outcomes == []
    assert rule_repo.records == []


@pytest.mark.asyncio
async def test_status_change_does_not_fire_completion_rules(scanner, rule_repo) -> None:
    rule_repo.rules.append(make_rule("completion", TriggerEvent.TASK_COMPLETED))

    await scanner.status_changed(make_task(status=TaskStatus.COMPLETED), "in_progress")

    assert rule_repo.records == []


@pytest.mark.asyncio
async def test_time_tracked_exposes_entry(scanner, rule_repo) -> None:
    rule_repo.rules.append(
        make_rule("long", TriggerEvent.TIME_TRACKED, conditions={"time_entry.duration": {">=": 120}})
    )
    entry = TimeEntry(
        id="te_1",
        task_id="task_1",
        user_id="user_1",
        start_time=NOW - timedelta(hours=3),
        end_time=NOW,
    )

    result = await scanner.time_tracked(make_task(), entry)

    assert result.executed_count == 1


@pytest.mark.asyncio
async def test_scheduled_scan_fires_overdue_and_due_soon(scanner, rule_repo, task_repo) -> None:
    task_repo.tasks.update(
        {
            "late": make_task("late", due_date=NOW - timedelta(days=2)),
            "soon": make_task("soon", due_date=NOW + timedelta(days=1)),
            "later": make_task("later", due_date=NOW + timedelta(days=30)),
            "closed": make_task("closed", due_date=NOW - timedelta(days=2), status=TaskStatus.COMPLETED),
            "other": make_task("other", user_id="user_2", due_date=NOW - timedelta(days=2)),
        }
    )
    rule_repo.rules.extend(
        [
            make_rule("overdue", TriggerEvent.TASK_OVERDUE),
            make_rule("approaching", TriggerEvent.DUE_DATE_APPROACHING),
        ]
    )

    report = await scanner.run_scheduled_scan(now=NOW)

    assert report.users_processed == 1
    assert report.automations_executed == 2
    assert report.results[0].tasks_scanned == 2
    assert sorted((r.rule_id, r.task_id) for r in rule_repo.records) == [
        ("approaching", "soon"),
        ("overdue", "late"),
    ]


@pytest.mark.asyncio
async def test_repeated_scan_on_same_day_is_deduplicated(scanner, rule_repo, task_repo) -> None:
    task_repo.tasks["late"] = make_task("late", due_date=NOW - timedelta(days=2))
    rule_repo.rules.append(make_rule("overdue", TriggerEvent.TASK_OVERDUE))

    first = await scanner.run_scheduled_scan(now=NOW)
    second = await scanner.run_scheduled_scan(now=NOW + timedelta(hours=1))

    assert first.automations_executed == 1
    assert second.automations_executed == 0
    assert len(rule_repo.records) == 1


@pytest.mark.asyncio
async def test_failing_user_does_not_abort_scan(scanner, rule_repo, task_repo, monkeypatch) -> None:
    task_repo.tasks["late"] = make_task("late", user_id="user_2", due_date=NOW - timedelta(days=1))
    rule_repo.rules.extend(
        [
            make_rule("broken_user", TriggerEvent.TASK_OVERDUE, user_id="user_1"),
            make_rule("fine_user", TriggerEvent.TASK_OVERDUE, user_id="user_2"),
        ]
    )

    original = task_repo.query_overdue_tasks

    async def flaky(user_id, as_of):
        if user_id == "user_1":
            raise ConnectionError("shard offline")
        return await original(user_id, as_of)

    monkeypatch.setattr(task_repo, "query_overdue_tasks", flaky)

    report = await scanner.run_scheduled_scan(now=NOW)

    results = {result.user_id: result for result in report.results}
    assert results["user_1"].errors == ["shard offline"]
    assert results["user_2"].automations_executed == 1
    assert report.to_dict()["users_processed"] == 2


@pytest.mark.asyncio
async def test_scan_respects_user_limit(scanner, rule_repo, settings) -> None:
    settings.scan_max_users = 1
    rule_repo.rules.extend(
        [
            make_rule("a", TriggerEvent.TASK_OVERDUE, user_id="user_a"),
            make_rule("b", TriggerEvent.TASK_OVERDUE, user_id="user_b"),
        ]
    )

    report = await scanner.run_scheduled_scan(now=NOW)

    assert [result.user_id for result in report.results] == ["user_a"]


@pytest.mark.asyncio
async def test_task_limit_is_shared_across_scheduled_triggers(scanner, rule_repo, task_repo, settings) -> None:
    settings.scan_max_tasks_per_user = 3
    task_repo.tasks.update(
        {
            "late_1": make_task("late_1", due_date=NOW - timedelta(days=2)),
            "late_2": make_task("late_2", due_date=NOW - timedelta(days=1)),
            "soon_1": make_task("soon_1", due_date=NOW + timedelta(days=1)),
            "soon_2": make_task("soon_2", due_date=NOW + timedelta(days=2)),
        }
    )
    rule_repo.rules.extend(
        [
            make_rule("overdue", TriggerEvent.TASK_OVERDUE),
            make_rule("approaching", TriggerEvent.DUE_DATE_APPROACHING),
        ]
    )

    result = await scanner.scan_user("user_1", now=NOW)

    assert result.tasks_scanned == 3
    assert sorted(r.task_id for r in rule_repo.records if r.rule_id == "overdue") == ["late_1", "late_2"]
    assert len([r for r in rule_repo.records if r.rule_id == "approaching"]) == 1


def _event(**overrides) -> dict:
    data = {
        "event_id": "evt_1",
        "event_type": "task_completed",
        "task": {"id": "task_1", "user_id": "user_1", "title": "Ship it", "status": "completed"},
        "timestamp": NOW.isoformat(),
    }
    data.update(overrides)
    return data


def test_parse_message_accepts_task_events() -> None:
    event = parse_message(json.dumps(_event()).encode())

    assert event.event_type == TriggerEvent.TASK_COMPLETED
    assert event.task.status == TaskStatus.COMPLETED


def test_parse_message_falls_back_to_broker_message_id() -> None:
    event = parse_message(json.dumps(_event(event_id=None)).encode(), message_id="msg_7")

    assert event.event_id == "msg_7"


@pytest.mark.parametrize(
    "body",
    [
        b"not json",
        json.dumps({"task": {}}).encode(),
        json.dumps(_event(event_type="task_exploded")).encode(),
        json.dumps(_event(event_type="time_tracked")).encode(),
        json.dumps(_event(event_type="status_changed")).encode(),
    ],
)
def test_parse_message_rejects_invalid_events(body) -> None:
    assert parse_message(body, message_id="msg_1") is None


def test_event_builds_trigger_context() -> None:
    event = TaskEvent.model_validate(_event(event_type="status_changed", old_status="in_progress"))

    context = event.to_trigger_context()

    assert context.previous_task == {"status": "in_progress"}
    assert context.metadata["event_id"] == "evt_1"
    assert context.occurred_at == NOW


@pytest.mark.asyncio
async def test_event_handler_skips_duplicates(scanner, rule_repo, fake_redis) -> None:
    rule_repo.rules.append(make_rule())
    handler = TaskEventHandler(scanner, IdempotencyStore(fake_redis, ttl_seconds=60))
    event = TaskEvent.model_validate(_event())

    first = await handler.handle_event(event)
    second = await handler.handle_event(event)

    assert first.executed_count == 1
    assert second is None
    assert len(rule_repo.records) == 1
