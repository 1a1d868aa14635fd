"""Tests for the Redis-backed stores."""

from datetime import datetime, timedelta, timezone

import pytest

from tests.factories import NOW, make_rule, make_task
from taskrules.core.config import Settings
from taskrules.models.execution import ExecutionRecord, ExecutionStatus
from taskrules.models.rule import TriggerEvent
from taskrules.models.task import TaskStatus
from taskrules.notification.dispatcher import InboxNotificationService
from taskrules.storage.auxiliary import ActivityStore, ExecutionDedupStore, IdempotencyStore
from taskrules.storage.redis_client import RedisKeys
from taskrules.storage.rule_store import RuleStore
from taskrules.storage.task_store import TaskStore


def _record(rule_id: str, status: ExecutionStatus = ExecutionStatus.SUCCESS) -> ExecutionRecord:
    return ExecutionRecord(
        id=f"exec_{rule_id}",
        rule_id=rule_id,
        user_id="user_1",
        task_id="task_1",
        trigger_event="task_completed",
        status=status,
    )


@pytest.mark.asyncio
async def test_rule_store_crud(fake_redis) -> None:
    store = RuleStore(fake_redis)
    rule = make_rule("r1", TriggerEvent.TASK_OVERDUE)

    await store.create(rule)
    loaded = await store.get("r1")

    assert loaded == rule
    assert await store.get("missing") is None

    changed = loaded.model_copy(update={"name": "Renamed", "trigger": TriggerEvent.TASK_COMPLETED})
    updated = await store.update("r1", changed)
    assert updated.name == "Renamed"
    assert await store.list_active_rules_by_trigger("user_1", TriggerEvent.TASK_OVERDUE) == []
    assert [r.id for r in await store.list_active_rules_by_trigger("user_1", TriggerEvent.TASK_COMPLETED)] == ["r1"]

    assert await store.delete("r1") is True
    assert await store.delete("r1") is False
    assert await store.list_all() == []


@pytest.mark.asyncio
async def test_active_rules_are_scoped_by_user_and_status(fake_redis) -> None:
    store = RuleStore(fake_redis)
    created = datetime(2026, 1, 1, tzinfo=timezone.utc)
    await store.create(make_rule("b", TriggerEvent.TASK_OVERDUE, created_at=created + timedelta(hours=1)))
    await store.create(make_rule("a", TriggerEvent.TASK_OVERDUE, created_at=created))
    await store.create(make_rule("other", TriggerEvent.TASK_OVERDUE, user_id="user_2"))
    await store.create(make_rule("off", TriggerEvent.TASK_OVERDUE, is_active=False))

    rules = await store.list_active_rules_by_trigger("user_1", TriggerEvent.TASK_OVERDUE)

    assert [rule.id for rule in rules] == ["a", "b"]


@pytest.mark.asyncio
async def test_set_active_and_users_with_active_rules(fake_redis) -> None:
    store = RuleStore(fake_redis)
    await store.create(make_rule("r1", TriggerEvent.TASK_OVERDUE, user_id="user_b"))
    await store.create(make_rule("r2", TriggerEvent.DUE_DATE_APPROACHING, user_id="user_a"))
    await store.create(make_rule("r3", TriggerEvent.TASK_COMPLETED, user_id="user_c"))

    triggers = [TriggerEvent.TASK_OVERDUE, TriggerEvent.DUE_DATE_APPROACHING]
    assert await store.list_users_with_active_rules(triggers) == ["user_a", "user_b"]

    disabled = await store.set_active("r1", False)
    assert disabled.is_active is False
    assert (await store.get("r1")).is_active is False
    assert await store.list_users_with_active_rules(triggers) == ["user_a"]
    assert await store.set_active("missing", True) is None


@pytest.mark.asyncio
async def test_execution_counter_and_history(fake_redis) -> None:
    store = RuleStore(fake_redis)
    await store.create(make_rule("r1"))

    await store.increment_execution("r1", NOW)
    await store.increment_execution("r1", NOW + timedelta(minutes=5))
    await store.increment_execution("ghost", NOW)
    await store.record_execution(_record("r1"))
    await store.record_execution(_record("r1", ExecutionStatus.FAILED))

    rule = await store.get("r1")
    assert rule.execution_count == 2
    assert rule.last_executed == NOW + timedelta(minutes=5)
    assert not await fake_redis.exists(RedisKeys.rule_detail("ghost"))

    history = await store.list_executions(rule_id="r1")
    assert [record.status for record in history] == [ExecutionStatus.FAILED, ExecutionStatus.SUCCESS]
    assert len(await store.list_executions(user_id="user_1")) == 2

    with pytest.raises(ValueError):
        await store.list_executions()


@pytest.mark.asyncio
async def test_update_keeps_counters(fake_redis) -> None:
    store = RuleStore(fake_redis)
    rule = await store.create(make_rule("r1"))
    await store.increment_execution("r1", NOW)

    updated = await store.update("r1", rule.model_copy(update={"description": "new"}))

    assert updated.execution_count == 1
    assert (await store.get("r1")).execution_count == 1


@pytest.mark.asyncio
async def test_history_survives_rule_deletion(fake_redis) -> None:
    store = RuleStore(fake_redis)
    await store.create(make_rule("r1"))
    await store.record_execution(_record("r1"))

    await store.delete("r1")

    assert len(await store.list_executions(rule_id="r1")) == 1


@pytest.mark.asyncio
async def test_task_store_due_queries(fake_redis) -> None:
    store = TaskStore(fake_redis)
    await store.save(make_task("late", due_date=NOW - timedelta(days=1)))
    await store.save(make_task("due_now", due_date=NOW))
    await store.save(make_task("soon", due_date=NOW + timedelta(days=2)))
    await store.save(make_task("done", due_date=NOW - timedelta(days=1), status=TaskStatus.COMPLETED))
    await store.save(make_task("undated"))
    await store.save(make_task("foreign", user_id="user_2", due_date=NOW - timedelta(days=1)))

    overdue = await store.query_overdue_tasks("user_1", NOW)
    due_soon = await store.query_tasks_due_within("user_1", NOW, NOW + timedelta(days=3))

    assert [task.id for task in overdue] == ["late"]
    assert [task.id for task in due_soon] == ["due_now", "soon"]


@pytest.mark.asyncio
async def test_task_store_update_reindexes_due_date(fake_redis) -> None:
    store = TaskStore(fake_redis)
    await store.save(make_task("t1", due_date=NOW - timedelta(days=1)))

    await store.update_task("t1", {"due_date": (NOW + timedelta(days=1)).isoformat()})

    assert await store.query_overdue_tasks("user_1", NOW) == []
    assert [t.id for t in await store.query_tasks_due_within("user_1", NOW, NOW + timedelta(days=3))] == ["t1"]

    with pytest.raises(KeyError):
        await store.update_task("missing", {"status": "blocked"})


@pytest.mark.asyncio
async def test_task_store_relationships(fake_redis) -> None:
    store = TaskStore(fake_redis)
    await store.save(make_task("t1", client_id="acme"))
    await store.save(make_task("t2", client_id="acme"))
    await store.save(make_task("t3", client_id="other"))
    child = await store.create_subtask("t1", {"user_id": "user_1", "title": "Child"})

    updated = await store.bulk_update_by_client_or_parent(
        field="priority", value="high", exclude_id="t1", client_id="acme"
    )
    assert updated == ["t2"]
    assert (await store.get_task("t2")).priority.value == "high"

    siblings = await store.bulk_update_by_client_or_parent(field="tag", value="x", exclude_id="t1", parent_id="t1")
    assert siblings == [child.id]

    await store.create_dependency("t2", "t1")
    assert [task.id for task in await store.query_dependents("t1")] == ["t2"]

    assignment_id = await store.create_assignment("t1", "user_9", assigned_by="user_1")
    assignment = await store.get_assignment(assignment_id)
    assert assignment["user_id"] == "user_9"


@pytest.mark.asyncio
async def test_dedup_and_idempotency_stores(fake_redis) -> None:
    dedup = ExecutionDedupStore(fake_redis, ttl_seconds=60)
    idempotency = IdempotencyStore(fake_redis, ttl_seconds=60)

    assert await dedup.claim("r1:t1:task_overdue:2026-03-10") is True
    assert await dedup.claim("r1:t1:task_overdue:2026-03-10") is False

    assert await idempotency.is_processed("evt_1") is False
    assert await idempotency.mark_processed("evt_1") is True
    assert await idempotency.mark_processed("evt_1") is False
    assert await idempotency.is_processed("evt_1") is True


@pytest.mark.asyncio
async def test_activity_store_lists_newest_first(fake_redis) -> None:
    store = ActivityStore(fake_redis)

    await store.append("t1", "user_1", "automation", "first")
    await store.append("t1", "user_1", "automation", "second", {"rule_id": "r1"})

    entries = await store.list("t1")
    assert [entry.description for entry in entries] == ["second", "first"]
    assert entries[0].metadata == {"rule_id": "r1"}


@pytest.mark.asyncio
async def test_inbox_notifications_are_rate_limited(fake_redis) -> None:
    service = InboxNotificationService(fake_redis, Settings(_env_file=None, notification_max_per_minute=2))

    results = [await service.notify("user_1", "Title", f"message {i}", related_task_id="t1") for i in range(3)]

    assert results == [True, True, False]
    inbox = await service.list_inbox("user_1")
    assert [n.message for n in inbox] == ["message 1", "message 0"]
