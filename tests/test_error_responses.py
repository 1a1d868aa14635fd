"""Tests for API response formats."""

from typing import Iterator

import fakeredis
import pytest
from fastapi.testclient import TestClient

import taskrules.api.app as app_module
from taskrules.api.app import create_app
from taskrules.api.deps import get_app_services
from taskrules.core.config import Settings
from taskrules.services import build_services

RULE = {
    "user_id": "user_1",
    "name": "Follow up meetings",
    "trigger": "task_completed",
    "conditions": {"task.tag": "meeting"},
    "actions": [{"type": "create_follow_up", "parameters": {"due_date": "+3 days"}}],
}

TASK = {"id": "task_1", "user_id": "user_1", "title": "Client meeting", "tag": "meeting", "status": "completed"}


@pytest.fixture
def client(monkeypatch) -> Iterator[TestClient]:
    async def _noop() -> None:
        return None

    monkeypatch.setattr(app_module, "init_redis_pool", _noop)
    monkeypatch.setattr(app_module, "close_redis_pool", _noop)

    redis = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    services = build_services(redis, Settings(_env_file=None))

    app = create_app()
    app.dependency_overrides[get_app_services] = lambda: services
    with TestClient(app) as test_client:
        yield test_client


def test_health(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_http_exception_response_format(client) -> None:
    response = client.get("/api/v1/rules/missing-rule")

    assert response.status_code == 404
    payload = response.json()
    assert payload["code"] == 404
    assert payload["message"] == "Rule missing-rule not found"
    assert "data" in payload


def test_request_validation_error_response_format(client) -> None:
    response = client.post("/api/v1/rules", json={"name": ""})

    assert response.status_code == 422
    payload = response.json()
    assert payload["code"] == 422
    assert payload["message"] == "Validation error"
    assert isinstance(payload["data"], list)
    assert payload["data"]


def test_rule_validation_error_lists_all_problems(client) -> None:
    response = client.post(
        "/api/v1/rules",
        json={**RULE, "actions": [{"type": "launch_rocket"}, {"type": "reschedule", "parameters": {}}]},
    )

    assert response.status_code == 422
    payload = response.json()
    assert payload["code"] == 422
    assert payload["message"].startswith("Invalid automation rule")
    assert payload["data"]["errors"][0] == "Action 1: unknown action type 'launch_rocket'"
    assert payload["data"]["errors"][1].startswith("Action 2 (reschedule): due_date:")


def test_out_of_range_due_date_is_a_validation_error(client) -> None:
    response = client.post(
        "/api/v1/rules",
        json={**RULE, "actions": [{"type": "reschedule", "parameters": {"due_date": "+5000000 days"}}]},
    )

    assert response.status_code == 422
    assert response.json()["data"]["errors"] == [
        "Action 1 (reschedule): invalid date for due_date: '+5000000 days'"
    ]


def test_create_then_fetch_rule(client) -> None:
    created = client.post("/api/v1/rules", json=RULE)

    assert created.status_code == 200
    rule_id = created.json()["data"]["rule_id"]

    fetched = client.get(f"/api/v1/rules/{rule_id}")
    payload = fetched.json()
    assert payload["code"] == 0
    assert payload["data"]["name"] == "Follow up meetings"
    assert payload["data"]["execution_count"] == 0

    listed = client.get("/api/v1/rules", params={"user_id": "user_1"}).json()
    assert listed["total"] == 1


def test_validate_endpoint(client) -> None:
    response = client.post("/api/v1/rules/validate", json={"rule_config": {**RULE, "actions": []}})

    payload = response.json()
    assert payload["data"]["valid"] is False
    assert payload["data"]["errors"] == ["At least one action is required"]


def test_dry_run_with_inline_rule_and_task(client) -> None:
    rule = {**RULE, "actions": [{"type": "send_notification", "parameters": {"message": "Done: {task.title}"}}]}

    response = client.post("/api/v1/rules/test", json={"rule": rule, "task": TASK})

    data = response.json()["data"]
    assert data["valid"] is True
    assert data["would_execute"] is True
    assert data["planned_actions"] == [
        {"type": "send_notification", "parameters": {"message": "Done: Client meeting"}}
    ]
    assert data["context"]["event"] == "task_completed"


def test_dry_run_requires_one_rule_source(client) -> None:
    response = client.post("/api/v1/rules/test", json={"task": TASK})

    assert response.status_code == 422


def test_submitted_events_run_rules_once(client) -> None:
    client.post("/api/v1/rules", json=RULE)
    event = {"event_id": "evt_1", "event_type": "task_completed", "task": TASK}

    first = client.post("/api/v1/automation/events", json=event).json()
    second = client.post("/api/v1/automation/events", json=event).json()

    assert first["data"]["executed_count"] == 1
    assert first["data"]["outcomes"][0]["status"] == "success"
    assert second["message"] == "Event already processed"
    assert second["data"]["duplicate"] is True

    executions = client.get("/api/v1/executions", params={"user_id": "user_1"}).json()
    assert executions["total"] == 1


def test_scan_triggers_and_suggestions(client) -> None:
    scan = client.post("/api/v1/automation/scan").json()
    assert scan["data"]["users_processed"] == 0

    triggers = client.get("/api/v1/automation/triggers").json()
    assert {trigger["id"] for trigger in triggers["data"]} == {
        "task_completed",
        "task_overdue",
        "status_changed",
        "time_tracked",
        "due_date_approaching",
    }

    suggestions = client.get("/api/v1/automation/suggestions", params={"user_id": "user_1"}).json()
    assert suggestions["data"] == []
