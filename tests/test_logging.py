"""Tests for the log processors."""

from taskrules.core.config import get_settings
from taskrules.core.logging import service_fields


def test_service_fields_are_added_to_events() -> None:
    processor = service_fields("worker")

    event = processor(None, "info", {"event": "Scan completed"})

    assert event["service"] == get_settings().app_name
    assert event["version"] == get_settings().app_version
    assert event["component"] == "worker"


def test_bound_fields_are_not_overwritten() -> None:
    processor = service_fields("api")

    event = processor(None, "info", {"event": "Rule created", "component": "scan"})

    assert event["component"] == "scan"
