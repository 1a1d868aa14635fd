"""Prometheus metrics definitions."""

from prometheus_client import Counter, Histogram

# Trigger metrics
TRIGGERS_RECEIVED = Counter(
    "taskrules_triggers_received_total",
    "Total number of triggers received",
    ["trigger", "source"],
)

# Rule metrics
RULES_EVALUATED = Counter(
    "taskrules_rules_evaluated_total",
    "Total number of rule condition evaluations",
    ["trigger", "matched"],
)

RULE_EXECUTIONS = Counter(
    "taskrules_rule_executions_total",
    "Total number of recorded rule executions",
    ["trigger", "status"],
)

RULE_EXECUTIONS_DEDUPLICATED = Counter(
    "taskrules_rule_executions_deduplicated_total",
    "Scheduled executions skipped because they already ran today",
    ["trigger"],
)

# Action metrics
ACTIONS_EXECUTED = Counter(
    "taskrules_actions_executed_total",
    "Total number of actions executed",
    ["action_type", "status"],
)

# Notification metrics
NOTIFICATIONS_SENT = Counter(
    "taskrules_notifications_sent_total",
    "Total notifications delivered to inboxes",
    ["status"],
)

# Scan metrics
SCAN_DURATION = Histogram(
    "taskrules_scan_duration_seconds",
    "Scheduled scan duration in seconds",
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)
