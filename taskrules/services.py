"""Wiring of stores, dispatcher, orchestrator and scanner."""

from dataclasses import dataclass

from redis.asyncio import Redis

from taskrules.actions.dispatcher import ActionDispatcher
from taskrules.core.config import Settings, get_settings
from taskrules.engine.orchestrator import ExecutionOrchestrator
from taskrules.engine.scanner import TriggerScanner
from taskrules.notification.dispatcher import InboxNotificationService
from taskrules.storage.auxiliary import ActivityStore, ExecutionDedupStore, IdempotencyStore
from taskrules.storage.redis_client import get_redis
from taskrules.storage.rule_store import RuleStore
from taskrules.storage.task_store import TaskStore


@dataclass
class Services:
    """Redis-backed collaborators and the engine built on them."""

    rules: RuleStore
    tasks: TaskStore
    notifications: InboxNotificationService
    activity: ActivityStore
    idempotency: IdempotencyStore
    orchestrator: ExecutionOrchestrator
    scanner: TriggerScanner


def build_services(redis: Redis, settings: Settings | None = None) -> Services:
    """Build the engine on top of one Redis client.

    Args:
        redis: Redis client
        settings: Application settings

    Returns:
        Wired services
    """
    settings = settings or get_settings()
    rules = RuleStore(redis)
    tasks = TaskStore(redis)
    notifications = InboxNotificationService(redis, settings)
    activity = ActivityStore(redis)

    dispatcher = ActionDispatcher(tasks, notifications, activity, settings)
    orchestrator = ExecutionOrchestrator(
        rules,
        dispatcher,
        guard=ExecutionDedupStore(redis, settings.scan_dedup_ttl_seconds),
        settings=settings,
    )
    scanner = TriggerScanner(orchestrator, tasks, rules, settings)

    return Services(
        rules=rules,
        tasks=tasks,
        notifications=notifications,
        activity=activity,
        idempotency=IdempotencyStore(redis, settings.event_idempotency_ttl_seconds),
        orchestrator=orchestrator,
        scanner=scanner,
    )


_services: Services | None = None


def get_services() -> Services:
    """Get or create the services singleton on the shared Redis pool."""
    global _services
    if _services is None:
        _services = build_services(get_redis())
    return _services


def reset_services() -> None:
    global _services
    _services = None
