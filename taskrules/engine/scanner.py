"""Trigger detection for task events and the scheduled due-date scan."""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from taskrules.core.config import Settings, get_settings
from taskrules.core.logging import get_logger
from taskrules.engine.orchestrator import ExecutionOrchestrator, ProcessResult
from taskrules.models.context import TriggerContext
from taskrules.models.rule import SCHEDULED_TRIGGERS, TriggerEvent
from taskrules.models.task import Task, TaskStatus, TimeEntry
from taskrules.observability.metrics import SCAN_DURATION
from taskrules.observability.tracing import TraceContext
from taskrules.storage.base import RuleRepository, TaskRepository

logger = get_logger(__name__)


@dataclass
class UserScanResult:
    """Scan outcome for one user."""

    user_id: str
    tasks_scanned: int = 0
    automations_executed: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class ScanReport:
    """Summary of one scheduled scan."""

    users_processed: int = 0
    automations_executed: int = 0
    duration_ms: int = 0
    results: list[UserScanResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "users_processed": self.users_processed,
            "automations_executed": self.automations_executed,
            "duration_ms": self.duration_ms,
            "results": [
                {
                    "user_id": result.user_id,
                    "tasks_scanned": result.tasks_scanned,
                    "automations_executed": result.automations_executed,
                    "errors": result.errors,
                }
                for result in self.results
            ],
        }


class TriggerScanner:
    """Turns task events and due dates into trigger contexts for the orchestrator."""

    def __init__(
        self,
        orchestrator: ExecutionOrchestrator,
        tasks: TaskRepository,
        rules: RuleRepository,
        settings: Settings | None = None,
    ):
        """Initialize scanner.

        Args:
            orchestrator: Execution orchestrator
            tasks: Task repository used by the scheduled scan
            rules: Rule repository used to find users to scan
            settings: Application settings
        """
        self._orchestrator = orchestrator
        self._tasks = tasks
        self._rules = rules
        self._settings = settings or get_settings()

    async def handle(self, context: TriggerContext) -> ProcessResult:
        """Run the orchestrator for an already built trigger context."""
        with TraceContext():
            return await self._orchestrator.process(context)

    async def task_completed(self, task: Task, metadata: dict[str, Any] | None = None) -> ProcessResult:
        context = TriggerContext(event=TriggerEvent.TASK_COMPLETED, task=task, metadata=metadata or {})
        return await self.handle(context)

    async def status_changed(
        self,
        task: Task,
        old_status: TaskStatus | str,
        previous_task: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ProcessResult:
        """Fire ``status_changed``; nothing runs when the status did not change.

        Args:
            task: Task after the change
            old_status: Status before the change
            previous_task: Optional fuller snapshot before the change
            metadata: Event metadata
        """
        previous = dict(previous_task or {})
        previous["status"] = TaskStatus(old_status).value
        if previous["status"] == task.status.value:
            return ProcessResult(trigger=TriggerEvent.STATUS_CHANGED, task_id=task.id)

        context = TriggerContext(
            event=TriggerEvent.STATUS_CHANGED,
            task=task,
            previous_task=previous,
            metadata=metadata or {},
        )
        return await self.handle(context)

    async def time_tracked(
        self, task: Task, entry: TimeEntry, metadata: dict[str, Any] | None = None
    ) -> ProcessResult:
        context = TriggerContext(
            event=TriggerEvent.TIME_TRACKED,
            task=task,
            time_entry=entry,
            metadata=metadata or {},
        )
        return await self.handle(context)

    async def scan_user(self, user_id: str, now: datetime | None = None) -> UserScanResult:
        """Fire scheduled triggers for one user's overdue and due-soon tasks.

        Tasks are processed sequentially; an error on one task is recorded
        and the scan moves on.
        """
        now = now or datetime.now(timezone.utc)
        result = UserScanResult(user_id=user_id)
        limit = self._settings.scan_max_tasks_per_user

        overdue = await self._tasks.query_overdue_tasks(user_id, now)
        window_end = now + timedelta(days=self._settings.due_soon_window_days)
        due_soon = await self._tasks.query_tasks_due_within(user_id, now, window_end)

        # One budget across both triggers; overdue tasks are taken first
        overdue = overdue[:limit]
        due_soon = due_soon[: limit - len(overdue)]
        batches = (
            (TriggerEvent.TASK_OVERDUE, overdue),
            (TriggerEvent.DUE_DATE_APPROACHING, due_soon),
        )
        for event, tasks in batches:
            for task in tasks:
                result.tasks_scanned += 1
                context = TriggerContext(event=event, task=task, occurred_at=now)
                try:
                    processed = await self._orchestrator.process(context, dedup=True)
                except Exception as e:
                    logger.error("Error scanning task", user_id=user_id, task_id=task.id, error=str(e))
                    result.errors.append(f"{task.id}: {e}")
                    continue
                if processed.error:
                    result.errors.append(f"{task.id}: {processed.error}")
                result.automations_executed += processed.executed_count

        return result

    async def run_scheduled_scan(self, now: datetime | None = None) -> ScanReport:
        """Scan every user owning active scheduled rules.

        Users are processed concurrently up to ``scan_user_concurrency``; a
        failing user is reported and never aborts the scan.
        """
        start_time = time.time()
        now = now or datetime.now(timezone.utc)
        report = ScanReport()

        with TraceContext() as trace_id:
            user_ids = await self._rules.list_users_with_active_rules(list(SCHEDULED_TRIGGERS))
            user_ids = user_ids[: self._settings.scan_max_users]
            logger.info("Scheduled scan started", users=len(user_ids), trace_id=trace_id)

            semaphore = asyncio.Semaphore(self._settings.scan_user_concurrency)

            async def _scan(user_id: str) -> UserScanResult:
                async with semaphore:
                    try:
                        return await self.scan_user(user_id, now)
                    except Exception as e:
                        logger.error("Error scanning user", user_id=user_id, error=str(e), exc_info=True)
                        return UserScanResult(user_id=user_id, errors=[str(e)])

            report.results = list(await asyncio.gather(*(_scan(user_id) for user_id in user_ids)))

        report.users_processed = len(report.results)
        report.automations_executed = sum(result.automations_executed for result in report.results)
        elapsed = time.time() - start_time
        report.duration_ms = int(elapsed * 1000)
        SCAN_DURATION.observe(elapsed)

        logger.info(
            "Scheduled scan complete",
            users_processed=report.users_processed,
            automations_executed=report.automations_executed,
            duration_ms=report.duration_ms,
        )
        return report
