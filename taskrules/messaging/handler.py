"""Task event processing handler."""

import time

from taskrules.core.logging import get_logger
from taskrules.engine.orchestrator import ProcessResult
from taskrules.engine.scanner import TriggerScanner
from taskrules.models.event import TaskEvent
from taskrules.observability.tracing import TraceContext
from taskrules.services import get_services
from taskrules.storage.auxiliary import IdempotencyStore

logger = get_logger(__name__)


class TaskEventHandler:
    """Runs automation rules for incoming task events."""

    def __init__(self, scanner: TriggerScanner, idempotency: IdempotencyStore):
        """Initialize handler.

        Args:
            scanner: Trigger scanner
            idempotency: Processed event store
        """
        self._scanner = scanner
        self._idempotency = idempotency

    async def handle_event(self, event: TaskEvent) -> ProcessResult | None:
        """Process an incoming task event.

        Pipeline steps:
        1. Idempotency check
        2. Build trigger context
        3. Run matching rules

        Args:
            event: Event to process

        Returns:
            Processing result, or None for an already processed event
        """
        start_time = time.time()

        with TraceContext():
            logger.info(
                "Processing task event",
                event_id=event.event_id,
                event_type=event.event_type.value,
                task_id=event.task.id,
            )

            if not await self._idempotency.mark_processed(event.event_id):
                logger.debug("Event already processed", event_id=event.event_id)
                return None

            result = await self._scanner.handle(event.to_trigger_context())

            elapsed_ms = int((time.time() - start_time) * 1000)
            logger.info(
                "Task event processing complete",
                event_id=event.event_id,
                executed=result.executed_count,
                elapsed_ms=elapsed_ms,
            )
            return result


_handler: TaskEventHandler | None = None


def get_event_handler() -> TaskEventHandler:
    """Get or create event handler singleton."""
    global _handler
    if _handler is None:
        services = get_services()
        _handler = TaskEventHandler(services.scanner, services.idempotency)
    return _handler


async def handle_event(event: TaskEvent) -> None:
    """Handle an event using the singleton handler."""
    await get_event_handler().handle_event(event)
