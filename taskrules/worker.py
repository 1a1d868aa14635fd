"""Worker process entry point for task event consumption and scheduled scans."""

import asyncio
import signal

from taskrules.core.config import get_settings
from taskrules.core.logging import get_logger, setup_logging
from taskrules.messaging.consumer import RabbitMQConsumer
from taskrules.messaging.handler import handle_event
from taskrules.services import get_services
from taskrules.storage.redis_client import close_redis_pool, init_redis_pool

logger = get_logger(__name__)


class WorkerManager:
    """Coordinates the event consumer and the periodic scan loop."""

    def __init__(self):
        self._settings = get_settings()
        self._consumer: RabbitMQConsumer | None = None
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        """Start all worker loops."""
        setup_logging("worker")
        logger.info("Starting worker manager")

        await init_redis_pool()
        self._consumer = RabbitMQConsumer(handle_event)

        try:
            await asyncio.gather(
                self._run_consumer(),
                self._run_scan_loop(),
            )
        finally:
            await self._cleanup()

    async def _run_consumer(self) -> None:
        if self._consumer:
            try:
                await self._consumer.start_consuming()
            except asyncio.CancelledError:
                logger.info("Consumer cancelled")
            except Exception as e:
                logger.error("Consumer error", error=str(e), exc_info=True)

    async def _run_scan_loop(self) -> None:
        """Run the scheduled scan every ``scan_interval_seconds`` until shutdown."""
        interval = self._settings.scan_interval_seconds
        if interval <= 0:
            logger.info("Scheduled scan loop disabled")
            return

        scanner = get_services().scanner
        while not self._shutdown_event.is_set():
            try:
                await scanner.run_scheduled_scan()
            except Exception as e:
                logger.error("Scheduled scan error", error=str(e), exc_info=True)

            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    async def stop(self) -> None:
        """Signal workers to stop."""
        logger.info("Stopping workers")
        if self._consumer:
            self._consumer.stop()
        self._shutdown_event.set()

    async def _cleanup(self) -> None:
        logger.info("Cleaning up resources")
        if self._consumer:
            await self._consumer.disconnect()
        await close_redis_pool()
        logger.info("Cleanup complete")


async def main() -> None:
    """Main entry point for worker process."""
    manager = WorkerManager()

    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(manager.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    await manager.start()


if __name__ == "__main__":
    asyncio.run(main())
