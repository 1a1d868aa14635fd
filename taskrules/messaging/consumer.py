"""RabbitMQ task event consumer."""

import json
from typing import Any, Callable, Coroutine

import aio_pika
from aio_pika import IncomingMessage
from aio_pika.abc import AbstractRobustConnection
from pydantic import ValidationError

from taskrules.core.config import get_settings
from taskrules.core.logging import get_logger
from taskrules.models.event import TaskEvent

logger = get_logger(__name__)

# Type alias for message handler
MessageHandler = Callable[[TaskEvent], Coroutine[Any, Any, Any]]


def parse_message(body: bytes, message_id: str | None = None) -> TaskEvent | None:
    """Parse a message body into a task event.

    Args:
        body: Raw message body
        message_id: Broker message ID, used when the body carries no event_id

    Returns:
        Parsed event, or None if the message is not a valid task event
    """
    try:
        data = json.loads(body.decode())
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error("Invalid JSON message", message_id=message_id, error=str(e))
        return None

    if not isinstance(data, dict) or "event_type" not in data:
        logger.warning("Message missing event_type", message_id=message_id)
        return None

    if not data.get("event_id") and message_id:
        data["event_id"] = message_id

    try:
        return TaskEvent.model_validate(data)
    except ValidationError as e:
        logger.warning("Invalid task event", message_id=message_id, errors=e.errors(include_url=False))
        return None


class RabbitMQConsumer:
    """RabbitMQ consumer for task events."""

    def __init__(self, handler: MessageHandler):
        """Initialize consumer.

        Args:
            handler: Async function to handle incoming events
        """
        self._settings = get_settings()
        self._handler = handler
        self._connection: AbstractRobustConnection | None = None
        self._should_stop = False

    async def connect(self) -> None:
        self._connection = await aio_pika.connect_robust(
            self._settings.rabbitmq_url,
            reconnect_interval=5,
        )
        logger.info("Connected to RabbitMQ")

    async def disconnect(self) -> None:
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("Disconnected from RabbitMQ")

    async def start_consuming(self) -> None:
        """Start consuming messages from queue."""
        if not self._connection:
            await self.connect()

        channel = await self._connection.channel()
        await channel.set_qos(prefetch_count=10)

        queue = await channel.declare_queue(
            self._settings.rabbitmq_queue,
            durable=True,
        )

        logger.info("Starting message consumption", queue=self._settings.rabbitmq_queue)

        async with queue.iterator() as queue_iter:
            async for message in queue_iter:
                if self._should_stop:
                    break
                await self._process_message(message)

    async def _process_message(self, message: IncomingMessage) -> None:
        async with message.process():
            event = parse_message(message.body, message.message_id)
            if event is None:
                return
            try:
                await self._handler(event)
            except Exception as e:
                logger.error(
                    "Error processing message",
                    event_id=event.event_id,
                    error=str(e),
                    exc_info=True,
                )

    def stop(self) -> None:
        """Signal consumer to stop."""
        self._should_stop = True
        logger.info("Consumer stop requested")
