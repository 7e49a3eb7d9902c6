import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aio_pika
from aio_pika.abc import AbstractIncomingMessage, AbstractQueue, AbstractRobustConnection, AbstractRobustChannel
from aio_pika.exceptions import AMQPError

from retail_functions.core.exceptions import InvalidQueueNameError, QueueUnavailableError
from retail_functions.schemas.queue import PeekedMessage

logger = logging.getLogger(__name__)

DEFAULT_PEEK_COUNT = 10
MAX_PEEK_COUNT = 32

BROKER_ERRORS = (AMQPError, ConnectionError)

QUEUE_NAME_PATTERN = re.compile(r"[a-z0-9](?:[a-z0-9]|-(?!-)){1,61}[a-z0-9]")

MessageCallback = Callable[[AbstractIncomingMessage], Awaitable[Any]]


def queue_key(name: str) -> str:
    """Queue names are case-insensitive and follow storage-account naming rules."""
    key = name.lower()
    if not QUEUE_NAME_PATTERN.fullmatch(key):
        raise InvalidQueueNameError(name)
    return key


def clamp_peek_count(count: int) -> int:
    if count <= 0 or count > MAX_PEEK_COUNT:
        return DEFAULT_PEEK_COUNT
    return count


class RabbitMQBroker:
    """Named durable queues on RabbitMQ: create-if-absent, send with optional TTL, peek and consume."""

    def __init__(self, url: str, prefetch_count: int = 10) -> None:
        self.url = url
        self.prefetch_count = prefetch_count
        self.connection: Optional[AbstractRobustConnection] = None
        self.channel: Optional[AbstractRobustChannel] = None
        self._queues: Dict[str, AbstractQueue] = {}

    @property
    def is_connected(self) -> bool:
        return self.connection is not None and not self.connection.is_closed

    async def connect(self) -> None:
        self.connection = await aio_pika.connect_robust(self.url)
        self.channel = await self.connection.channel()
        await self.channel.set_qos(prefetch_count=self.prefetch_count)
        logger.info("Connected to RabbitMQ")

    async def close(self) -> None:
        self._queues.clear()
        if self.channel:
            await self.channel.close()
        if self.connection:
            await self.connection.close()
        logger.info("Disconnected from RabbitMQ")

    def _require_channel(self) -> AbstractRobustChannel:
        if not self.channel:
            raise QueueUnavailableError("Channel is not initialized")
        return self.channel

    async def ensure_queue(self, name: str) -> AbstractQueue:
        key = queue_key(name)
        queue = self._queues.get(key)
        if queue is not None:
            return queue

        channel = self._require_channel()
        try:
            queue = await channel.declare_queue(key, durable=True)
        except BROKER_ERRORS as e:
            raise QueueUnavailableError(f"Could not declare queue {key}: {e}") from e

        self._queues[key] = queue
        return queue

    async def send(
        self,
        name: str,
        payload: str,
        ttl: Optional[timedelta] = None,
        headers: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None
    ) -> None:
        key = queue_key(name)
        channel = self._require_channel()

        message = aio_pika.Message(
            body=payload.encode(),
            content_type="application/json",
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            timestamp=timestamp or datetime.now(timezone.utc),
            expiration=ttl,
            headers=headers or {}
        )

        try:
            await channel.default_exchange.publish(message, routing_key=key)
        except BROKER_ERRORS as e:
            raise QueueUnavailableError(f"Could not publish to {key}: {e}") from e

        logger.info(f"Published message to {key}")

    async def peek(self, name: str, count: int = DEFAULT_PEEK_COUNT) -> List[PeekedMessage]:
        """Read up to ``count`` leading messages without consuming them.

        Messages are fetched on a throwaway channel and never acknowledged;
        closing that channel hands every one of them back to the queue at its
        original position, so the queue length is unchanged afterwards.
        """
        key = queue_key(name)
        count = clamp_peek_count(count)
        await self.ensure_queue(key)

        if not self.connection:
            raise QueueUnavailableError("Connection is not initialized")

        peeked: List[PeekedMessage] = []
        try:
            async with self.connection.channel() as channel:
                queue = await channel.declare_queue(key, durable=True, passive=True)
                for _ in range(count):
                    message = await queue.get(no_ack=False, fail=False)
                    if message is None:
                        break
                    peeked.append(PeekedMessage(
                        message_text=message.body.decode(errors="replace"),
                        inserted_on=message.timestamp
                    ))
        except BROKER_ERRORS as e:
            raise QueueUnavailableError(f"Could not peek {key}: {e}") from e

        return peeked

    async def consume(self, name: str, callback: MessageCallback) -> str:
        queue = await self.ensure_queue(name)
        try:
            return await queue.consume(callback)
        except BROKER_ERRORS as e:
            raise QueueUnavailableError(f"Could not consume {queue_key(name)}: {e}") from e

    async def cancel(self, name: str, consumer_tag: str) -> None:
        queue = self._queues.get(queue_key(name))
        if queue is not None:
            await queue.cancel(consumer_tag)
