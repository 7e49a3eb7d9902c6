import logging
from typing import Any, Awaitable, Callable, Optional

from aio_pika.abc import AbstractIncomingMessage

from retail_functions.core.broker import RabbitMQBroker
from retail_functions.core.exceptions import QueueUnavailableError

logger = logging.getLogger(__name__)

DEQUEUE_COUNT_HEADER = "x-dequeue-count"

MessageHandler = Callable[[str], Awaitable[Any]]


def dequeue_count_of(message: AbstractIncomingMessage) -> int:
    raw = (message.headers or {}).get(DEQUEUE_COUNT_HEADER, 0)
    try:
        return int(raw)
    except (TypeError, ValueError):
        return 0


class QueueTrigger:
    """Invokes a handler once per message delivered on a queue.

    A normal return acknowledges the message. A raised exception puts the
    message back on the queue with its dequeue count bumped, until the count
    reaches ``max_dequeue_count`` and the message is moved to the poison queue.
    If the handler is cancelled (host shutdown) the delivery is left
    unacknowledged and the broker requeues it when the channel closes.
    """

    def __init__(
        self,
        broker: RabbitMQBroker,
        queue_name: str,
        handler: MessageHandler,
        max_dequeue_count: int = 5,
        poison_suffix: str = "-poison"
    ) -> None:
        self.broker = broker
        self.queue_name = queue_name
        self.handler = handler
        self.max_dequeue_count = max_dequeue_count
        self.poison_suffix = poison_suffix
        self._consumer_tag: Optional[str] = None

    @property
    def poison_queue_name(self) -> str:
        return f"{self.queue_name}{self.poison_suffix}"

    @property
    def is_running(self) -> bool:
        return self._consumer_tag is not None

    async def start(self) -> None:
        if self._consumer_tag:
            logger.warning(f"Queue trigger on {self.queue_name} is already running")
            return

        self._consumer_tag = await self.broker.consume(self.queue_name, self.on_message)
        logger.info(f"Started queue trigger on {self.queue_name}")

    async def stop(self) -> None:
        if not self._consumer_tag:
            return

        await self.broker.cancel(self.queue_name, self._consumer_tag)
        self._consumer_tag = None
        logger.info(f"Stopped queue trigger on {self.queue_name}")

    async def on_message(self, message: AbstractIncomingMessage) -> None:
        dequeue_count = dequeue_count_of(message) + 1
        text = message.body.decode(errors="replace")

        try:
            await self.handler(text)
        except Exception as e:
            logger.error(
                f"Handler failed for message on {self.queue_name} "
                f"(attempt {dequeue_count}/{self.max_dequeue_count}): {type(e).__name__}: {e}",
                exc_info=True
            )
            await self._release(message, text, dequeue_count)
            return

        await message.ack()

    async def _release(self, message: AbstractIncomingMessage, text: str, dequeue_count: int) -> None:
        headers = dict(message.headers or {})
        headers[DEQUEUE_COUNT_HEADER] = dequeue_count

        if dequeue_count >= self.max_dequeue_count:
            target = self.poison_queue_name
            logger.warning(
                f"Message on {self.queue_name} exceeded {self.max_dequeue_count} attempts, moving to {target}"
            )
        else:
            target = self.queue_name

        try:
            await self.broker.ensure_queue(target)
            await self.broker.send(target, text, headers=headers, timestamp=message.timestamp)
        except QueueUnavailableError as e:
            logger.error(f"Could not release message to {target}, returning it to {self.queue_name}: {e}")
            await message.reject(requeue=True)
            return

        await message.ack()
