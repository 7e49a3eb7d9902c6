import logging
from datetime import timedelta
from typing import Any

from pydantic import ValidationError

from retail_functions.core.broker import RabbitMQBroker, queue_key
from retail_functions.core.exceptions import OrderValidationError
from retail_functions.schemas.order import OrderRequest
from retail_functions.schemas.queue import QueuedResponse

logger = logging.getLogger(__name__)


def describe_errors(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        parts.append(f"{location}: {item['msg']}" if location else item["msg"])
    return "; ".join(parts)


class OrderProducer:
    def __init__(
        self,
        broker: RabbitMQBroker,
        primary_queue_name: str,
        preview_queue_name: str,
        preview_ttl: timedelta = timedelta(minutes=10)
    ) -> None:
        self.broker = broker
        self.primary_queue_name = primary_queue_name
        self.preview_queue_name = preview_queue_name
        self.preview_ttl = preview_ttl

    def is_primary_queue(self, queue_name: str) -> bool:
        return queue_key(queue_name) == queue_key(self.primary_queue_name)

    @staticmethod
    def validate(data: Any) -> OrderRequest:
        if isinstance(data, OrderRequest):
            return data
        if not isinstance(data, dict):
            raise OrderValidationError("Invalid payload: expected a JSON object")

        try:
            return OrderRequest.model_validate(data)
        except ValidationError as e:
            raise OrderValidationError(f"Invalid payload: {describe_errors(e)}") from e

    async def submit(self, queue_name: str, data: Any) -> QueuedResponse:
        order = self.validate(data)
        payload = order.to_envelope()

        await self.broker.ensure_queue(queue_name)
        await self.broker.send(queue_name, payload)
        logger.info(f"Order for product {order.product_id} queued on {queue_key(queue_name)}")

        if self.is_primary_queue(queue_name):
            await self._send_preview(payload)

        return QueuedResponse(queued=True)

    async def _send_preview(self, payload: str) -> None:
        try:
            await self.broker.ensure_queue(self.preview_queue_name)
            await self.broker.send(self.preview_queue_name, payload, ttl=self.preview_ttl)
        except Exception as e:
            logger.warning(
                f"Preview fan-out to {self.preview_queue_name} failed, primary send kept: {e}",
                exc_info=True
            )
