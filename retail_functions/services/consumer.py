import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from retail_functions.repositories.table_store import TableStore
from retail_functions.schemas.order import OrderRequest, OrderStatus, ProcessedOrder, Product

logger = logging.getLogger(__name__)


class OrderConsumer:
    """Queue handler that prices an order and records it in the Orders table.

    Unreadable messages are logged and dropped. Store failures propagate so the
    trigger leaves the message for redelivery.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        products_table: str = "Products",
        orders_table: str = "Orders"
    ) -> None:
        self.session_maker = session_maker
        self.products_table = products_table
        self.orders_table = orders_table

    async def __call__(self, message_text: str) -> Optional[ProcessedOrder]:
        return await self.process(message_text)

    async def process(self, message_text: str) -> Optional[ProcessedOrder]:
        order = self._deserialize(message_text)
        if order is None:
            return None

        async with self.session_maker() as session:
            store = TableStore(session)
            price = await self._resolve_price(store, order.product_id)

            processed = ProcessedOrder(
                row_key=uuid.uuid4().hex,
                customer_id=order.customer_id,
                product_id=order.product_id,
                quantity=order.quantity,
                total_price=order.quantity * price,
                status=OrderStatus.PROCESSED,
                processed_on=datetime.now(timezone.utc)
            )

            await store.ensure_exists(self.orders_table)
            await store.add(
                self.orders_table,
                processed.partition_key,
                processed.row_key,
                processed.to_properties()
            )

        logger.info(
            f"Processed order {processed.row_key} for customer {processed.customer_id}: "
            f"{processed.quantity} x {processed.product_id} = {processed.total_price}"
        )
        return processed

    def _deserialize(self, message_text: str) -> Optional[OrderRequest]:
        try:
            return OrderRequest.from_envelope(message_text)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable order message: {e.error_count()} error(s): {e}")
            return None

    async def _resolve_price(self, store: TableStore, product_id: str) -> Decimal:
        await store.ensure_exists(self.products_table)
        matches = await store.query(self.products_table, Product.PARTITION_KEY, product_id)
        if not matches:
            logger.warning(f"Product {product_id} not found, pricing order at 0")
            return Decimal("0")

        return Product.from_entity(matches[0]).price
