import pytest
import json
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from retail_functions.core.exceptions import TransientStoreError
from retail_functions.repositories.table_store import TableStore
from retail_functions.schemas.order import OrderRequest, OrderStatus, ProcessedOrder
from retail_functions.services.consumer import OrderConsumer


def order_message(customer_id: str = "customer-1", product_id: str = "product-1", quantity: int = 1) -> str:
    return OrderRequest(customer_id=customer_id, product_id=product_id, quantity=quantity).to_envelope()


async def seed_product(session_maker, product_id: str, price) -> None:
    async with session_maker() as session:
        store = TableStore(session)
        await store.ensure_exists("Products")
        await store.put("Products", "Product", product_id, {"Price": price})


async def processed_orders(session_maker) -> list[ProcessedOrder]:
    async with session_maker() as session:
        store = TableStore(session)
        await store.ensure_exists("Orders")
        return [ProcessedOrder.from_entity(e) for e in await store.query("Orders", "Order")]


@pytest.mark.asyncio
async def test_process_order_computes_exact_total(test_session_maker):
    await seed_product(test_session_maker, "product-1", 19.99)
    consumer = OrderConsumer(test_session_maker)

    processed = await consumer.process(order_message(quantity=3))

    assert processed is not None
    assert processed.total_price == Decimal("59.97")
    assert processed.status == OrderStatus.PROCESSED
    assert processed.processed_on.tzinfo is not None

    stored = await processed_orders(test_session_maker)
    assert len(stored) == 1
    assert stored[0].row_key == processed.row_key
    assert stored[0].customer_id == "customer-1"
    assert stored[0].product_id == "product-1"
    assert stored[0].quantity == 3
    assert stored[0].total_price == Decimal("59.97")
    assert stored[0].status == OrderStatus.PROCESSED


@pytest.mark.asyncio
async def test_process_order_accepts_string_price(test_session_maker):
    await seed_product(test_session_maker, "product-1", Decimal("0.10"))
    consumer = OrderConsumer(test_session_maker)

    processed = await consumer.process(order_message(quantity=3))

    assert processed.total_price == Decimal("0.30")


@pytest.mark.asyncio
async def test_process_order_unknown_product_totals_zero(test_session_maker):
    consumer = OrderConsumer(test_session_maker)

    processed = await consumer.process(order_message(product_id="missing", quantity=5))

    assert processed is not None
    assert processed.total_price == Decimal("0")
    assert processed.status == OrderStatus.PROCESSED

    stored = await processed_orders(test_session_maker)
    assert len(stored) == 1
    assert stored[0].total_price == Decimal("0")


@pytest.mark.asyncio
async def test_process_order_product_without_price_totals_zero(test_session_maker):
    async with test_session_maker() as session:
        store = TableStore(session)
        await store.ensure_exists("Products")
        await store.put("Products", "Product", "product-1", {"Name": "Mug"})

    consumer = OrderConsumer(test_session_maker)
    processed = await consumer.process(order_message(quantity=2))

    assert processed.total_price == Decimal("0")


@pytest.mark.asyncio
async def test_redelivered_message_is_processed_twice(test_session_maker):
    """Redelivery is not de-duplicated: every delivery writes its own row."""
    await seed_product(test_session_maker, "product-1", "10.00")
    consumer = OrderConsumer(test_session_maker)
    message = order_message(quantity=1)

    first = await consumer.process(message)
    second = await consumer.process(message)

    assert first.row_key != second.row_key

    stored = await processed_orders(test_session_maker)
    assert len(stored) == 2
    assert {o.row_key for o in stored} == {first.row_key, second.row_key}


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    "not json at all",
    "null",
    "[]",
    json.dumps({"customerId": "customer-1", "productId": "product-1"}),
    json.dumps({"customerId": "", "productId": "product-1", "quantity": 1}),
    json.dumps({"customerId": "customer-1", "productId": "product-1", "quantity": 0}),
    json.dumps({"customerId": "customer-1", "productId": "product-1", "quantity": "3"}),
])
async def test_malformed_message_is_discarded(test_session_maker, body):
    consumer = OrderConsumer(test_session_maker)

    result = await consumer.process(body)

    assert result is None
    assert await processed_orders(test_session_maker) == []


@pytest.mark.asyncio
async def test_message_with_pascal_case_properties_is_processed(test_session_maker):
    await seed_product(test_session_maker, "product-1", 2)
    consumer = OrderConsumer(test_session_maker)

    processed = await consumer.process('{"CustomerId":"customer-9","ProductId":"product-1","Quantity":4}')

    assert processed.customer_id == "customer-9"
    assert processed.total_price == Decimal("8")


@pytest.mark.asyncio
async def test_order_write_failure_raises(test_session_maker):
    await seed_product(test_session_maker, "product-1", "5.00")
    consumer = OrderConsumer(test_session_maker)

    async def failing_add(self, *args, **kwargs):
        raise TransientStoreError("Insert into Orders failed: storage outage")

    with patch.object(TableStore, "add", failing_add):
        with pytest.raises(TransientStoreError):
            await consumer.process(order_message())

    assert await processed_orders(test_session_maker) == []


@pytest.mark.asyncio
async def test_database_error_surfaces_as_transient_store_error(test_session_maker):
    consumer = OrderConsumer(test_session_maker)

    async def broken_execute(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    with patch("sqlalchemy.ext.asyncio.AsyncSession.execute", broken_execute):
        with pytest.raises(TransientStoreError):
            await consumer.process(order_message())


@pytest.mark.asyncio
async def test_consumer_is_callable_as_handler(test_session_maker):
    consumer = OrderConsumer(test_session_maker)

    processed = await consumer(order_message())

    assert processed is not None
    assert processed.quantity == 1
