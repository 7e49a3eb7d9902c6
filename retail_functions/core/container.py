import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from retail_functions.core.broker import RabbitMQBroker
from retail_functions.core.config import Settings
from retail_functions.core.database import create_engine, create_session_maker
from retail_functions.models import Base
from retail_functions.services.consumer import OrderConsumer
from retail_functions.services.producer import OrderProducer
from retail_functions.services.trigger import QueueTrigger

logger = logging.getLogger(__name__)


@dataclass
class Container:
    """Process-wide clients and services, built once at startup."""

    settings: Settings
    engine: AsyncEngine
    session_maker: async_sessionmaker[AsyncSession]
    broker: RabbitMQBroker
    producer: OrderProducer
    consumer: OrderConsumer
    trigger: QueueTrigger

    @classmethod
    def from_settings(cls, settings: Settings) -> "Container":
        engine = create_engine(settings)
        return cls.build(
            settings,
            engine,
            create_session_maker(engine),
            RabbitMQBroker(settings.rabbitmq_url, prefetch_count=settings.rabbitmq_prefetch_count)
        )

    @classmethod
    def build(
        cls,
        settings: Settings,
        engine: AsyncEngine,
        session_maker: async_sessionmaker[AsyncSession],
        broker: RabbitMQBroker
    ) -> "Container":
        producer = OrderProducer(
            broker,
            primary_queue_name=settings.order_queue_name,
            preview_queue_name=settings.order_preview_queue_name,
            preview_ttl=timedelta(minutes=settings.order_preview_ttl_minutes)
        )
        consumer = OrderConsumer(
            session_maker,
            products_table=settings.products_table,
            orders_table=settings.orders_table
        )
        trigger = QueueTrigger(
            broker,
            settings.order_queue_name,
            consumer,
            max_dequeue_count=settings.queue_max_dequeue_count,
            poison_suffix=settings.poison_queue_suffix
        )
        return cls(
            settings=settings,
            engine=engine,
            session_maker=session_maker,
            broker=broker,
            producer=producer,
            consumer=consumer,
            trigger=trigger
        )

    async def start(self) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            await self.broker.connect()
            await self.trigger.start()
        except Exception as e:
            logger.error(f"{self.settings.service_name} failed to start: {e}")
            await self.stop()
            raise

        logger.info(f"{self.settings.service_name} started")

    async def stop(self) -> None:
        await self.trigger.stop()
        await self.broker.close()
        await self.engine.dispose()
        logger.info(f"{self.settings.service_name} stopped")
