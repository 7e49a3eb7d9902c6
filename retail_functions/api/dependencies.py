from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from retail_functions.core.broker import RabbitMQBroker
from retail_functions.core.container import Container
from retail_functions.services.producer import OrderProducer


def get_container(request: Request) -> Container:
    return request.app.state.container


async def get_db(container: Container = Depends(get_container)) -> AsyncGenerator[AsyncSession, None]:
    async with container.session_maker() as session:
        yield session


def get_broker(container: Container = Depends(get_container)) -> RabbitMQBroker:
    return container.broker


def get_order_producer(container: Container = Depends(get_container)) -> OrderProducer:
    return container.producer
