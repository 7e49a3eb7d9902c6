from typing import List

from fastapi import APIRouter, Depends, Request, status

from retail_functions.api.dependencies import get_broker, get_order_producer
from retail_functions.core.broker import DEFAULT_PEEK_COUNT, RabbitMQBroker
from retail_functions.core.exceptions import OrderValidationError
from retail_functions.schemas.queue import ErrorResponse, PeekedMessage, QueuedResponse
from retail_functions.services.producer import OrderProducer

router = APIRouter(prefix="/queues", tags=["queues"])


@router.post(
    "/{queue}",
    response_model=QueuedResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse}
    }
)
async def enqueue(
    queue: str,
    request: Request,
    producer: OrderProducer = Depends(get_order_producer)
) -> QueuedResponse:
    try:
        data = await request.json()
    except ValueError:
        raise OrderValidationError("Invalid payload: body is not valid JSON")

    return await producer.submit(queue, data)


@router.get("/{queue}/peek", response_model=List[PeekedMessage])
async def peek(
    queue: str,
    count: int = DEFAULT_PEEK_COUNT,
    broker: RabbitMQBroker = Depends(get_broker)
) -> List[PeekedMessage]:
    return await broker.peek(queue, count)
