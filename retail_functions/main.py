import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from retail_functions.core.logging import setup_logging
from retail_functions.core.config import settings
from retail_functions.core.container import Container
from retail_functions.core.exceptions import OrderValidationError, QueueUnavailableError
from retail_functions.api.queues import router as queues_router
from retail_functions.api.health import router as health_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()

    container = Container.from_settings(settings)
    await container.start()
    app.state.container = container

    yield

    await container.stop()


app = FastAPI(
    title="Retail Functions",
    description="Storage-backed endpoints and order ingestion pipeline for the retail front end",
    version="0.1.0",
    lifespan=lifespan
)

cors_origins = settings.cors_origins.split(",") if settings.cors_origins else ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(OrderValidationError)
async def order_validation_error_handler(request: Request, exc: OrderValidationError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})


@app.exception_handler(QueueUnavailableError)
async def queue_unavailable_handler(request: Request, exc: QueueUnavailableError) -> JSONResponse:
    logger.error(f"Queue backend unavailable: {exc}")
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"error": str(exc)})


app.include_router(health_router)
app.include_router(queues_router)
