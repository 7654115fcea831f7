"""
P2P Queue Engine — FastAPI application entry point.

Configures the app, middleware, error handlers, and registers all API routers.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from p2p_queue.api import matches, queue, stats
from p2p_queue.config import settings
from p2p_queue.core.errors import QueueError, ValidationError
from p2p_queue.core.logging import configure_logging
from p2p_queue.matching_engine.manager import QueueManager
from p2p_queue.matching_engine.reporter import QueueReporter
from p2p_queue.notifications.dispatcher import NotificationDispatcher
from p2p_queue.schemas.common import ErrorResponse
from p2p_queue.services.notification_service import get_notification_channel
from p2p_queue.store import build_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    configure_logging(settings.LOG_LEVEL)

    store = build_store(settings)
    if settings.STORE_BACKEND == "sql" and settings.APP_ENV != "production":
        from p2p_queue.database import init_db
        await init_db()

    dispatcher = NotificationDispatcher(get_notification_channel(), store)
    await dispatcher.start()

    app.state.manager = QueueManager(store, dispatcher)
    app.state.reporter = QueueReporter(store)
    logger.info("%s started (%s store)", settings.APP_NAME, settings.STORE_BACKEND)

    yield

    # Shutdown: flush notifications, close connections
    await dispatcher.stop()
    if settings.STORE_BACKEND == "sql":
        from p2p_queue.database import dispose_engine
        await dispose_engine()


app = FastAPI(
    title=settings.APP_NAME,
    description="Peer-to-peer withdrawal/deposit queue with scoring-based matching.",
    version="0.1.0",
    lifespan=lifespan,
)

# --- CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error handlers ---


def _error_body(code: str, detail: str, retryable: bool = False) -> dict:
    return ErrorResponse(error=code, detail=detail, retryable=retryable).model_dump()


@app.exception_handler(QueueError)
async def queue_error_handler(request: Request, exc: QueueError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("Unhandled queue error on %s: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content=_error_body(exc.code, exc.message, exc.retryable),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    detail = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    )
    return JSONResponse(
        status_code=ValidationError.http_status,
        content=_error_body(ValidationError.code, detail),
    )


# --- Routers ---
app.include_router(queue.router, prefix="/queue", tags=["Queue"])
app.include_router(matches.router, prefix="/matches", tags=["Matches"])
app.include_router(stats.router, prefix="/stats", tags=["Stats"])


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers and monitoring."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": "0.1.0",
        "store": settings.STORE_BACKEND,
    }
