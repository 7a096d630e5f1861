from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketplace_chat.api.deps import get_registry
from marketplace_chat.api.middleware.correlation_id import CorrelationIdMiddleware
from marketplace_chat.api.middleware.metrics import RequestTimingMiddleware
from marketplace_chat.api.v1.routers import (
    conversations,
    health,
    messages,
    ws,
)
from marketplace_chat.application.exceptions import (
    AppError,
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from marketplace_chat.config import settings
from marketplace_chat.infrastructure.bus.redis_pubsub import (
    RedisPubSubPublisher,
    RedisPubSubSubscriber,
)
from marketplace_chat.infrastructure.ws.notifier import Notifier

logger = logging.getLogger(__name__)


async def _start_fanout(app: FastAPI) -> RedisPubSubSubscriber:
    """Publish pushes for remote receivers and deliver remote pushes locally."""
    publisher = RedisPubSubPublisher(app.state.redis)
    app.state.publisher = publisher
    notifier = Notifier(get_registry(), publisher, settings.REDIS_PUBSUB_CHANNEL)
    subscriber = RedisPubSubSubscriber(
        app.state.redis,
        settings.REDIS_PUBSUB_CHANNEL,
        notifier.on_fanout_event,
    )
    await subscriber.start()
    return subscriber


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    app.state.redis = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    logger.info("Redis connection pool created")

    subscriber = await _start_fanout(app) if settings.RELAY_FANOUT_ENABLED else None

    yield

    if subscriber is not None:
        await subscriber.stop()
    await app.state.redis.aclose()
    logger.info("Redis connection pool closed")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Marketplace Chat Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(conversations.router)
    app.include_router(messages.router)
    app.include_router(ws.router)

    return app


_STATUS_BY_ERROR: dict[type[AppError], int] = {
    AuthenticationError: 401,
    AuthorizationError: 403,
    NotFoundError: 404,
    ValidationError: 422,
    PersistenceError: 503,
}


async def _app_error_handler(_req: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, AppError)
    status_code = next(
        code for cls, code in _STATUS_BY_ERROR.items() if isinstance(exc, cls)
    )
    return JSONResponse(status_code=status_code, content={"detail": exc.detail})


def _register_exception_handlers(app: FastAPI) -> None:
    for error_cls in _STATUS_BY_ERROR:
        app.add_exception_handler(error_cls, _app_error_handler)
