from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from market_chat.api.deps import close_directory, get_gateway
from market_chat.api.middleware.correlation_id import CorrelationIdMiddleware
from market_chat.api.v1.routers import (
    conversations,
    health,
    messages,
    ws,
)
from market_chat.application.exceptions import (
    ForbiddenError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from market_chat.config import settings
from market_chat.infrastructure.bus.redis_pubsub import (
    RedisRelayPublisher,
    RedisRelaySubscriber,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    gateway = app.dependency_overrides.get(get_gateway, get_gateway)()
    subscriber: RedisRelaySubscriber | None = None

    if settings.REDIS_FANOUT_ENABLED:
        app.state.redis = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
        logger.info("Redis connection pool created")

        subscriber = RedisRelaySubscriber(
            app.state.redis,
            settings.REDIS_PUBSUB_CHANNEL,
            gateway.deliver_local,
            origin=gateway.instance_id,
        )
        await subscriber.start()
        gateway.attach_publisher(
            RedisRelayPublisher(
                app.state.redis,
                settings.REDIS_PUBSUB_CHANNEL,
                origin=gateway.instance_id,
            )
        )
    else:
        logger.info("Cross-process fan-out disabled; relaying in-process only")

    yield

    if subscriber is not None:
        gateway.attach_publisher(None)
        await subscriber.stop()
        await app.state.redis.aclose()
        logger.info("Redis connection pool closed")
    await close_directory()


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
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(conversations.router)
    app.include_router(messages.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(ForbiddenError)
    async def _forbidden(_req: Request, exc: ForbiddenError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})

    @app.exception_handler(PersistenceError)
    async def _persistence(_req: Request, exc: PersistenceError) -> JSONResponse:
        logger.error("Message store unavailable: %s", exc.detail)
        return JSONResponse(status_code=503, content={"detail": "Message store unavailable"})
