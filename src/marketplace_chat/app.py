from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator
from uuid import UUID

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketplace_chat.api.deps import get_registry
from marketplace_chat.api.middleware.request_context import (
    CorrelationIdMiddleware,
    RequestTimingMiddleware,
)
from marketplace_chat.api.v1.routers import conversations, health, messages, ws
from marketplace_chat.application.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from marketplace_chat.config import settings
from marketplace_chat.infrastructure.bus.redis_pubsub import TOPIC_EVENT, RedisPubSubSubscriber

logger = logging.getLogger(__name__)


async def _on_pubsub_event(event_type: str, data: dict[str, Any]) -> None:
    """Hand a topic event relayed by the notification worker to local sessions."""
    if event_type != TOPIC_EVENT:
        return
    event = data.get("event")
    if not isinstance(event, dict):
        return
    try:
        conversation_id = UUID(str(data.get("conversation_id")))
    except ValueError:
        return

    delivered = await get_registry().broadcast(
        conversation_id, event, exclude_user_id=data.get("exclude_user_id"),
    )
    logger.debug("Relayed %s to %d sessions", event.get("action"), delivered)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    app.state.redis = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    logger.info("Redis connection pool created")

    subscriber = RedisPubSubSubscriber(
        app.state.redis,
        settings.REDIS_PUBSUB_CHANNEL,
        _on_pubsub_event,
    )
    await subscriber.start()
    app.state.pubsub_subscriber = subscriber

    yield

    await subscriber.stop()
    await app.state.redis.aclose()
    logger.info("Redis connection pool closed")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Marketplace Chat",
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


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(ForbiddenError)
    async def _forbidden(_req: Request, exc: ForbiddenError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": exc.detail})

    @app.exception_handler(ConflictError)
    async def _conflict(_req: Request, exc: ConflictError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": exc.detail, "errors": exc.errors},
        )
