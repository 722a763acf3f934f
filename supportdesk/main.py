"""SupportDesk — FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from supportdesk.adapters.llm.openai_adapter import OpenAIReplyAdapter
from supportdesk.adapters.persistence.database import async_session_factory, engine
from supportdesk.adapters.persistence.repositories import (
    SqlClientRepository,
    SqlEngineerRepository,
    SqlTicketRepository,
)
from supportdesk.config import settings
from supportdesk.infrastructure.api.dependencies import SupportServices, build_services
from supportdesk.infrastructure.api.errors import register_error_handlers
from supportdesk.infrastructure.api.routes_assistant import router as assistant_router
from supportdesk.infrastructure.api.routes_dashboard import router as dashboard_router
from supportdesk.infrastructure.api.routes_health import router as health_router
from supportdesk.infrastructure.api.routes_queue import router as queue_router
from supportdesk.infrastructure.api.routes_tickets import router as tickets_router
from supportdesk.infrastructure.api.routes_ws import router as ws_router

logger = logging.getLogger(__name__)


def _sql_services() -> SupportServices:
    return build_services(
        client_repo=SqlClientRepository(async_session_factory),
        engineer_repo=SqlEngineerRepository(async_session_factory),
        ticket_repo=SqlTicketRepository(async_session_factory),
        reply_generator=OpenAIReplyAdapter(),
        broadcast_interval=settings.queue_broadcast_interval_seconds,
        max_message_length=settings.max_message_length,
        assistant_rate_limit=settings.ai_rate_limit_requests,
        assistant_rate_window=settings.ai_rate_limit_window_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    services: SupportServices = app.state.services
    db_engine = app.state.engine
    if db_engine is not None:
        try:
            async with db_engine.begin():
                pass  # Connection pool warmed up
            logger.info("Database connection established")
        except Exception as e:
            logger.warning("Database not available on startup: %s", e)

    try:
        await services.seed()
    except Exception as e:
        logger.warning("Could not load engineers on startup: %s", e)

    services.broadcaster.start()
    yield
    await services.broadcaster.stop()
    if db_engine is not None:
        await db_engine.dispose()


def create_app(services: SupportServices | None = None) -> FastAPI:
    """Build the application.

    Passing *services* (e.g. wired over in-memory repositories) skips the
    database engine entirely.
    """
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="SupportDesk",
        description="Support ticket queue, engineer matching and live chat",
        version="0.1.0",
        lifespan=lifespan,
    )

    if services is None:
        app.state.engine = engine
        app.state.services = _sql_services()
    else:
        app.state.engine = None
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    # Register routers
    app.include_router(health_router, prefix="/api")
    app.include_router(tickets_router, prefix="/api")
    app.include_router(queue_router, prefix="/api")
    app.include_router(dashboard_router, prefix="/api")
    app.include_router(assistant_router, prefix="/api")
    app.include_router(ws_router, prefix="/api")

    return app


app = create_app()
