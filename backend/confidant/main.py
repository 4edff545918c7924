"""Confidant Broker API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map ConfidantError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database and notifier initialized on startup via lifespan context manager

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Three error handler layers live in api/error_handlers.py
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from confidant.api.error_handlers import register_error_handlers
from confidant.api.routes import (
    appeals, audit, counselors, health, messages, reports, sessions, users,
)
from confidant.config import get_settings
from confidant.infrastructure import database
from confidant.infrastructure.observability import setup_logging
from confidant.infrastructure.telegram_notifier import build_notifier

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    database.init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    app.state.notifier = build_notifier(settings)
    logger.info("Confidant broker started")
    yield
    logger.info("Confidant broker shutting down")
    await app.state.notifier.aclose()
    if database.db_manager:
        await database.db_manager.dispose()


app = FastAPI(
    title="Confidant Broker API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(users.router)
app.include_router(counselors.router)
app.include_router(sessions.router)
app.include_router(messages.router)
app.include_router(reports.router)
app.include_router(appeals.router)
app.include_router(audit.router)

register_error_handlers(app)
