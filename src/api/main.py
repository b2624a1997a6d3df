"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures exception handlers, and lifespan events.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from src.adapters.broadcast.websocket import WebSocketBroadcastTransport
from src.adapters.payment.http import build_client
from src.adapters.repository.postgres import run_migrations
from src.api.errors import register_exception_handlers
from src.api.v1 import router as v1_router
from src.config.settings import get_settings
from src.domain.broadcast import EventBroadcaster

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Exam venue clearance API v1 - Issue passes, verify them at the gate, audit every decision",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates database connection pool on startup
    - Runs migrations on startup
    - Creates the dashboard broadcaster and payment client
    - Closes all of them on shutdown
    """
    settings = get_settings()

    logger.info("Starting application (%s)...", settings.environment)
    if settings.payment_test_mode:
        logger.warning("Payment test reference %r is accepted", settings.payment_test_reference)
    logger.info("Connecting to database...")

    # Bound every statement; a stalled write surfaces as a 503
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
        kwargs={"options": f"-c statement_timeout={settings.statement_timeout_ms}"},
    )

    logger.info("Running database migrations...")
    run_migrations(pool)

    transport = WebSocketBroadcastTransport(asyncio.get_running_loop())
    payment_client = build_client(
        settings.payment_api_url,
        settings.payment_secret_key,
        settings.payment_timeout_seconds,
    )

    # Store long-lived collaborators in app state for dependency injection
    app.state.pool = pool
    app.state.broadcast_transport = transport
    app.state.broadcaster = EventBroadcaster(transport)
    app.state.payment_client = payment_client

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    transport.close()
    payment_client.close()
    pool.close()
    logger.info("Database connection pool closed")


app = FastAPI(
    title="exampass",
    description="Exam venue clearance API - One-time QR passes with an append-only audit trail",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

register_exception_handlers(app)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with database validation.

    Returns 200 OK if application and database are healthy.
    A database failure is answered with 503 by the generic handler.
    """
    pool = request.app.state.pool
    with pool.connection() as conn:
        conn.execute("SELECT 1")

    return {"status": "healthy"}
