"""FastAPI application entry point for the KoiHire API.

Lifecycle:
    1. Startup: Initialize logging, database, Redis, create tables (dev mode).
    2. Running: Serve the REST API and same-origin proxies on one Uvicorn process.
    3. Shutdown: Close database and Redis connections gracefully.

Run with:
    uv run uvicorn koihire.main:app --reload --host 0.0.0.0 --port 5003
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from redis.exceptions import RedisError

from koihire.config import get_settings
from koihire.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    settings = get_settings()

    # 1. Setup structured logging
    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
    )
    logger = get_logger(__name__)
    logger.info(
        "app.starting",
        env=settings.app_env,
        debug=settings.app_debug,
        payments_simulated=settings.payments_simulated,
        cors_origins=len(settings.cors_origin_list),
    )

    # 2. Initialize database
    from koihire.infrastructure.database.engine import close_db, init_db

    await init_db()

    # 3. Initialize Redis (webhook idempotency degrades to state guards without it)
    from koihire.infrastructure.redis_client import close_redis, init_redis

    try:
        await init_redis()
    except (RedisError, OSError) as exc:
        logger.warning("app.redis_unavailable", error=str(exc))

    logger.info("app.started", host=settings.app_host, port=settings.app_port)

    yield

    # Shutdown
    logger.info("app.shutting_down")
    await close_db()
    await close_redis()
    logger.info("app.stopped")


def create_app() -> FastAPI:
    """Application factory — creates and configures the FastAPI app."""
    settings = get_settings()

    app = FastAPI(
        title="KoiHire API",
        description=(
            "Freelance marketplace backend: active work, work notes, "
            "escrow payments and notifications."
        ),
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # --- Middleware ---
    from koihire.api.middleware import setup_middleware

    setup_middleware(app)

    # --- REST API Routes ---
    from koihire.api.routes.health import router as health_router
    from koihire.api.routes.notifications import router as notifications_router
    from koihire.api.routes.payments import router as payments_router
    from koihire.api.routes.projects import router as projects_router
    from koihire.api.routes.proxy import router as proxy_router
    from koihire.api.routes.service_orders import router as service_orders_router
    from koihire.api.routes.work import freelancer_router, notes_router

    app.include_router(health_router)
    app.include_router(projects_router)
    app.include_router(service_orders_router)
    app.include_router(freelancer_router)
    app.include_router(notes_router)
    app.include_router(payments_router)
    app.include_router(notifications_router)
    app.include_router(proxy_router)

    return app


# The app instance used by Uvicorn
app = create_app()
