"""Liveness/readiness probe.

GET /health — pings PostgreSQL and Redis; answers 200 either way and reports
``degraded`` when a dependency is down, so the load balancer can decide.
"""

from __future__ import annotations

from fastapi import APIRouter
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from koihire.config import get_settings
from koihire.infrastructure.database.engine import get_engine
from koihire.infrastructure.redis_client import get_redis
from koihire.logging_config import get_logger
from koihire.schemas.health import HealthResponse

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)

HEALTHY = "healthy"


async def _database_status() -> str:
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.error("health.db_check_failed", error=str(exc))
        return f"unhealthy: {exc}"
    return HEALTHY


async def _redis_status() -> str:
    try:
        await get_redis().ping()
    except (RuntimeError, RedisError, OSError) as exc:
        logger.error("health.redis_check_failed", error=str(exc))
        return f"unhealthy: {exc}"
    return HEALTHY


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health_check() -> HealthResponse:
    database = await _database_status()
    redis = await _redis_status()
    return HealthResponse(
        status="ok" if database == redis == HEALTHY else "degraded",
        database=database,
        redis=redis,
        payments="simulated" if get_settings().payments_simulated else "live",
    )
