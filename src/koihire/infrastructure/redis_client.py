"""Redis-backed record of processed webhook events.

The processor redelivers events until it sees a 2xx, so each event id that
was handled is remembered for ``redis_idempotency_ttl_seconds``. Escrow
funding is guarded by the escrow state machine as well; Redis only spares
the repeated work.
"""

from __future__ import annotations

import redis.asyncio as aioredis

from koihire.config import get_settings
from koihire.logging_config import get_logger

logger = get_logger(__name__)

WEBHOOK_EVENT_PREFIX = "koihire:webhook-event:"

_redis_client: aioredis.Redis | None = None


async def init_redis() -> aioredis.Redis:
    global _redis_client
    settings = get_settings()
    client = aioredis.from_url(settings.redis_url, decode_responses=True, health_check_interval=30)
    await client.ping()
    _redis_client = client
    logger.info("redis.connected")
    return client


def get_redis() -> aioredis.Redis:
    """Raises RuntimeError until init_redis() has succeeded."""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized")
    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is None:
        return
    await _redis_client.aclose()
    _redis_client = None
    logger.info("redis.disconnected")


def webhook_event_key(event_id: str) -> str:
    return f"{WEBHOOK_EVENT_PREFIX}{event_id}"


async def event_seen(event_id: str) -> bool:
    return bool(await get_redis().exists(webhook_event_key(event_id)))


async def remember_event(event_id: str, event_type: str) -> bool:
    """Record a handled event. False if another delivery recorded it first."""
    stored = await get_redis().set(
        webhook_event_key(event_id),
        event_type,
        ex=get_settings().redis_idempotency_ttl_seconds,
        nx=True,
    )
    return bool(stored)
