"""Process-wide Redis client. Holds the per-project version locks."""

import redis.asyncio as redis
import structlog

from sitegen.core.config import get_settings

logger = structlog.get_logger(__name__)

_redis: redis.Redis | None = None


async def init_redis(url: str | None = None) -> None:
    """Connect once per process and fail fast if Redis is unreachable."""
    global _redis

    if _redis is not None:
        return

    settings = get_settings()
    client = redis.from_url(
        url or settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.redis_socket_timeout_seconds,
        socket_connect_timeout=settings.redis_socket_timeout_seconds,
        health_check_interval=30,
    )
    await client.ping()
    _redis = client


async def close_redis() -> None:
    global _redis

    if _redis is not None:
        await _redis.aclose()
        _redis = None


def get_redis() -> redis.Redis:
    """FastAPI dependency returning the shared client.

    Raises:
        RuntimeError: If ``init_redis()`` has not run
    """
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


async def ping_redis(client: redis.Redis | None = None) -> bool:
    """PING the shared (or given) client. False (and logged) on any failure."""
    try:
        await (client or get_redis()).ping()
    except Exception as exc:
        logger.error("readiness_redis_failed", error=str(exc), error_type=type(exc).__name__)
        return False
    return True
