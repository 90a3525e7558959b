"""
Redis Configuration

Shared async client backing the admin action rate limiter. Redis is
optional: when it is not reachable at startup the client stays ``None`` and
rate limiting falls back to process memory.
"""

import logging

from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from app.core.config import settings

logger = logging.getLogger(__name__)

_client: Redis | None = None


async def init_redis() -> Redis:
    """Connect to ``settings.redis_url`` and verify the connection."""
    global _client
    client = from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
    await client.ping()
    _client = client
    return _client


def get_redis() -> Redis | None:
    """Return the shared client, or None when Redis is not connected."""
    return _client


async def redis_status() -> dict[str, str]:
    """Report the connection state for the debug endpoint."""
    if _client is None:
        return {"redis": "not initialized"}
    try:
        await _client.ping()
    except RedisError as e:
        logger.warning(f"Redis ping failed: {e}")
        return {"redis": "error", "message": str(e)}
    return {"redis": "connected"}


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
