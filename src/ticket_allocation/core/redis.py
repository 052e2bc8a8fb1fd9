"""Shared Redis client for the sold-count cache.

One pool per process, created lazily. Short socket timeouts: a slow Redis
must degrade progress reads, never stall a payment confirmation.
"""

import redis.asyncio as redis

from ticket_allocation.core.config import settings

_redis_client: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    """Get the process-wide Redis client."""
    global _redis_client
    if _redis_client is None:
        pool = redis.ConnectionPool.from_url(
            settings.REDIS_URL,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            decode_responses=True,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
            retry_on_timeout=True,
        )
        _redis_client = redis.Redis(connection_pool=pool, auto_close_connection_pool=True)
    return _redis_client


async def close_redis() -> None:
    """Close the client and its pool (application shutdown)."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
