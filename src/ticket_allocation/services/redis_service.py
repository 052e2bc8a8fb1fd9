"""Redis service for raffle sold-count caching.

Redis only backs the read path (progress bars, remaining counts). Allocation
correctness never depends on it; the database is authoritative.
"""

from redis.asyncio import Redis


class RedisService:
    """Service class for Redis cache operations."""

    # Lua script: adjust the counter only if it is cached, so a missing key
    # is never recreated from a delta
    ADJUST_SOLD_SCRIPT = """
    if redis.call("EXISTS", KEYS[1]) == 1 then
        return redis.call("INCRBY", KEYS[1], ARGV[1])
    else
        return -1
    end
    """

    def __init__(self, redis: Redis):
        """Initialize Redis service with a Redis client.

        Args:
            redis: Async Redis client instance
        """
        self.redis = redis
        self._adjust_sold_script = None

    async def _get_adjust_sold_script(self):
        """Get or register the adjust sold count Lua script."""
        if self._adjust_sold_script is None:
            self._adjust_sold_script = self.redis.register_script(self.ADJUST_SOLD_SCRIPT)
        return self._adjust_sold_script

    # ==================== Sold Count Operations ====================

    async def get_sold_count(self, raffle_id: str) -> int | None:
        """Get the cached sold count for a raffle.

        Key pattern: sold:{raffle_id}

        Args:
            raffle_id: Raffle UUID string

        Returns:
            Cached count or None on a cache miss
        """
        value = await self.redis.get(f"sold:{raffle_id}")
        return int(value) if value is not None else None

    async def set_sold_count(self, raffle_id: str, count: int, ttl: int) -> None:
        """Cache the sold count read from the database.

        Args:
            raffle_id: Raffle UUID string
            count: Authoritative count
            ttl: Seconds before the value must be re-read
        """
        await self.redis.set(f"sold:{raffle_id}", count, ex=ttl)

    async def adjust_sold_count(self, raffle_id: str, delta: int) -> int | None:
        """Apply a committed bind (+n) or release (-n) to the cached count.

        Args:
            raffle_id: Raffle UUID string
            delta: Signed number of numbers bound or released

        Returns:
            New cached value, or None if nothing was cached
        """
        script = await self._get_adjust_sold_script()
        result = int(await script(keys=[f"sold:{raffle_id}"], args=[delta]))
        return result if result >= 0 else None
