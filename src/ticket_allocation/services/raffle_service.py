"""Raffle service: definitions and progress (read path)."""

import logging
from uuid import UUID

from cachetools import TTLCache
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_allocation.core.config import settings
from ticket_allocation.core.exceptions import InvalidInputError, NotFoundError
from ticket_allocation.models.raffle import Raffle, RaffleStatus
from ticket_allocation.schemas.raffle import RaffleCreate, RaffleProgress
from ticket_allocation.services.number_pool import NumberPoolStore
from ticket_allocation.services.redis_service import RedisService

logger = logging.getLogger(__name__)

# Number space of a raffle never changes after creation; keep it in-process
RAFFLE_LOCAL_TTL = 60
_raffle_local_cache: TTLCache = TTLCache(maxsize=100, ttl=RAFFLE_LOCAL_TTL)


class RaffleService:
    """Service class for raffle operations."""

    def __init__(self, db: AsyncSession, redis_service: RedisService | None = None):
        self.db = db
        self.redis_service = redis_service
        self.pool = NumberPoolStore(db, redis_service)

    async def create(self, data: RaffleCreate) -> Raffle:
        """Create a raffle.

        Args:
            data: Raffle creation data

        Returns:
            Created raffle

        Raises:
            InvalidInputError: Another raffle is already active
        """
        if data.status == RaffleStatus.ACTIVE.value and await self.get_active():
            raise InvalidInputError("Another raffle is already active")

        raffle = Raffle(
            title=data.title,
            total_numbers=data.total_numbers,
            first_number=data.first_number,
            price_per_number=data.price_per_number,
            status=data.status,
        )

        try:
            self.db.add(raffle)
            await self.db.commit()
        except IntegrityError:
            # Partial unique index on status = 'active'
            await self.db.rollback()
            raise InvalidInputError("Another raffle is already active")

        await self.db.refresh(raffle)
        logger.info(f"Created raffle {raffle.raffle_id} with {raffle.total_numbers} numbers")
        return raffle

    async def get_by_id(self, raffle_id: UUID) -> Raffle | None:
        """Get raffle by ID."""
        result = await self.db.execute(select(Raffle).where(Raffle.raffle_id == raffle_id))
        return result.scalar_one_or_none()

    async def get_active(self) -> Raffle | None:
        """Get the active raffle, if any."""
        result = await self.db.execute(
            select(Raffle).where(Raffle.status == RaffleStatus.ACTIVE.value)
        )
        return result.scalar_one_or_none()

    async def _get_total_numbers(self, raffle_id: UUID) -> int:
        key = str(raffle_id)
        total = _raffle_local_cache.get(key)
        if total is not None:
            return total

        raffle = await self.get_by_id(raffle_id)
        if raffle is None:
            raise NotFoundError(f"Raffle {raffle_id} not found")

        _raffle_local_cache[key] = raffle.total_numbers
        return raffle.total_numbers

    async def _get_sold(self, raffle_id: UUID) -> int:
        """Sold count from Redis, falling back to the database."""
        if self.redis_service is not None:
            try:
                cached = await self.redis_service.get_sold_count(str(raffle_id))
                if cached is not None:
                    return cached
            except RedisError as e:
                logger.warning(f"Sold cache read failed for raffle {raffle_id}: {e}")

        sold = await self.pool.count_assigned(raffle_id)

        if self.redis_service is not None:
            try:
                await self.redis_service.set_sold_count(
                    str(raffle_id), sold, ttl=settings.PROGRESS_CACHE_TTL
                )
            except RedisError as e:
                logger.warning(f"Sold cache write failed for raffle {raffle_id}: {e}")

        return sold

    async def get_progress(self, raffle_id: UUID) -> RaffleProgress:
        """Get sold/remaining counts for a raffle.

        May lag behind the store by up to PROGRESS_CACHE_TTL seconds.

        Raises:
            NotFoundError: Raffle does not exist
        """
        total = await self._get_total_numbers(raffle_id)
        sold = min(await self._get_sold(raffle_id), total)

        return RaffleProgress(
            raffle_id=raffle_id,
            total=total,
            sold=sold,
            remaining=total - sold,
            percent_sold=round(sold * 100 / total, 2),
        )
