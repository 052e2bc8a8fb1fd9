"""Number pool store: which raffle numbers are free, and atomic reservation.

Protection against double binding has two layers:
- Layer 1: PostgreSQL row lock on the raffle (SELECT ... FOR UPDATE), so
  draws for the same raffle are serialized until the drawing transaction
  commits or rolls back.
- Layer 2: Primary key (raffle_id, number) on assigned_numbers; a bind that
  would reuse a number fails with IntegrityError and the caller retries.
"""

import logging
import random
from collections.abc import Collection
from uuid import UUID

from redis.exceptions import RedisError
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_allocation.core.config import settings
from ticket_allocation.core.exceptions import InvalidInputError, NoStockError, NotFoundError
from ticket_allocation.models.assigned_number import AssignedNumber
from ticket_allocation.models.raffle import Raffle
from ticket_allocation.services.redis_service import RedisService

logger = logging.getLogger(__name__)

_system_random = random.SystemRandom()


def pick_free_numbers(
    first_number: int,
    total_numbers: int,
    taken: Collection[int],
    count: int,
    mode: str = "random",
    rng: random.Random | None = None,
) -> list[int]:
    """Pick ``count`` distinct numbers of the domain that are not in ``taken``.

    Domain: [first_number, first_number + total_numbers - 1].

    Args:
        first_number: Lowest number of the raffle
        total_numbers: Size of the number space
        taken: Numbers already bound in the raffle
        count: How many numbers to pick
        mode: "random" or "sequential" (lowest free numbers first)
        rng: Random source, defaults to SystemRandom

    Returns:
        Sorted list of picked numbers

    Raises:
        InvalidInputError: count <= 0 or unknown mode
        NoStockError: fewer than count numbers are free
    """
    if count <= 0:
        raise InvalidInputError(f"count must be positive, got {count}")

    last_number = first_number + total_numbers - 1
    taken_in_domain = {n for n in taken if first_number <= n <= last_number}
    free_total = total_numbers - len(taken_in_domain)
    if count > free_total:
        raise NoStockError(f"Requested {count} numbers but only {free_total} remain")

    if mode == "sequential":
        picked = []
        for n in range(first_number, last_number + 1):
            if n not in taken_in_domain:
                picked.append(n)
                if len(picked) == count:
                    break
        return picked

    if mode != "random":
        raise InvalidInputError(f"Unknown draw mode: {mode}")

    rng = rng or _system_random

    # Mostly-free pool and small request: rejection sampling avoids
    # materializing the whole free list
    if free_total * 2 >= total_numbers and count * 4 <= free_total:
        picked_set: set[int] = set()
        while len(picked_set) < count:
            n = rng.randint(first_number, last_number)
            if n not in taken_in_domain:
                picked_set.add(n)
        return sorted(picked_set)

    free = [n for n in range(first_number, last_number + 1) if n not in taken_in_domain]
    return sorted(rng.sample(free, count))


class NumberPoolStore:
    """Store operations over the assigned_numbers table."""

    def __init__(self, db: AsyncSession, redis_service: RedisService | None = None):
        """Initialize number pool store.

        Args:
            db: SQLAlchemy async session
            redis_service: Optional Redis service for the sold-count cache
        """
        self.db = db
        self.redis_service = redis_service

    async def count_assigned(self, raffle_id: UUID) -> int:
        """Count numbers bound in a raffle (authoritative, no locks).

        Args:
            raffle_id: Raffle UUID

        Returns:
            Number of assigned numbers
        """
        result = await self.db.execute(
            select(func.count()).select_from(AssignedNumber).where(
                AssignedNumber.raffle_id == raffle_id
            )
        )
        return result.scalar_one()

    async def get_order_numbers(self, order_id: UUID) -> list[int]:
        """Get numbers bound to an order, ascending.

        Args:
            order_id: Order UUID

        Returns:
            List of numbers (empty if none are bound)
        """
        result = await self.db.execute(
            select(AssignedNumber.number)
            .where(AssignedNumber.order_id == order_id)
            .order_by(AssignedNumber.number.asc())
        )
        return list(result.scalars().all())

    async def draw_and_reserve(
        self, raffle_id: UUID, count: int, mode: str | None = None
    ) -> list[int]:
        """Draw ``count`` free numbers while holding the raffle row lock.

        Must run inside the caller's transaction. The lock, and with it the
        reservation, lasts until the caller commits or rolls back.

        Args:
            raffle_id: Raffle UUID
            count: How many numbers to draw
            mode: Draw mode, defaults to settings.NUMBER_DRAW_MODE

        Returns:
            Sorted list of free numbers

        Raises:
            NotFoundError: Raffle does not exist
            NoStockError: Fewer than count numbers remain
        """
        # Layer 1: SELECT FOR UPDATE (per-raffle serialization point)
        result = await self.db.execute(
            select(Raffle).where(Raffle.raffle_id == raffle_id).with_for_update()
        )
        raffle = result.scalar_one_or_none()

        if raffle is None:
            raise NotFoundError(f"Raffle {raffle_id} not found")

        taken_result = await self.db.execute(
            select(AssignedNumber.number).where(AssignedNumber.raffle_id == raffle_id)
        )
        taken = set(taken_result.scalars().all())

        return pick_free_numbers(
            raffle.first_number,
            raffle.total_numbers,
            taken,
            count,
            mode=mode or settings.NUMBER_DRAW_MODE,
        )

    async def bind(self, raffle_id: UUID, order_id: UUID, numbers: list[int]) -> None:
        """Insert one AssignedNumber row per number in a single flush.

        Layer 2: a reused number violates the primary key and raises
        IntegrityError here; nothing is committed by this method.

        Args:
            raffle_id: Raffle UUID
            order_id: Owning order UUID
            numbers: Numbers returned by draw_and_reserve
        """
        self.db.add_all(
            [
                AssignedNumber(raffle_id=raffle_id, number=n, order_id=order_id, status="assigned")
                for n in numbers
            ]
        )
        await self.db.flush()

    async def release_order(self, order_id: UUID) -> list[int]:
        """Delete all numbers bound to an order, returning them to the pool.

        Runs inside the caller's transaction.

        Args:
            order_id: Order UUID

        Returns:
            Sorted list of released numbers
        """
        result = await self.db.execute(
            delete(AssignedNumber)
            .where(AssignedNumber.order_id == order_id)
            .returning(AssignedNumber.number)
        )
        return sorted(result.scalars().all())

    async def sync_sold_cache(self, raffle_id: UUID, delta: int) -> None:
        """Apply a committed change to the cached sold count.

        Cache failures are logged and ignored; the entry expires on its own.

        Args:
            raffle_id: Raffle UUID
            delta: +n after a bind, -n after a release
        """
        if self.redis_service is None or delta == 0:
            return
        try:
            await self.redis_service.adjust_sold_count(str(raffle_id), delta)
        except RedisError as e:
            logger.warning(f"Could not update sold cache for raffle {raffle_id}: {e}")
