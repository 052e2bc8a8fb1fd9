"""Allocation engine: bind a paid order's numbers exactly once.

Each attempt is one unit of work:
1. Lock the order row (per-order serialization).
2. Refuse unless the order is paid.
3. Return the existing numbers if the order already has them.
4. Draw under the raffle row lock, bind, commit.

A primary-key collision on bind rolls the unit back and the whole unit is
retried; any other failure rolls back and propagates. Nothing is ever
partially bound.
"""

import logging
import time
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_allocation.core.config import settings
from ticket_allocation.core.exceptions import (
    AllocationConflictError,
    NoStockError,
    NotFoundError,
    OrderNotPaidError,
)
from ticket_allocation.middleware.metrics import record_allocation
from ticket_allocation.models.order import OrderStatus
from ticket_allocation.services.order_service import OrderService
from ticket_allocation.services.redis_service import RedisService

logger = logging.getLogger(__name__)


@dataclass
class AllocationResult:
    """Numbers bound to an order."""

    order_id: UUID
    raffle_id: UUID
    numbers: list[int] = field(default_factory=list)
    already_assigned: bool = False


class AllocationEngine:
    """Service class for number allocation."""

    def __init__(
        self,
        db: AsyncSession,
        redis_service: RedisService | None = None,
        max_attempts: int | None = None,
    ):
        """Initialize allocation engine.

        Args:
            db: SQLAlchemy async session
            redis_service: Optional Redis service for the sold-count cache
            max_attempts: Retries on bind collisions, defaults to settings
        """
        self.db = db
        self.orders = OrderService(db, redis_service)
        self.pool = self.orders.pool
        self.max_attempts = max_attempts or settings.ALLOCATION_MAX_ATTEMPTS

    async def allocate(self, order_id: UUID) -> AllocationResult:
        """Ensure a paid order holds exactly ``quantity`` numbers.

        Args:
            order_id: Order UUID

        Returns:
            AllocationResult; already_assigned is True when nothing was drawn

        Raises:
            NotFoundError: Order does not exist
            OrderNotPaidError: Order is not paid, nothing was written
            NoStockError: Not enough free numbers, nothing was written
            AllocationConflictError: Collisions outlasted max_attempts
        """
        start_time = time.perf_counter()

        for attempt in range(1, self.max_attempts + 1):
            try:
                result = await self._allocate_once(order_id)
            except IntegrityError as e:
                await self.db.rollback()
                logger.warning(
                    f"Bind collision for order {order_id} "
                    f"(attempt {attempt}/{self.max_attempts}): {e.orig}"
                )
                continue
            except NoStockError as e:
                await self.db.rollback()
                record_allocation("no_stock", time.perf_counter() - start_time)
                # Paid order left without numbers: needs an operator
                logger.error(f"Order {order_id} is paid but cannot be allocated: {e.message}")
                raise
            except (NotFoundError, OrderNotPaidError) as e:
                await self.db.rollback()
                record_allocation("not_paid" if isinstance(e, OrderNotPaidError) else "not_found")
                logger.warning(f"Allocation refused for order {order_id}: {e.message}")
                raise
            except Exception:
                await self.db.rollback()
                record_allocation("error")
                raise

            latency = time.perf_counter() - start_time
            if result.already_assigned:
                record_allocation("already_assigned", latency)
            else:
                record_allocation("assigned", latency)
                await self.pool.sync_sold_cache(result.raffle_id, len(result.numbers))
                logger.info(
                    f"Allocated {len(result.numbers)} numbers to order {order_id} "
                    f"in raffle {result.raffle_id}"
                )
            return result

        record_allocation("conflict")
        raise AllocationConflictError(
            f"Could not allocate order {order_id} after {self.max_attempts} attempts"
        )

    async def _allocate_once(self, order_id: UUID) -> AllocationResult:
        order = await self.orders.get_for_update(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")

        if order.status != OrderStatus.PAID.value:
            raise OrderNotPaidError(f"Order {order_id} is {order.status}, not paid")

        existing = await self.pool.get_order_numbers(order.order_id)
        if existing:
            if len(existing) != order.quantity:
                logger.error(
                    f"Order {order_id} holds {len(existing)} numbers "
                    f"but quantity is {order.quantity}"
                )
            # Nothing written; commit only ends the transaction and the lock
            await self.db.commit()
            return AllocationResult(
                order_id=order.order_id,
                raffle_id=order.raffle_id,
                numbers=existing,
                already_assigned=True,
            )

        numbers = await self.pool.draw_and_reserve(order.raffle_id, order.quantity)
        await self.pool.bind(order.raffle_id, order.order_id, numbers)
        await self.db.commit()

        return AllocationResult(
            order_id=order.order_id,
            raffle_id=order.raffle_id,
            numbers=numbers,
            already_assigned=False,
        )
