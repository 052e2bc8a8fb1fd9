"""Order service: creation and the order state machine."""

import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_allocation.core.exceptions import (
    InvalidInputError,
    InvalidStateTransitionError,
    NotFoundError,
)
from ticket_allocation.models.base import utcnow
from ticket_allocation.models.order import Order, OrderStatus, PaymentMethod
from ticket_allocation.models.raffle import Raffle, RaffleStatus
from ticket_allocation.schemas.order import BuyerInfo
from ticket_allocation.services.number_pool import NumberPoolStore
from ticket_allocation.services.redis_service import RedisService

logger = logging.getLogger(__name__)


class OrderService:
    """Service class for order operations."""

    def __init__(self, db: AsyncSession, redis_service: RedisService | None = None):
        self.db = db
        self.pool = NumberPoolStore(db, redis_service)

    async def get(self, order_id: UUID) -> Order | None:
        """Get order by ID."""
        result = await self.db.execute(select(Order).where(Order.order_id == order_id))
        return result.scalar_one_or_none()

    async def get_by_reference(self, client_tx_ref: str) -> Order | None:
        """Get order by client transaction reference."""
        result = await self.db.execute(
            select(Order).where(Order.client_transaction_reference == client_tx_ref)
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, order_id: UUID) -> Order | None:
        """Get order by ID holding its row lock until commit/rollback.

        Always reloads the row so a copy already in the session never hides
        a change committed by another transaction.
        """
        result = await self.db.execute(
            select(Order)
            .where(Order.order_id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_numbers(self, order_id: UUID) -> list[int]:
        """Get the numbers bound to an order."""
        return await self.pool.get_order_numbers(order_id)

    async def create(
        self,
        raffle_id: UUID,
        quantity: int,
        buyer: BuyerInfo | None,
        payment_method: str,
        client_tx_ref: str | None = None,
    ) -> tuple[Order, bool]:
        """Create an order, or return the existing one for the same reference.

        Args:
            raffle_id: Raffle UUID
            quantity: Count of numbers requested (> 0, never changes)
            buyer: Optional buyer contact details
            payment_method: "gateway" or "transfer"
            client_tx_ref: Client transaction reference (gateway orders only)

        Returns:
            Tuple of (order, created) - created is False for an existing order

        Raises:
            InvalidInputError: Bad quantity, method or reference, raffle not active
            NotFoundError: Raffle does not exist
        """
        if quantity is None or quantity <= 0:
            raise InvalidInputError(f"quantity must be positive, got {quantity}")

        try:
            method = PaymentMethod(payment_method)
        except ValueError:
            raise InvalidInputError(f"Unknown payment method: {payment_method}")

        ref = client_tx_ref.strip() if client_tx_ref else None
        if method == PaymentMethod.GATEWAY and not ref:
            raise InvalidInputError("Gateway orders require a client transaction reference")
        if method == PaymentMethod.TRANSFER and ref:
            raise InvalidInputError("Transfer orders do not carry a client transaction reference")

        if ref:
            existing = await self.get_by_reference(ref)
            if existing:
                if existing.raffle_id != raffle_id or existing.quantity != quantity:
                    logger.warning(
                        f"Reference {ref} reused with different parameters; "
                        f"returning existing order {existing.order_id}"
                    )
                return existing, False

        result = await self.db.execute(select(Raffle).where(Raffle.raffle_id == raffle_id))
        raffle = result.scalar_one_or_none()
        if raffle is None:
            raise NotFoundError(f"Raffle {raffle_id} not found")
        if raffle.status != RaffleStatus.ACTIVE.value:
            raise InvalidInputError(f"Raffle {raffle_id} is not active")

        buyer = buyer or BuyerInfo()
        order = Order(
            raffle_id=raffle_id,
            quantity=quantity,
            total_amount=Decimal(quantity) * raffle.price_per_number,
            payment_method=method.value,
            client_transaction_reference=ref,
            buyer_name=buyer.name,
            buyer_phone=buyer.phone,
            buyer_email=buyer.email,
            status=(
                OrderStatus.IN_PROGRESS.value
                if method == PaymentMethod.GATEWAY
                else OrderStatus.PENDING.value
            ),
        )

        try:
            self.db.add(order)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            # Lost a race against a concurrent create with the same reference
            if ref:
                existing = await self.get_by_reference(ref)
                if existing:
                    return existing, False
            raise

        await self.db.refresh(order)
        logger.info(f"Created order {order.order_id} ({quantity} numbers, {method.value})")
        return order, True

    async def mark_paid(self, order_id: UUID) -> tuple[Order, bool]:
        """Transition pending/in_progress -> paid.

        Re-invocation on a paid order is a successful no-op.

        Args:
            order_id: Order UUID

        Returns:
            Tuple of (order, transitioned)

        Raises:
            NotFoundError: Order does not exist
            InvalidStateTransitionError: Order is cancelled
        """
        try:
            order = await self.get_for_update(order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} not found")

            if order.status == OrderStatus.PAID.value:
                await self.db.commit()
                return order, False

            if order.status == OrderStatus.CANCELLED.value:
                raise InvalidStateTransitionError(
                    f"Order {order_id} is cancelled and cannot be marked paid"
                )

            order.status = OrderStatus.PAID.value
            order.paid_at = utcnow()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Order {order_id} marked paid")
        return order, True

    async def attach_provider_transaction(self, order_id: UUID, provider_tx_id: str) -> Order:
        """Store the gateway's transaction id the first time it is seen.

        Args:
            order_id: Order UUID
            provider_tx_id: Gateway transaction id

        Returns:
            Updated order

        Raises:
            NotFoundError: Order does not exist
        """
        try:
            order = await self.get_for_update(order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} not found")

            if order.provider_transaction_id is None:
                order.provider_transaction_id = provider_tx_id
            elif order.provider_transaction_id != provider_tx_id:
                logger.warning(
                    f"Order {order_id} already bound to provider transaction "
                    f"{order.provider_transaction_id}, ignoring {provider_tx_id}"
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return order

    async def revert_to_pending(self, order_id: UUID) -> tuple[Order, list[int]]:
        """Revert a paid (or pending) order to pending, releasing its numbers.

        Returns:
            Tuple of (order, released numbers)
        """
        return await self._release_and_transition(
            order_id,
            OrderStatus.PENDING,
            allowed_from={OrderStatus.PAID.value, OrderStatus.PENDING.value},
        )

    async def cancel(self, order_id: UUID) -> tuple[Order, list[int]]:
        """Cancel an order, releasing its numbers.

        Cancelling an already cancelled order is a no-op.

        Returns:
            Tuple of (order, released numbers)
        """
        return await self._release_and_transition(
            order_id,
            OrderStatus.CANCELLED,
            allowed_from={
                OrderStatus.PAID.value,
                OrderStatus.PENDING.value,
                OrderStatus.IN_PROGRESS.value,
            },
        )

    async def _release_and_transition(
        self, order_id: UUID, target: OrderStatus, allowed_from: set[str]
    ) -> tuple[Order, list[int]]:
        """Release bound numbers and set the new status in one transaction."""
        try:
            order = await self.get_for_update(order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} not found")

            if order.status == target.value == OrderStatus.CANCELLED.value:
                await self.db.commit()
                return order, []

            if order.status not in allowed_from:
                raise InvalidStateTransitionError(
                    f"Order {order_id} cannot move from {order.status} to {target.value}"
                )

            released = await self.pool.release_order(order.order_id)
            order.status = target.value
            order.paid_at = None
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.pool.sync_sold_cache(order.raffle_id, -len(released))
        logger.info(
            f"Order {order_id} moved to {target.value}, released {len(released)} numbers"
        )
        return order, released
