"""Allocation trigger dispatcher.

Three independent signals can report that an order was paid: the gateway
webhook, the buyer's browser returning from the gateway, and an operator.
All of them end in the same settle step (mark paid, then allocate), which is
idempotent, so any number of them may fire in any order.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ticket_allocation.core.config import settings
from ticket_allocation.core.exceptions import (
    GatewayUnavailableError,
    InvalidInputError,
    NotFoundError,
    ServiceError,
    UnauthorizedError,
)
from ticket_allocation.core.security import OperatorIdentity
from ticket_allocation.middleware.metrics import record_payment_trigger
from ticket_allocation.models.order import OrderStatus
from ticket_allocation.services.allocation_engine import AllocationEngine
from ticket_allocation.services.payment_gateway import (
    PaymentGatewayClient,
    confirmation_from_webhook,
    parse_provider_tx_id,
    verify_webhook_secret,
)
from ticket_allocation.services.redis_service import RedisService

logger = logging.getLogger(__name__)


class DispatchStatus(str, enum.Enum):
    APPROVED_ASSIGNED = "APPROVED_ASSIGNED"
    APPROVED_ALREADY_ASSIGNED = "APPROVED_ALREADY_ASSIGNED"
    NOT_APPROVED = "NOT_APPROVED"
    IGNORED = "IGNORED"


@dataclass
class DispatchResult:
    """Outcome of one payment confirmation trigger."""

    ok: bool
    status: DispatchStatus
    order_id: UUID | None = None
    numbers: list[int] = field(default_factory=list)
    already_assigned: bool = False


@dataclass
class RevertResult:
    """Outcome of an operator revert or cancel."""

    order_id: UUID
    status: str
    released: list[int] = field(default_factory=list)


class AllocationDispatcher:
    """Routes payment confirmation triggers into the allocation engine."""

    def __init__(
        self,
        db: AsyncSession,
        redis_service: RedisService | None = None,
        gateway: PaymentGatewayClient | None = None,
        webhook_secret: str | None = None,
    ):
        """Initialize dispatcher.

        Args:
            db: SQLAlchemy async session
            redis_service: Optional Redis service for the sold-count cache
            gateway: Gateway client for buyer confirmations
            webhook_secret: Expected webhook secret, defaults to settings
        """
        self.db = db
        self.engine = AllocationEngine(db, redis_service)
        self.orders = self.engine.orders
        self.gateway = gateway
        self.webhook_secret = (
            webhook_secret if webhook_secret is not None else settings.WEBHOOK_SECRET
        )

    async def _settle(self, order_id: UUID, trigger: str) -> DispatchResult:
        """Mark the order paid, then allocate. Safe to repeat."""
        try:
            await self.orders.mark_paid(order_id)
            result = await self.engine.allocate(order_id)
        except ServiceError as e:
            record_payment_trigger(trigger, e.code.lower())
            raise

        status = (
            DispatchStatus.APPROVED_ALREADY_ASSIGNED
            if result.already_assigned
            else DispatchStatus.APPROVED_ASSIGNED
        )
        record_payment_trigger(trigger, status.value.lower())
        return DispatchResult(
            ok=True,
            status=status,
            order_id=result.order_id,
            numbers=result.numbers,
            already_assigned=result.already_assigned,
        )

    async def handle_webhook(self, payload: Any, secret: str | None) -> DispatchResult:
        """Handle a gateway webhook notification.

        Args:
            payload: Decoded JSON body
            secret: Value of the webhook secret header

        Returns:
            DispatchResult (NOT_APPROVED leaves the order untouched)

        Raises:
            UnauthorizedError: Secret mismatch, checked before anything else
            UnresolvedReferenceError: Approved event without a reference
            NotFoundError: No order for the reference
        """
        if not verify_webhook_secret(secret, self.webhook_secret):
            record_payment_trigger("webhook", "unauthorized")
            logger.warning("Rejected webhook with invalid secret")
            raise UnauthorizedError("Invalid webhook secret")

        try:
            confirmation = confirmation_from_webhook(payload)
        except ServiceError as e:
            record_payment_trigger("webhook", e.code.lower())
            logger.warning(f"Webhook ignored: {e.message}")
            raise

        if not confirmation.approved:
            record_payment_trigger("webhook", "not_approved")
            logger.info(
                f"Webhook for {confirmation.client_tx_ref} not approved "
                f"(status={confirmation.transaction_status}, code={confirmation.status_code})"
            )
            return DispatchResult(ok=True, status=DispatchStatus.NOT_APPROVED)

        order = await self.orders.get_by_reference(confirmation.client_tx_ref)
        if order is None:
            record_payment_trigger("webhook", "not_found")
            logger.warning(f"Webhook for unknown reference {confirmation.client_tx_ref}")
            raise NotFoundError(f"No order for reference {confirmation.client_tx_ref}")

        order_id = order.order_id
        if confirmation.provider_tx_id:
            await self.orders.attach_provider_transaction(order_id, confirmation.provider_tx_id)

        return await self._settle(order_id, "webhook")

    async def handle_client_confirmation(
        self, client_tx_ref: str | None, provider_tx_id: str | None = None
    ) -> DispatchResult:
        """Handle the buyer returning from the gateway.

        Args:
            client_tx_ref: Client transaction reference of the order
            provider_tx_id: Gateway transaction id, if the redirect carried it

        Returns:
            DispatchResult

        Raises:
            InvalidInputError: Missing reference or provider transaction id
            NotFoundError: No order for the reference
            GatewayUnavailableError: Gateway unusable, retry later
        """
        ref = (client_tx_ref or "").strip()
        if not ref:
            raise InvalidInputError("Missing client transaction reference")

        order = await self.orders.get_by_reference(ref)
        if order is None:
            record_payment_trigger("client", "not_found")
            raise NotFoundError(f"No order for reference {ref}")

        order_id = order.order_id

        if order.status == OrderStatus.PAID.value:
            numbers = await self.orders.get_numbers(order_id)
            if numbers:
                record_payment_trigger("client", "approved_already_assigned")
                return DispatchResult(
                    ok=True,
                    status=DispatchStatus.APPROVED_ALREADY_ASSIGNED,
                    order_id=order_id,
                    numbers=numbers,
                    already_assigned=True,
                )

        given_id = (provider_tx_id or "").strip()
        if given_id:
            # Validate before storing
            parse_provider_tx_id(given_id)
        provider_id = given_id or order.provider_transaction_id
        if not provider_id:
            raise InvalidInputError(
                f"Order {order_id} has no provider transaction id and none was given"
            )

        if order.provider_transaction_id is None:
            await self.orders.attach_provider_transaction(order_id, provider_id)
        else:
            # No transaction may stay open across the gateway call
            await self.db.commit()

        if self.gateway is None:
            raise GatewayUnavailableError("Payment gateway client is not configured")

        try:
            confirmation = await self.gateway.confirm(provider_id, ref)
        except ServiceError as e:
            record_payment_trigger("client", e.code.lower())
            raise

        if confirmation.client_tx_ref and confirmation.client_tx_ref != ref:
            record_payment_trigger("client", "not_approved")
            logger.warning(
                f"Gateway confirmation for {ref} refers to {confirmation.client_tx_ref}"
            )
            return DispatchResult(ok=True, status=DispatchStatus.NOT_APPROVED, order_id=order_id)

        if not confirmation.approved:
            record_payment_trigger("client", "not_approved")
            logger.info(f"Gateway has not approved {ref} (code={confirmation.status_code})")
            return DispatchResult(ok=True, status=DispatchStatus.NOT_APPROVED, order_id=order_id)

        return await self._settle(order_id, "client")

    async def handle_admin_override(
        self, order_id: UUID, operator: OperatorIdentity | None
    ) -> DispatchResult:
        """Operator marks an order paid (bank transfer, gateway outage).

        Raises:
            UnauthorizedError: No operator or operator is not an admin
        """
        self._require_admin(operator)
        logger.info(f"Operator {operator.operator_id} marking order {order_id} paid")
        return await self._settle(order_id, "admin")

    async def handle_admin_revert(
        self, order_id: UUID, target_status: str, operator: OperatorIdentity | None
    ) -> RevertResult:
        """Operator reverts an order to pending or cancels it.

        Args:
            order_id: Order UUID
            target_status: "pending" or "cancelled"
            operator: Authenticated operator

        Returns:
            RevertResult with the released numbers

        Raises:
            UnauthorizedError: No operator or operator is not an admin
            InvalidInputError: Unsupported target status
            InvalidStateTransitionError: Current status does not allow it
        """
        self._require_admin(operator)

        if target_status == OrderStatus.PENDING.value:
            order, released = await self.orders.revert_to_pending(order_id)
        elif target_status == OrderStatus.CANCELLED.value:
            order, released = await self.orders.cancel(order_id)
        else:
            raise InvalidInputError(f"Cannot revert an order to {target_status}")

        logger.info(
            f"Operator {operator.operator_id} moved order {order_id} to {target_status}, "
            f"released {released}"
        )
        return RevertResult(order_id=order.order_id, status=order.status, released=released)

    @staticmethod
    def _require_admin(operator: OperatorIdentity | None) -> None:
        if operator is None or not operator.is_admin:
            record_payment_trigger("admin", "unauthorized")
            raise UnauthorizedError("Admin privileges required")
