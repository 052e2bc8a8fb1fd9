"""Business logic services."""

from ticket_allocation.services.allocation_dispatcher import (
    AllocationDispatcher,
    DispatchResult,
    DispatchStatus,
)
from ticket_allocation.services.allocation_engine import AllocationEngine, AllocationResult
from ticket_allocation.services.number_pool import NumberPoolStore, pick_free_numbers
from ticket_allocation.services.order_service import OrderService
from ticket_allocation.services.payment_gateway import PaymentConfirmation, PaymentGatewayClient
from ticket_allocation.services.raffle_service import RaffleService
from ticket_allocation.services.redis_service import RedisService

__all__ = [
    "AllocationDispatcher",
    "AllocationEngine",
    "AllocationResult",
    "DispatchResult",
    "DispatchStatus",
    "NumberPoolStore",
    "OrderService",
    "PaymentConfirmation",
    "PaymentGatewayClient",
    "RaffleService",
    "RedisService",
    "pick_free_numbers",
]
