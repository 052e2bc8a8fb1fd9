"""Pydantic schemas for request/response validation."""

from ticket_allocation.schemas.order import (
    BuyerInfo,
    OrderCreate,
    OrderCreateResponse,
    OrderResponse,
)
from ticket_allocation.schemas.payment import (
    AdminRevertRequest,
    DispatchResponse,
    PaymentConfirmRequest,
    RevertResponse,
)
from ticket_allocation.schemas.raffle import RaffleCreate, RaffleProgress, RaffleResponse

__all__ = [
    "BuyerInfo",
    "OrderCreate",
    "OrderCreateResponse",
    "OrderResponse",
    "PaymentConfirmRequest",
    "DispatchResponse",
    "AdminRevertRequest",
    "RevertResponse",
    "RaffleCreate",
    "RaffleResponse",
    "RaffleProgress",
]
