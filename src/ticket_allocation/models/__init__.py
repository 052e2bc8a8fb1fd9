"""SQLAlchemy ORM models."""

from ticket_allocation.models.assigned_number import AssignedNumber
from ticket_allocation.models.base import TimestampMixin
from ticket_allocation.models.order import Order, OrderStatus, PaymentMethod
from ticket_allocation.models.raffle import Raffle, RaffleStatus

__all__ = [
    "TimestampMixin",
    "Raffle",
    "RaffleStatus",
    "Order",
    "OrderStatus",
    "PaymentMethod",
    "AssignedNumber",
]
