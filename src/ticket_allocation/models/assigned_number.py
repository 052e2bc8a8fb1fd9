"""AssignedNumber model: one raffle number bound to one order."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from ticket_allocation.core.database import Base

if TYPE_CHECKING:
    from ticket_allocation.models.order import Order
    from ticket_allocation.models.raffle import Raffle


class AssignedNumber(Base):
    """A number of a raffle bound to an order.

    The composite primary key (raffle_id, number) makes double binding a
    constraint violation in the store, whatever the application does.
    """

    __tablename__ = "assigned_numbers"

    raffle_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("raffles.raffle_id"),
        primary_key=True,
    )
    number: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.order_id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="assigned",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
    )

    # Relationships
    raffle: Mapped["Raffle"] = relationship("Raffle", back_populates="assigned_numbers")
    order: Mapped["Order"] = relationship("Order", back_populates="assigned_numbers")

    __table_args__ = (
        Index("idx_assigned_numbers_order", "order_id"),
    )
