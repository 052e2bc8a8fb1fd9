"""Order model for raffle number purchases."""

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ticket_allocation.core.database import Base
from ticket_allocation.models.base import TimestampMixin

if TYPE_CHECKING:
    from ticket_allocation.models.assigned_number import AssignedNumber
    from ticket_allocation.models.raffle import Raffle


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    PAID = "paid"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    GATEWAY = "gateway"
    TRANSFER = "transfer"


class Order(Base, TimestampMixin):
    """Order model representing a purchase of ``quantity`` raffle numbers."""

    __tablename__ = "orders"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    raffle_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("raffles.raffle_id"),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    payment_method: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    client_transaction_reference: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        unique=True,
    )
    provider_transaction_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )
    buyer_name: Mapped[str | None] = mapped_column(
        String(150),
        nullable=True,
    )
    buyer_phone: Mapped[str | None] = mapped_column(
        String(30),
        nullable=True,
    )
    buyer_email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=OrderStatus.PENDING.value,
    )
    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )

    # Relationships
    raffle: Mapped["Raffle"] = relationship("Raffle", back_populates="orders")
    assigned_numbers: Mapped[List["AssignedNumber"]] = relationship(
        "AssignedNumber",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_order_quantity_positive"),
        CheckConstraint(
            "status IN ('pending', 'in_progress', 'paid', 'cancelled')",
            name="chk_order_status",
        ),
        Index("idx_orders_raffle_created", "raffle_id", "created_at"),
        Index("idx_orders_status", "status"),
    )
