"""Raffle model: the number pool definition."""

import enum
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, List

from sqlalchemy import CheckConstraint, Index, Integer, Numeric, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ticket_allocation.core.database import Base
from ticket_allocation.models.base import TimestampMixin

if TYPE_CHECKING:
    from ticket_allocation.models.assigned_number import AssignedNumber
    from ticket_allocation.models.order import Order


class RaffleStatus(str, enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    FINISHED = "finished"


class Raffle(Base, TimestampMixin):
    """Raffle with a fixed number space ``[first_number, last_number]``."""

    __tablename__ = "raffles"

    raffle_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    total_numbers: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    first_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )
    price_per_number: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=RaffleStatus.ACTIVE.value,
    )

    # Relationships
    orders: Mapped[List["Order"]] = relationship("Order", back_populates="raffle")
    assigned_numbers: Mapped[List["AssignedNumber"]] = relationship(
        "AssignedNumber", back_populates="raffle"
    )

    __table_args__ = (
        CheckConstraint("total_numbers > 0", name="chk_raffle_total_positive"),
        CheckConstraint("price_per_number > 0", name="chk_raffle_price_positive"),
        CheckConstraint(
            "status IN ('active', 'paused', 'finished')", name="chk_raffle_status"
        ),
        # At most one active raffle
        Index(
            "uq_raffles_single_active",
            "status",
            unique=True,
            postgresql_where=text("status = 'active'"),
        ),
    )

    @property
    def last_number(self) -> int:
        return self.first_number + self.total_numbers - 1
