"""Timestamp columns shared by raffles and orders."""

from datetime import datetime, timezone

from sqlalchemy import DateTime, func
from sqlalchemy.orm import Mapped, mapped_column


def utcnow() -> datetime:
    # Columns are TIMESTAMP WITHOUT TIME ZONE holding UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin:
    """created_at set by the database; updated_at refreshed on every UPDATE.

    updated_at is computed in Python so a committed object never has it
    expired (async sessions cannot lazy-load it back).
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )
