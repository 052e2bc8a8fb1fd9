"""Raffle schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RaffleCreate(BaseModel):
    """Schema for creating a raffle."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = Field(..., min_length=1, max_length=255)
    total_numbers: int = Field(..., gt=0, description="Size of the number space")
    first_number: int = Field(default=1, ge=0)
    price_per_number: Decimal = Field(..., gt=0, decimal_places=2)
    status: Literal["active", "paused", "finished"] = "active"


class RaffleResponse(BaseModel):
    """Schema for raffle response."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    raffle_id: UUID
    title: str
    total_numbers: int
    first_number: int
    last_number: int
    price_per_number: Decimal
    status: str
    created_at: datetime


class RaffleProgress(BaseModel):
    """Sold/remaining snapshot, eventually consistent."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    raffle_id: UUID
    total: int
    sold: int
    remaining: int
    percent_sold: float
