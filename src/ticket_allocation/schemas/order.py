"""Order schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class BuyerInfo(BaseModel):
    """Buyer contact details, all optional."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str | None = Field(default=None, max_length=150)
    phone: str | None = Field(default=None, max_length=30)
    email: EmailStr | None = None


class OrderCreate(BaseModel):
    """Schema for creating an order."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    raffle_id: UUID
    quantity: int = Field(..., gt=0)
    payment_method: Literal["gateway", "transfer"] = "gateway"
    client_tx_id: str | None = Field(
        default=None,
        max_length=100,
        validation_alias=AliasChoices("clientTxId", "clientTransactionId", "client_tx_id"),
    )
    buyer: BuyerInfo | None = None


class OrderResponse(BaseModel):
    """Schema for order response, with the numbers bound to it."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    order_id: UUID
    raffle_id: UUID
    quantity: int
    total_amount: Decimal
    payment_method: str
    client_transaction_reference: str | None = None
    status: str
    paid_at: datetime | None = None
    created_at: datetime
    numbers: list[int] = Field(default_factory=list)


class OrderCreateResponse(OrderResponse):
    """Schema for order creation; created is False for an idempotent replay."""

    created: bool = True
