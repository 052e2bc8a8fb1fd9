"""Payment confirmation schemas."""

from typing import Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class PaymentConfirmRequest(BaseModel):
    """Buyer confirmation after returning from the gateway."""

    client_tx_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "clientTxId", "clientTransactionId", "client_tx_id", "client_tx_ref"
        ),
    )
    provider_tx_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("providerTxId", "payphoneId", "id", "provider_tx_id"),
    )

    @field_validator("client_tx_id", "provider_tx_id", mode="before")
    @classmethod
    def coerce_to_str(cls, v):
        """Gateways send ids as numbers or strings."""
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class DispatchResponse(BaseModel):
    """Result of a payment confirmation trigger."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ok: bool
    status: str
    order_id: UUID | None = None
    numbers: list[int] = Field(default_factory=list)
    already_assigned: bool = False


class AdminRevertRequest(BaseModel):
    """Operator revert/cancel request."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    target_status: Literal["pending", "cancelled"]


class RevertResponse(BaseModel):
    """Result of an operator revert/cancel."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ok: bool = True
    order_id: UUID
    status: str
    released: list[int] = Field(default_factory=list)
