"""Payment gateway adapter.

Turns gateway responses and webhook payloads into a single
``PaymentConfirmation`` and performs the server-to-server confirm call.
Anything that is not clearly approved is treated as not approved.
"""

import hmac
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ticket_allocation.core.config import settings
from ticket_allocation.core.exceptions import (
    GatewayUnavailableError,
    InvalidInputError,
    UnresolvedReferenceError,
)

logger = logging.getLogger(__name__)

APPROVED_STATUSES = {"approved", "approve"}
APPROVED_STATUS_CODE = 3

_NESTED_KEYS = ("data", "detail")
_REFERENCE_KEYS = (
    "clientTransactionId",
    "clientTxId",
    "clientTransactionID",
    "client_tx_ref",
    "tx",
    "reference",
)
_PROVIDER_ID_KEYS = ("id", "transactionId", "payphoneId", "provider_tx_id")


@dataclass
class PaymentConfirmation:
    """Gateway verdict for one payment."""

    approved: bool
    client_tx_ref: str | None = None
    provider_tx_id: str | None = None
    transaction_status: str | None = None
    status_code: int | None = None


def _lookup(payload: dict[str, Any], keys: tuple[str, ...]) -> Any:
    """Return the first non-empty value for ``keys``, top level first."""
    scopes = [payload]
    for nested in _NESTED_KEYS:
        value = payload.get(nested)
        if isinstance(value, dict):
            scopes.append(value)

    for scope in scopes:
        for key in keys:
            value = scope.get(key)
            if value is not None and str(value).strip() != "":
                return value
    return None


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def parse_provider_tx_id(value: Any) -> int:
    """Gateway transaction ids are numeric; anything else is rejected.

    Raises:
        InvalidInputError: value is not an integer
    """
    gateway_id = _as_int(value)
    if gateway_id is None:
        raise InvalidInputError(f"Invalid provider transaction id: {value}")
    return gateway_id


def normalize_confirmation(payload: Any) -> PaymentConfirmation:
    """Normalize a gateway response into a PaymentConfirmation.

    Approved iff ``transactionStatus`` (or a textual ``status``) is
    "approved"/"approve" ignoring case, or the status code is 3. Missing,
    malformed or unknown values are not approved.

    Args:
        payload: Decoded JSON body from the gateway

    Returns:
        PaymentConfirmation
    """
    if not isinstance(payload, dict):
        return PaymentConfirmation(approved=False)

    transaction_status = _lookup(payload, ("transactionStatus",))
    status = _lookup(payload, ("status",))
    status_code = _as_int(_lookup(payload, ("statusCode",)))
    if status_code is None and status is not None:
        status_code = _as_int(status)

    literal = None
    if transaction_status is not None:
        literal = str(transaction_status).strip()
    elif status is not None and _as_int(status) is None:
        literal = str(status).strip()

    approved = (
        literal is not None and literal.lower() in APPROVED_STATUSES
    ) or status_code == APPROVED_STATUS_CODE

    reference = _lookup(payload, _REFERENCE_KEYS)
    provider_id = _lookup(payload, _PROVIDER_ID_KEYS)

    return PaymentConfirmation(
        approved=approved,
        client_tx_ref=str(reference).strip() if reference is not None else None,
        provider_tx_id=str(provider_id).strip() if provider_id is not None else None,
        transaction_status=literal,
        status_code=status_code,
    )


def confirmation_from_webhook(payload: Any) -> PaymentConfirmation:
    """Normalize a webhook payload.

    Raises:
        UnresolvedReferenceError: Approved signal without a client reference
    """
    confirmation = normalize_confirmation(payload)
    if confirmation.approved and not confirmation.client_tx_ref:
        raise UnresolvedReferenceError("Approved webhook carried no client transaction reference")
    return confirmation


def verify_webhook_secret(provided: str | None, expected: str | None) -> bool:
    """Constant-time secret check. An unset expected secret rejects everything."""
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def _clean_token(token: str) -> str:
    # Tokens pasted into .env files often keep their quotes
    return token.strip().strip('"').strip()


class PaymentGatewayClient:
    """Client for the gateway's server-to-server confirm endpoint."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
    ):
        """Initialize gateway client.

        Args:
            http: Shared async HTTP client
            url: Confirm endpoint, defaults to settings.PAYMENT_GATEWAY_URL
            token: Bearer token, defaults to settings.PAYMENT_GATEWAY_TOKEN
            timeout: Seconds, defaults to settings.PAYMENT_GATEWAY_TIMEOUT
        """
        self.http = http
        self.url = url or settings.PAYMENT_GATEWAY_URL
        self.token = _clean_token(token if token is not None else settings.PAYMENT_GATEWAY_TOKEN)
        self.timeout = timeout or settings.PAYMENT_GATEWAY_TIMEOUT

    async def confirm(self, provider_tx_id: str, client_tx_ref: str) -> PaymentConfirmation:
        """Ask the gateway whether a payment is approved.

        Args:
            provider_tx_id: Gateway transaction id (numeric)
            client_tx_ref: Client transaction reference of the order

        Returns:
            PaymentConfirmation (4xx answers are returned as not approved)

        Raises:
            InvalidInputError: provider_tx_id is not numeric
            GatewayUnavailableError: Timeout, transport error, 5xx, non-JSON
                body or no token configured
        """
        gateway_id = parse_provider_tx_id(provider_tx_id)

        if not self.token:
            logger.error("Payment gateway token is not configured")
            raise GatewayUnavailableError("Payment gateway token is not configured")

        try:
            response = await self.http.post(
                self.url,
                json={"id": gateway_id, "clientTxId": client_tx_ref},
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Accept": "application/json",
                },
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.error(f"Gateway confirm timed out for {client_tx_ref}: {e!r}")
            raise GatewayUnavailableError("Payment gateway timed out")
        except httpx.HTTPError as e:
            logger.error(f"Gateway confirm failed for {client_tx_ref}: {e!r}")
            raise GatewayUnavailableError("Payment gateway unreachable")

        if response.status_code >= 500:
            logger.error(
                f"Gateway confirm returned {response.status_code} for {client_tx_ref}: "
                f"{response.text[:400]}"
            )
            raise GatewayUnavailableError(f"Payment gateway returned {response.status_code}")

        if response.status_code >= 400:
            logger.warning(
                f"Gateway confirm rejected {client_tx_ref} with {response.status_code}: "
                f"{response.text[:400]}"
            )
            return PaymentConfirmation(
                approved=False,
                client_tx_ref=client_tx_ref,
                provider_tx_id=str(gateway_id),
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError:
            logger.error(f"Gateway confirm returned a non-JSON body for {client_tx_ref}")
            raise GatewayUnavailableError("Payment gateway returned a non-JSON body")

        confirmation = normalize_confirmation(body)
        if confirmation.client_tx_ref is None:
            confirmation.client_tx_ref = client_tx_ref
        if confirmation.provider_tx_id is None:
            confirmation.provider_tx_id = str(gateway_id)
        return confirmation
