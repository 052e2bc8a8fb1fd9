"""Payment confirmation API endpoints (gateway webhook and buyer confirm)."""

import logging
from typing import Annotated

from fastapi import APIRouter, Header, Request, status
from fastapi.responses import JSONResponse

from ticket_allocation.api.deps import DispatcherDep
from ticket_allocation.core.exceptions import (
    GatewayUnavailableError,
    InvalidStateTransitionError,
    NoStockError,
    NotFoundError,
    UnresolvedReferenceError,
)
from ticket_allocation.schemas.payment import DispatchResponse, PaymentConfirmRequest
from ticket_allocation.services.allocation_dispatcher import DispatchResult, DispatchStatus

logger = logging.getLogger(__name__)

router = APIRouter()


def to_dispatch_response(result: DispatchResult) -> DispatchResponse:
    return DispatchResponse(
        ok=result.ok,
        status=result.status.value,
        order_id=result.order_id,
        numbers=result.numbers,
        already_assigned=result.already_assigned,
    )


@router.post("/webhook", response_model=DispatchResponse)
async def payment_webhook(
    request: Request,
    dispatcher: DispatcherDep,
    x_webhook_secret: Annotated[str | None, Header(alias="X-Webhook-Secret")] = None,
):
    """Gateway server-to-server notification.

    Authenticated events that cannot be acted on are acknowledged with 200
    so the gateway stops retrying them.
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    try:
        result = await dispatcher.handle_webhook(payload, x_webhook_secret)
    except (
        NotFoundError,
        UnresolvedReferenceError,
        NoStockError,
        InvalidStateTransitionError,
    ) as e:
        logger.warning(f"Webhook acknowledged without action: {e.code} {e.message}")
        return DispatchResponse(ok=True, status=DispatchStatus.IGNORED.value)

    return to_dispatch_response(result)


@router.post("/confirm", response_model=DispatchResponse)
async def confirm_payment(data: PaymentConfirmRequest, dispatcher: DispatcherDep):
    """Buyer confirmation after the gateway redirect.

    Returns:
        Order numbers on approval; 202 PROCESSING when the outcome is not
        known yet (gateway down, or the order needs an operator)
    """
    try:
        result = await dispatcher.handle_client_confirmation(
            data.client_tx_id, data.provider_tx_id
        )
    except (NoStockError, GatewayUnavailableError) as e:
        logger.warning(f"Confirmation for {data.client_tx_id} pending: {e.code} {e.message}")
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content={"ok": False, "status": "PROCESSING"},
        )

    return to_dispatch_response(result)
