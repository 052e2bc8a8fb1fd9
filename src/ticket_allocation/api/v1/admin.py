"""Operator API endpoints for manual payment handling."""

from uuid import UUID

from fastapi import APIRouter

from ticket_allocation.api.deps import CurrentOperator, DispatcherDep
from ticket_allocation.api.v1.payments import to_dispatch_response
from ticket_allocation.schemas.payment import (
    AdminRevertRequest,
    DispatchResponse,
    RevertResponse,
)

router = APIRouter()


@router.post("/orders/{order_id}/mark-paid", response_model=DispatchResponse)
async def mark_order_paid(
    order_id: UUID,
    dispatcher: DispatcherDep,
    operator: CurrentOperator,
):
    """Mark an order paid and allocate its numbers (admin only).

    Used for bank transfers and when the gateway never confirms. Errors are
    returned with their precise code.
    """
    result = await dispatcher.handle_admin_override(order_id, operator)
    return to_dispatch_response(result)


@router.post("/orders/{order_id}/revert", response_model=RevertResponse)
async def revert_order(
    order_id: UUID,
    data: AdminRevertRequest,
    dispatcher: DispatcherDep,
    operator: CurrentOperator,
):
    """Revert an order to pending or cancel it, releasing its numbers (admin only)."""
    result = await dispatcher.handle_admin_revert(order_id, data.target_status, operator)
    return RevertResponse(
        order_id=result.order_id,
        status=result.status,
        released=result.released,
    )
