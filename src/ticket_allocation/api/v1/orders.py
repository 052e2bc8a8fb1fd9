"""Order API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Response, status

from ticket_allocation.api.deps import DbSession, RedisServiceDep
from ticket_allocation.core.exceptions import NotFoundError
from ticket_allocation.models.order import Order
from ticket_allocation.schemas.order import OrderCreate, OrderCreateResponse, OrderResponse
from ticket_allocation.services.order_service import OrderService

router = APIRouter()


def _order_fields(order: Order, numbers: list[int]) -> dict:
    return {
        "order_id": order.order_id,
        "raffle_id": order.raffle_id,
        "quantity": order.quantity,
        "total_amount": order.total_amount,
        "payment_method": order.payment_method,
        "client_transaction_reference": order.client_transaction_reference,
        "status": order.status,
        "paid_at": order.paid_at,
        "created_at": order.created_at,
        "numbers": numbers,
    }


@router.post("", response_model=OrderCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    data: OrderCreate,
    response: Response,
    db: DbSession,
    redis_service: RedisServiceDep,
):
    """Create an order.

    Idempotent on clientTxId: repeating the request returns the existing
    order with 200 instead of 201.
    """
    service = OrderService(db, redis_service)
    order, created = await service.create(
        raffle_id=data.raffle_id,
        quantity=data.quantity,
        buyer=data.buyer,
        payment_method=data.payment_method,
        client_tx_ref=data.client_tx_id,
    )

    numbers = [] if created else await service.get_numbers(order.order_id)
    if not created:
        response.status_code = status.HTTP_200_OK

    return OrderCreateResponse(**_order_fields(order, numbers), created=created)


@router.get("/by-reference/{client_tx_id}", response_model=OrderResponse)
async def get_order_by_reference(client_tx_id: str, db: DbSession):
    """Get order status and numbers by client transaction reference."""
    service = OrderService(db)
    order = await service.get_by_reference(client_tx_id)
    if order is None:
        raise NotFoundError(f"No order for reference {client_tx_id}")

    numbers = await service.get_numbers(order.order_id)
    return OrderResponse(**_order_fields(order, numbers))


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: UUID, db: DbSession):
    """Get order status and numbers."""
    service = OrderService(db)
    order = await service.get(order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")

    numbers = await service.get_numbers(order.order_id)
    return OrderResponse(**_order_fields(order, numbers))
