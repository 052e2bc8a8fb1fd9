"""Raffle API endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from ticket_allocation.api.deps import CurrentOperator, DbSession, RedisServiceDep
from ticket_allocation.core.exceptions import NotFoundError, UnauthorizedError
from ticket_allocation.schemas.raffle import RaffleCreate, RaffleProgress, RaffleResponse
from ticket_allocation.services.raffle_service import RaffleService

router = APIRouter()


@router.post("", response_model=RaffleResponse, status_code=status.HTTP_201_CREATED)
async def create_raffle(data: RaffleCreate, db: DbSession, operator: CurrentOperator):
    """Create a raffle (admin only)."""
    if operator is None or not operator.is_admin:
        raise UnauthorizedError("Admin privileges required")

    service = RaffleService(db)
    raffle = await service.create(data)
    return RaffleResponse.model_validate(raffle)


@router.get("/active", response_model=RaffleResponse)
async def get_active_raffle(db: DbSession):
    """Get the raffle currently on sale."""
    service = RaffleService(db)
    raffle = await service.get_active()
    if raffle is None:
        raise NotFoundError("No active raffle")
    return RaffleResponse.model_validate(raffle)


@router.get("/{raffle_id}", response_model=RaffleResponse)
async def get_raffle(raffle_id: UUID, db: DbSession):
    """Get raffle by ID."""
    service = RaffleService(db)
    raffle = await service.get_by_id(raffle_id)
    if raffle is None:
        raise NotFoundError(f"Raffle {raffle_id} not found")
    return RaffleResponse.model_validate(raffle)


@router.get("/{raffle_id}/progress", response_model=RaffleProgress)
async def get_raffle_progress(
    raffle_id: UUID,
    db: DbSession,
    redis_service: RedisServiceDep,
):
    """Get sold/remaining counts (cached for a few seconds)."""
    service = RaffleService(db, redis_service)
    return await service.get_progress(raffle_id)
