"""API dependencies for operator identity, database and service access."""

from typing import Annotated

import httpx
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_allocation.core.database import get_db
from ticket_allocation.core.redis import get_redis
from ticket_allocation.core.security import OperatorIdentity, operator_from_token
from ticket_allocation.services.allocation_dispatcher import AllocationDispatcher
from ticket_allocation.services.payment_gateway import PaymentGatewayClient
from ticket_allocation.services.redis_service import RedisService

# auto_error=False: a missing token yields None and the service decides
security = HTTPBearer(auto_error=False)


async def get_current_operator(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> OperatorIdentity | None:
    """Get the operator identity from the bearer token, if any.

    Args:
        credentials: HTTP Bearer token

    Returns:
        OperatorIdentity, or None when the token is missing or invalid
    """
    if credentials is None:
        return None
    return operator_from_token(credentials.credentials)


async def get_redis_service() -> RedisService:
    """Get RedisService instance with shared Redis connection pool."""
    redis = await get_redis()
    return RedisService(redis)


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Get the shared outbound HTTP client created in the app lifespan."""
    return request.app.state.http


def get_gateway_client(
    http: Annotated[httpx.AsyncClient, Depends(get_http_client)],
) -> PaymentGatewayClient:
    """Get PaymentGatewayClient bound to the shared HTTP client."""
    return PaymentGatewayClient(http)


async def get_dispatcher(
    db: Annotated[AsyncSession, Depends(get_db)],
    redis_service: Annotated[RedisService, Depends(get_redis_service)],
    gateway: Annotated[PaymentGatewayClient, Depends(get_gateway_client)],
) -> AllocationDispatcher:
    """Get AllocationDispatcher instance with injected dependencies."""
    return AllocationDispatcher(db, redis_service, gateway)


# Type aliases for cleaner dependency injection
CurrentOperator = Annotated[OperatorIdentity | None, Depends(get_current_operator)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
RedisServiceDep = Annotated[RedisService, Depends(get_redis_service)]
DispatcherDep = Annotated[AllocationDispatcher, Depends(get_dispatcher)]
