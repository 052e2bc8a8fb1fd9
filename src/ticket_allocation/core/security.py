"""Operator token helpers (HS256 JWT)."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from ticket_allocation.core.config import settings


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Create a signed access token.

    Args:
        data: Claims to embed (``sub`` and ``role`` for operators)
        expires_delta: Token lifetime, defaults to ACCESS_TOKEN_EXPIRE_MINUTES

    Returns:
        Encoded JWT string
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and verify an access token.

    Returns:
        Claims dict, or None if the token is invalid or expired
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.PyJWTError:
        return None


@dataclass(frozen=True)
class OperatorIdentity:
    """Authenticated operator, passed explicitly to privileged operations."""

    operator_id: str
    is_admin: bool = False


def operator_from_token(token: str) -> OperatorIdentity | None:
    """Build an operator identity from a bearer token.

    Returns:
        OperatorIdentity, or None if the token is invalid or has no subject
    """
    payload = decode_access_token(token)
    if payload is None or not payload.get("sub"):
        return None
    return OperatorIdentity(
        operator_id=str(payload["sub"]),
        is_admin=payload.get("role") == "admin",
    )
