from ticket_allocation.core.config import settings
from ticket_allocation.core.database import Base, async_session_maker, engine, get_db
from ticket_allocation.core.redis import close_redis, get_redis
from ticket_allocation.core.security import (
    OperatorIdentity,
    create_access_token,
    decode_access_token,
    operator_from_token,
)

__all__ = [
    "settings",
    "Base",
    "engine",
    "async_session_maker",
    "get_db",
    "get_redis",
    "close_redis",
    "create_access_token",
    "decode_access_token",
    "OperatorIdentity",
    "operator_from_token",
]
