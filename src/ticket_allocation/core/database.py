"""Async engine and session factory.

Sessions are created with ``expire_on_commit=False``: services keep using
the ORM objects they committed (to build responses), and every read that
must see other transactions' writes goes through ``SELECT ... FOR UPDATE``
with ``populate_existing``.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from ticket_allocation.core.config import settings

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_timeout=30,
    pool_recycle=180,
    pool_pre_ping=True,
    connect_args={"command_timeout": settings.DB_COMMAND_TIMEOUT},
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session per request; uncommitted work is rolled back on close."""
    async with async_session_maker() as session:
        yield session
