"""Seed data script for development and testing.

Creates:
- The raffles, orders and assigned_numbers tables (if missing)
- 1 active raffle with a configurable number space
- An admin operator token for the /api/v1/admin endpoints

Environment Variables:
    RAFFLE_TOTAL_NUMBERS: Size of the number space (default: 10000)
    RAFFLE_PRICE: Price per number (default: 1.00)
    RESET_DATA: Set to "true" to clear raffles/orders/numbers before seeding (default: false)

Usage:
    # First time setup
    python -m scripts.seed_data

    # Fresh raffle for load testing
    RESET_DATA=true RAFFLE_TOTAL_NUMBERS=500 python -m scripts.seed_data
"""

import asyncio
import os
from datetime import timedelta
from decimal import Decimal

# Configuration from environment variables
RAFFLE_TOTAL_NUMBERS = int(os.getenv("RAFFLE_TOTAL_NUMBERS", "10000"))
RAFFLE_PRICE = Decimal(os.getenv("RAFFLE_PRICE", "1.00"))
RESET_DATA = os.getenv("RESET_DATA", "false").lower() == "true"

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_allocation.core.database import Base, async_session_maker, engine
from ticket_allocation.core.security import create_access_token
from ticket_allocation.models import Raffle, RaffleStatus


async def reset_raffle_data(session: AsyncSession) -> None:
    """Clear assigned numbers, orders and raffles."""
    print("Resetting raffle data...")
    await session.execute(text("DELETE FROM assigned_numbers"))
    await session.execute(text("DELETE FROM orders"))
    await session.execute(text("DELETE FROM raffles"))
    await session.commit()
    print("  Cleared assigned_numbers, orders, raffles")


async def seed_raffle(session: AsyncSession) -> Raffle:
    """Create the active raffle unless one already exists."""
    print("Seeding raffle...")

    result = await session.execute(
        select(Raffle).where(Raffle.status == RaffleStatus.ACTIVE.value)
    )
    existing = result.scalar_one_or_none()
    if existing:
        print(f"  Active raffle already exists: {existing.raffle_id}, skipping...")
        return existing

    raffle = Raffle(
        title="Sorteo de prueba",
        total_numbers=RAFFLE_TOTAL_NUMBERS,
        first_number=1,
        price_per_number=RAFFLE_PRICE,
        status=RaffleStatus.ACTIVE.value,
    )
    session.add(raffle)
    await session.commit()
    await session.refresh(raffle)

    print(f"  Created raffle {raffle.raffle_id}: {RAFFLE_TOTAL_NUMBERS} numbers at {RAFFLE_PRICE}")
    return raffle


async def main():
    print("=" * 60)
    print("Seeding database...")
    print("=" * 60)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_maker() as session:
        if RESET_DATA:
            await reset_raffle_data(session)
        raffle = await seed_raffle(session)

    token = create_access_token(
        {"sub": "seed-admin", "role": "admin"},
        expires_delta=timedelta(days=1),
    )

    print("\n" + "=" * 60)
    print("Seed complete!")
    print("=" * 60)
    print(f"Raffle ID:   {raffle.raffle_id}")
    print(f"Admin token: {token}")
    print("=" * 60)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
