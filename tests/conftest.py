"""Pytest configuration and fixtures for testing."""

import asyncio
from collections import defaultdict
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from ticket_allocation.core.exceptions import InvalidStateTransitionError, NotFoundError
from ticket_allocation.core.security import OperatorIdentity
from ticket_allocation.services.allocation_dispatcher import AllocationDispatcher
from ticket_allocation.services.allocation_engine import AllocationEngine
from ticket_allocation.services.number_pool import pick_free_numbers


# Mock Redis client fixture
@pytest.fixture
def mock_redis() -> AsyncMock:
    """Create a mock Redis client."""
    redis = AsyncMock()

    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.register_script = MagicMock(return_value=AsyncMock(return_value=-1))

    return redis


# Mock SQLAlchemy session fixture
@pytest.fixture
def mock_db() -> AsyncMock:
    """Create a mock AsyncSession."""
    db = AsyncMock()
    db.add = MagicMock()
    db.add_all = MagicMock()
    return db


def make_result(value=None, values=None) -> MagicMock:
    """Build a mock Result for session.execute()."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalar_one.return_value = value
    result.scalars.return_value.all.return_value = values or []
    return result


@pytest.fixture
def mock_raffle() -> SimpleNamespace:
    """Create a raffle-like object."""
    return SimpleNamespace(
        raffle_id=uuid4(),
        title="Test Raffle",
        first_number=1,
        total_numbers=10,
        price_per_number=Decimal("2.50"),
        status="active",
    )


@pytest.fixture
def mock_order(mock_raffle) -> SimpleNamespace:
    """Create an order-like object in progress."""
    return SimpleNamespace(
        order_id=uuid4(),
        raffle_id=mock_raffle.raffle_id,
        quantity=3,
        total_amount=Decimal("7.50"),
        payment_method="gateway",
        client_transaction_reference="tx-001",
        provider_transaction_id=None,
        status="in_progress",
        paid_at=None,
    )


@pytest.fixture
def admin_operator() -> OperatorIdentity:
    return OperatorIdentity(operator_id="admin-1", is_admin=True)


# =============================================================================
# In-memory store
# Emulates the order and raffle row locks and the (raffle_id, number) key so
# the allocation engine and dispatcher can be exercised without PostgreSQL.
# =============================================================================


class InMemoryStore:
    """State shared by every fake session (the "database")."""

    def __init__(self, total_numbers: int = 10, first_number: int = 1):
        self.raffle_id = uuid4()
        self.first_number = first_number
        self.total_numbers = total_numbers
        self.orders: dict[UUID, SimpleNamespace] = {}
        self.assigned: dict[int, UUID] = {}
        self.order_locks: defaultdict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)
        self.raffle_lock = asyncio.Lock()
        self.draw_calls = 0
        self.cache_deltas: list[int] = []

    def add_order(
        self, quantity: int, status: str = "paid", client_tx_ref: str | None = None
    ) -> SimpleNamespace:
        order = SimpleNamespace(
            order_id=uuid4(),
            raffle_id=self.raffle_id,
            quantity=quantity,
            status=status,
            client_transaction_reference=client_tx_ref,
            provider_transaction_id=None,
            paid_at=None,
        )
        self.orders[order.order_id] = order
        return order

    def numbers_of(self, order_id: UUID) -> list[int]:
        return sorted(n for n, owner in self.assigned.items() if owner == order_id)

    @property
    def remaining(self) -> int:
        return self.total_numbers - len(self.assigned)


class FakeSession:
    """One transaction: holds row locks and uncommitted binds."""

    def __init__(self, store: InMemoryStore):
        self.store = store
        self.held: list[asyncio.Lock] = []
        self.pending: dict[int, UUID] = {}
        self.commits = 0
        self.rollbacks = 0

    async def acquire(self, lock: asyncio.Lock) -> None:
        await lock.acquire()
        self.held.append(lock)

    def _release(self) -> None:
        for lock in self.held:
            lock.release()
        self.held.clear()

    async def commit(self) -> None:
        self.store.assigned.update(self.pending)
        self.pending.clear()
        self.commits += 1
        self._release()

    async def rollback(self) -> None:
        self.pending.clear()
        self.rollbacks += 1
        self._release()


class FakeNumberPool:
    """NumberPoolStore over the in-memory store."""

    def __init__(self, session: FakeSession, mode: str = "random", fail_binds: int = 0):
        self.session = session
        self.store = session.store
        self.mode = mode
        self.fail_binds = fail_binds

    async def get_order_numbers(self, order_id: UUID) -> list[int]:
        return self.store.numbers_of(order_id)

    async def count_assigned(self, raffle_id: UUID) -> int:
        return len(self.store.assigned)

    async def draw_and_reserve(self, raffle_id: UUID, count: int, mode: str | None = None) -> list[int]:
        await self.session.acquire(self.store.raffle_lock)
        self.store.draw_calls += 1
        # Give concurrent callers a chance to contend for the locks
        await asyncio.sleep(0)
        return pick_free_numbers(
            self.store.first_number,
            self.store.total_numbers,
            self.store.assigned.keys(),
            count,
            mode=mode or self.mode,
        )

    async def bind(self, raffle_id: UUID, order_id: UUID, numbers: list[int]) -> None:
        if self.fail_binds > 0:
            self.fail_binds -= 1
            raise IntegrityError("INSERT INTO assigned_numbers", {}, Exception("duplicate key"))
        for n in numbers:
            if n in self.store.assigned or n in self.session.pending:
                raise IntegrityError("INSERT INTO assigned_numbers", {}, Exception("duplicate key"))
        self.session.pending.update({n: order_id for n in numbers})

    async def release_order(self, order_id: UUID) -> list[int]:
        released = self.store.numbers_of(order_id)
        for n in released:
            del self.store.assigned[n]
        return released

    async def sync_sold_cache(self, raffle_id: UUID, delta: int) -> None:
        if delta:
            self.store.cache_deltas.append(delta)


class FakeOrderService:
    """OrderService over the in-memory store."""

    def __init__(self, session: FakeSession, pool: FakeNumberPool):
        self.session = session
        self.store = session.store
        self.pool = pool

    async def get(self, order_id: UUID):
        return self.store.orders.get(order_id)

    async def get_by_reference(self, client_tx_ref: str):
        for order in self.store.orders.values():
            if order.client_transaction_reference == client_tx_ref:
                return order
        return None

    async def get_for_update(self, order_id: UUID):
        order = self.store.orders.get(order_id)
        if order is None:
            return None
        await self.session.acquire(self.store.order_locks[order_id])
        return order

    async def get_numbers(self, order_id: UUID) -> list[int]:
        return self.store.numbers_of(order_id)

    async def mark_paid(self, order_id: UUID):
        order = await self.get_for_update(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        if order.status == "cancelled":
            await self.session.rollback()
            raise InvalidStateTransitionError("cancelled")
        transitioned = order.status != "paid"
        order.status = "paid"
        await self.session.commit()
        return order, transitioned

    async def attach_provider_transaction(self, order_id: UUID, provider_tx_id: str):
        order = self.store.orders[order_id]
        if order.provider_transaction_id is None:
            order.provider_transaction_id = provider_tx_id
        return order

    async def _release(self, order_id: UUID, target: str, allowed: set[str]):
        order = await self.get_for_update(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        if order.status not in allowed:
            await self.session.rollback()
            raise InvalidStateTransitionError(f"{order.status} -> {target}")
        released = await self.pool.release_order(order_id)
        order.status = target
        await self.session.commit()
        return order, released

    async def revert_to_pending(self, order_id: UUID):
        return await self._release(order_id, "pending", {"paid", "pending"})

    async def cancel(self, order_id: UUID):
        return await self._release(order_id, "cancelled", {"paid", "pending", "in_progress"})


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore(total_numbers=10)


@pytest.fixture
def make_engine():
    """Factory: an AllocationEngine with its own fake session over a store."""

    def _make(store: InMemoryStore, fail_binds: int = 0, max_attempts: int = 3):
        session = FakeSession(store)
        engine = AllocationEngine(session, max_attempts=max_attempts)
        engine.pool = FakeNumberPool(session, fail_binds=fail_binds)
        engine.orders = FakeOrderService(session, engine.pool)
        return engine

    return _make


@pytest.fixture
def make_dispatcher():
    """Factory: an AllocationDispatcher wired to the in-memory store."""

    def _make(store: InMemoryStore, gateway=None, webhook_secret: str = "s3cret"):
        session = FakeSession(store)
        dispatcher = AllocationDispatcher(
            session, gateway=gateway, webhook_secret=webhook_secret
        )
        pool = FakeNumberPool(session)
        orders = FakeOrderService(session, pool)
        dispatcher.engine.pool = pool
        dispatcher.engine.orders = orders
        dispatcher.orders = orders
        return dispatcher

    return _make


@pytest.fixture
def make_store():
    """Factory: a fresh in-memory store with a given number space."""
    return InMemoryStore
