"""Tests for number drawing and the number pool store."""

import random
from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from ticket_allocation.core.exceptions import InvalidInputError, NoStockError, NotFoundError
from ticket_allocation.services.number_pool import NumberPoolStore, pick_free_numbers
from ticket_allocation.services.redis_service import RedisService

from conftest import make_result


class TestPickFreeNumbers:
    """Test the pure drawing helper."""

    def test_random_draw_is_distinct_and_in_domain(self):
        numbers = pick_free_numbers(1, 10, set(), 3, rng=random.Random(7))

        assert len(numbers) == 3
        assert len(set(numbers)) == 3
        assert all(1 <= n <= 10 for n in numbers)
        assert numbers == sorted(numbers)

    def test_never_returns_taken_numbers(self):
        taken = {1, 2, 3, 5, 8}
        for seed in range(50):
            numbers = pick_free_numbers(1, 10, taken, 5, rng=random.Random(seed))
            assert set(numbers) == {4, 6, 7, 9, 10}

    def test_sparse_pool_uses_rejection_sampling(self):
        """Large mostly-free pool: still distinct and free."""
        taken = set(range(1, 100))
        numbers = pick_free_numbers(1, 100_000, taken, 50, rng=random.Random(1))

        assert len(set(numbers)) == 50
        assert taken.isdisjoint(numbers)

    def test_sequential_mode_takes_lowest_free(self):
        numbers = pick_free_numbers(1, 10, {1, 2, 4}, 3, mode="sequential")

        assert numbers == [3, 5, 6]

    def test_respects_first_number(self):
        numbers = pick_free_numbers(100, 5, {100, 101}, 3, mode="sequential")

        assert numbers == [102, 103, 104]

    def test_ignores_taken_values_outside_domain(self):
        numbers = pick_free_numbers(1, 3, {0, 4, 99}, 3)

        assert numbers == [1, 2, 3]

    def test_exact_remaining_succeeds(self):
        numbers = pick_free_numbers(1, 5, {1, 2}, 3)

        assert numbers == [3, 4, 5]

    def test_no_stock(self):
        with pytest.raises(NoStockError):
            pick_free_numbers(1, 5, {1, 2, 3, 4, 5}, 1)

    def test_request_larger_than_remaining(self):
        with pytest.raises(NoStockError):
            pick_free_numbers(1, 5, {1, 2, 3}, 3)

    @pytest.mark.parametrize("count", [0, -1])
    def test_non_positive_count(self, count):
        with pytest.raises(InvalidInputError):
            pick_free_numbers(1, 5, set(), count)

    def test_unknown_mode(self):
        with pytest.raises(InvalidInputError):
            pick_free_numbers(1, 5, set(), 1, mode="lottery")


class TestNumberPoolStore:
    """Test store operations against a mocked session."""

    @pytest.mark.asyncio
    async def test_draw_and_reserve_unknown_raffle(self, mock_db):
        mock_db.execute = AsyncMock(return_value=make_result(None))
        store = NumberPoolStore(mock_db)

        with pytest.raises(NotFoundError):
            await store.draw_and_reserve(uuid4(), 1)

    @pytest.mark.asyncio
    async def test_draw_and_reserve_skips_taken(self, mock_db, mock_raffle):
        mock_raffle.total_numbers = 5
        mock_db.execute = AsyncMock(
            side_effect=[make_result(mock_raffle), make_result(values=[1, 3, 5])]
        )
        store = NumberPoolStore(mock_db)

        numbers = await store.draw_and_reserve(mock_raffle.raffle_id, 2)

        assert numbers == [2, 4]
        # Raffle row is locked before the taken numbers are read
        lock_stmt = mock_db.execute.call_args_list[0].args[0]
        assert lock_stmt._for_update_arg is not None

    @pytest.mark.asyncio
    async def test_draw_and_reserve_no_stock(self, mock_db, mock_raffle):
        mock_raffle.total_numbers = 2
        mock_db.execute = AsyncMock(
            side_effect=[make_result(mock_raffle), make_result(values=[1, 2])]
        )
        store = NumberPoolStore(mock_db)

        with pytest.raises(NoStockError):
            await store.draw_and_reserve(mock_raffle.raffle_id, 1)

    @pytest.mark.asyncio
    async def test_bind_adds_rows_and_flushes(self, mock_db):
        store = NumberPoolStore(mock_db)
        raffle_id, order_id = uuid4(), uuid4()

        await store.bind(raffle_id, order_id, [4, 9])

        rows = mock_db.add_all.call_args.args[0]
        assert [(r.raffle_id, r.number, r.order_id) for r in rows] == [
            (raffle_id, 4, order_id),
            (raffle_id, 9, order_id),
        ]
        mock_db.flush.assert_awaited_once()
        mock_db.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_release_order_returns_sorted(self, mock_db):
        mock_db.execute = AsyncMock(return_value=make_result(values=[7, 2, 5]))
        store = NumberPoolStore(mock_db)

        released = await store.release_order(uuid4())

        assert released == [2, 5, 7]

    @pytest.mark.asyncio
    async def test_get_order_numbers(self, mock_db):
        mock_db.execute = AsyncMock(return_value=make_result(values=[1, 2, 3]))
        store = NumberPoolStore(mock_db)

        assert await store.get_order_numbers(uuid4()) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_count_assigned(self, mock_db):
        mock_db.execute = AsyncMock(return_value=make_result(4))
        store = NumberPoolStore(mock_db)

        assert await store.count_assigned(uuid4()) == 4

    @pytest.mark.asyncio
    async def test_sync_sold_cache_adjusts_counter(self, mock_db, mock_redis):
        script = AsyncMock(return_value=12)
        mock_redis.register_script.return_value = script
        store = NumberPoolStore(mock_db, RedisService(mock_redis))
        raffle_id = uuid4()

        await store.sync_sold_cache(raffle_id, 3)

        script.assert_awaited_once_with(keys=[f"sold:{raffle_id}"], args=[3])

    @pytest.mark.asyncio
    async def test_sync_sold_cache_ignores_redis_errors(self, mock_db, mock_redis):
        mock_redis.register_script.return_value = AsyncMock(
            side_effect=RedisConnectionError("down")
        )
        store = NumberPoolStore(mock_db, RedisService(mock_redis))

        await store.sync_sold_cache(uuid4(), -2)

    @pytest.mark.asyncio
    async def test_sync_sold_cache_without_redis(self, mock_db):
        store = NumberPoolStore(mock_db)

        await store.sync_sold_cache(uuid4(), 5)


class TestRedisSoldCount:
    """Test the sold-count cache operations."""

    @pytest.mark.asyncio
    async def test_get_sold_count_miss(self, mock_redis):
        service = RedisService(mock_redis)

        assert await service.get_sold_count("r1") is None
        mock_redis.get.assert_called_once_with("sold:r1")

    @pytest.mark.asyncio
    async def test_get_sold_count_hit(self, mock_redis):
        mock_redis.get = AsyncMock(return_value="42")
        service = RedisService(mock_redis)

        assert await service.get_sold_count("r1") == 42

    @pytest.mark.asyncio
    async def test_set_sold_count_with_ttl(self, mock_redis):
        service = RedisService(mock_redis)

        await service.set_sold_count("r1", 7, ttl=5)

        mock_redis.set.assert_called_once_with("sold:r1", 7, ex=5)

    @pytest.mark.asyncio
    async def test_adjust_missing_counter_is_not_recreated(self, mock_redis):
        mock_redis.register_script.return_value = AsyncMock(return_value=-1)
        service = RedisService(mock_redis)

        assert await service.adjust_sold_count("r1", 3) is None

    @pytest.mark.asyncio
    async def test_adjust_registers_script_once(self, mock_redis):
        mock_redis.register_script.return_value = AsyncMock(return_value=4)
        service = RedisService(mock_redis)

        await service.adjust_sold_count("r1", 1)
        await service.adjust_sold_count("r1", 1)

        mock_redis.register_script.assert_called_once()
