"""Unit tests for window store adapters."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from grammar_gateway.adapters.rate_limit.in_memory import InMemoryWindowStore
from grammar_gateway.adapters.rate_limit.redis_store import RedisWindowStore
from grammar_gateway.core.errors import WindowStoreError


class TestInMemoryWindowStore:
    """Test the process-local store used in tests and single-instance setups."""

    @pytest.mark.asyncio
    async def test_counts_recorded_timestamps(self) -> None:
        store = InMemoryWindowStore()

        first = await store.record_and_count("k", now_ms=1000, window_ms=10_000, cap=10)
        second = await store.record_and_count("k", now_ms=2000, window_ms=10_000, cap=10)

        assert first.count == 1
        assert second.count == 2
        assert second.oldest_ms == 1000

    @pytest.mark.asyncio
    async def test_expires_entries_outside_window(self) -> None:
        store = InMemoryWindowStore()

        await store.record_and_count("k", now_ms=1000, window_ms=10_000, cap=10)
        snapshot = await store.record_and_count("k", now_ms=11_000, window_ms=10_000, cap=10)

        assert snapshot.count == 1
        assert snapshot.oldest_ms == 11_000

    @pytest.mark.asyncio
    async def test_keeps_entries_inside_window(self) -> None:
        store = InMemoryWindowStore()

        await store.record_and_count("k", now_ms=1000, window_ms=10_000, cap=10)
        snapshot = await store.record_and_count("k", now_ms=10_999, window_ms=10_000, cap=10)

        assert snapshot.count == 2

    @pytest.mark.asyncio
    async def test_trims_to_cap_keeping_newest(self) -> None:
        store = InMemoryWindowStore()

        for now in range(1000, 1010):
            snapshot = await store.record_and_count("k", now_ms=now, window_ms=60_000, cap=3)

        assert snapshot.count == 3
        assert snapshot.oldest_ms == 1007
        assert store.size("k") == 3

    @pytest.mark.asyncio
    async def test_isolated_by_key(self) -> None:
        store = InMemoryWindowStore()

        await store.record_and_count("a", now_ms=1000, window_ms=10_000, cap=10)
        await store.record_and_count("a", now_ms=1001, window_ms=10_000, cap=10)
        snapshot = await store.record_and_count("b", now_ms=1002, window_ms=10_000, cap=10)

        assert snapshot.count == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_all_counted(self) -> None:
        store = InMemoryWindowStore()

        snapshots = await asyncio.gather(
            *(store.record_and_count("k", now_ms=1000, window_ms=10_000, cap=100) for _ in range(50))
        )

        assert sorted(s.count for s in snapshots) == list(range(1, 51))

    @pytest.mark.asyncio
    async def test_idle_keys_are_evicted_after_their_window(self) -> None:
        store = InMemoryWindowStore()

        for i in range(1000):
            await store.record_and_count(f"analyze:ip:10.0.{i // 256}.{i % 256}", now_ms=0, window_ms=1000, cap=5)
        await store.record_and_count("analyze:ip:1.2.3.4", now_ms=10_000, window_ms=1000, cap=5)

        assert store.key_count() == 1
        assert store.size("analyze:ip:1.2.3.4") == 1

    @pytest.mark.asyncio
    async def test_keys_inside_their_window_survive_sweep(self) -> None:
        store = InMemoryWindowStore(sweep_interval_ms=0)

        await store.record_and_count("long", now_ms=0, window_ms=60_000, cap=5)
        await store.record_and_count("short", now_ms=0, window_ms=1000, cap=5)
        await store.record_and_count("other", now_ms=5000, window_ms=1000, cap=5)

        assert store.size("long") == 1
        assert store.size("short") == 0
        assert store.key_count() == 2

    @pytest.mark.asyncio
    async def test_sweep_is_rate_limited_by_interval(self) -> None:
        store = InMemoryWindowStore(sweep_interval_ms=60_000)

        await store.record_and_count("a", now_ms=0, window_ms=1000, cap=5)
        await store.record_and_count("b", now_ms=5000, window_ms=1000, cap=5)

        # "a" expired but no sweep is due yet
        assert store.key_count() == 2

        await store.record_and_count("c", now_ms=60_000, window_ms=1000, cap=5)
        assert store.key_count() == 1

    @pytest.mark.asyncio
    async def test_invalid_args(self) -> None:
        store = InMemoryWindowStore()

        with pytest.raises(ValueError):
            await store.record_and_count("", now_ms=1, window_ms=1, cap=1)

        with pytest.raises(ValueError):
            await store.record_and_count("k", now_ms=1, window_ms=1, cap=0)


def _redis_client_with(pipe: MagicMock) -> MagicMock:
    client = MagicMock()
    client.pipeline.return_value = pipe
    return client


def _pipeline(results=None, error: Exception | None = None) -> MagicMock:
    pipe = MagicMock()
    pipe.__aenter__ = AsyncMock(return_value=pipe)
    pipe.__aexit__ = AsyncMock(return_value=False)
    if error is not None:
        pipe.execute = AsyncMock(side_effect=error)
    else:
        pipe.execute = AsyncMock(return_value=results)
    return pipe


class TestRedisWindowStore:
    """Test the shared Redis store against a mocked client."""

    @pytest.mark.asyncio
    async def test_runs_all_commands_in_one_transaction(self) -> None:
        pipe = _pipeline(results=[0, 1, 0, 3, [("m", 4000.0)], True])
        client = _redis_client_with(pipe)
        store = RedisWindowStore("redis://unused", key_prefix="rl:", client=client)

        snapshot = await store.record_and_count(
            "analyze:ip:1.2.3.4", now_ms=10_000, window_ms=6000, cap=31
        )

        client.pipeline.assert_called_once_with(transaction=True)
        pipe.zremrangebyscore.assert_called_once_with("rl:analyze:ip:1.2.3.4", "-inf", 4000)
        pipe.zadd.assert_called_once()
        key, mapping = pipe.zadd.call_args.args
        assert key == "rl:analyze:ip:1.2.3.4"
        assert list(mapping.values()) == [10_000]
        pipe.zremrangebyrank.assert_called_once_with("rl:analyze:ip:1.2.3.4", 0, -32)
        pipe.zcard.assert_called_once_with("rl:analyze:ip:1.2.3.4")
        pipe.zrange.assert_called_once_with("rl:analyze:ip:1.2.3.4", 0, 0, withscores=True)
        pipe.pexpire.assert_called_once_with("rl:analyze:ip:1.2.3.4", 6000)

        assert snapshot.count == 3
        assert snapshot.oldest_ms == 4000

    @pytest.mark.asyncio
    async def test_members_are_unique_within_same_millisecond(self) -> None:
        pipe = _pipeline(results=[0, 1, 0, 1, [("m", 10_000.0)], True])
        store = RedisWindowStore("redis://unused", client=_redis_client_with(pipe))

        await store.record_and_count("k", now_ms=10_000, window_ms=1000, cap=5)
        await store.record_and_count("k", now_ms=10_000, window_ms=1000, cap=5)

        first_member = next(iter(pipe.zadd.call_args_list[0].args[1]))
        second_member = next(iter(pipe.zadd.call_args_list[1].args[1]))
        assert first_member != second_member

    @pytest.mark.asyncio
    async def test_empty_range_falls_back_to_now(self) -> None:
        pipe = _pipeline(results=[0, 1, 0, 1, [], True])
        store = RedisWindowStore("redis://unused", client=_redis_client_with(pipe))

        snapshot = await store.record_and_count("k", now_ms=12_345, window_ms=1000, cap=5)

        assert snapshot.oldest_ms == 12_345

    @pytest.mark.asyncio
    async def test_redis_errors_become_window_store_error(self) -> None:
        pipe = _pipeline(error=RedisConnectionError("connection refused"))
        store = RedisWindowStore("redis://unused", client=_redis_client_with(pipe))

        with pytest.raises(WindowStoreError, match="unavailable"):
            await store.record_and_count("k", now_ms=1, window_ms=1000, cap=5)

    @pytest.mark.asyncio
    async def test_connect_tolerates_unreachable_store(self) -> None:
        client = MagicMock()
        client.ping = AsyncMock(side_effect=RedisConnectionError("down"))
        store = RedisWindowStore("redis://unused", client=client)

        # Must not raise: requests are governed by the failure policy instead
        await store.connect()

        client.ping.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_releases_client(self) -> None:
        client = MagicMock()
        client.aclose = AsyncMock()
        store = RedisWindowStore("redis://unused", client=client)

        await store.close()

        client.aclose.assert_awaited_once()
