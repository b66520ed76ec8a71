"""
Unit tests for the per-investment KeyedLock.
"""

import asyncio

import pytest

from investment_engine.core.locks import KeyedLock


class TestKeyedLock:
    @pytest.mark.asyncio
    async def test_same_key_is_serialised(self):
        locks = KeyedLock("test")
        order = []

        async def worker(name):
            async with locks.hold(12):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order in (
            ["a-in", "a-out", "b-in", "b-out"],
            ["b-in", "b-out", "a-in", "a-out"],
        )

    @pytest.mark.asyncio
    async def test_different_keys_do_not_block(self):
        locks = KeyedLock("test")
        async with locks.hold(1):
            async with locks.hold(2):
                assert locks.is_locked(1)
                assert locks.is_locked(2)

    @pytest.mark.asyncio
    async def test_unused_locks_are_dropped(self):
        locks = KeyedLock("test")
        async with locks.hold(12):
            assert len(locks) == 1
        assert len(locks) == 0
        assert not locks.is_locked(12)

    @pytest.mark.asyncio
    async def test_released_on_error(self):
        locks = KeyedLock("test")
        with pytest.raises(RuntimeError):
            async with locks.hold(12):
                raise RuntimeError("boom")
        assert len(locks) == 0
