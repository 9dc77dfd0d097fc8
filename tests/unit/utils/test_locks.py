"""Unit tests for KeyedLock."""

import asyncio

import pytest

from labforms.utils.locks import KeyedLock


class TestKeyedLock:
    """Tests for per-key serialization."""

    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        locks = KeyedLock()
        events = []

        async def worker(name: str):
            async with locks.hold("booking-1"):
                events.append(f"{name}-start")
                await asyncio.sleep(0.01)
                events.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert events == ["a-start", "a-end", "b-start", "b-end"]

    @pytest.mark.asyncio
    async def test_different_keys_run_concurrently(self):
        locks = KeyedLock()
        inside = asyncio.Event()

        async def first():
            async with locks.hold("booking-1"):
                await asyncio.wait_for(inside.wait(), timeout=1)

        async def second():
            async with locks.hold("booking-2"):
                inside.set()

        await asyncio.gather(first(), second())

    @pytest.mark.asyncio
    async def test_registry_is_emptied_after_release(self):
        locks = KeyedLock()

        async with locks.hold("booking-1"):
            assert locks.is_held("booking-1")
            assert len(locks) == 1

        assert not locks.is_held("booking-1")
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_lock_is_released_on_error(self):
        locks = KeyedLock()

        with pytest.raises(RuntimeError):
            async with locks.hold("booking-1"):
                raise RuntimeError("boom")

        assert len(locks) == 0
