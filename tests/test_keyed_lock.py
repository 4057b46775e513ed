import asyncio

import pytest

from messenger_bot.utils.keyed_lock import KeyedLock


@pytest.mark.asyncio
async def test_same_key_is_serialized():
    locks = KeyedLock()
    order = []

    async def work(name):
        async with locks.hold("psid-1"):
            order.append(f"{name}-start")
            await asyncio.sleep(0.01)
            order.append(f"{name}-end")

    await asyncio.gather(work("a"), work("b"))

    assert order == ["a-start", "a-end", "b-start", "b-end"]


@pytest.mark.asyncio
async def test_different_keys_run_concurrently():
    locks = KeyedLock()
    inside = asyncio.Event()
    release = asyncio.Event()

    async def first():
        async with locks.hold("a"):
            inside.set()
            await release.wait()

    task = asyncio.create_task(first())
    await inside.wait()

    async with locks.hold("b"):
        assert len(locks) == 2

    release.set()
    await task


@pytest.mark.asyncio
async def test_locks_are_dropped_when_idle():
    locks = KeyedLock()
    async with locks.hold("a"):
        assert len(locks) == 1
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_lock_released_on_error():
    locks = KeyedLock()
    with pytest.raises(RuntimeError):
        async with locks.hold("a"):
            raise RuntimeError("boom")

    async with locks.hold("a"):
        pass
    assert len(locks) == 0
