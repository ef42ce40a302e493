"""
Tests for the worker pool.
"""

import asyncio

import pytest

from aigis_bot.agent.pool import WorkerPool


@pytest.mark.asyncio
async def test_pool_limits_concurrency():
    """Test that no more than `size` handlers run at once."""
    queue: asyncio.Queue = asyncio.Queue()
    running = 0
    peak = 0

    async def handler(event):
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1

    pool = WorkerPool(queue, handler, size=2)
    for i in range(8):
        queue.put_nowait(i)

    task = asyncio.create_task(pool.run())
    await asyncio.wait_for(queue.join(), timeout=5)
    task.cancel()
    await pool.close()

    assert peak == 2


@pytest.mark.asyncio
async def test_pool_survives_failing_events():
    """Test that one failing event doesn't stop the others or leak a slot."""
    queue: asyncio.Queue = asyncio.Queue()
    handled = []

    async def handler(event):
        if event == "bad":
            raise RuntimeError("boom")
        handled.append(event)

    pool = WorkerPool(queue, handler, size=1)
    for event in ["a", "bad", "b", "bad", "c"]:
        queue.put_nowait(event)

    task = asyncio.create_task(pool.run())
    await asyncio.wait_for(queue.join(), timeout=5)
    await asyncio.sleep(0.01)
    task.cancel()

    assert handled == ["a", "b", "c"]
    assert pool.in_flight == 0


def test_pool_needs_a_slot():
    """Test that an empty pool is rejected."""
    with pytest.raises(ValueError):
        WorkerPool(asyncio.Queue(), lambda e: None, size=0)
