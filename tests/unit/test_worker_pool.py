"""Tests for WorkerPool."""

from __future__ import annotations

import asyncio

import pytest

from loadsurge._internal.errors import CapacityError
from loadsurge.engine.worker_pool import WorkerPool


async def _sleep(seconds: float, done: list[float] | None = None) -> None:
    await asyncio.sleep(seconds)
    if done is not None:
        done.append(seconds)


class TestWorkerPool:
    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError, match="pool size"):
            WorkerPool(0)

    async def test_slots_released_on_completion(self):
        pool = WorkerPool(2)
        task = pool.submit(_sleep(0))
        assert pool.in_flight == 1
        assert pool.free_slots == 1
        await task
        await asyncio.sleep(0)
        assert pool.in_flight == 0

    async def test_saturated_pool_rejects_without_waiting(self):
        pool = WorkerPool(2)
        assert pool.try_submit(_sleep(1))
        assert pool.try_submit(_sleep(1))

        coro = _sleep(1)
        with pytest.raises(CapacityError, match="saturated"):
            pool.submit(coro)
        # The rejected coroutine was closed, not left pending
        assert coro.cr_frame is None
        assert not pool.try_submit(_sleep(1))
        assert pool.in_flight == 2

        await pool.drain(0.01)

    async def test_drain_waits_for_in_flight(self):
        pool = WorkerPool(5)
        done: list[float] = []
        for _ in range(3):
            pool.submit(_sleep(0.05, done))

        cancelled = await pool.drain(grace_period=2.0)
        assert cancelled == 0
        assert len(done) == 3
        assert pool.in_flight == 0

    async def test_drain_cancels_after_grace_period(self):
        pool = WorkerPool(5)
        done: list[float] = []
        pool.submit(_sleep(0.01, done))
        pool.submit(_sleep(30, done))

        cancelled = await pool.drain(grace_period=0.2)
        assert cancelled == 1
        assert done == [0.01]

    async def test_draining_pool_rejects_submissions(self):
        pool = WorkerPool(5)
        assert await pool.drain(grace_period=0.1) == 0
        with pytest.raises(CapacityError, match="draining"):
            pool.submit(_sleep(0))
