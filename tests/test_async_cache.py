"""Tests for covtree.utils.async_cache."""

from __future__ import annotations

import asyncio

import pytest

from covtree.utils.async_cache import AsyncCell, CellState


class TestAsyncCell:
    @pytest.mark.asyncio
    async def test_factory_runs_once(self) -> None:
        cell: AsyncCell[int] = AsyncCell("test")
        calls = 0

        async def factory() -> int:
            nonlocal calls
            calls += 1
            return 42

        assert await cell.get(factory) == 42
        assert await cell.get(factory) == 42
        assert calls == 1
        assert cell.state is CellState.READY
        assert cell.peek() == 42

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_computation(self) -> None:
        cell: AsyncCell[str] = AsyncCell("test")
        release = asyncio.Event()
        calls = 0

        async def factory() -> str:
            nonlocal calls
            calls += 1
            await release.wait()
            return "done"

        first = asyncio.create_task(cell.get(factory))
        second = asyncio.create_task(cell.get(factory))
        await asyncio.sleep(0)
        assert cell.state is CellState.PENDING
        release.set()
        assert await asyncio.gather(first, second) == ["done", "done"]
        assert calls == 1

    @pytest.mark.asyncio
    async def test_failure_is_forgotten(self) -> None:
        cell: AsyncCell[int] = AsyncCell("test")
        attempts = 0

        async def factory() -> int:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                msg = "boom"
                raise RuntimeError(msg)
            return attempts

        with pytest.raises(RuntimeError, match="boom"):
            await cell.get(factory)
        assert cell.state is CellState.EMPTY

        assert await cell.get(factory) == 2
        assert cell.state is CellState.READY

    @pytest.mark.asyncio
    async def test_waiter_cancellation_does_not_cancel_shared_task(self) -> None:
        cell: AsyncCell[int] = AsyncCell("test")
        release = asyncio.Event()

        async def factory() -> int:
            await release.wait()
            return 1

        impatient = asyncio.create_task(cell.get(factory))
        patient = asyncio.create_task(cell.get(factory))
        await asyncio.sleep(0)
        impatient.cancel()
        with pytest.raises(asyncio.CancelledError):
            await impatient

        release.set()
        assert await patient == 1
        assert cell.state is CellState.READY

    @pytest.mark.asyncio
    async def test_clear_drops_value(self) -> None:
        cell = AsyncCell.ready(5, name="test")
        assert cell.peek() == 5
        cell.clear()
        assert cell.state is CellState.EMPTY

        async def factory() -> int:
            return 6

        assert await cell.get(factory) == 6
