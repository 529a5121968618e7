"""Unit tests for the AutoRefreshScheduler."""

import asyncio

import pytest

from intelliindex.services.auto_refresh import AutoRefreshScheduler


class RecordingRefresh:
    def __init__(self, fail: bool = False) -> None:
        self.calls: list[str] = []
        self.fail = fail

    async def __call__(self, index_id: str) -> None:
        self.calls.append(index_id)
        if self.fail:
            raise RuntimeError("refresh failed")


@pytest.fixture
def refresh() -> RecordingRefresh:
    return RecordingRefresh()


@pytest.fixture
async def scheduler(refresh: RecordingRefresh):
    scheduler = AutoRefreshScheduler(refresh, timeout=1.0)
    yield scheduler
    await scheduler.shutdown()


class TestAutoRefreshScheduler:
    """Tests for start, supersede and stop semantics."""

    @pytest.mark.slow
    async def test_start_refreshes_periodically(
        self, scheduler: AutoRefreshScheduler, refresh: RecordingRefresh
    ) -> None:
        scheduler.start("idx", 0.01)

        await asyncio.sleep(0.1)

        assert scheduler.is_active("idx")
        assert len(refresh.calls) >= 2
        assert set(refresh.calls) == {"idx"}

    async def test_second_start_supersedes_first(self, scheduler: AutoRefreshScheduler) -> None:
        scheduler.start("idx", 10)
        first = scheduler._tasks["idx"]

        scheduler.start("idx", 10)
        await asyncio.sleep(0.01)

        assert scheduler.active_index_ids() == ["idx"]
        assert scheduler._tasks["idx"] is not first
        assert first.cancelled()

    async def test_stop_cancels_timer(self, scheduler: AutoRefreshScheduler, refresh: RecordingRefresh) -> None:
        scheduler.start("idx", 0.01)
        scheduler.stop("idx")
        calls = len(refresh.calls)

        await asyncio.sleep(0.05)

        assert not scheduler.is_active("idx")
        assert len(refresh.calls) == calls

    async def test_stop_without_timer_is_noop(self, scheduler: AutoRefreshScheduler) -> None:
        scheduler.stop("never-started")

        assert scheduler.active_index_ids() == []

    async def test_failures_are_swallowed(self) -> None:
        refresh = RecordingRefresh(fail=True)
        scheduler = AutoRefreshScheduler(refresh, timeout=1.0)

        scheduler.start("idx", 0.01)
        await asyncio.sleep(0.1)

        assert scheduler.is_active("idx")
        assert len(refresh.calls) >= 2
        await scheduler.shutdown()

    async def test_slow_refresh_times_out(self) -> None:
        calls: list[str] = []

        async def slow_refresh(index_id: str) -> None:
            calls.append(index_id)
            await asyncio.sleep(10)

        scheduler = AutoRefreshScheduler(slow_refresh, timeout=0.01)
        scheduler.start("idx", 0.01)
        await asyncio.sleep(0.15)

        assert len(calls) >= 2
        await scheduler.shutdown()

    async def test_shutdown_cancels_everything(self, scheduler: AutoRefreshScheduler) -> None:
        scheduler.start("a", 10)
        scheduler.start("b", 10)

        await scheduler.shutdown()

        assert scheduler.active_index_ids() == []

    async def test_rejects_non_positive_interval(self, scheduler: AutoRefreshScheduler) -> None:
        with pytest.raises(ValueError):
            scheduler.start("idx", 0)
