"""Tests for the adaptive backoff and the stop-aware waits."""

import asyncio

import pytest

from torrent_courier.utils.backoff import (
    AdaptiveBackoff,
    get_until_stopped,
    sleep_until_stopped,
)


class TestAdaptiveBackoff:
    @pytest.mark.parametrize("failures", [0, 1, 2, 5, 8, 20])
    def test_failures_double_up_to_max(self, failures):
        backoff = AdaptiveBackoff(2.0, 300.0)
        for _ in range(failures):
            backoff.failure()
        assert backoff.current == min(2.0 * 2**failures, 300.0)

    def test_success_halves_down_to_min(self):
        backoff = AdaptiveBackoff(2.0, 300.0)
        for _ in range(4):
            backoff.failure()
        assert backoff.current == 32.0

        assert backoff.success() == 16.0
        for _ in range(10):
            backoff.success()
        assert backoff.current == 2.0

    def test_rejects_inverted_bounds(self):
        with pytest.raises(ValueError):
            AdaptiveBackoff(10.0, 1.0)


@pytest.mark.asyncio
async def test_sleep_times_out_when_not_stopped():
    assert await sleep_until_stopped(asyncio.Event(), 0.01) is False


@pytest.mark.asyncio
async def test_sleep_wakes_when_stopped():
    stop_event = asyncio.Event()
    asyncio.get_running_loop().call_later(0.01, stop_event.set)
    stopped = await asyncio.wait_for(sleep_until_stopped(stop_event, 60), timeout=2)
    assert stopped is True


@pytest.mark.asyncio
async def test_get_returns_item():
    queue: asyncio.Queue = asyncio.Queue()
    queue.put_nowait("item")
    assert await get_until_stopped(asyncio.Event(), queue) == "item"


@pytest.mark.asyncio
async def test_get_returns_none_when_stopped():
    stop_event = asyncio.Event()
    queue: asyncio.Queue = asyncio.Queue()
    asyncio.get_running_loop().call_later(0.01, stop_event.set)

    assert await asyncio.wait_for(get_until_stopped(stop_event, queue), timeout=2) is None
    queue.put_nowait("later")
    assert queue.qsize() == 1
