"""
Provides the adaptive polling period used by the scrape loop, and waits that
return early when the service is asked to stop.
"""

import asyncio
import logging

log = logging.getLogger(__name__)


class AdaptiveBackoff:
    """
    Dynamically adjusts a polling period based on success or failure.

    Failures double the period up to `max_period`; successes halve it down to
    `min_period`.
    """

    def __init__(self, min_period: float, max_period: float):
        """
        Initializes the backoff.

        Args:
            min_period: The starting and smallest period in seconds.
            max_period: The largest period in seconds.
        """
        if min_period <= 0 or max_period < min_period:
            raise ValueError("Backoff periods must satisfy 0 < min_period <= max_period.")
        self.min_period = min_period
        self.max_period = max_period
        self.current = min_period

    def failure(self) -> float:
        """Called after a failed iteration. Doubles the current period."""
        self.current = min(self.current * 2, self.max_period)
        log.debug(f"Backing off, next poll in {self.current:.1f}s")
        return self.current

    def success(self) -> float:
        """Called after a successful iteration. Halves the current period."""
        self.current = max(self.current / 2, self.min_period)
        return self.current


async def sleep_until_stopped(stop_event: asyncio.Event, seconds: float) -> bool:
    """
    Sleeps for `seconds` unless `stop_event` is set first.

    Returns:
        True if the event was set (the caller should stop), False on timeout.
    """
    if stop_event.is_set():
        return True
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return False
    return True


async def get_until_stopped(stop_event: asyncio.Event, queue: asyncio.Queue):
    """
    Waits for the next item on `queue` unless `stop_event` is set first.

    Returns:
        The item, or None if the event was set before one arrived.
    """
    if stop_event.is_set():
        return None
    get_task = asyncio.ensure_future(queue.get())
    stop_task = asyncio.ensure_future(stop_event.wait())
    try:
        done, _ = await asyncio.wait(
            {get_task, stop_task}, return_when=asyncio.FIRST_COMPLETED
        )
        return get_task.result() if get_task in done else None
    finally:
        stop_task.cancel()
        if not get_task.done():
            get_task.cancel()
