"""Delivery contexts that marshal engine callbacks to the caller's thread.

A dispatcher is any callable taking a zero-argument function.  Workers
never invoke caller callbacks directly; they hand them to the dispatcher,
so a single-threaded caller never needs its own locking.
"""

from __future__ import annotations

import asyncio
import logging
import time
from queue import Empty, Queue
from typing import Callable

log = logging.getLogger(__name__)

Dispatcher = Callable[[Callable[[], None]], None]


def direct_dispatch(func: Callable[[], None]) -> None:
    """Run the callback immediately on the calling (worker) thread."""
    func()


def asyncio_dispatcher(loop: asyncio.AbstractEventLoop) -> Dispatcher:
    """Return a dispatcher that schedules callbacks on *loop*."""

    def _dispatch(func: Callable[[], None]) -> None:
        loop.call_soon_threadsafe(func)

    return _dispatch


class QueueDispatcher:
    """Queues callbacks until the owning thread pumps them.

    Suited to CLI loops and tests: workers enqueue, the owner calls
    :meth:`run_pending` or :meth:`run_until` from its own thread.
    """

    def __init__(self) -> None:
        self._queue: Queue[Callable[[], None]] = Queue()

    def __call__(self, func: Callable[[], None]) -> None:
        self._queue.put(func)

    @property
    def pending(self) -> int:
        """Approximate number of callbacks waiting to run."""
        return self._queue.qsize()

    def run_pending(self) -> int:
        """Run every queued callback and return how many ran."""
        ran = 0
        while True:
            try:
                func = self._queue.get_nowait()
            except Empty:
                return ran
            func()
            ran += 1

    def run_until(self, predicate: Callable[[], bool], timeout: float | None = None) -> bool:
        """Pump callbacks until *predicate* holds or *timeout* expires.

        Returns:
            The final value of *predicate*.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while not predicate():
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return predicate()
            try:
                func = self._queue.get(timeout=0.05 if remaining is None else min(remaining, 0.05))
            except Empty:
                continue
            func()
        return True


def safe_call(callback: Callable[..., None], *args: object) -> None:
    """Invoke a caller callback, logging instead of propagating its errors."""
    try:
        callback(*args)
    except Exception:
        log.exception("Callback %r raised", callback)
