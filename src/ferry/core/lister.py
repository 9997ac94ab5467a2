"""Asynchronous, latest-request-wins directory listing."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor
from pathlib import Path
from typing import Callable

from ferry.core.dispatch import Dispatcher, safe_call
from ferry.core.errors import DeviceError, FerryError
from ferry.core.fileops import scan_directory
from ferry.models.entry import Entry
from ferry.models.listing import DEFAULT_CONSUMER, ListingRequest, ListingResult
from ferry.utils import normalize_path

log = logging.getLogger(__name__)

ListingCallback = Callable[[int, list[Entry], FerryError | None], None]  # (generation, entries, error)


class DirectoryLister:
    """Lists immediate children of a directory on a worker pool.

    Every call to :meth:`list` supersedes older requests of the same
    consumer.  Only the newest generation's result is delivered; older
    results are dropped on arrival, and their scans stop early.
    """

    def __init__(self, executor: Executor, dispatcher: Dispatcher) -> None:
        self._executor = executor
        self._dispatcher = dispatcher
        self._lock = threading.Lock()
        self._next_generation = 1
        self._latest: dict[str, int] = {}
        self._callbacks: list[tuple[str | None, ListingCallback]] = []

    def on_result(self, callback: ListingCallback, consumer: str | None = None) -> None:
        """Register a result callback, optionally limited to one consumer."""
        with self._lock:
            self._callbacks.append((consumer, callback))

    def list(self, target_dir: Path | str, consumer: str = DEFAULT_CONSUMER) -> ListingRequest:
        """Queue a scan of *target_dir* and return its request handle immediately."""
        target = normalize_path(target_dir)
        with self._lock:
            generation = self._next_generation
            self._next_generation += 1
            self._latest[consumer] = generation
        request = ListingRequest(target_dir=target, generation=generation, consumer=consumer)
        log.debug("Listing %s for %s (generation %d)", target, consumer, generation)
        try:
            self._executor.submit(self._run, request)
        except RuntimeError as exc:
            # Pool already shut down
            result = ListingResult(request=request, error=DeviceError(target, str(exc)))
            self._dispatcher(lambda: self._deliver(result))
        return request

    def latest_generation(self, consumer: str = DEFAULT_CONSUMER) -> int | None:
        with self._lock:
            return self._latest.get(consumer)

    def is_current(self, request: ListingRequest) -> bool:
        """Whether *request* is still the newest for its consumer."""
        with self._lock:
            return self._latest.get(request.consumer) == request.generation

    def _run(self, request: ListingRequest) -> None:
        if not self.is_current(request):
            log.debug("Generation %d superseded before it started", request.generation)
            return

        result = ListingResult(request=request)
        try:
            result.entries = scan_directory(request.target_dir, should_stop=lambda: not self.is_current(request))
        except FerryError as exc:
            result.error = exc
        except Exception as exc:
            log.exception("Listing %s crashed", request.target_dir)
            result.error = DeviceError(request.target_dir, str(exc) or type(exc).__name__)

        if not self.is_current(request):
            log.debug("Discarding superseded listing of %s (generation %d)", request.target_dir, request.generation)
            return
        self._dispatcher(lambda: self._deliver(result))

    def _deliver(self, result: ListingResult) -> None:
        """Runs on the delivery context: last supersession check, then callbacks."""
        request = result.request
        if not self.is_current(request):
            log.debug("Discarding listing of %s superseded in transit", request.target_dir)
            return
        with self._lock:
            callbacks = [cb for consumer, cb in self._callbacks if consumer in (None, request.consumer)]
        for callback in callbacks:
            safe_call(callback, request.generation, list(result.entries), result.error)
