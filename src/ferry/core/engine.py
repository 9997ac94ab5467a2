"""Listing and transfer orchestration over one shared worker pool."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from ferry.core.dispatch import Dispatcher, QueueDispatcher
from ferry.core.fileops import DEFAULT_CHUNK_SIZE
from ferry.core.lister import DirectoryLister, ListingCallback
from ferry.core.transfer import JobHandle, JobProgressCallback, JobUpdateCallback, TransferEngine
from ferry.models.listing import DEFAULT_CONSUMER, ListingRequest

log = logging.getLogger(__name__)

DEFAULT_WORKERS = 8


class FerryEngine:
    """Owns the worker pool shared by the directory lister and the transfer engine.

    All entry points return immediately.  Results are handed to
    *dispatcher*, the caller's delivery context; when none is given a
    :class:`QueueDispatcher` is created and the caller pumps it.

    Usable as a context manager; leaving the block shuts the pool down.
    """

    def __init__(
        self,
        dispatcher: Dispatcher | None = None,
        workers: int = DEFAULT_WORKERS,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")
        self.dispatcher: Dispatcher = dispatcher if dispatcher is not None else QueueDispatcher()
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ferry-worker")
        self.lister = DirectoryLister(self._executor, self.dispatcher)
        self.transfers = TransferEngine(self._executor, self.dispatcher, chunk_size=chunk_size)
        log.debug("Engine started with %d workers", workers)

    # -- listing --------------------------------------------------------

    def list(self, target_dir: Path | str, consumer: str = DEFAULT_CONSUMER) -> ListingRequest:
        return self.lister.list(target_dir, consumer)

    def on_result(self, callback: ListingCallback, consumer: str | None = None) -> None:
        self.lister.on_result(callback, consumer)

    # -- transfers ------------------------------------------------------

    def copy(self, source: Path | str, destination_dir: Path | str) -> JobHandle:
        return self.transfers.copy(source, destination_dir)

    def move(self, source: Path | str, destination_dir: Path | str) -> JobHandle:
        return self.transfers.move(source, destination_dir)

    def delete(self, path: Path | str) -> JobHandle:
        return self.transfers.delete(path)

    def cancel(self, job_id: int) -> bool:
        return self.transfers.cancel(job_id)

    def on_job_update(self, callback: JobUpdateCallback) -> None:
        self.transfers.on_job_update(callback)

    def on_job_progress(self, callback: JobProgressCallback) -> None:
        self.transfers.on_job_progress(callback)

    # -- lifecycle ------------------------------------------------------

    def shutdown(self, wait: bool = True) -> None:
        """Stop the pool.  Queued jobs that never started stay queued."""
        self._executor.shutdown(wait=wait)
        log.debug("Engine shut down")

    def __enter__(self) -> FerryEngine:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()
