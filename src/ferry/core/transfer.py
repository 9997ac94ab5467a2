"""Copy, move and delete jobs executed on a shared worker pool."""

from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import Executor
from pathlib import Path
from typing import Callable

from ferry.core.conflicts import ConflictIndex
from ferry.core.dispatch import Dispatcher, safe_call
from ferry.core.errors import ConflictDeferred, DeviceError, FerryError
from ferry.core.fileops import DEFAULT_CHUNK_SIZE, copy_path, delete_path, measure, move_path
from ferry.models.job import JobState, TransferAction, TransferJob
from ferry.utils import normalize_path

log = logging.getLogger(__name__)

JobUpdateCallback = Callable[[int, JobState, FerryError | None], None]  # (job_id, state, error)
JobProgressCallback = Callable[[int, int, int], None]  # (job_id, bytes_done, bytes_total)

_Notification = Callable[[], None]


class JobHandle:
    """Caller-side, read-only view of a transfer job."""

    def __init__(self, job: TransferJob, engine: TransferEngine) -> None:
        self._job = job
        self._engine = engine

    @property
    def job_id(self) -> int:
        return self._job.job_id

    @property
    def action(self) -> TransferAction:
        return self._job.action

    @property
    def source(self) -> Path:
        return self._job.source

    @property
    def destination_dir(self) -> Path | None:
        return self._job.destination_dir

    @property
    def target(self) -> Path | None:
        return self._job.target

    @property
    def state(self) -> JobState:
        return self._job.state

    @property
    def error(self) -> FerryError | None:
        return self._job.error

    @property
    def bytes_done(self) -> int:
        return self._job.bytes_done

    @property
    def bytes_total(self) -> int:
        return self._job.bytes_total

    @property
    def done(self) -> bool:
        return self._job.state.is_terminal

    def cancel(self) -> bool:
        """Cancel the job if it is still queued."""
        return self._engine.cancel(self.job_id)

    def __repr__(self) -> str:
        return f"<JobHandle {self.job_id} {self.action.value} {self.source} {self.state.value}>"


class TransferEngine:
    """Runs transfer jobs, serializing those whose paths overlap.

    Jobs are admitted in submission order.  A job stays queued while it
    overlaps a running job or an earlier job that is still queued, so
    each overlap group executes in submission order while disjoint jobs
    run in parallel.  Job state, the pending queue and the running-path
    index change under one lock that is never held across I/O.
    """

    def __init__(
        self,
        executor: Executor,
        dispatcher: Dispatcher,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._executor = executor
        self._dispatcher = dispatcher
        self._chunk_size = chunk_size
        self._lock = threading.Lock()
        self._next_id = 1
        self._jobs: dict[int, TransferJob] = {}
        self._pending: list[TransferJob] = []
        self._running = ConflictIndex()
        self._update_callbacks: list[JobUpdateCallback] = []
        self._progress_callbacks: list[JobProgressCallback] = []
        # Notifications are queued under _lock in transition order and
        # handed to the dispatcher by one flusher at a time.
        self._outbox: deque[_Notification] = deque()
        self._flush_lock = threading.RLock()

    # -- callbacks ------------------------------------------------------

    def on_job_update(self, callback: JobUpdateCallback) -> None:
        with self._lock:
            self._update_callbacks.append(callback)

    def on_job_progress(self, callback: JobProgressCallback) -> None:
        with self._lock:
            self._progress_callbacks.append(callback)

    # -- public operations ----------------------------------------------

    def copy(self, source: Path | str, destination_dir: Path | str) -> JobHandle:
        """Copy *source* into *destination_dir*, replacing an existing target."""
        return self._submit(TransferAction.COPY, source, destination_dir)

    def move(self, source: Path | str, destination_dir: Path | str) -> JobHandle:
        """Move *source* into *destination_dir*, replacing an existing target."""
        return self._submit(TransferAction.MOVE, source, destination_dir)

    def delete(self, path: Path | str) -> JobHandle:
        """Remove a file or a directory tree."""
        return self._submit(TransferAction.DELETE, path, None)

    def cancel(self, job_id: int) -> bool:
        """Cancel a queued job.  Running and finished jobs are left alone."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.state is not JobState.QUEUED:
                return False
            self._pending.remove(job)
            job.transition(JobState.CANCELLED)
            self._post_update_locked(job)
            self._admit_locked()
        log.info("Cancelled job %d", job_id)
        self._flush()
        return True

    def get(self, job_id: int) -> JobHandle | None:
        with self._lock:
            job = self._jobs.get(job_id)
        return JobHandle(job, self) if job is not None else None

    def jobs(self) -> list[JobHandle]:
        with self._lock:
            jobs = list(self._jobs.values())
        return [JobHandle(job, self) for job in jobs]

    # -- admission ------------------------------------------------------

    def _submit(self, action: TransferAction, source: Path | str, destination_dir: Path | str | None) -> JobHandle:
        with self._lock:
            job = TransferJob(
                job_id=self._next_id,
                action=action,
                source=normalize_path(source),
                destination_dir=normalize_path(destination_dir) if destination_dir is not None else None,
            )
            self._next_id += 1
            self._jobs[job.job_id] = job
            self._pending.append(job)
            self._post_update_locked(job)
            self._admit_locked()
        log.debug("Queued job %d: %s %s", job.job_id, action.value, job.source)
        self._flush()
        return JobHandle(job, self)

    def _admit_locked(self) -> None:
        """Start every pending job that no longer conflicts.  Caller holds the lock."""
        ahead = ConflictIndex()
        for job in list(self._pending):
            try:
                if ahead.conflicts(job):
                    raise ConflictDeferred(job.source, f"job {job.job_id} waits behind an earlier job")
                self._running.acquire(job)
            except ConflictDeferred as exc:
                log.debug("Deferring job %d: %s", job.job_id, exc.reason)
                ahead.add(job)
                continue

            self._pending.remove(job)
            job.transition(JobState.RUNNING)
            self._post_update_locked(job)
            try:
                self._executor.submit(self._run, job)
            except RuntimeError as exc:
                # Pool already shut down
                self._running.release(job)
                job.transition(JobState.FAILED, DeviceError(job.source, str(exc)))
                self._post_update_locked(job)

    # -- execution ------------------------------------------------------

    def _run(self, job: TransferJob) -> None:
        error: FerryError | None = None
        try:
            self._execute(job)
        except FerryError as exc:
            error = exc
        except Exception as exc:
            log.exception("Job %d crashed", job.job_id)
            error = DeviceError(job.source, str(exc) or type(exc).__name__)

        with self._lock:
            self._running.release(job)
            if error is None:
                job.transition(JobState.SUCCEEDED)
            else:
                job.transition(JobState.FAILED, error)
            self._post_update_locked(job)
            self._admit_locked()

        if error is None:
            log.info("Job %d %s %s succeeded", job.job_id, job.action.value, job.source)
        else:
            log.warning("Job %d %s %s failed: %s", job.job_id, job.action.value, job.source, error)
        self._flush()

    def _execute(self, job: TransferJob) -> None:
        match job.action, job.destination_dir:
            case TransferAction.DELETE, _:
                delete_path(job.source)
            case TransferAction.COPY, Path() as destination_dir:
                copy_path(job.source, destination_dir, on_bytes=self._byte_counter(job), chunk_size=self._chunk_size)
            case TransferAction.MOVE, Path() as destination_dir:
                move_path(job.source, destination_dir, on_bytes=self._byte_counter(job), chunk_size=self._chunk_size)
            case action, _:
                raise DeviceError(job.source, f"{action.value} job has no destination")

    def _byte_counter(self, job: TransferJob) -> Callable[[int], None]:
        """Measure *job*'s source and return its progress callback."""
        total = measure(job.source)
        with self._lock:
            job.bytes_total = total

        def on_bytes(count: int) -> None:
            with self._lock:
                job.bytes_done += count
                job.bytes_total = max(job.bytes_total, job.bytes_done)
                self._post_progress_locked(job)
            self._flush()

        return on_bytes

    # -- notifications --------------------------------------------------

    def _post_update_locked(self, job: TransferJob) -> None:
        job_id, state, error = job.job_id, job.state, job.error
        callbacks = list(self._update_callbacks)

        def _deliver() -> None:
            for callback in callbacks:
                safe_call(callback, job_id, state, error)

        self._outbox.append(_deliver)

    def _post_progress_locked(self, job: TransferJob) -> None:
        job_id, done, total = job.job_id, job.bytes_done, job.bytes_total
        callbacks = list(self._progress_callbacks)

        def _deliver() -> None:
            for callback in callbacks:
                safe_call(callback, job_id, done, total)

        self._outbox.append(_deliver)

    def _flush(self) -> None:
        with self._flush_lock:
            while True:
                with self._lock:
                    if not self._outbox:
                        return
                    note = self._outbox.popleft()
                self._dispatcher(note)
