"""Tests for the tracker module."""

from __future__ import annotations

from pathlib import Path

from ferry.core.errors import NotFoundError
from ferry.core.tracker import Tracker
from ferry.core.transfer import JobHandle
from ferry.models.job import JobState, TransferAction, TransferJob


def finished_job(
    job_id: int,
    action: TransferAction = TransferAction.COPY,
    state: JobState = JobState.SUCCEEDED,
    bytes_done: int = 0,
) -> JobHandle:
    job = TransferJob(job_id, action, Path(f"/src/{job_id}"), None if action is TransferAction.DELETE else Path("/dst"))
    if state is not JobState.CANCELLED:
        job.transition(JobState.RUNNING)
    if state is JobState.FAILED:
        job.transition(state, NotFoundError(job.source, "gone"))
    else:
        job.transition(state)
    job.bytes_done = bytes_done
    return JobHandle(job, None)


class TestTracker:
    def test_session_bytes(self):
        tracker = Tracker()
        tracker.record(finished_job(1, bytes_done=1024))
        tracker.record(finished_job(2, TransferAction.MOVE, bytes_done=2048))
        tracker.record(finished_job(3, state=JobState.FAILED, bytes_done=500))

        assert tracker.session_bytes_transferred == 1024 + 2048

    def test_ignores_unfinished_jobs(self):
        tracker = Tracker()
        job = TransferJob(1, TransferAction.DELETE, Path("/tmp/x"))
        tracker.record(JobHandle(job, None))
        assert tracker.get_stats()["jobs"] == 0

    def test_recording_twice_counts_once(self):
        tracker = Tracker()
        job = finished_job(7, bytes_done=10)
        tracker.record(job)
        tracker.record(job)
        assert tracker.get_stats()["jobs"] == 1
        assert tracker.session_bytes_transferred == 10

    def test_failures(self):
        tracker = Tracker()
        tracker.record(finished_job(1))
        tracker.record(finished_job(2, TransferAction.DELETE, JobState.FAILED))
        (failed,) = tracker.failures
        assert failed.job_id == 2
        assert isinstance(failed.error, NotFoundError)

    def test_get_stats(self):
        tracker = Tracker()
        tracker.record(finished_job(1, bytes_done=100))
        tracker.record(finished_job(2, TransferAction.DELETE))
        tracker.record(finished_job(3, TransferAction.DELETE, JobState.FAILED))
        tracker.record(finished_job(4, TransferAction.MOVE, JobState.CANCELLED))

        stats = tracker.get_stats()
        assert stats["jobs"] == 4
        assert stats["succeeded"] == 2
        assert stats["failed"] == 1
        assert stats["cancelled"] == 1
        assert stats["bytes_transferred"] == 100
        assert stats["per_action"] == {
            "copy": {"jobs": 1, "failed": 0},
            "delete": {"jobs": 2, "failed": 1},
            "move": {"jobs": 1, "failed": 0},
        }

    def test_clear(self):
        tracker = Tracker()
        tracker.record(finished_job(1, bytes_done=5))
        tracker.clear()
        assert tracker.get_stats()["jobs"] == 0
        assert tracker.session_bytes_transferred == 0
