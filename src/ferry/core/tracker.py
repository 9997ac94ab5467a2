"""Tracks transfer outcomes for the current session."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from ferry.core.transfer import JobHandle
from ferry.models.job import JobState

log = logging.getLogger(__name__)


class Tracker:
    """Collects finished jobs and aggregates session statistics."""

    def __init__(self) -> None:
        self._finished: dict[int, JobHandle] = {}

    def record(self, job: JobHandle) -> None:
        """Record a job once it reached a terminal state."""
        if not job.done:
            log.debug("Ignoring unfinished job %d", job.job_id)
            return
        self._finished[job.job_id] = job

    @property
    def session_bytes_transferred(self) -> int:
        """Total bytes written by successful copy and move jobs."""
        return sum(j.bytes_done for j in self._finished.values() if j.state is JobState.SUCCEEDED)

    @property
    def failures(self) -> list[JobHandle]:
        return [j for j in self._finished.values() if j.state is JobState.FAILED]

    def get_stats(self) -> dict[str, Any]:
        """Aggregate the session by outcome and by action."""
        by_state = Counter(j.state.value for j in self._finished.values())
        per_action: dict[str, dict[str, int]] = {}
        for job in self._finished.values():
            totals = per_action.setdefault(job.action.value, {"jobs": 0, "failed": 0})
            totals["jobs"] += 1
            if job.state is JobState.FAILED:
                totals["failed"] += 1

        return {
            "jobs": len(self._finished),
            "succeeded": by_state.get(JobState.SUCCEEDED.value, 0),
            "failed": by_state.get(JobState.FAILED.value, 0),
            "cancelled": by_state.get(JobState.CANCELLED.value, 0),
            "bytes_transferred": self.session_bytes_transferred,
            "per_action": per_action,
        }

    def clear(self) -> None:
        self._finished.clear()
