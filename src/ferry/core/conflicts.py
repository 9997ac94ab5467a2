"""Path-overlap index used to serialize conflicting transfer jobs."""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Iterable

from ferry.core.errors import ConflictDeferred
from ferry.models.job import TransferJob


def _lineage(path: Path) -> Iterable[Path]:
    """Yield *path* followed by all of its ancestors."""
    yield path
    yield from path.parents


class ConflictIndex:
    """Prefix-counted index of the paths held by a set of jobs.

    For every registered path the index counts the path itself and every
    ancestor, so both overlap directions are dictionary lookups: a
    candidate overlaps a held path when one of the candidate's ancestors
    is held, or when the candidate is itself an ancestor of a held path.

    Not thread-safe; the owner serializes access.
    """

    def __init__(self) -> None:
        self._held: Counter[Path] = Counter()
        self._held_prefixes: Counter[Path] = Counter()
        self._written: Counter[Path] = Counter()
        self._written_prefixes: Counter[Path] = Counter()

    def __bool__(self) -> bool:
        return bool(self._held)

    def conflicts(self, job: TransferJob) -> bool:
        """Whether *job* overlaps any registered job."""
        for path in job.write_paths:
            if self._overlaps(path, self._held, self._held_prefixes):
                return True
        for path in job.read_paths:
            if self._overlaps(path, self._written, self._written_prefixes):
                return True
        return False

    def acquire(self, job: TransferJob) -> None:
        """Register *job*'s paths.

        Raises:
            ConflictDeferred: *job* overlaps a registered job.
        """
        if self.conflicts(job):
            raise ConflictDeferred(job.source, f"job {job.job_id} overlaps a running job")
        self.add(job)

    def add(self, job: TransferJob) -> None:
        """Register *job*'s paths without checking for overlap."""
        self._update(job, 1)

    def release(self, job: TransferJob) -> None:
        self._update(job, -1)

    def _update(self, job: TransferJob, delta: int) -> None:
        for path in job.read_paths + job.write_paths:
            self._bump(self._held, path, delta)
            for prefix in _lineage(path):
                self._bump(self._held_prefixes, prefix, delta)
        for path in job.write_paths:
            self._bump(self._written, path, delta)
            for prefix in _lineage(path):
                self._bump(self._written_prefixes, prefix, delta)

    @staticmethod
    def _bump(counter: Counter[Path], key: Path, delta: int) -> None:
        counter[key] += delta
        if counter[key] <= 0:
            del counter[key]

    @staticmethod
    def _overlaps(path: Path, exact: Counter[Path], prefixes: Counter[Path]) -> bool:
        if path in prefixes:
            return True
        return any(ancestor in exact for ancestor in path.parents)
