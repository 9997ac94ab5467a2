"""Shared test fixtures."""

from __future__ import annotations

import threading
from collections import defaultdict

import pytest

from ferry.core.dispatch import QueueDispatcher
from ferry.core.engine import FerryEngine
from ferry.models.job import JobState
from ferry.settings import Settings


@pytest.fixture
def isolate_settings(tmp_path, monkeypatch):
    """Redirect the settings file to a temp directory."""
    config_home = tmp_path / "config"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.setattr(Settings, "_instance", None)
    return config_home / "ferry" / "settings.json"


@pytest.fixture
def dispatcher():
    return QueueDispatcher()


@pytest.fixture
def engine(dispatcher):
    engine = FerryEngine(dispatcher, workers=4)
    yield engine
    engine.shutdown()


class JobRecorder:
    """Collects job updates in delivery order."""

    def __init__(self) -> None:
        self.events: list[tuple[int, JobState]] = []
        self.states: dict[int, list[JobState]] = defaultdict(list)
        self.errors: dict[int, object] = {}
        self._lock = threading.Lock()

    def __call__(self, job_id, state, error) -> None:
        with self._lock:
            self.events.append((job_id, state))
            self.states[job_id].append(state)
            if error is not None:
                self.errors[job_id] = error

    def finished(self, *job_ids: int) -> bool:
        with self._lock:
            return all(self.states[j] and self.states[j][-1].is_terminal for j in job_ids)


@pytest.fixture
def recorder(engine):
    rec = JobRecorder()
    engine.on_job_update(rec)
    return rec


@pytest.fixture
def wait_jobs(dispatcher, recorder):
    """Pump the dispatcher until every given handle reported a terminal state."""

    def _wait(*handles, timeout: float = 5.0) -> None:
        ids = [h.job_id for h in handles]
        assert dispatcher.run_until(lambda: recorder.finished(*ids), timeout=timeout), recorder.states

    return _wait


def _snapshot_tree(root) -> dict[str, bytes | None]:
    tree: dict[str, bytes | None] = {}
    for path in sorted(root.rglob("*")):
        rel = str(path.relative_to(root))
        tree[rel] = path.read_bytes() if path.is_file() else None
    return tree


@pytest.fixture
def snapshot_tree():
    """Map every relative path under a root to file bytes (None for directories)."""
    return _snapshot_tree


@pytest.fixture
def sample_tree(tmp_path):
    """A small source tree with nested directories."""
    root = tmp_path / "src" / "project"
    (root / "docs").mkdir(parents=True)
    (root / "docs" / "nested").mkdir()
    (root / "readme.txt").write_bytes(b"hello ferry\n")
    (root / "docs" / "guide.md").write_bytes(b"# guide\n" * 50)
    (root / "docs" / "nested" / "data.bin").write_bytes(bytes(range(256)) * 8)
    return root
