"""Tests for the engine facade."""

from __future__ import annotations

import threading
import time

import pytest

from ferry.core.dispatch import QueueDispatcher, direct_dispatch
from ferry.core.engine import DEFAULT_WORKERS, FerryEngine
from ferry.models.job import JobState


class TestFerryEngine:
    def test_default_dispatcher_is_queue(self):
        with FerryEngine() as engine:
            assert isinstance(engine.dispatcher, QueueDispatcher)

    def test_default_worker_count(self):
        assert DEFAULT_WORKERS == 8

    @pytest.mark.parametrize("workers", [0, -1])
    def test_rejects_invalid_worker_count(self, workers):
        with pytest.raises(ValueError, match="workers"):
            FerryEngine(QueueDispatcher(), workers=workers)

    def test_context_manager_shuts_down_pool(self, tmp_path):
        with FerryEngine(QueueDispatcher(), workers=1) as engine:
            pass
        job = engine.delete(tmp_path / "anything")
        assert job.state is JobState.FAILED

    def test_direct_dispatch_runs_on_worker(self, sample_tree):
        received = threading.Event()
        threads: list[str] = []

        def on_result(generation, entries, error):
            threads.append(threading.current_thread().name)
            received.set()

        with FerryEngine(direct_dispatch, workers=2) as engine:
            engine.on_result(on_result)
            engine.list(sample_tree)
            assert received.wait(5)

        assert threads[0].startswith("ferry-worker")

    def test_listing_and_transfers_share_delivery(self, engine, dispatcher, wait_jobs, sample_tree, tmp_path):
        listed: list[int] = []
        engine.on_result(lambda generation, entries, error: listed.append(generation))
        dest = tmp_path / "dest"
        dest.mkdir()

        request = engine.list(sample_tree)
        job = engine.copy(sample_tree / "readme.txt", dest)
        wait_jobs(job)
        assert dispatcher.run_until(lambda: listed, timeout=5)

        assert listed == [request.generation]
        assert (dest / "readme.txt").read_bytes() == b"hello ferry\n"

    def test_cancel_delegates_to_transfers(self, engine, wait_jobs, tmp_path, monkeypatch):
        release = threading.Event()
        monkeypatch.setattr("ferry.core.transfer.delete_path", lambda path: release.wait(5))

        first = engine.delete(tmp_path / "x")
        second = engine.delete(tmp_path / "x" / "y")
        assert engine.cancel(second.job_id) is True
        release.set()
        wait_jobs(first, second)
        assert second.state is JobState.CANCELLED

    def test_progress_callback_registration(self, dispatcher, tmp_path):
        (tmp_path / "f.bin").write_bytes(b"p" * 10)
        dest = tmp_path / "dest"
        dest.mkdir()
        progress: list[tuple[int, int, int]] = []

        with FerryEngine(dispatcher, workers=1, chunk_size=4) as engine:
            engine.on_job_progress(lambda job_id, done, total: progress.append((job_id, done, total)))
            job = engine.copy(tmp_path / "f.bin", dest)
            assert dispatcher.run_until(lambda: progress and progress[-1][1] == 10, timeout=5)

        assert [done for _, done, _ in progress] == [4, 8, 10]
        assert all(job_id == job.job_id for job_id, _, _ in progress)

    def test_listings_run_concurrently(self, dispatcher, tmp_path, monkeypatch):
        """Listings of different consumers scan in parallel on the pool."""
        delay = 0.1
        count = 4

        def slow_scan(path, should_stop=None):
            time.sleep(delay)
            return []

        monkeypatch.setattr("ferry.core.lister.scan_directory", slow_scan)
        received: list[int] = []

        with FerryEngine(dispatcher, workers=count) as engine:
            engine.on_result(lambda generation, entries, error: received.append(generation))
            start = time.monotonic()
            for i in range(count):
                engine.list(tmp_path, consumer=f"pane-{i}")
            assert dispatcher.run_until(lambda: len(received) == count, timeout=5)
            elapsed = time.monotonic() - start

        # Sequential would take count * delay = 0.4s
        assert elapsed < delay * count * 0.75
