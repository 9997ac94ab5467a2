"""D-Bus service exposing the engine to GUI front-ends.

D-Bus methods use PascalCase per D-Bus convention, and type signatures
like "t" and "(tss)" are D-Bus protocol types, not Python syntax.

Engine callbacks are delivered on the service's asyncio loop, so signal
emission always happens on the bus thread.
"""

from __future__ import annotations

import asyncio
import json
import logging

from dbus_next.aio import MessageBus
from dbus_next.service import ServiceInterface, method, signal
from dbus_next import BusType

from ferry.core.dispatch import asyncio_dispatcher
from ferry.core.engine import FerryEngine
from ferry.core.errors import FerryError
from ferry.models.entry import Entry
from ferry.models.job import JobState
from ferry.settings import Settings

log = logging.getLogger(__name__)

_BUS_NAME = "io.github.ferry"
_OBJECT_PATH = "/io/github/ferry"
_INTERFACE = "io.github.ferry.Engine"


def _entries_json(entries: list[Entry]) -> str:
    return json.dumps([
        {
            "name": e.name,
            "path": str(e.path),
            "kind": e.kind.value,
            "size": e.size,
            "modified_at": e.modified_at,
        }
        for e in entries
    ])


# noinspection PyPep8Naming
class FerryDBusService(ServiceInterface):
    """D-Bus service interface for Ferry."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        super().__init__(_INTERFACE)
        settings = Settings.instance()
        self._engine = FerryEngine(
            asyncio_dispatcher(loop),
            workers=int(settings.get("engine.workers")),
            chunk_size=int(settings.get("transfer.chunk_size")),
        )
        # consumer name of every generation still awaited
        self._consumers: dict[int, str] = {}
        self._engine.on_result(self._on_listing)
        self._engine.on_job_update(self._on_job_update)
        self._engine.on_job_progress(self._on_job_progress)

    def shutdown(self) -> None:
        self._engine.shutdown(wait=False)

    @method()
    def ListDirectory(self, consumer: "s", path: "s") -> "t":  # type: ignore[override]
        """List a directory; the result arrives as a ListingReady signal."""
        request = self._engine.list(path, consumer or "default")
        self._consumers[request.generation] = request.consumer
        return request.generation

    @method()
    def Copy(self, source: "s", destination_dir: "s") -> "t":  # type: ignore[override]
        return self._engine.copy(source, destination_dir).job_id

    @method()
    def Move(self, source: "s", destination_dir: "s") -> "t":  # type: ignore[override]
        return self._engine.move(source, destination_dir).job_id

    @method()
    def Delete(self, path: "s") -> "t":  # type: ignore[override]
        return self._engine.delete(path).job_id

    @method()
    def Cancel(self, job_id: "t") -> "b":  # type: ignore[override]
        """Cancel a queued job; False once it is running or finished."""
        return self._engine.cancel(job_id)

    @method()
    def GetJob(self, job_id: "t") -> "s":  # type: ignore[override]
        """Return one job's current state as JSON."""
        job = self._engine.transfers.get(job_id)
        if job is None:
            return json.dumps({"error": f"Job {job_id} not found"})
        return json.dumps({
            "job_id": job.job_id,
            "action": job.action.value,
            "source": str(job.source),
            "target": str(job.target) if job.target else None,
            "state": job.state.value,
            "bytes_done": job.bytes_done,
            "bytes_total": job.bytes_total,
            "error": str(job.error) if job.error else None,
        })

    def _on_listing(self, generation: int, entries: list[Entry], error: FerryError | None) -> None:
        consumer = self._consumers.pop(generation, "default")
        # Older generations of this consumer will never be delivered
        for stale in [g for g, c in self._consumers.items() if c == consumer and g < generation]:
            del self._consumers[stale]
        self.ListingReady(consumer, generation, _entries_json(entries), str(error) if error else "")

    def _on_job_update(self, job_id: int, state: JobState, error: FerryError | None) -> None:
        self.JobUpdate(job_id, state.value, str(error) if error else "")

    def _on_job_progress(self, job_id: int, done: int, total: int) -> None:
        self.JobProgress(job_id, done, total)

    @signal()
    def ListingReady(self, consumer: str, generation: int, entries: str, error: str) -> "(stss)":  # type: ignore[override]
        return [consumer, generation, entries, error]

    @signal()
    def JobUpdate(self, job_id: int, state: str, error: str) -> "(tss)":  # type: ignore[override]
        return [job_id, state, error]

    @signal()
    def JobProgress(self, job_id: int, done: int, total: int) -> "(ttt)":  # type: ignore[override]
        return [job_id, done, total]


async def run_service() -> None:
    """Start the D-Bus service."""
    bus = await MessageBus(bus_type=BusType.SESSION).connect()
    service = FerryDBusService(asyncio.get_running_loop())
    bus.export(_OBJECT_PATH, service)
    await bus.request_name(_BUS_NAME)
    log.info("D-Bus service started on %s", _BUS_NAME)
    try:
        await bus.wait_for_disconnect()
    finally:
        service.shutdown()


def start_service() -> None:
    """Entry point to start the D-Bus service."""
    asyncio.run(run_service())
