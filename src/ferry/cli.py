"""CLI interface for Ferry."""

from __future__ import annotations

import json
import logging
import sys
import time
from datetime import datetime
from typing import Callable

import click

from ferry.core.dispatch import QueueDispatcher
from ferry.core.engine import FerryEngine
from ferry.core.errors import FerryError
from ferry.core.tracker import Tracker
from ferry.core.transfer import JobHandle
from ferry.models.entry import Entry, EntryKind
from ferry.models.job import JobState
from ferry.settings import Settings
from ferry.utils import bytes_to_human, format_elapsed


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _build_engine(dispatcher: QueueDispatcher) -> FerryEngine:
    settings = Settings.instance()
    return FerryEngine(
        dispatcher,
        workers=int(settings.get("engine.workers")),
        chunk_size=int(settings.get("transfer.chunk_size")),
    )


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
def main(verbose: int) -> None:
    """Ferry — concurrent directory listing and file transfers."""
    _setup_logging(verbose)


# ── ls ───────────────────────────────────────────────────────────────────

def _entry_to_dict(entry: Entry) -> dict:
    return {
        "name": entry.name,
        "path": str(entry.path),
        "kind": entry.kind.value,
        "size": entry.size,
        "modified_at": entry.modified_at,
    }


def _format_entry(entry: Entry) -> str:
    match entry.kind:
        case EntryKind.DIRECTORY:
            name = click.style(entry.name + "/", fg="blue", bold=True)
            return f"  {name}"
        case EntryKind.FILE:
            stamp = datetime.fromtimestamp(entry.modified_at).strftime("%Y-%m-%d %H:%M")
            return f"  {entry.name:40s} {bytes_to_human(entry.size):>10s}  {stamp}"
        case _:
            return f"  {click.style(entry.name, fg='bright_black')}"


@main.command("ls")
@click.argument("path", default=".")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def ls_cmd(path: str, as_json: bool) -> None:
    """List the contents of a directory."""
    dispatcher = QueueDispatcher()
    delivered: list[tuple[list[Entry], FerryError | None]] = []

    with _build_engine(dispatcher) as engine:
        engine.on_result(lambda generation, entries, error: delivered.append((entries, error)))
        request = engine.list(path)
        dispatcher.run_until(lambda: bool(delivered))

    entries, error = delivered[0]
    if as_json:
        click.echo(json.dumps({
            "path": str(request.target_dir),
            "entries": [_entry_to_dict(e) for e in entries],
            "error": str(error) if error else None,
        }, indent=2))
    elif error is None:
        click.echo(f"\n{click.style(str(request.target_dir), bold=True)}\n")
        for entry in entries:
            click.echo(_format_entry(entry))
        click.echo(f"\n{len(entries):,} entries\n")

    if error is not None:
        if not as_json:
            click.echo(f"{click.style('✗', fg='red')} {error}", err=True)
        sys.exit(1)


# ── transfers ────────────────────────────────────────────────────────────

def _job_to_dict(job: JobHandle) -> dict:
    return {
        "job_id": job.job_id,
        "action": job.action.value,
        "source": str(job.source),
        "target": str(job.target) if job.target else None,
        "state": job.state.value,
        "bytes": job.bytes_done,
        "error": str(job.error) if job.error else None,
    }


def _run_jobs(submit: Callable[[FerryEngine], list[JobHandle]], as_json: bool) -> None:
    """Submit jobs, pump updates until all finished, then report."""
    dispatcher = QueueDispatcher()
    tracker = Tracker()
    finished: set[int] = set()
    started = time.monotonic()

    with _build_engine(dispatcher) as engine:

        def on_update(job_id: int, state: JobState, error: FerryError | None) -> None:
            if not state.is_terminal:
                return
            finished.add(job_id)
            job = engine.transfers.get(job_id)
            tracker.record(job)
            if as_json:
                return
            label = f"{job.action.value} {job.source.name}"
            if state is JobState.SUCCEEDED:
                click.echo(f"  {click.style('✓', fg='green')} {label:40s} — {bytes_to_human(job.bytes_done)}")
            else:
                click.echo(f"  {click.style('✗', fg='red')} {label:40s} — {error or state.value}")

        engine.on_job_update(on_update)
        handles = submit(engine)
        dispatcher.run_until(lambda: len(finished) == len(handles))

    stats = tracker.get_stats()
    if as_json:
        click.echo(json.dumps({"jobs": [_job_to_dict(h) for h in handles], "stats": stats}, indent=2))
    else:
        click.echo(
            f"\n{stats['succeeded']} succeeded, {stats['failed']} failed — "
            f"{click.style(bytes_to_human(stats['bytes_transferred']), fg='green', bold=True)} "
            f"in {format_elapsed(time.monotonic() - started)}\n"
        )
    if stats["failed"]:
        sys.exit(1)


@main.command("cp")
@click.argument("sources", nargs=-1, required=True)
@click.argument("dest_dir")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def cp_cmd(sources: tuple[str, ...], dest_dir: str, as_json: bool) -> None:
    """Copy files or directories into DEST_DIR, replacing existing targets."""
    _run_jobs(lambda engine: [engine.copy(s, dest_dir) for s in sources], as_json)


@main.command("mv")
@click.argument("sources", nargs=-1, required=True)
@click.argument("dest_dir")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def mv_cmd(sources: tuple[str, ...], dest_dir: str, as_json: bool) -> None:
    """Move files or directories into DEST_DIR, replacing existing targets."""
    _run_jobs(lambda engine: [engine.move(s, dest_dir) for s in sources], as_json)


@main.command("rm")
@click.argument("paths", nargs=-1, required=True)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def rm_cmd(paths: tuple[str, ...], yes: bool, as_json: bool) -> None:
    """Delete files or directory trees."""
    if not yes and not as_json:
        count = len(paths)
        if not click.confirm(f"Permanently delete {count} item{'s' if count != 1 else ''}?", default=False):
            click.echo("Aborted.")
            return
    _run_jobs(lambda engine: [engine.delete(p) for p in paths], as_json)


# ── config ───────────────────────────────────────────────────────────────

@main.group()
def config() -> None:
    """Settings management commands."""


@config.command("show")
def config_show() -> None:
    """Show the effective settings."""
    settings = Settings.instance()
    click.echo(f"# {settings.path}")
    click.echo(json.dumps(settings.as_dict(), indent=2))


@config.command("get")
@click.argument("key")
def config_get(key: str) -> None:
    """Print one setting by dot-notation KEY."""
    value = Settings.instance().get(key)
    if value is None:
        click.echo(f"Setting '{key}' not found.", err=True)
        sys.exit(1)
    click.echo(json.dumps(value))


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Store VALUE (parsed as JSON when possible) under KEY."""
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        parsed = value
    Settings.instance().set(key, parsed)
    click.echo(f"{key} = {json.dumps(parsed)}")


# ── service ──────────────────────────────────────────────────────────────

@main.group()
def service() -> None:
    """D-Bus service management."""


@service.command("start")
def service_start() -> None:
    """Start the D-Bus service in foreground."""
    from ferry.dbus_service import start_service

    click.echo("Starting Ferry D-Bus service...")
    start_service()
