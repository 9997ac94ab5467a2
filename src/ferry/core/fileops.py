"""Blocking filesystem operations executed on worker threads.

Nothing here knows about jobs, generations or dispatchers: every function
either returns normally or raises a :class:`~ferry.core.errors.FerryError`.
"""

from __future__ import annotations

import errno
import logging
import os
import secrets
import shutil
import stat
from pathlib import Path
from typing import Callable

from ferry.core.errors import (
    FerryError,
    InvalidTargetError,
    NotEmptyOrPermissionError,
    NotFoundError,
    classify_os_error,
    describe_os_error,
)
from ferry.models.entry import Entry, EntryKind
from ferry.utils import tree_size

log = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024

ByteCallback = Callable[[int], None]  # bytes copied since the last call
StopCheck = Callable[[], bool]


# ── listing ──────────────────────────────────────────────────────────────

def scan_directory(path: Path, should_stop: StopCheck | None = None) -> list[Entry]:
    """List the immediate children of *path*.

    A child that cannot be stat'ed degrades to ``EntryKind.OTHER``
    instead of aborting the listing.  When *should_stop* returns True the
    scan ends early and returns what it has so far.

    Raises:
        NotFoundError: *path* is missing or not a directory.
        AccessDeniedError: *path* cannot be read.
    """
    entries: list[Entry] = []
    try:
        with os.scandir(path) as it:
            for dirent in it:
                if should_stop is not None and should_stop():
                    log.debug("Scan of %s stopped early", path)
                    break
                entries.append(_entry_from_dirent(dirent))
    except OSError as exc:
        raise classify_os_error(exc, path) from exc

    entries.sort(key=lambda e: (not e.is_dir, e.name.casefold(), e.name))
    return entries


def _entry_from_dirent(dirent: os.DirEntry) -> Entry:
    path = Path(dirent.path)
    try:
        st = dirent.stat(follow_symlinks=False)
    except OSError:
        log.debug("Cannot stat %s, listing it as other", path)
        return Entry(path=path, kind=EntryKind.OTHER)

    if stat.S_ISREG(st.st_mode):
        return Entry(path=path, kind=EntryKind.FILE, size=st.st_size, modified_at=st.st_mtime)
    if stat.S_ISDIR(st.st_mode):
        return Entry(path=path, kind=EntryKind.DIRECTORY)
    return Entry(path=path, kind=EntryKind.OTHER)


# ── sizing ───────────────────────────────────────────────────────────────

def measure(path: Path) -> int:
    """Return the number of file bytes a copy of *path* will write."""
    try:
        st = os.lstat(path)
    except OSError:
        return 0
    if stat.S_ISDIR(st.st_mode):
        return tree_size(path)[0]
    if stat.S_ISREG(st.st_mode):
        return st.st_size
    return 0


# ── copy ─────────────────────────────────────────────────────────────────

def copy_path(
    source: Path,
    destination_dir: Path,
    *,
    on_bytes: ByteCallback | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Path:
    """Copy *source* into *destination_dir* under its base name.

    The copy is staged in a hidden sibling and swapped into place, so an
    existing target is replaced rather than merged, and a failed copy
    leaves the previous target untouched.

    Returns:
        The path of the new target.
    """
    target = destination_dir / source.name
    _check_source(source)
    _check_destination(destination_dir)
    if target == source:
        raise InvalidTargetError(source, "source and target are the same path")
    if _is_within(destination_dir, source):
        raise InvalidTargetError(destination_dir, f"cannot copy {source.name} into itself")
    if _is_within(source, target):
        raise InvalidTargetError(target, f"cannot replace {target.name}, it contains {source}")

    staging = destination_dir / f".{source.name}.ferry-{secrets.token_hex(4)}"
    try:
        _copy_node(source, staging, on_bytes, chunk_size)
        _replace(staging, target)
    except BaseException:
        _discard(staging)
        raise
    log.debug("Copied %s -> %s", source, target)
    return target


def _copy_node(source: Path, dest: Path, on_bytes: ByteCallback | None, chunk_size: int) -> None:
    try:
        st = os.lstat(source)
    except OSError as exc:
        raise classify_os_error(exc, source) from exc

    mode = st.st_mode
    if stat.S_ISLNK(mode):
        try:
            os.symlink(os.readlink(source), dest)
        except OSError as exc:
            raise classify_os_error(exc, dest) from exc
    elif stat.S_ISDIR(mode):
        _copy_dir(source, dest, on_bytes, chunk_size)
    elif stat.S_ISREG(mode):
        _copy_file(source, dest, on_bytes, chunk_size)
    else:
        log.warning("Skipping special file %s", source)


def _copy_dir(source: Path, dest: Path, on_bytes: ByteCallback | None, chunk_size: int) -> None:
    try:
        os.mkdir(dest)
        with os.scandir(source) as it:
            children = [dirent.name for dirent in it]
    except OSError as exc:
        raise classify_os_error(exc, exc.filename or source) from exc

    for name in children:
        _copy_node(source / name, dest / name, on_bytes, chunk_size)

    try:
        shutil.copystat(source, dest, follow_symlinks=False)
    except OSError as exc:
        raise classify_os_error(exc, dest) from exc


def _copy_file(source: Path, dest: Path, on_bytes: ByteCallback | None, chunk_size: int) -> None:
    """Copy file contents chunk by chunk, reporting progress after each chunk."""
    try:
        with open(source, "rb") as src, open(dest, "xb") as dst:
            while True:
                chunk = src.read(chunk_size)
                if not chunk:
                    break
                dst.write(chunk)
                if on_bytes is not None:
                    on_bytes(len(chunk))
        shutil.copystat(source, dest, follow_symlinks=False)
    except OSError as exc:
        raise classify_os_error(exc, exc.filename or source) from exc


# ── move ─────────────────────────────────────────────────────────────────

def move_path(
    source: Path,
    destination_dir: Path,
    *,
    on_bytes: ByteCallback | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Path:
    """Move *source* into *destination_dir* under its base name.

    Same-volume moves are a single atomic rename.  Cross-volume moves fall
    back to copy-then-delete; the source is only deleted after the copy
    fully succeeded.

    Returns:
        The path of the new target.
    """
    target = destination_dir / source.name
    _check_source(source)
    _check_destination(destination_dir)
    if target == source:
        log.debug("Move of %s onto itself, nothing to do", source)
        return target
    if _is_within(destination_dir, source):
        raise InvalidTargetError(destination_dir, f"cannot move {source.name} into itself")
    if _is_within(source, target):
        raise InvalidTargetError(target, f"cannot replace {target.name}, it contains {source}")

    cross_device = not _same_device(source, destination_dir)
    if not cross_device:
        try:
            _replace(source, target)
        except FerryError as exc:
            if not isinstance(exc.__cause__, OSError) or exc.__cause__.errno != errno.EXDEV:
                raise
            cross_device = True

    if cross_device:
        log.info("Cross-device move of %s, falling back to copy and delete", source)
        copy_path(source, destination_dir, on_bytes=on_bytes, chunk_size=chunk_size)
        try:
            delete_path(source)
        except FerryError as delete_exc:
            raise NotEmptyOrPermissionError(
                source, f"copied to {target} but could not remove source: {delete_exc.reason}"
            ) from delete_exc
        return target

    if on_bytes is not None:
        on_bytes(measure(target))
    log.debug("Moved %s -> %s", source, target)
    return target


# ── delete ───────────────────────────────────────────────────────────────

def delete_path(path: Path) -> None:
    """Remove a file, symlink or directory tree.

    Removal is best-effort: every removable child is removed even when a
    sibling fails.

    Raises:
        NotFoundError: *path* does not exist.
        NotEmptyOrPermissionError: at least one child could not be removed.
    """
    try:
        st = os.lstat(path)
    except OSError as exc:
        raise classify_os_error(exc, path) from exc

    if not stat.S_ISDIR(st.st_mode):
        try:
            os.unlink(path)
        except OSError as exc:
            raise classify_os_error(exc, path) from exc
        return

    errors = remove_tree(path)
    if errors:
        first = errors[0]
        more = f" (and {len(errors) - 1} more)" if len(errors) > 1 else ""
        raise NotEmptyOrPermissionError(path, f"could not remove {first}{more}")


def remove_tree(path: Path) -> list[str]:
    """Remove a directory tree bottom-up, returning per-path error strings."""
    errors: list[str] = []

    def _record(p: str, exc: OSError) -> None:
        errors.append(f"{p}: {describe_os_error(exc)}")

    def _on_walk_error(exc: OSError) -> None:
        _record(exc.filename or str(path), exc)

    def _rmdir(p: str) -> None:
        try:
            os.rmdir(p)
        except FileNotFoundError:
            pass
        except OSError as exc:
            # A directory left non-empty by an already recorded child failure
            if exc.errno in (errno.ENOTEMPTY, errno.EEXIST) and errors:
                return
            _record(p, exc)

    for root, dirnames, filenames in os.walk(path, topdown=False, onerror=_on_walk_error):
        for name in filenames:
            child = os.path.join(root, name)
            try:
                os.unlink(child)
            except FileNotFoundError:
                pass
            except OSError as exc:
                _record(child, exc)
        for name in dirnames:
            child = os.path.join(root, name)
            if os.path.islink(child):
                try:
                    os.unlink(child)
                except OSError as exc:
                    _record(child, exc)
            else:
                _rmdir(child)

    _rmdir(str(path))
    return errors


# ── helpers ──────────────────────────────────────────────────────────────

def _check_source(source: Path) -> None:
    if not os.path.lexists(source):
        raise NotFoundError(source, "no such file or directory")


def _check_destination(destination_dir: Path) -> None:
    if not destination_dir.is_dir():
        raise NotFoundError(destination_dir, "destination is not an existing directory")


def _same_device(source: Path, destination_dir: Path) -> bool:
    try:
        return os.lstat(source).st_dev == os.stat(destination_dir).st_dev
    except OSError as exc:
        raise classify_os_error(exc, exc.filename or source) from exc


def _is_within(path: Path, ancestor: Path) -> bool:
    return path == ancestor or ancestor in path.parents


def _replace(source: Path, target: Path) -> None:
    """Rename *source* over *target*, clearing a target os.replace cannot overwrite."""
    if os.path.lexists(target):
        target_is_dir = os.path.isdir(target) and not os.path.islink(target)
        source_is_dir = os.path.isdir(source) and not os.path.islink(source)
        if target_is_dir or source_is_dir:
            delete_path(target)
    try:
        os.replace(source, target)
    except OSError as exc:
        raise classify_os_error(exc, target) from exc


def _discard(path: Path) -> None:
    if not os.path.lexists(path):
        return
    try:
        delete_path(path)
    except FerryError as exc:
        log.warning("Could not remove partial copy %s: %s", path, exc)
