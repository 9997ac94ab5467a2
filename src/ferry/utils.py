"""Shared utility functions."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

log = logging.getLogger(__name__)

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def xdg_config_home() -> Path:
    """Return XDG_CONFIG_HOME, defaulting to ~/.config."""
    return Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))


def normalize_path(path: Path | str) -> Path:
    """Expand ``~`` and return an absolute, lexically normalized path.

    Symlinks are not resolved: a link is a node of its own.
    """
    return Path(os.path.normpath(os.path.abspath(os.path.expanduser(os.fspath(path)))))


def tree_size(path: Path | str) -> tuple[int, int]:
    """Sum regular-file bytes below *path* without following symlinks.

    Tries GNU ``find`` first since it walks large trees much faster than
    Python, and walks with ``os.scandir`` where find is missing or fails.

    Returns:
        (total_bytes, file_count) tuple.
    """
    try:
        return _tree_size_find(os.fspath(path))
    except (OSError, ValueError, subprocess.SubprocessError) as e:
        log.debug("find unavailable for %s (%s), walking in Python", path, e)
        return _tree_size_walk(os.fspath(path))


def _tree_size_find(path: str) -> tuple[int, int]:
    proc = subprocess.run(
        ["find", path, "-type", "f", "-printf", "%s\n"],
        capture_output=True, timeout=60,
    )
    if proc.returncode != 0 and not proc.stdout:
        raise OSError(f"find exited with {proc.returncode}")
    sizes = [int(line) for line in proc.stdout.splitlines() if line]
    return sum(sizes), len(sizes)


def _tree_size_walk(path: str) -> tuple[int, int]:
    total = count = 0
    pending = [path]
    while pending:
        try:
            it = os.scandir(pending.pop())
        except OSError:
            continue
        with it:
            for dirent in it:
                try:
                    if dirent.is_dir(follow_symlinks=False):
                        pending.append(dirent.path)
                    elif dirent.is_file(follow_symlinks=False):
                        total += dirent.stat(follow_symlinks=False).st_size
                        count += 1
                except OSError:
                    continue
    return total, count


def bytes_to_human(size_bytes: int) -> str:
    """Convert byte count to a human-readable string."""
    if size_bytes < 0:
        return "-" + bytes_to_human(-size_bytes)
    if size_bytes < 1024:
        return f"{size_bytes} B"
    value = size_bytes / 1024
    for unit in _SIZE_UNITS[1:-1]:
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} {_SIZE_UNITS[-1]}"


def format_elapsed(seconds: float) -> str:
    """Format an elapsed time as a human-readable string."""
    if seconds < 1:
        return f"{seconds * 1000:.0f} ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(round(seconds)), 60)
    if minutes < 60:
        return f"{minutes}m {secs}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m"
