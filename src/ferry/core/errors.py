"""Error taxonomy for listing and transfer failures.

Every failure delivered to a caller is a :class:`FerryError` carrying the
offending path and a human-readable reason.  Raw :class:`OSError`
instances are mapped onto the taxonomy by :func:`classify_os_error`.
"""

from __future__ import annotations

import errno
import os
from pathlib import Path


class FerryError(Exception):
    """Base exception for delivered listing and transfer errors."""

    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class NotFoundError(FerryError):
    """The target vanished or is not the expected kind of node."""


class AccessDeniedError(FerryError):
    """Permission was denied while reading or writing the target."""


class NotEmptyOrPermissionError(FerryError):
    """A recursive delete could not remove every child."""


class DeviceError(FerryError):
    """Disk full, device failure, name too long, or another I/O error."""


class InvalidTargetError(FerryError):
    """The source and target overlap in a way that makes the job meaningless."""


class ConflictDeferred(FerryError):
    """A queued job overlaps a running or earlier job and must wait.

    Internal only: it delays admission and is never delivered.
    """


class InvalidTransitionError(RuntimeError):
    """Raised on an illegal job state change."""


_NOT_FOUND = {errno.ENOENT, errno.ENOTDIR}
_ACCESS = {errno.EACCES, errno.EPERM, errno.EROFS}
_NOT_EMPTY = {errno.ENOTEMPTY, errno.EEXIST, errno.EBUSY}


def describe_os_error(exc: OSError) -> str:
    """Return the human-readable part of an OSError."""
    if exc.strerror:
        return exc.strerror
    if exc.errno is not None:
        return os.strerror(exc.errno)
    return str(exc) or type(exc).__name__


def classify_os_error(exc: OSError, path: Path | str | None = None) -> FerryError:
    """Map an OSError onto the :class:`FerryError` taxonomy."""
    where = path if path is not None else (exc.filename or "")
    reason = describe_os_error(exc)
    if isinstance(exc, FileNotFoundError) or exc.errno in _NOT_FOUND:
        return NotFoundError(where, reason)
    if isinstance(exc, PermissionError) or exc.errno in _ACCESS:
        return AccessDeniedError(where, reason)
    if exc.errno in _NOT_EMPTY:
        return NotEmptyOrPermissionError(where, reason)
    return DeviceError(where, reason)
