"""Ferry: concurrent directory listing and file transfers."""

from ferry.core.engine import FerryEngine
from ferry.core.errors import (
    AccessDeniedError,
    DeviceError,
    FerryError,
    InvalidTargetError,
    NotEmptyOrPermissionError,
    NotFoundError,
)
from ferry.core.transfer import JobHandle
from ferry.models import Entry, EntryKind, JobState, ListingRequest, TransferAction

__version__ = "0.1.0"

__all__ = [
    "AccessDeniedError",
    "DeviceError",
    "Entry",
    "EntryKind",
    "FerryEngine",
    "FerryError",
    "InvalidTargetError",
    "JobHandle",
    "JobState",
    "ListingRequest",
    "NotEmptyOrPermissionError",
    "NotFoundError",
    "TransferAction",
]
