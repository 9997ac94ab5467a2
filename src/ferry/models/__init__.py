"""Ferry data models."""

from ferry.models.entry import Entry, EntryKind
from ferry.models.job import JobState, TransferAction, TransferJob
from ferry.models.listing import DEFAULT_CONSUMER, ListingHandle, ListingRequest, ListingResult

__all__ = [
    "DEFAULT_CONSUMER",
    "Entry",
    "EntryKind",
    "JobState",
    "ListingHandle",
    "ListingRequest",
    "ListingResult",
    "TransferAction",
    "TransferJob",
]
