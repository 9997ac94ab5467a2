"""Directory listing request and result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from ferry.core.errors import FerryError
from ferry.models.entry import Entry

DEFAULT_CONSUMER = "default"


@dataclass(frozen=True, slots=True)
class ListingRequest:
    """One in-flight or completed directory scan.

    A newer request for the same ``consumer`` supersedes this one; its
    result is then discarded instead of delivered.
    """

    target_dir: Path
    generation: int
    consumer: str = DEFAULT_CONSUMER


# Handle returned to callers of DirectoryLister.list()
ListingHandle = ListingRequest


@dataclass(slots=True)
class ListingResult:
    """Outcome of a finished scan, before the supersession check."""

    request: ListingRequest
    entries: list[Entry] = field(default_factory=list)
    error: FerryError | None = None
