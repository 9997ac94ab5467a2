"""Directory entry snapshot dataclass."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class EntryKind(str, Enum):
    """Kind of filesystem node, resolved without following symlinks."""

    FILE = "file"
    DIRECTORY = "directory"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class Entry:
    """One filesystem node observed at listing time.

    Entries are value snapshots: they never track the live filesystem.
    ``size`` and ``modified_at`` are only meaningful for files; other
    kinds report ``0`` and ``None``.
    """

    path: Path
    kind: EntryKind
    size: int = 0
    modified_at: float | None = None

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def is_file(self) -> bool:
        return self.kind is EntryKind.FILE

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY
