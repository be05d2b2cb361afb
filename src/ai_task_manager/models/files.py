"""File metadata and conflict models."""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

FileType = Literal["file", "directory"]
IssueKind = Literal["missing", "size_mismatch", "corrupted"]
Severity = Literal["low", "medium", "high", "critical"]


@dataclass(frozen=True)
class FileInfo:
    """Snapshot of a path on disk.

    ``checksum`` is only ever set for files, and only when the caller asked for it.
    """

    path: Path
    size: int
    modified: datetime
    permissions: int
    type: FileType
    checksum: str | None = None


@dataclass(frozen=True)
class FileConflict:
    """A destination path already occupied by different content.

    ``path`` is relative to the target directory. ``existing`` describes what is on
    disk, ``incoming`` what is about to be written (its ``path`` is the source).
    """

    path: str
    type: FileType
    existing: FileInfo
    incoming: FileInfo


@dataclass(frozen=True)
class IntegrityIssue:
    """A discrepancy between expected and actual installed state."""

    path: str
    issue: IssueKind
    severity: Severity
    expected: Any = None
    actual: Any = None
