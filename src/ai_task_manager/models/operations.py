"""Planned filesystem operations and installation results."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Literal

from ai_task_manager.models.conflicts import ResolvedConflict

OperationType = Literal["create_directory", "copy_file", "write_file"]


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class InstallationOperation:
    """One step of an installation plan.

    ``copy_file`` reads ``source``; ``write_file`` writes the inline ``content``;
    ``create_directory`` only needs ``target``. ``backup`` asks the installer to back
    up whatever currently occupies ``target`` right before replacing it.
    """

    type: OperationType
    target: Path
    source: Path | None = None
    content: bytes | None = None
    permissions: int | None = None
    backup: bool = False


@dataclass
class AtomicOperation:
    """An operation registered in an atomic context.

    ``staged`` is the path inside the context's temp directory holding the staged
    result, once staging has happened.
    """

    id: str
    type: OperationType
    source: Path | None = None
    target: Path | None = None
    content: bytes | None = None
    permissions: int | None = None
    backup: bool = False
    staged: Path | None = None
    completed: bool = False


@dataclass
class AtomicContext:
    """Scratch area for all-or-nothing application of a batch.

    Exclusively owned by one install or uninstall call. The temp directory is removed
    on commit or abort.
    """

    operation_id: str
    temp_directory: Path
    operations: list[AtomicOperation] = field(default_factory=list)
    committed: bool = False


@dataclass(frozen=True)
class CompletedOperation:
    """Record of an executed operation."""

    operation: InstallationOperation
    completed: bool
    error: str | None = None
    checksum: str | None = None
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class InstallationError:
    """An itemized failure reported in an InstallationResult."""

    error: str
    code: str
    recoverable: bool
    operation: InstallationOperation | None = None
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class InstallationSummary:
    """Counters describing one installation run."""

    total_operations: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    skipped_operations: int = 0
    files_created: int = 0
    directories_created: int = 0
    conflicts_resolved: int = 0
    bytes_transferred: int = 0
    duration: float = 0.0


class InstallState(Enum):
    """States an installation or uninstallation attempt moves through."""

    DETECTING = "detecting"
    PLANNING = "planning"
    CONFLICT_CHECK = "conflict_check"
    APPLYING = "applying"
    VERIFYING = "verifying"
    INSTALLED = "installed"
    PARTIALLY_INSTALLED = "partially_installed"
    DRY_RUN = "dry_run"
    REMOVING = "removing"
    REMOVED = "removed"
    FAILED = "failed"


@dataclass(frozen=True)
class InstallationResult:
    """Structured outcome of an install call.

    ``success`` is True only if every planned operation completed.
    """

    success: bool
    state: InstallState
    operations: list[CompletedOperation]
    conflicts: list[ResolvedConflict]
    errors: list[InstallationError]
    summary: InstallationSummary
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PlanningFailure:
    """A template or command source could not enumerate its files."""

    source: str
    error: str


PlanningResult = list[InstallationOperation] | PlanningFailure
