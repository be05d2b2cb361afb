"""Detection, status and verification result models."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Literal

from ai_task_manager.models.files import IntegrityIssue

Health = Literal["healthy", "partial", "unknown"]


@dataclass(frozen=True)
class DetectionResult:
    """What an installation detector found in a target directory."""

    is_installed: bool
    partial_installation: bool
    version: str | None = None
    installation_path: Path | None = None
    missing_files: list[str] = field(default_factory=list)
    conflicting_files: list[str] = field(default_factory=list)
    integrity_issues: list[IntegrityIssue] = field(default_factory=list)


@dataclass(frozen=True)
class DetectorStatus:
    """Summary health of the installation markers and expected files."""

    has_installation: bool
    health: Health
    issue_count: int
    version: str | None = None
    last_modified: datetime | None = None


@dataclass(frozen=True)
class StatusDetails:
    """Live presence of each installed component."""

    templates: bool
    commands: bool
    config: bool


@dataclass(frozen=True)
class InstallationStatus:
    """Full installation status including template and command presence."""

    is_installed: bool
    health: Health
    issue_count: int
    details: StatusDetails
    version: str | None = None
    last_modified: datetime | None = None


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of verifying an installation against its manifest."""

    valid: bool
    checked_files: int
    valid_files: int
    issues: list[IntegrityIssue]
    summary: str
