"""Installation configuration models."""

from pathlib import Path
from typing import Literal, cast

from pydantic import BaseModel, ConfigDict, Field

OverwriteMode = Literal["ask", "overwrite", "skip", "merge"]
BackupMode = Literal["auto", "manual", "none"]


def validate_overwrite_mode(value: str) -> OverwriteMode:
    """Validate and return overwrite mode.

    Args:
        value: String to validate

    Returns:
        Valid OverwriteMode

    Raises:
        ValueError: If value is not a valid overwrite mode
    """
    if value not in ("ask", "overwrite", "skip", "merge"):
        raise ValueError(f"Invalid overwrite mode: {value}")
    return cast(OverwriteMode, value)


class FilePermissions(BaseModel):
    """Modes applied to installed files and directories."""

    model_config = ConfigDict(frozen=True)

    files: int = Field(default=0o644, ge=0, le=0o7777)
    directories: int = Field(default=0o755, ge=0, le=0o7777)


class InstallationConfig(BaseModel):
    """Drives planning and conflict defaults. Immutable for the length of a run."""

    model_config = ConfigDict(frozen=True)

    target_directory: Path
    overwrite_mode: OverwriteMode = "ask"
    backup_mode: BackupMode = "auto"
    verify_integrity: bool = True
    create_backup: bool = True
    permissions: FilePermissions = Field(default_factory=FilePermissions)
    dry_run: bool = False


def create_default_installation_config(target_directory: Path) -> InstallationConfig:
    """Create the default configuration for installing into target_directory."""
    return InstallationConfig(target_directory=target_directory)
