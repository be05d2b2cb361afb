"""Project settings file I/O for ai-task-manager.toml."""

from pathlib import Path

import tomli
from pydantic import BaseModel, ConfigDict, ValidationError

from ai_task_manager.models.assistant import SupportedAssistant
from ai_task_manager.models.config import BackupMode, InstallationConfig, OverwriteMode

SETTINGS_FILE = "ai-task-manager.toml"


class ProjectSettings(BaseModel):
    """Installer defaults a project can pin in ai-task-manager.toml.

    Unset keys fall back to the installer defaults. Command line flags win over both.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    overwrite_mode: OverwriteMode | None = None
    backup_mode: BackupMode | None = None
    create_backup: bool | None = None
    verify_integrity: bool | None = None
    assistants: list[SupportedAssistant] | None = None


def load_project_settings(project_dir: Path) -> ProjectSettings:
    """Load ai-task-manager.toml from project directory.

    A missing file yields empty settings.

    Raises:
        ValueError: If the file is not valid TOML or holds unknown or invalid keys
    """
    settings_path = project_dir / SETTINGS_FILE
    if not settings_path.exists():
        return ProjectSettings()

    with open(settings_path, "rb") as f:
        try:
            data = tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML in {settings_path}: {e}") from e

    try:
        return ProjectSettings.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid settings in {settings_path}: {e}") from e


def build_installation_config(
    target: Path,
    settings: ProjectSettings,
    *,
    force: bool = False,
    dry_run: bool = False,
    no_backup: bool = False,
) -> InstallationConfig:
    """Combine project settings with command line flags.

    ``force`` selects overwrite mode, ``no_backup`` turns backups off entirely.
    """
    config = InstallationConfig(target_directory=target, dry_run=dry_run)
    updates: dict[str, object] = {
        key: value
        for key, value in settings.model_dump(exclude={"assistants"}).items()
        if value is not None
    }
    if force:
        updates["overwrite_mode"] = "overwrite"
    if no_backup:
        updates["create_backup"] = False
        updates["backup_mode"] = "none"
    return config.model_copy(update=updates)
