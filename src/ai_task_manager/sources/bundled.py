"""Catalogs backed by directories, by default the package's bundled data."""

import logging
import os
from pathlib import Path

import frontmatter
import yaml

from ai_task_manager.errors import PlanningError
from ai_task_manager.sources.base import (
    COMMANDS_SUBDIRECTORY,
    CommandFile,
    CommandInstallationStatus,
    CommandInstallError,
    CommandInstallResult,
    CommandSource,
    TemplateConfig,
    TemplateFile,
    TemplateSource,
)

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent.parent / "data"


class DirectoryTemplateSource(TemplateSource):
    """Each subdirectory of ``root`` is a template; all files inside it are installed."""

    def __init__(self, root: Path | None = None) -> None:
        self._root = root or DATA_DIR / "templates"

    @property
    def root(self) -> Path:
        return self._root

    def get_available_templates(self) -> list[str]:
        try:
            return sorted(entry.name for entry in self._root.iterdir() if entry.is_dir())
        except OSError as e:
            raise PlanningError(
                f"Failed to read templates directory: {e}",
                code="READ_TEMPLATES_FAILED",
                path=self._root,
                operation="get_available_templates",
            ) from e

    def get_template_config(self, name: str) -> TemplateConfig:
        template_path = self._root / name
        if not template_path.is_dir():
            raise PlanningError(
                f"Template not found: {name}",
                code="TEMPLATE_NOT_FOUND",
                path=template_path,
                operation="get_template_config",
            )

        try:
            sources = sorted(p for p in template_path.rglob("*") if p.is_file())
        except OSError as e:
            raise PlanningError(
                f"Failed to get template config for '{name}': {e}",
                code="TEMPLATE_CONFIG_FAILED",
                path=template_path,
                operation="get_template_config",
            ) from e

        return TemplateConfig(
            name=name,
            description=f"Template for {name}",
            files=[
                TemplateFile(
                    source=source,
                    destination=source.relative_to(template_path).as_posix(),
                    name=source.stem,
                )
                for source in sources
            ],
        )


class DirectoryCommandSource(CommandSource):
    """Command markdown files read from a directory.

    Frontmatter is parsed with python-frontmatter. A command is valid when its
    frontmatter carries a ``description``.
    """

    def __init__(self, root: Path | None = None) -> None:
        self._root = root or DATA_DIR / "commands" / "tasks"

    @property
    def source_commands_path(self) -> Path:
        return self._root

    def get_available_commands(self) -> list[CommandFile]:
        try:
            paths = sorted(p for p in self._root.iterdir() if p.suffix == ".md" and p.is_file())
            return [_read_command(path) for path in paths]
        except (OSError, UnicodeDecodeError) as e:
            raise PlanningError(
                f"Failed to read commands directory: {e}",
                code="READ_COMMANDS_FAILED",
                path=self._root,
                operation="get_available_commands",
            ) from e

    def install_commands(
        self,
        target: Path,
        *,
        overwrite: bool = False,
        validate: bool = True,
        commands_directory: Path | None = None,
    ) -> CommandInstallResult:
        destination_dir = commands_directory or target / COMMANDS_SUBDIRECTORY
        destination_dir.mkdir(parents=True, exist_ok=True)

        installed: list[CommandFile] = []
        skipped: list[CommandFile] = []
        errors: list[CommandInstallError] = []
        for command in self.get_available_commands():
            destination = destination_dir / command.filename
            if destination.exists() and not overwrite:
                skipped.append(command)
                continue
            if validate and not is_valid_command(command):
                errors.append(
                    CommandInstallError(
                        command=command.filename,
                        error="Command validation failed: missing required frontmatter",
                    )
                )
                continue
            try:
                destination.write_text(command.content, encoding="utf-8")
                os.chmod(destination, 0o644)
            except OSError as e:
                errors.append(
                    CommandInstallError(command=command.filename, error=f"Failed to install: {e}")
                )
                continue
            installed.append(command)

        return CommandInstallResult(installed=installed, skipped=skipped, errors=errors)

    def get_installation_status(
        self, target: Path, commands_directory: Path | None = None
    ) -> CommandInstallationStatus:
        destination_dir = commands_directory or target / COMMANDS_SUBDIRECTORY
        try:
            available = self.get_available_commands()
        except PlanningError as e:
            logger.warning(f"Cannot compare commands: {e}")
            available = []
        filenames = [command.filename for command in available]

        if not destination_dir.is_dir():
            return CommandInstallationStatus(
                is_installed=False,
                installed_commands=[],
                missing_commands=filenames,
                conflicting_commands=[],
            )

        installed: list[str] = []
        missing: list[str] = []
        conflicting: list[str] = []
        for command in available:
            installed_path = destination_dir / command.filename
            if not installed_path.is_file():
                missing.append(command.filename)
                continue
            try:
                matches = installed_path.read_text(encoding="utf-8") == command.content
            except (OSError, UnicodeDecodeError):
                matches = False
            if matches:
                installed.append(command.filename)
            else:
                conflicting.append(command.filename)

        return CommandInstallationStatus(
            is_installed=bool(filenames) and len(installed) == len(filenames),
            installed_commands=installed,
            missing_commands=missing,
            conflicting_commands=conflicting,
        )


def is_valid_command(command: CommandFile) -> bool:
    """A command needs a frontmatter block with a non-empty description."""
    return bool(command.frontmatter.get("description")) and command.content.startswith("---")


def _read_command(path: Path) -> CommandFile:
    content = path.read_text(encoding="utf-8")
    # Malformed YAML leaves the command without metadata; validation rejects it later
    try:
        metadata = dict(frontmatter.loads(content).metadata)
    except yaml.YAMLError as e:
        logger.warning(f"Invalid frontmatter in {path.name}: {e}")
        metadata = {}
    return CommandFile(filename=path.name, content=content, frontmatter=metadata)
