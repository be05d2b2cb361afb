"""Interfaces for the content catalogs the installer draws from."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

COMMANDS_SUBDIRECTORY = Path(".claude") / "commands" / "tasks"


@dataclass(frozen=True)
class TemplateFile:
    """One file of a template. ``destination`` is relative to the template root."""

    source: Path
    destination: str
    name: str


@dataclass(frozen=True)
class TemplateConfig:
    name: str
    description: str
    files: list[TemplateFile]


@dataclass(frozen=True)
class CommandFile:
    """A command markdown file with its parsed frontmatter."""

    filename: str
    content: str
    frontmatter: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CommandInstallError:
    command: str
    error: str


@dataclass(frozen=True)
class CommandInstallResult:
    installed: list[CommandFile]
    skipped: list[CommandFile]
    errors: list[CommandInstallError]


@dataclass(frozen=True)
class CommandInstallationStatus:
    """Which source commands are present (and identical) in a commands directory."""

    is_installed: bool
    installed_commands: list[str]
    missing_commands: list[str]
    conflicting_commands: list[str]


class TemplateSource(ABC):
    """Catalog of installable templates."""

    @abstractmethod
    def get_available_templates(self) -> list[str]:
        """List template names.

        Raises:
            PlanningError: If the catalog cannot be read
        """

    @abstractmethod
    def get_template_config(self, name: str) -> TemplateConfig:
        """Describe a template and enumerate its files.

        Raises:
            PlanningError: If the template does not exist or cannot be read
        """


class CommandSource(ABC):
    """Catalog of assistant command files."""

    @property
    @abstractmethod
    def source_commands_path(self) -> Path:
        """Directory holding the command files."""

    @abstractmethod
    def get_available_commands(self) -> list[CommandFile]:
        """List command files with parsed frontmatter.

        Raises:
            PlanningError: If the catalog cannot be read
        """

    @abstractmethod
    def install_commands(
        self,
        target: Path,
        *,
        overwrite: bool = False,
        validate: bool = True,
        commands_directory: Path | None = None,
    ) -> CommandInstallResult:
        """Copy commands straight into a commands directory, outside any atomic batch.

        ``commands_directory`` defaults to ``<target>/.claude/commands/tasks``.
        """

    @abstractmethod
    def get_installation_status(
        self, target: Path, commands_directory: Path | None = None
    ) -> CommandInstallationStatus:
        """Compare installed commands with the catalog. Never raises."""
