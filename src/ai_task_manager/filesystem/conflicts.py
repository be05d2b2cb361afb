"""Conflict resolution strategies and their application to disk.

Resolvers decide, the manager applies. Deciding never touches the filesystem (the
interactive resolver only looks for a free name when asked to rename).
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import Literal

from ai_task_manager.errors import ConflictApplicationError, TaskManagerError
from ai_task_manager.filesystem.utils import (
    calculate_checksum,
    copy_directory,
    copy_file_with_verification,
    create_backup,
    path_exists,
    remove,
)
from ai_task_manager.models.config import InstallationConfig
from ai_task_manager.models.conflicts import (
    ApplicationOutcome,
    ConflictResolution,
    PlannedResolution,
    ResolutionAction,
    ResolutionPreview,
    ResolvedConflict,
    join_outcomes,
)
from ai_task_manager.models.files import FileConflict

logger = logging.getLogger(__name__)

AutoStrategy = Literal["overwrite", "skip", "backup"]
PromptFunction = Callable[[str, list[str]], str]

INTERACTIVE_STRATEGY = "interactive"
BACKUP_DIR = Path(".ai") / "backups"


class ConflictResolver(ABC):
    """Decides what to do with a single conflict."""

    @abstractmethod
    def resolve_conflict(self, conflict: FileConflict) -> ConflictResolution:
        """Return the resolution for conflict. Must not modify the filesystem."""


class AutoConflictResolver(ConflictResolver):
    """Applies one fixed strategy to every conflict."""

    def __init__(self, strategy: AutoStrategy) -> None:
        self._strategy = strategy

    @property
    def strategy(self) -> AutoStrategy:
        return self._strategy

    def resolve_conflict(self, conflict: FileConflict) -> ConflictResolution:
        match self._strategy:
            case "overwrite":
                return ConflictResolution(action="overwrite")
            case "backup":
                return ConflictResolution(action="overwrite", backup_original=True)
            case _:
                return ConflictResolution(action="skip")


class InteractiveConflictResolver(ConflictResolver):
    """Asks the user through an injected prompt function.

    The prompt receives a message and the allowed choices and returns one of them.
    Anything it returns that is not a known choice resolves to skip.
    """

    def __init__(self, prompt: PromptFunction) -> None:
        self._prompt = prompt

    def resolve_conflict(self, conflict: FileConflict) -> ConflictResolution:
        choices = ["overwrite", "skip", "rename", "backup-and-overwrite"]
        if conflict.type == "directory":
            choices.append("merge")

        choice = self._prompt(format_conflict_message(conflict), choices)
        match choice:
            case "overwrite":
                return ConflictResolution(action="overwrite")
            case "rename":
                return ConflictResolution(
                    action="rename", new_name=find_available_name(conflict.existing.path)
                )
            case "backup-and-overwrite":
                return ConflictResolution(action="overwrite", backup_original=True)
            case "merge" if conflict.type == "directory":
                return ConflictResolution(action="merge")
            case _:
                return ConflictResolution(action="skip")


def format_conflict_message(conflict: FileConflict) -> str:
    existing = conflict.existing
    incoming = conflict.incoming
    verified = "verified" if incoming.checksum else "unverified"
    return (
        f"Conflict detected: {conflict.path}\n"
        f"  Existing: {existing.size / 1024:.1f}KB, modified {existing.modified.isoformat()}\n"
        f"  Incoming: {incoming.size / 1024:.1f}KB, {verified}\n"
        "How would you like to resolve this conflict?"
    )


def find_available_name(existing_path: Path) -> str:
    """Return ``<stem>.new<suffix>``, or ``.new2``, ``.new3``... if already taken."""
    counter = 1
    while True:
        marker = ".new" if counter == 1 else f".new{counter}"
        name = f"{existing_path.stem}{marker}{existing_path.suffix}"
        if not path_exists(existing_path.parent / name):
            return name
        counter += 1


class ConflictResolutionManager:
    """Resolves batches of conflicts according to an InstallationConfig."""

    def __init__(self, default_strategy: ConflictResolver | None = None) -> None:
        self._default_strategy = default_strategy or AutoConflictResolver("skip")
        self._strategies: dict[str, ConflictResolver] = {}

    def register_strategy(self, name: str, resolver: ConflictResolver) -> None:
        """Register a named resolver. ``interactive`` is consulted in ask mode."""
        self._strategies[name] = resolver

    def resolve_conflicts(
        self, conflicts: list[FileConflict], config: InstallationConfig
    ) -> list[PlannedResolution]:
        """Decide a resolution for every conflict.

        A resolver that raises yields a skip plan carrying the error, which is later
        reported as a failed outcome.
        """
        planned: list[PlannedResolution] = []
        for conflict in conflicts:
            try:
                resolution = self._decide(conflict, config)
            except Exception as e:
                logger.warning(f"Failed to resolve conflict for {conflict.path}: {e}")
                planned.append(
                    PlannedResolution(
                        conflict=conflict,
                        resolution=ConflictResolution(action="skip"),
                        error=f"Failed to resolve conflict: {e}",
                    )
                )
                continue
            planned.append(PlannedResolution(conflict=conflict, resolution=resolution))
        return planned

    def preview_resolutions(
        self, conflicts: list[FileConflict], config: InstallationConfig
    ) -> list[ResolutionPreview]:
        """Describe what resolve_conflicts would do, without prompting or I/O.

        Ask mode previews as skip.
        """
        previews: list[ResolutionPreview] = []
        for conflict in conflicts:
            if config.overwrite_mode == "ask":
                resolution = ConflictResolution(action="skip")
            else:
                resolution = _resolution_for_mode(conflict, config)
            previews.append(
                ResolutionPreview(
                    conflict=conflict,
                    resolution=resolution,
                    description=describe_resolution(conflict, resolution),
                )
            )
        return previews

    def apply_resolutions(
        self,
        resolved: list[PlannedResolution],
        target: Path,
        backup_directory: Path | None = None,
    ) -> list[ResolvedConflict]:
        """Execute each planned resolution against target.

        Failures are captured on the returned outcomes; the batch always runs to the
        end. Backups go to ``backup_directory``, by default ``<target>/.ai/backups``.
        """
        backup_directory = backup_directory or target / BACKUP_DIR
        outcomes: list[ApplicationOutcome] = []
        for plan in resolved:
            if plan.error is not None:
                outcomes.append(ApplicationOutcome(path=plan.path, success=False, error=plan.error))
                continue
            try:
                self._apply(plan, target, backup_directory)
            except (TaskManagerError, OSError) as e:
                logger.warning(f"Failed to apply resolution for {plan.path}: {e}")
                outcomes.append(
                    ApplicationOutcome(
                        path=plan.path,
                        success=False,
                        error=f"Failed to apply resolution: {e}",
                    )
                )
                continue
            outcomes.append(ApplicationOutcome(path=plan.path, success=True))
        return join_outcomes(resolved, outcomes)

    def _decide(self, conflict: FileConflict, config: InstallationConfig) -> ConflictResolution:
        if config.overwrite_mode == "ask":
            resolver = self._strategies.get(INTERACTIVE_STRATEGY, self._default_strategy)
            return resolver.resolve_conflict(conflict)
        return _resolution_for_mode(conflict, config)

    def _apply(self, plan: PlannedResolution, target: Path, backup_directory: Path) -> None:
        conflict = plan.conflict
        resolution = plan.resolution
        existing_path = target / conflict.path
        incoming_path = conflict.incoming.path

        match resolution.action:
            case "skip":
                return
            case "overwrite":
                _overwrite(
                    existing_path, incoming_path, resolution.backup_original, backup_directory
                )
            case "rename":
                assert resolution.new_name is not None
                renamed = existing_path.parent / resolution.new_name
                if incoming_path.is_dir():
                    copy_directory(incoming_path, renamed, overwrite=True, verify_integrity=True)
                else:
                    copy_file_with_verification(incoming_path, renamed)
            case "merge":
                if existing_path.is_dir() and incoming_path.is_dir():
                    _merge_directory(
                        existing_path,
                        incoming_path,
                        resolution.backup_original,
                        backup_directory,
                    )
                else:
                    _overwrite(
                        existing_path, incoming_path, resolution.backup_original, backup_directory
                    )


def create_resolver_from_config(
    config: InstallationConfig, prompt: PromptFunction | None = None
) -> ConflictResolutionManager:
    """Build a manager for config, registering an interactive resolver in ask mode.

    Without a prompt function, ask mode falls back to skipping every conflict.
    """
    manager = ConflictResolutionManager()
    if config.overwrite_mode == "ask":
        resolver: ConflictResolver
        if prompt is not None:
            resolver = InteractiveConflictResolver(prompt)
        else:
            resolver = AutoConflictResolver("skip")
        manager.register_strategy(INTERACTIVE_STRATEGY, resolver)
    return manager


def describe_resolution(conflict: FileConflict, resolution: ConflictResolution) -> str:
    noun = "directory" if conflict.type == "directory" else "file"
    match resolution.action:
        case "overwrite":
            backup = " (with backup)" if resolution.backup_original else ""
            return f"Replace existing {noun} {conflict.path}{backup}"
        case "skip":
            return f"Keep existing {noun} {conflict.path}, skip incoming"
        case "rename":
            return f"Install incoming {noun} as {resolution.new_name}"
        case "merge":
            return f"Merge directory {conflict.path}"


def _resolution_for_mode(
    conflict: FileConflict, config: InstallationConfig
) -> ConflictResolution:
    match config.overwrite_mode:
        case "overwrite":
            return ConflictResolution(action="overwrite", backup_original=config.create_backup)
        case "merge":
            action: ResolutionAction = "merge" if conflict.type == "directory" else "overwrite"
            return ConflictResolution(action=action, backup_original=config.create_backup)
        case _:
            return ConflictResolution(action="skip")


def _overwrite(
    existing_path: Path,
    incoming_path: Path,
    backup: bool,
    backup_directory: Path,
) -> None:
    if existing_path.is_dir() and not incoming_path.is_dir():
        raise ConflictApplicationError(
            f"Cannot replace directory {existing_path} with a file",
            code="DIRECTORY_CONFLICT",
            path=existing_path,
            operation="overwrite",
        )

    if backup and path_exists(existing_path):
        create_backup(existing_path, backup_directory)

    if incoming_path.is_dir():
        if path_exists(existing_path) and not existing_path.is_dir():
            remove(existing_path)
        copy_directory(incoming_path, existing_path, overwrite=True, verify_integrity=True)
        return

    copy_file_with_verification(incoming_path, existing_path)


def _merge_directory(
    existing_dir: Path,
    incoming_dir: Path,
    backup: bool,
    backup_directory: Path,
) -> None:
    """Union incoming_dir into existing_dir.

    Missing files are added, differing files are overwritten (backed up first when
    requested), and files only present in existing_dir are left alone.
    """
    if not incoming_dir.is_dir():
        raise ConflictApplicationError(
            f"Cannot merge '{incoming_dir}': not a directory",
            code="MERGE_FAILED",
            path=incoming_dir,
            operation="merge",
        )

    for entry in sorted(incoming_dir.iterdir()):
        counterpart = existing_dir / entry.name
        if entry.is_dir():
            if counterpart.is_dir():
                _merge_directory(counterpart, entry, backup, backup_directory)
            else:
                _overwrite(counterpart, entry, backup, backup_directory)
            continue

        if not path_exists(counterpart):
            copy_file_with_verification(entry, counterpart)
        elif counterpart.is_dir() or calculate_checksum(counterpart) != calculate_checksum(entry):
            _overwrite(counterpart, entry, backup, backup_directory)
