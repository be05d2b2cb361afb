"""Top-level orchestration of install, status, repair and uninstall.

An install moves through DETECTING, PLANNING, CONFLICT_CHECK, APPLYING and VERIFYING
before settling on INSTALLED, PARTIALLY_INSTALLED or FAILED. Every transition is
published on the manager's EventBus.
"""

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, cast

from ai_task_manager.errors import (
    DirectoryCreationError,
    FileOperationError,
    PlanningError,
    TaskManagerError,
    VerificationError,
)
from ai_task_manager.filesystem.atomic import AtomicInstaller
from ai_task_manager.filesystem.conflicts import (
    BACKUP_DIR,
    ConflictResolutionManager,
    PromptFunction,
    create_resolver_from_config,
)
from ai_task_manager.filesystem.detector import CONFIG_FILE, VERSION_FILE, InstallationDetector
from ai_task_manager.filesystem.events import EventBus, EventListener
from ai_task_manager.filesystem.utils import (
    create_directory,
    get_file_info,
    path_exists,
    remove,
)
from ai_task_manager.filesystem.verifier import InstallationVerifier
from ai_task_manager.models.assistant import (
    SUPPORTED_ASSISTANTS,
    AssistantConfig,
    SupportedAssistant,
    create_assistant_config,
)
from ai_task_manager.models.config import InstallationConfig, create_default_installation_config
from ai_task_manager.models.conflicts import (
    ApplicationOutcome,
    PlannedResolution,
    ResolvedConflict,
    join_outcomes,
)
from ai_task_manager.models.files import FileInfo
from ai_task_manager.models.operations import (
    CompletedOperation,
    InstallationError,
    InstallationOperation,
    InstallationResult,
    InstallationSummary,
    InstallState,
    PlanningFailure,
    PlanningResult,
)
from ai_task_manager.models.status import (
    DetectionResult,
    InstallationStatus,
    StatusDetails,
    VerificationResult,
)
from ai_task_manager.sources.base import COMMANDS_SUBDIRECTORY, CommandSource, TemplateSource
from ai_task_manager.sources.bundled import DirectoryCommandSource, DirectoryTemplateSource
from ai_task_manager.version import __version__

logger = logging.getLogger(__name__)

TASK_MANAGER_DIR = Path(".ai") / "task-manager"
TEMPLATES_DIR = TASK_MANAGER_DIR / "templates"


@dataclass(frozen=True)
class _Layout:
    """Where each assistant's files go, as recorded in config.json (relative paths)."""

    assistants: list[str]
    base_directories: dict[str, str]
    commands_directories: dict[str, str]


@dataclass(frozen=True)
class _AdjustedPlan:
    operations: list[InstallationOperation]
    skipped: int
    # Outcomes already known before anything is applied (skips and refusals)
    early_outcomes: list[ApplicationOutcome]
    # Conflict path -> operation whose completion decides the outcome
    pending: dict[str, InstallationOperation]


class FileSystemManager:
    """Coordinates detection, planning, conflict resolution and atomic application.

    The template and command catalogs are injected; they default to the bundled
    package data. In ``ask`` mode, conflicts go to ``prompt`` if one is given and are
    skipped otherwise.
    """

    def __init__(
        self,
        *,
        template_source: TemplateSource | None = None,
        command_source: CommandSource | None = None,
        verification_enabled: bool = True,
        event_listeners: list[EventListener] | None = None,
        conflict_manager: ConflictResolutionManager | None = None,
        prompt: PromptFunction | None = None,
    ) -> None:
        self._template_source = template_source or DirectoryTemplateSource()
        self._command_source = command_source or DirectoryCommandSource()
        self._verification_enabled = verification_enabled
        self._events = EventBus(event_listeners)
        self._conflict_manager = conflict_manager
        self._prompt = prompt
        self._detector = InstallationDetector()
        self._atomic = AtomicInstaller(self._events)
        self._verifier = InstallationVerifier()

    @property
    def events(self) -> EventBus:
        return self._events

    def add_event_listener(self, listener: EventListener) -> None:
        self._events.subscribe(listener)

    def remove_event_listener(self, listener: EventListener) -> None:
        self._events.unsubscribe(listener)

    # Status

    def detect_installation(self, target: Path) -> DetectionResult:
        return self._detector.detect_installation(target)

    def get_installation_status(self, target: Path) -> InstallationStatus:
        """Detector health merged with live template, command and config presence.

        Never raises; an unreadable target reports ``unknown``.
        """
        try:
            detector_status = self._detector.get_installation_status(target)
            detection = self._detector.detect_installation(target)
            details = StatusDetails(
                templates=self._templates_present(target),
                commands=self._commands_present(target),
                config=path_exists(target / CONFIG_FILE),
            )
        except (OSError, TaskManagerError) as e:
            logger.warning(f"Could not read installation status for {target}: {e}")
            return InstallationStatus(
                is_installed=False,
                health="unknown",
                issue_count=0,
                details=StatusDetails(templates=False, commands=False, config=False),
            )

        return InstallationStatus(
            is_installed=detection.is_installed,
            health=detector_status.health,
            issue_count=detector_status.issue_count,
            details=details,
            version=detector_status.version,
            last_modified=detector_status.last_modified,
        )

    # Planning

    def plan_template_installation(self, target: Path) -> PlanningResult:
        """One directory per template under ``.ai/task-manager/templates``, then its files."""
        operations: list[InstallationOperation] = []
        try:
            for name in self._template_source.get_available_templates():
                template_config = self._template_source.get_template_config(name)
                template_dir = target / TEMPLATES_DIR / name
                operations.append(
                    InstallationOperation(type="create_directory", target=template_dir)
                )
                for template_file in template_config.files:
                    operations.append(
                        InstallationOperation(
                            type="copy_file",
                            source=template_file.source,
                            target=template_dir / template_file.destination,
                        )
                    )
        except (PlanningError, OSError) as e:
            return PlanningFailure(source="templates", error=str(e))
        return operations

    def plan_command_installation(self, target: Path) -> PlanningResult:
        """The commands directory ``.claude/commands/tasks``, then one copy per command."""
        try:
            commands = self._command_source.get_available_commands()
        except (PlanningError, OSError) as e:
            return PlanningFailure(source="commands", error=str(e))

        source_dir = self._command_source.source_commands_path
        commands_dir = target / COMMANDS_SUBDIRECTORY
        operations = [InstallationOperation(type="create_directory", target=commands_dir)]
        for command in commands:
            operations.append(
                InstallationOperation(
                    type="copy_file",
                    source=source_dir / command.filename,
                    target=commands_dir / command.filename,
                )
            )
        return operations

    def plan_command_installation_for_assistants(
        self, target: Path, assistant_config: AssistantConfig
    ) -> PlanningResult:
        """Per assistant, in order: commands dir, tasks dir, then one copy per command."""
        try:
            commands = self._command_source.get_available_commands()
        except (PlanningError, OSError) as e:
            return PlanningFailure(source="commands", error=str(e))

        source_dir = self._command_source.source_commands_path
        operations: list[InstallationOperation] = []
        for assistant in assistant_config.assistants:
            installation_target = assistant_config.target_for(assistant)
            operations.append(
                InstallationOperation(
                    type="create_directory", target=installation_target.commands_directory
                )
            )
            operations.append(
                InstallationOperation(
                    type="create_directory", target=installation_target.tasks_directory
                )
            )
            for command in commands:
                operations.append(
                    InstallationOperation(
                        type="copy_file",
                        source=source_dir / command.filename,
                        target=installation_target.commands_directory / command.filename,
                    )
                )
        return operations

    def create_assistant_directories(
        self, target: Path, assistant_config: AssistantConfig
    ) -> None:
        """Create base, commands and tasks directories for every assistant.

        Not rolled back: directories created before a failure stay in place.

        Raises:
            DirectoryCreationError: Naming every assistant and path that failed
        """
        failures: list[tuple[str, Path, str]] = []
        for installation_target in assistant_config.installation_targets:
            for directory in (
                installation_target.base_directory,
                installation_target.commands_directory,
                installation_target.tasks_directory,
            ):
                try:
                    create_directory(directory)
                except FileOperationError as e:
                    failures.append((installation_target.assistant, directory, str(e)))

        if failures:
            details = "; ".join(
                f"{assistant} ({directory}): {error}" for assistant, directory, error in failures
            )
            raise DirectoryCreationError(
                f"Failed to create assistant directories: {details}", failures=failures
            )
        logger.debug("Created assistant directories under %s", target)

    # Installation

    def install_for_assistants(
        self,
        target: Path,
        config: InstallationConfig,
        assistant_config: AssistantConfig,
    ) -> InstallationResult:
        """Install markers, templates and per-assistant commands in one atomic batch.

        Raises:
            DirectoryCreationError: If assistant directories cannot be created
        """

        def prepare() -> None:
            if not config.dry_run:
                self.create_assistant_directories(target, assistant_config)

        layout = _Layout(
            assistants=list(assistant_config.assistants),
            base_directories={
                t.assistant: _relative(target, t.base_directory)
                for t in assistant_config.installation_targets
            },
            commands_directories={
                t.assistant: _relative(target, t.commands_directory)
                for t in assistant_config.installation_targets
            },
        )
        return self._install(
            target,
            config,
            layout,
            plan_commands=lambda: self.plan_command_installation_for_assistants(
                target, assistant_config
            ),
            prepare=prepare,
        )

    def install_ai_task_manager(
        self, target: Path, config: InstallationConfig | None = None
    ) -> InstallationResult:
        """Single-assistant install with commands in ``.claude/commands/tasks``."""
        layout = _Layout(
            assistants=["claude"],
            base_directories={"claude": ".claude"},
            commands_directories={"claude": COMMANDS_SUBDIRECTORY.as_posix()},
        )
        return self._install(
            target,
            config or create_default_installation_config(target),
            layout,
            plan_commands=lambda: self.plan_command_installation(target),
            prepare=None,
        )

    def verify_installation(self, target: Path) -> VerificationResult:
        """Verify target against its saved MANIFEST.json.

        Raises:
            VerificationError: If there is no usable manifest
        """
        self._verifier.load_manifest(target)
        return self._verifier.verify_installation(target)

    def repair_installation(
        self, target: Path, config: InstallationConfig | None = None
    ) -> InstallationResult:
        """Reinstall over a damaged installation, overwriting with backups.

        A valid installation is left untouched. A multi-assistant installation is
        reinstalled for the assistants recorded in config.json, using the default
        directory layout.
        """
        config = config or create_default_installation_config(target)
        try:
            verification = self.verify_installation(target)
            if verification.valid:
                return InstallationResult(
                    success=True,
                    state=InstallState.INSTALLED,
                    operations=[],
                    conflicts=[],
                    errors=[],
                    summary=InstallationSummary(),
                )
            logger.info(f"Repairing {target}: {verification.summary}")
        except VerificationError as e:
            logger.info(f"Repairing {target}: {e}")

        repair_config = config.model_copy(
            update={"overwrite_mode": "overwrite", "create_backup": True}
        )
        assistants = _stored_assistants(target)
        if assistants:
            assistant_config = create_assistant_config(assistants, target)
            return self.install_for_assistants(target, repair_config, assistant_config)
        return self.install_ai_task_manager(target, repair_config)

    # Uninstall

    def uninstall_ai_task_manager(self, target: Path) -> bool:
        """Remove ``.ai/task-manager`` and ``.claude/commands/tasks``.

        Returns:
            True if nothing is left (including when nothing existed), False if a
            removal was blocked
        """
        paths = [target / TASK_MANAGER_DIR, target / COMMANDS_SUBDIRECTORY]
        return self._uninstall(target, paths)

    def uninstall_for_assistants(self, target: Path, assistant_config: AssistantConfig) -> bool:
        """Like uninstall_ai_task_manager, also removing every assistant's directories."""
        paths = [target / TASK_MANAGER_DIR, target / COMMANDS_SUBDIRECTORY]
        for installation_target in assistant_config.installation_targets:
            paths.extend(
                [
                    installation_target.commands_directory,
                    installation_target.tasks_directory,
                    installation_target.base_directory,
                ]
            )
        return self._uninstall(target, paths)

    # Internals

    def _set_state(self, state: InstallState) -> None:
        self._events.emit("state_changed", state=state.value)

    def _install(
        self,
        target: Path,
        config: InstallationConfig,
        layout: _Layout,
        *,
        plan_commands: Callable[[], PlanningResult],
        prepare: Callable[[], None] | None,
    ) -> InstallationResult:
        started = time.monotonic()
        warnings: list[str] = []

        self._set_state(InstallState.DETECTING)
        detection = self._detector.detect_installation(target)
        if detection.version:
            logger.info(f"Existing installation {detection.version} found at {target}")

        if prepare is not None:
            try:
                prepare()
            except DirectoryCreationError as e:
                self._events.emit("operation_error", error=str(e), target=str(target))
                self._set_state(InstallState.FAILED)
                raise

        self._set_state(InstallState.PLANNING)
        self._events.emit("planning_started", target=str(target))
        markers = self._plan_markers(target, layout)
        operations = [
            *self._accept(self.plan_template_installation(target), warnings),
            *self._accept(plan_commands(), warnings),
        ]

        self._set_state(InstallState.CONFLICT_CHECK)
        plans = self._resolve(target, operations, config)
        adjusted = _adjust_plan(target, operations, plans)

        self._set_state(InstallState.APPLYING)
        backup_directory = None
        if config.create_backup and config.backup_mode != "none":
            backup_directory = target / BACKUP_DIR
        run = self._atomic.execute([*markers, *adjusted.operations], config, backup_directory)

        completed_targets = {
            record.operation.target for record in run.operations if record.completed
        }
        if config.dry_run:
            not_applied = "Dry run, nothing applied"
        else:
            not_applied = "Installation was rolled back"
        conflicts = _conflict_outcomes(plans, adjusted, completed_targets, not_applied)
        for operation in adjusted.operations:
            if operation.backup and operation.target in completed_targets:
                self._events.emit("backup_created", target=str(operation.target))

        errors = list(run.errors)
        if run.committed and self._verification_enabled and config.verify_integrity:
            self._set_state(InstallState.VERIFYING)
            errors.extend(self._verify_after_install(target, run.operations))

        if config.dry_run:
            state = InstallState.DRY_RUN
            success = not errors
        elif not run.committed:
            state = InstallState.FAILED
            success = False
        else:
            success = not errors and all(conflict.success for conflict in conflicts)
            state = InstallState.INSTALLED if success else InstallState.PARTIALLY_INSTALLED
        self._set_state(state)

        summary = replace(
            run.summary,
            total_operations=run.summary.total_operations + adjusted.skipped,
            skipped_operations=adjusted.skipped,
            conflicts_resolved=sum(1 for conflict in conflicts if conflict.success),
            duration=time.monotonic() - started,
        )
        return InstallationResult(
            success=success,
            state=state,
            operations=run.operations,
            conflicts=conflicts,
            errors=errors,
            summary=summary,
            warnings=warnings,
        )

    def _accept(self, result: PlanningResult, warnings: list[str]) -> list[InstallationOperation]:
        if isinstance(result, PlanningFailure):
            message = f"{result.source} planning failed: {result.error}"
            logger.warning(message)
            self._events.emit("planning_warning", source=result.source, error=result.error)
            warnings.append(message)
            return []
        return result

    def _plan_markers(self, target: Path, layout: _Layout) -> list[InstallationOperation]:
        stored = _read_stored_config(target)
        created_at = stored.get("created_at") if stored else None
        config_body = {
            "version": __version__,
            "created_at": created_at or datetime.now(UTC).isoformat(),
            "assistants": layout.assistants,
            "assistant_directories": layout.base_directories,
            "commands_directories": layout.commands_directories,
        }
        return [
            InstallationOperation(type="create_directory", target=target / TASK_MANAGER_DIR),
            InstallationOperation(
                type="write_file",
                target=target / VERSION_FILE,
                content=f"{__version__}\n".encode(),
            ),
            InstallationOperation(
                type="write_file",
                target=target / CONFIG_FILE,
                content=(json.dumps(config_body, indent=2) + "\n").encode(),
            ),
        ]

    def _resolve(
        self,
        target: Path,
        operations: list[InstallationOperation],
        config: InstallationConfig,
    ) -> list[PlannedResolution]:
        incoming: dict[str, FileInfo] = {}
        for operation in operations:
            if operation.type != "copy_file" or operation.source is None:
                continue
            try:
                incoming[_relative(target, operation.target)] = get_file_info(
                    operation.source, with_checksum=True
                )
            except FileOperationError as e:
                # Staging reports the unreadable source
                logger.debug("Skipping conflict analysis for %s: %s", operation.source, e)

        conflicts = self._detector.analyze_conflicts(target, incoming)
        if not conflicts:
            return []
        for conflict in conflicts:
            self._events.emit("conflict_detected", path=conflict.path, type=conflict.type)

        conflict_manager = self._conflict_manager or create_resolver_from_config(
            config, self._prompt
        )
        plans = conflict_manager.resolve_conflicts(conflicts, config)
        for plan in plans:
            self._events.emit(
                "conflict_resolved", error=plan.error, path=plan.path, action=plan.resolution.action
            )
        return plans

    def _verify_after_install(
        self, target: Path, operations: list[CompletedOperation]
    ) -> list[InstallationError]:
        self._events.emit("verification_start", target=str(target))
        try:
            self._verifier.generate_manifest(target, operations, __version__)
            self._verifier.save_manifest(target)
            verification = self._verifier.verify_installation(target)
        except VerificationError as e:
            self._events.emit("verification_complete", error=str(e), valid=False)
            return [InstallationError(error=str(e), code=e.code, recoverable=True)]

        self._events.emit(
            "verification_complete",
            valid=verification.valid,
            checked_files=verification.checked_files,
        )
        if verification.valid:
            return []
        return [
            InstallationError(
                error=f"Installation verification failed: {verification.summary}",
                code="VERIFICATION_FAILED",
                recoverable=True,
            )
        ]

    def _templates_present(self, target: Path) -> bool:
        templates_dir = target / TEMPLATES_DIR
        try:
            names = self._template_source.get_available_templates()
        except PlanningError:
            return templates_dir.is_dir()
        if not names:
            return templates_dir.is_dir()
        return all((templates_dir / name).is_dir() for name in names)

    def _commands_present(self, target: Path) -> bool:
        stored = _read_stored_config(target) or {}
        recorded = stored.get("commands_directories")
        if isinstance(recorded, dict) and recorded:
            directories = [target / str(directory) for directory in recorded.values()]
        else:
            directories = [target / COMMANDS_SUBDIRECTORY]
        return all(
            self._command_source.get_installation_status(target, directory).is_installed
            for directory in directories
        )

    def _uninstall(self, target: Path, paths: list[Path]) -> bool:
        self._set_state(InstallState.DETECTING)
        existing = [path for path in paths if path_exists(path)]
        if not existing:
            self._set_state(InstallState.REMOVED)
            return True

        self._set_state(InstallState.REMOVING)
        blocked = False
        for path in existing:
            if not path_exists(path):
                continue
            try:
                remove(path, recursive=True)
            except FileOperationError as e:
                logger.warning(f"Could not remove {path}: {e}")
                self._events.emit("operation_error", error=str(e), path=str(path))
                blocked = True

        self._set_state(InstallState.FAILED if blocked else InstallState.REMOVED)
        return not blocked


def _relative(target: Path, path: Path) -> str:
    try:
        return path.relative_to(target).as_posix()
    except ValueError:
        return path.as_posix()


def _adjust_plan(
    target: Path, operations: list[InstallationOperation], plans: list[PlannedResolution]
) -> _AdjustedPlan:
    """Apply conflict decisions to the plan.

    Skips drop the operation, renames retarget it, overwrite and merge keep it and
    request a backup when the plan says so. A file cannot replace a directory, so
    such conflicts are refused unless skipped.
    """
    by_path = {plan.path: plan for plan in plans}
    adjusted: list[InstallationOperation] = []
    early: list[ApplicationOutcome] = []
    pending: dict[str, InstallationOperation] = {}
    skipped = 0

    for operation in operations:
        plan = None
        if operation.type == "copy_file":
            plan = by_path.get(_relative(target, operation.target))
        if plan is None:
            adjusted.append(operation)
            continue

        if plan.error is not None:
            skipped += 1
            early.append(ApplicationOutcome(path=plan.path, success=False, error=plan.error))
            continue

        resolution = plan.resolution
        if resolution.action == "skip":
            skipped += 1
            early.append(ApplicationOutcome(path=plan.path, success=True))
            continue

        if resolution.action == "rename":
            assert resolution.new_name is not None
            retargeted = replace(operation, target=operation.target.parent / resolution.new_name)
            adjusted.append(retargeted)
            pending[plan.path] = retargeted
            continue

        if plan.conflict.type == "directory":
            skipped += 1
            early.append(
                ApplicationOutcome(
                    path=plan.path,
                    success=False,
                    error=f"Cannot replace directory {plan.path} with a file",
                )
            )
            continue

        kept = replace(operation, backup=resolution.backup_original)
        adjusted.append(kept)
        pending[plan.path] = kept

    return _AdjustedPlan(
        operations=adjusted, skipped=skipped, early_outcomes=early, pending=pending
    )


def _conflict_outcomes(
    plans: list[PlannedResolution],
    adjusted: _AdjustedPlan,
    completed_targets: set[Path],
    not_applied: str,
) -> list[ResolvedConflict]:
    outcomes = list(adjusted.early_outcomes)
    for path, operation in adjusted.pending.items():
        if operation.target in completed_targets:
            outcomes.append(ApplicationOutcome(path=path, success=True))
        else:
            outcomes.append(ApplicationOutcome(path=path, success=False, error=not_applied))
    return join_outcomes(plans, outcomes)


def _stored_assistants(target: Path) -> list[SupportedAssistant]:
    """Assistants of a recorded multi-assistant installation, else an empty list."""
    stored = _read_stored_config(target) or {}
    recorded = stored.get("commands_directories")
    if not isinstance(recorded, dict):
        return []
    if set(recorded.values()) <= {COMMANDS_SUBDIRECTORY.as_posix()}:
        return []
    assistants = stored.get("assistants")
    if not isinstance(assistants, list):
        return []
    return [cast(SupportedAssistant, a) for a in assistants if a in SUPPORTED_ASSISTANTS]


def _read_stored_config(target: Path) -> dict[str, Any] | None:
    config_path = target / CONFIG_FILE
    if not path_exists(config_path):
        return None
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable {config_path}: {e}")
        return None
    return data if isinstance(data, dict) else None
