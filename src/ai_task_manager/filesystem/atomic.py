"""All-or-nothing execution of an installation plan."""

import logging
import time
import uuid
from dataclasses import dataclass
from pathlib import Path

from ai_task_manager.errors import FileOperationError, IntegrityError, TaskManagerError
from ai_task_manager.filesystem.events import EventBus
from ai_task_manager.filesystem.utils import (
    add_atomic_operation,
    calculate_checksum,
    commit_atomic_context,
    create_atomic_context,
    discard_atomic_context,
    path_exists,
    stage_atomic_operation,
)
from ai_task_manager.models.config import InstallationConfig
from ai_task_manager.models.operations import (
    AtomicContext,
    AtomicOperation,
    CompletedOperation,
    InstallationError,
    InstallationOperation,
    InstallationSummary,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AtomicRun:
    """Outcome of one atomic batch.

    ``committed`` is False when staging failed, promotion was rolled back, or the run
    was a dry run. In every one of those cases the target is unchanged.
    """

    committed: bool
    operations: list[CompletedOperation]
    errors: list[InstallationError]
    summary: InstallationSummary


class AtomicInstaller:
    """Stages a batch of operations in a private temp directory, then promotes it.

    Staging failures abort before anything under the target is written. Promotion
    failures are rolled back. The temp directory never outlives ``execute``.
    """

    def __init__(self, events: EventBus | None = None) -> None:
        self._events = events or EventBus()

    def execute(
        self,
        operations: list[InstallationOperation],
        config: InstallationConfig,
        backup_directory: Path | None = None,
    ) -> AtomicRun:
        """Apply operations atomically.

        Args:
            operations: Plan to apply, in order (directories before their files)
            config: Supplies dry_run and default permissions
            backup_directory: Where flagged targets are backed up before replacement

        Returns:
            AtomicRun with one CompletedOperation per planned operation
        """
        started = time.monotonic()
        context = create_atomic_context(f"install-{uuid.uuid4().hex[:12]}")
        pending = self._register(context, operations, config)
        preexisting = {op.target for op in operations if path_exists(op.target)}

        self._events.emit("operation_start", total=len(operations), dry_run=config.dry_run)

        errors: list[InstallationError] = []
        checksums: dict[int, str] = {}
        bytes_transferred = 0
        for index, (planned, atomic_op) in enumerate(zip(operations, pending, strict=True)):
            try:
                stage_atomic_operation(context, atomic_op)
                if atomic_op.staged is not None:
                    checksums[index] = calculate_checksum(atomic_op.staged)
                    bytes_transferred += atomic_op.staged.stat().st_size
            except (TaskManagerError, OSError) as e:
                logger.warning(f"Staging failed for {planned.target}: {e}")
                errors.append(_installation_error(e, planned))
                self._events.emit("operation_error", error=str(e), target=str(planned.target))
                break

        committed = False
        if errors or config.dry_run:
            discard_atomic_context(context)
        else:
            try:
                commit_atomic_context(context, backup_directory=backup_directory)
                committed = True
            except FileOperationError as e:
                errors.append(_installation_error(e, None))
                self._events.emit("rollback", error=str(e), operation_id=context.operation_id)

        completed = [
            CompletedOperation(
                operation=planned,
                completed=committed,
                checksum=checksums.get(index),
                error=_error_for(planned, errors),
            )
            for index, planned in enumerate(operations)
        ]
        for record in completed:
            if record.completed:
                self._events.emit(
                    "operation_applied",
                    operation=record.operation.type,
                    target=str(record.operation.target),
                )

        summary = _summarize(
            operations,
            committed=committed,
            errors=errors,
            preexisting=preexisting,
            bytes_transferred=bytes_transferred if committed else 0,
            duration=time.monotonic() - started,
        )
        self._events.emit(
            "operation_complete",
            committed=committed,
            successful=summary.successful_operations,
            failed=summary.failed_operations,
        )
        return AtomicRun(committed=committed, operations=completed, errors=errors, summary=summary)

    def _register(
        self,
        context: AtomicContext,
        operations: list[InstallationOperation],
        config: InstallationConfig,
    ) -> list[AtomicOperation]:
        registered = []
        for op in operations:
            permissions = op.permissions
            if permissions is None:
                if op.type == "create_directory":
                    permissions = config.permissions.directories
                else:
                    permissions = config.permissions.files
            registered.append(
                add_atomic_operation(
                    context,
                    op.type,
                    source=op.source,
                    target=op.target,
                    content=op.content,
                    permissions=permissions,
                    backup=op.backup,
                )
            )
        return registered


def _installation_error(
    error: Exception, operation: InstallationOperation | None
) -> InstallationError:
    code = error.code if isinstance(error, TaskManagerError) else "OPERATION_FAILED"
    return InstallationError(
        error=str(error),
        code=code,
        recoverable=not isinstance(error, IntegrityError),
        operation=operation,
    )


def _error_for(operation: InstallationOperation, errors: list[InstallationError]) -> str | None:
    for error in errors:
        if error.operation is operation:
            return error.error
    return None


def _summarize(
    operations: list[InstallationOperation],
    *,
    committed: bool,
    errors: list[InstallationError],
    preexisting: set[Path],
    bytes_transferred: int,
    duration: float,
) -> InstallationSummary:
    if not committed:
        return InstallationSummary(
            total_operations=len(operations),
            failed_operations=len(operations) if errors else 0,
            duration=duration,
        )

    files_created = sum(
        1 for op in operations if op.type != "create_directory" and op.target not in preexisting
    )
    directories_created = sum(
        1 for op in operations if op.type == "create_directory" and op.target not in preexisting
    )
    return InstallationSummary(
        total_operations=len(operations),
        successful_operations=len(operations),
        files_created=files_created,
        directories_created=directories_created,
        bytes_transferred=bytes_transferred,
        duration=duration,
    )
