"""Filesystem primitives.

This module holds no installation policy: no conflict logic, no configuration.
It is the single place where ``OSError`` is converted into typed failures, and is
shared unchanged by planning and by execution.
"""

import hashlib
import logging
import os
import shutil
import stat
import tempfile
import time
from datetime import UTC, datetime
from pathlib import Path

from ai_task_manager.errors import FileOperationError, IntegrityError
from ai_task_manager.models.files import FileInfo
from ai_task_manager.models.operations import AtomicContext, AtomicOperation, OperationType

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def path_exists(path: Path) -> bool:
    """Return True if path exists. Never raises."""
    try:
        os.stat(path)
    except (OSError, ValueError):
        return False
    return True


def calculate_checksum(path: Path) -> str:
    """Return the SHA-256 hex digest of a file's content.

    Raises:
        FileOperationError: If the file cannot be read
    """
    digest = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                digest.update(chunk)
    except OSError as e:
        raise FileOperationError(
            f"Failed to calculate checksum for '{path}': {e}",
            code="CHECKSUM_FAILED",
            path=path,
            operation="calculate_checksum",
        ) from e
    return digest.hexdigest()


def get_file_info(path: Path, *, with_checksum: bool = False) -> FileInfo:
    """Stat a path.

    Args:
        path: Path to inspect
        with_checksum: Also hash the content (files only, expensive)

    Returns:
        FileInfo for the path; directories never carry a checksum

    Raises:
        FileOperationError: If the path cannot be stat-ed or hashed
    """
    try:
        stats = os.stat(path)
    except OSError as e:
        raise FileOperationError(
            f"Failed to get file info for '{path}': {e}",
            code="FILE_INFO_FAILED",
            path=path,
            operation="get_file_info",
        ) from e

    is_directory = stat.S_ISDIR(stats.st_mode)
    checksum = None
    if with_checksum and not is_directory:
        checksum = calculate_checksum(path)

    return FileInfo(
        path=path,
        size=stats.st_size,
        modified=datetime.fromtimestamp(stats.st_mtime, UTC),
        permissions=stats.st_mode,
        type="directory" if is_directory else "file",
        checksum=checksum,
    )


def create_directory(path: Path, mode: int = 0o755) -> None:
    """Create a directory and any missing parents. Existing directories are fine.

    Raises:
        FileOperationError: If the directory cannot be created
    """
    try:
        path.mkdir(mode=mode, parents=True, exist_ok=True)
    except OSError as e:
        raise FileOperationError(
            f"Failed to create directory '{path}': {e}",
            code="DIRECTORY_CREATE_FAILED",
            path=path,
            operation="create_directory",
        ) from e


def copy_file_with_verification(
    source: Path,
    destination: Path,
    *,
    verify_integrity: bool = True,
    preserve_timestamps: bool = True,
    preserve_permissions: bool = True,
) -> None:
    """Copy a file, optionally proving the copy is byte-identical.

    Args:
        source: File to copy
        destination: Where to write it; parent directories are created
        verify_integrity: Hash both sides after copying
        preserve_timestamps: Give destination the source's exact mtime
        preserve_permissions: Copy the source's mode bits

    Raises:
        IntegrityError: If checksums differ after the copy (destination is removed)
        FileOperationError: If any filesystem call fails
    """
    create_directory(destination.parent)

    try:
        source_stats = os.stat(source)
        shutil.copyfile(source, destination)
        if preserve_permissions:
            shutil.copymode(source, destination)
        if preserve_timestamps:
            os.utime(destination, ns=(source_stats.st_atime_ns, source_stats.st_mtime_ns))
    except OSError as e:
        raise FileOperationError(
            f"Failed to copy file from '{source}' to '{destination}': {e}",
            code="FILE_COPY_FAILED",
            path=source,
            operation="copy_file_with_verification",
        ) from e

    if not verify_integrity:
        return

    source_checksum = calculate_checksum(source)
    destination_checksum = calculate_checksum(destination)
    if source_checksum != destination_checksum:
        remove(destination)
        raise IntegrityError(
            f"Integrity verification failed for '{destination}'",
            code="INTEGRITY_CHECK_FAILED",
            path=destination,
            operation="copy_file_with_verification",
        )


def copy_directory(
    source: Path,
    destination: Path,
    *,
    overwrite: bool = False,
    verify_integrity: bool = False,
) -> None:
    """Recursively mirror source into destination.

    Existing destination files are left alone unless ``overwrite`` is set. Nothing
    already in destination is ever deleted.

    Raises:
        FileOperationError: If source is not a directory or a copy fails
    """
    if not source.is_dir():
        raise FileOperationError(
            f"Failed to copy directory from '{source}' to '{destination}': not a directory",
            code="DIRECTORY_COPY_FAILED",
            path=source,
            operation="copy_directory",
        )

    create_directory(destination)
    for entry in sorted(source.iterdir()):
        target = destination / entry.name
        if entry.is_dir():
            copy_directory(entry, target, overwrite=overwrite, verify_integrity=verify_integrity)
            continue
        if not overwrite and path_exists(target):
            continue
        copy_file_with_verification(entry, target, verify_integrity=verify_integrity)


def create_backup(path: Path, backup_dir: Path, *, timestamp: bool = True) -> Path:
    """Copy a file or directory into backup_dir and return the backup path.

    Backups are named ``<name>.backup.<epoch millis>``. If that name is already
    taken a counter is appended, so repeated backups never collide.

    Raises:
        FileOperationError: If the backup cannot be written
    """
    create_directory(backup_dir)

    base_name = f"{path.name}.backup"
    if timestamp:
        base_name = f"{base_name}.{int(time.time() * 1000)}"
    backup_path = backup_dir / base_name
    counter = 1
    while path_exists(backup_path):
        backup_path = backup_dir / f"{base_name}.{counter}"
        counter += 1

    if path.is_dir():
        copy_directory(path, backup_path)
    else:
        copy_file_with_verification(path, backup_path)

    logger.debug("Backed up %s to %s", path, backup_path)
    return backup_path


def remove(path: Path, *, recursive: bool = False) -> None:
    """Delete a file, or a directory tree when ``recursive``. No-op if absent.

    Raises:
        FileOperationError: If the path exists and cannot be removed
    """
    try:
        if path.is_symlink() or path.is_file():
            path.unlink()
        elif path.is_dir():
            if recursive:
                shutil.rmtree(path)
            else:
                path.rmdir()
    except FileNotFoundError:
        return
    except OSError as e:
        raise FileOperationError(
            f"Failed to remove '{path}': {e}",
            code="REMOVE_FAILED",
            path=path,
            operation="remove",
        ) from e


def create_atomic_context(operation_id: str) -> AtomicContext:
    """Allocate a private staging directory for an all-or-nothing batch.

    Raises:
        FileOperationError: If the temp directory cannot be created
    """
    try:
        temp_directory = Path(tempfile.mkdtemp(prefix=f"atomic-{operation_id}-"))
    except OSError as e:
        raise FileOperationError(
            f"Failed to create atomic context: {e}",
            code="ATOMIC_CONTEXT_FAILED",
            operation="create_atomic_context",
        ) from e
    return AtomicContext(operation_id=operation_id, temp_directory=temp_directory)


def add_atomic_operation(
    context: AtomicContext,
    type: OperationType,
    *,
    source: Path | None = None,
    target: Path | None = None,
    content: bytes | None = None,
    permissions: int | None = None,
    backup: bool = False,
) -> AtomicOperation:
    """Register an operation in the context without executing it."""
    operation = AtomicOperation(
        id=f"{context.operation_id}-{len(context.operations)}",
        type=type,
        source=source,
        target=target,
        content=content,
        permissions=permissions,
        backup=backup,
    )
    context.operations.append(operation)
    return operation


def stage_atomic_operation(context: AtomicContext, operation: AtomicOperation) -> None:
    """Prepare an operation's result inside the context's temp directory.

    Nothing outside the temp directory is written. Fails early when the real target
    is occupied by the wrong kind of entry, so promotion cannot trip over it later.

    Raises:
        FileOperationError: If staging fails
        IntegrityError: If a staged copy does not match its source
    """
    if operation.target is None:
        raise FileOperationError(
            f"Operation {operation.id} has no target",
            code="INVALID_OPERATION",
            operation="stage",
        )

    if operation.type == "create_directory":
        if path_exists(operation.target) and not operation.target.is_dir():
            raise FileOperationError(
                f"Cannot create directory '{operation.target}': a file is in the way",
                code="DIRECTORY_CREATE_FAILED",
                path=operation.target,
                operation="stage",
            )
        return

    if operation.target.is_dir():
        raise FileOperationError(
            f"Cannot write file '{operation.target}': a directory is in the way",
            code="FILE_COPY_FAILED",
            path=operation.target,
            operation="stage",
        )

    staged = context.temp_directory / "staged" / operation.id
    if operation.type == "copy_file":
        if operation.source is None:
            raise FileOperationError(
                f"Source path required for copy_file operation {operation.id}",
                code="INVALID_OPERATION",
                path=operation.target,
                operation="stage",
            )
        copy_file_with_verification(operation.source, staged)
    else:
        create_directory(staged.parent)
        try:
            staged.write_bytes(operation.content or b"")
        except OSError as e:
            raise FileOperationError(
                f"Failed to stage '{operation.target}': {e}",
                code="FILE_WRITE_FAILED",
                path=operation.target,
                operation="stage",
            ) from e

    if operation.permissions is not None:
        try:
            os.chmod(staged, operation.permissions)
        except OSError as e:
            raise FileOperationError(
                f"Failed to set permissions on '{operation.target}': {e}",
                code="CHMOD_FAILED",
                path=operation.target,
                operation="stage",
            ) from e
    operation.staged = staged
    logger.debug("Staged %s -> %s", operation.id, operation.target)


def commit_atomic_context(context: AtomicContext, *, backup_directory: Path | None = None) -> None:
    """Promote every staged operation to its real target, in order.

    Each file is first written next to its target under a temporary name and then
    renamed over it, so a crash never leaves a half-written target. Files that are
    replaced are kept as pre-images; if any promotion fails, everything promoted so
    far is rolled back from them before the error is raised. The temp directory is
    removed in every case.

    Raises:
        FileOperationError: If an operation was not staged or promotion fails
    """
    preimages: dict[str, Path] = {}
    created_directories: list[Path] = []

    try:
        for operation in context.operations:
            _promote(context, operation, backup_directory, preimages, created_directories)
            operation.completed = True
        context.committed = True
    except (OSError, FileOperationError, IntegrityError) as e:
        _rollback(context, preimages, created_directories)
        raise FileOperationError(
            f"Failed to commit atomic operations: {e}",
            code="ATOMIC_COMMIT_FAILED",
            path=context.temp_directory,
            operation="commit_atomic_context",
        ) from e
    finally:
        discard_atomic_context(context)


def discard_atomic_context(context: AtomicContext) -> None:
    """Remove the context's temp directory. Leftovers are logged, never raised."""
    shutil.rmtree(context.temp_directory, ignore_errors=True)
    if path_exists(context.temp_directory):
        logger.warning("Could not remove staging directory %s", context.temp_directory)


def _promote(
    context: AtomicContext,
    operation: AtomicOperation,
    backup_directory: Path | None,
    preimages: dict[str, Path],
    created_directories: list[Path],
) -> None:
    assert operation.target is not None
    target = operation.target

    if operation.type == "create_directory":
        _create_tracked(target, operation.permissions or 0o755, created_directories)
        return

    if operation.staged is None:
        raise FileOperationError(
            f"Operation {operation.id} was never staged",
            code="ATOMIC_COMMIT_FAILED",
            path=target,
            operation="commit_atomic_context",
        )

    _create_tracked(target.parent, 0o755, created_directories)

    if path_exists(target):
        preimage = context.temp_directory / "preimages" / operation.id
        create_directory(preimage.parent)
        shutil.copy2(target, preimage)
        preimages[operation.id] = preimage
        if operation.backup and backup_directory is not None:
            create_backup(target, backup_directory)

    sibling = target.with_name(f".{target.name}.{operation.id}.tmp")
    shutil.move(operation.staged, sibling)
    os.replace(sibling, target)
    logger.debug("Promoted %s", target)


def _create_tracked(path: Path, mode: int, created_directories: list[Path]) -> None:
    missing: list[Path] = []
    current = path
    while not path_exists(current):
        missing.append(current)
        current = current.parent
    create_directory(path, mode)
    created_directories.extend(reversed(missing))


def _rollback(
    context: AtomicContext, preimages: dict[str, Path], created_directories: list[Path]
) -> None:
    for operation in reversed(context.operations):
        was_completed = operation.completed
        operation.completed = False
        if operation.target is None or operation.type == "create_directory":
            continue
        try:
            sibling = operation.target.with_name(f".{operation.target.name}.{operation.id}.tmp")
            if path_exists(sibling):
                sibling.unlink()
            if not was_completed:
                continue
            preimage = preimages.get(operation.id)
            if preimage is not None:
                shutil.copy2(preimage, operation.target)
            elif path_exists(operation.target):
                operation.target.unlink()
        except OSError as e:
            logger.error("Rollback failed for %s: %s", operation.target, e)

    for directory in reversed(created_directories):
        try:
            directory.rmdir()
        except OSError:
            logger.debug("Leaving non-empty directory %s in place", directory)
    logger.warning("Rolled back atomic context %s", context.operation_id)
