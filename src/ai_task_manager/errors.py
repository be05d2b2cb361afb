"""Exception hierarchy for installation operations.

Every failure raised by the engine carries a machine-readable ``code`` plus the
``path`` and ``operation`` it relates to, so callers can report without parsing
messages.
"""

from pathlib import Path


class TaskManagerError(Exception):
    """Base class for all ai-task-manager errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        path: Path | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.path = path
        self.operation = operation


class FileOperationError(TaskManagerError):
    """A filesystem call failed (permission denied, vanished file, disk full)."""


class IntegrityError(TaskManagerError):
    """Checksum or size verification failed after a copy."""


class PlanningError(TaskManagerError):
    """A template or command source failed to enumerate its files.

    Recoverable: the orchestrator degrades the installation scope instead of
    aborting.
    """


class ConflictApplicationError(TaskManagerError):
    """A single resolved conflict could not be applied to disk."""


class DirectoryCreationError(TaskManagerError):
    """One or more assistant directories could not be created."""

    def __init__(self, message: str, *, failures: list[tuple[str, Path, str]]) -> None:
        super().__init__(message, code="DIRECTORY_CREATE_FAILED", operation="create_directories")
        self.failures = failures


class VerificationError(TaskManagerError):
    """The verification manifest is missing, unreadable or cannot be produced."""
