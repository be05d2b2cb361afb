"""Installation detection and conflict analysis."""

import logging
from datetime import UTC, datetime
from pathlib import Path

from ai_task_manager.errors import FileOperationError
from ai_task_manager.filesystem.utils import get_file_info, path_exists
from ai_task_manager.models.files import FileConflict, FileInfo, IntegrityIssue
from ai_task_manager.models.status import DetectionResult, DetectorStatus, Health

logger = logging.getLogger(__name__)

VERSION_FILE = ".ai/task-manager/VERSION"
CONFIG_FILE = ".ai/task-manager/config.json"

# Checked for presence when no expected files are configured.
WELL_KNOWN_PATHS = (
    CONFIG_FILE,
    VERSION_FILE,
    ".ai/task-manager/plans",
    ".ai/task-manager/templates",
    ".claude/commands/tasks",
)


class InstallationDetector:
    """Inspects a target directory for an existing installation.

    Installation is defined by two markers, ``VERSION`` and ``config.json`` under
    ``.ai/task-manager``. An optional mapping of expected files (relative path to
    FileInfo) enables per-file integrity checks.
    """

    def __init__(self, expected_files: dict[str, FileInfo] | None = None) -> None:
        self._expected_files: dict[str, FileInfo] = dict(expected_files or {})

    @property
    def expected_files(self) -> dict[str, FileInfo]:
        return dict(self._expected_files)

    def set_expected_files(self, files: dict[str, FileInfo]) -> None:
        """Replace the expected file manifest."""
        self._expected_files = dict(files)

    def detect_installation(self, target: Path) -> DetectionResult:
        """Report what is installed at target.

        Both markers present and VERSION readable means installed. A single marker,
        or an unreadable VERSION, means partial. An unreadable VERSION is reported as
        a ``corrupted`` integrity issue, never raised.

        Args:
            target: Target project directory

        Returns:
            DetectionResult describing markers, missing and conflicting files
        """
        version_path = target / VERSION_FILE
        version_exists = path_exists(version_path)
        config_exists = path_exists(target / CONFIG_FILE)

        integrity_issues: list[IntegrityIssue] = []
        version: str | None = None
        version_readable = False
        if version_exists:
            try:
                version = version_path.read_text(encoding="utf-8").strip()
                version_readable = True
            except (OSError, UnicodeDecodeError) as e:
                logger.debug("VERSION unreadable at %s: %s", version_path, e)
                integrity_issues.append(
                    IntegrityIssue(path=VERSION_FILE, issue="corrupted", severity="high")
                )

        missing_files: list[str] = []
        conflicting_files: list[str] = []
        if self._expected_files:
            for relative_path, expected in self._expected_files.items():
                full_path = target / relative_path
                if not path_exists(full_path):
                    missing_files.append(relative_path)
                    continue
                try:
                    actual = get_file_info(full_path, with_checksum=expected.checksum is not None)
                except FileOperationError:
                    integrity_issues.append(
                        IntegrityIssue(path=relative_path, issue="corrupted", severity="high")
                    )
                    continue
                if _files_differ(actual, expected):
                    conflicting_files.append(relative_path)
                integrity_issues.extend(_compare(relative_path, expected, actual))
        else:
            missing_files = [p for p in WELL_KNOWN_PATHS if not path_exists(target / p)]

        is_installed = version_exists and config_exists and version_readable
        partial = (version_exists or config_exists) and not is_installed

        return DetectionResult(
            is_installed=is_installed,
            partial_installation=partial,
            version=version,
            installation_path=target if version_readable else None,
            missing_files=missing_files,
            conflicting_files=conflicting_files,
            integrity_issues=integrity_issues,
        )

    def analyze_conflicts(
        self, target: Path, incoming: dict[str, FileInfo]
    ) -> list[FileConflict]:
        """Find incoming paths that collide with different existing content.

        Identical content at the same path is not a conflict. Existing files are only
        hashed when the incoming side carries a checksum. An existing path that cannot
        be inspected is always reported as a conflict.

        Args:
            target: Target project directory
            incoming: Relative destination path to FileInfo of the incoming source

        Returns:
            Conflicts in the order of ``incoming``
        """
        conflicts: list[FileConflict] = []
        for relative_path, incoming_info in incoming.items():
            full_path = target / relative_path
            if not path_exists(full_path):
                continue

            try:
                existing = get_file_info(
                    full_path, with_checksum=incoming_info.checksum is not None
                )
            except FileOperationError:
                conflicts.append(
                    FileConflict(
                        path=relative_path,
                        type="file",
                        existing=FileInfo(
                            path=full_path,
                            size=0,
                            modified=datetime.fromtimestamp(0, UTC),
                            permissions=0,
                            type="file",
                        ),
                        incoming=incoming_info,
                    )
                )
                continue

            if existing.type == "directory" and incoming_info.type == "directory":
                differs = _directories_differ(full_path, incoming_info.path)
            else:
                differs = _files_differ(existing, incoming_info)

            if differs:
                conflicts.append(
                    FileConflict(
                        path=relative_path,
                        type=existing.type,
                        existing=existing,
                        incoming=incoming_info,
                    )
                )
        return conflicts

    def verify_installation_integrity(
        self, target: Path, expected_files: dict[str, FileInfo] | None = None
    ) -> list[IntegrityIssue]:
        """Compare installed files to their expected state.

        Args:
            target: Target project directory
            expected_files: Manifest to check; defaults to the detector's own

        Returns:
            One issue per discrepancy: missing (high), size_mismatch (medium) or
            corrupted (high)
        """
        files = self._expected_files if expected_files is None else expected_files
        issues: list[IntegrityIssue] = []
        for relative_path, expected in files.items():
            full_path = target / relative_path
            if not path_exists(full_path):
                issues.append(IntegrityIssue(path=relative_path, issue="missing", severity="high"))
                continue
            try:
                actual = get_file_info(full_path, with_checksum=expected.checksum is not None)
            except FileOperationError:
                issues.append(
                    IntegrityIssue(path=relative_path, issue="corrupted", severity="high")
                )
                continue
            issues.extend(_compare(relative_path, expected, actual))
        return issues

    def get_installation_status(self, target: Path) -> DetectorStatus:
        """Summarize installation health. Never raises.

        Healthy means installed with both markers and zero issues. Partial means some
        marker is present but the installation is incomplete or has issues. Anything
        else, including an inaccessible target, is unknown.
        """
        try:
            if not target.is_dir():
                return DetectorStatus(has_installation=False, health="unknown", issue_count=0)

            detection = self.detect_installation(target)
            issues = list(detection.integrity_issues)
            if self._expected_files:
                # detect_installation already covers size and checksum; add missing files
                issues.extend(
                    IntegrityIssue(path=p, issue="missing", severity="high")
                    for p in detection.missing_files
                )

            health: Health = "unknown"
            if detection.is_installed:
                health = "healthy" if not issues else "partial"
            elif detection.partial_installation:
                health = "partial"

            last_modified = None
            version_path = target / VERSION_FILE
            if path_exists(version_path):
                last_modified = get_file_info(version_path).modified

            return DetectorStatus(
                has_installation=detection.is_installed or detection.partial_installation,
                health=health,
                issue_count=len(issues),
                version=detection.version,
                last_modified=last_modified,
            )
        except (OSError, FileOperationError) as e:
            logger.warning(f"Could not determine installation status for {target}: {e}")
            return DetectorStatus(has_installation=False, health="unknown", issue_count=0)


def _files_differ(existing: FileInfo, incoming: FileInfo) -> bool:
    if existing.type != incoming.type:
        return True
    if existing.type == "directory":
        return False
    if existing.size != incoming.size:
        return True
    if existing.checksum and incoming.checksum:
        return existing.checksum != incoming.checksum
    return False


def _directories_differ(existing_dir: Path, incoming_dir: Path) -> bool:
    """True if any file in incoming_dir is absent or different in existing_dir."""
    if not incoming_dir.is_dir():
        return True
    for entry in incoming_dir.rglob("*"):
        if entry.is_dir():
            continue
        counterpart = existing_dir / entry.relative_to(incoming_dir)
        if not counterpart.is_file():
            return True
        try:
            incoming_info = get_file_info(entry, with_checksum=True)
            existing_info = get_file_info(counterpart, with_checksum=True)
        except FileOperationError:
            return True
        if _files_differ(existing_info, incoming_info):
            return True
    return False


def _compare(relative_path: str, expected: FileInfo, actual: FileInfo) -> list[IntegrityIssue]:
    issues: list[IntegrityIssue] = []
    if expected.type == "file" and expected.size != actual.size:
        issues.append(
            IntegrityIssue(
                path=relative_path,
                issue="size_mismatch",
                severity="medium",
                expected=expected.size,
                actual=actual.size,
            )
        )
    if expected.checksum and actual.checksum and expected.checksum != actual.checksum:
        issues.append(
            IntegrityIssue(
                path=relative_path,
                issue="corrupted",
                severity="high",
                expected=expected.checksum,
                actual=actual.checksum,
            )
        )
    return issues
