"""Post-installation verification against a saved manifest.

After a successful install the installer records every file and directory it
produced in ``.ai/task-manager/MANIFEST.json``. Verification later compares the
target against that record.
"""

import hashlib
import json
import logging
import stat
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ai_task_manager.errors import FileOperationError, VerificationError
from ai_task_manager.filesystem.detector import VERSION_FILE
from ai_task_manager.filesystem.utils import create_directory, get_file_info, path_exists
from ai_task_manager.models.files import IntegrityIssue, Severity
from ai_task_manager.models.operations import CompletedOperation
from ai_task_manager.models.status import VerificationResult

logger = logging.getLogger(__name__)

MANIFEST_FILE = ".ai/task-manager/MANIFEST.json"


class ManifestFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    size: int
    checksum: str | None = None
    permissions: int
    required: bool = True


class ManifestDirectory(BaseModel):
    model_config = ConfigDict(frozen=True)

    permissions: int
    required: bool = True


class VerificationManifest(BaseModel):
    """Expected state of an installation, keyed by path relative to the target."""

    model_config = ConfigDict(frozen=True)

    version: str
    files: dict[str, ManifestFile] = Field(default_factory=dict)
    directories: dict[str, ManifestDirectory] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    checksum: str = ""


def manifest_checksum(manifest: VerificationManifest) -> str:
    """SHA-256 of the canonical JSON of version, files and directories."""
    body = manifest.model_dump(mode="json", include={"version", "files", "directories"})
    canonical = json.dumps(body, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class InstallationVerifier:
    """Builds, persists and checks verification manifests."""

    def __init__(self, manifest: VerificationManifest | None = None) -> None:
        self._manifest = manifest

    @property
    def manifest(self) -> VerificationManifest | None:
        return self._manifest

    def generate_manifest(
        self, target: Path, operations: list[CompletedOperation], version: str
    ) -> VerificationManifest:
        """Record the on-disk state of every completed operation.

        Args:
            target: Installation root; manifest paths are relative to it
            operations: Executed operations; incomplete ones are ignored
            version: Version string the installation was made with

        Returns:
            The manifest, also kept as this verifier's current manifest

        Raises:
            VerificationError: If an installed path cannot be inspected
        """
        files: dict[str, ManifestFile] = {}
        directories: dict[str, ManifestDirectory] = {}
        try:
            for record in operations:
                if not record.completed:
                    continue
                path = record.operation.target
                if not path_exists(path):
                    continue
                relative = path.relative_to(target).as_posix()
                if record.operation.type == "create_directory":
                    info = get_file_info(path)
                    directories[relative] = ManifestDirectory(
                        permissions=stat.S_IMODE(info.permissions)
                    )
                else:
                    info = get_file_info(path, with_checksum=True)
                    files[relative] = ManifestFile(
                        size=info.size,
                        checksum=info.checksum,
                        permissions=stat.S_IMODE(info.permissions),
                    )
        except (FileOperationError, ValueError) as e:
            raise VerificationError(
                f"Failed to generate verification manifest: {e}",
                code="MANIFEST_GENERATION_FAILED",
                path=target,
                operation="generate_manifest",
            ) from e

        manifest = VerificationManifest(version=version, files=files, directories=directories)
        manifest = manifest.model_copy(update={"checksum": manifest_checksum(manifest)})
        self._manifest = manifest
        return manifest

    def save_manifest(self, target: Path, manifest: VerificationManifest | None = None) -> Path:
        """Write the manifest to ``.ai/task-manager/MANIFEST.json`` under target.

        Raises:
            VerificationError: If there is no manifest or it cannot be written
        """
        manifest = manifest or self._manifest
        if manifest is None:
            raise VerificationError(
                "No verification manifest available",
                code="MANIFEST_NOT_AVAILABLE",
                path=target,
                operation="save_manifest",
            )

        manifest_path = target / MANIFEST_FILE
        try:
            create_directory(manifest_path.parent)
            content = json.dumps(manifest.model_dump(mode="json"), indent=2, sort_keys=True)
            manifest_path.write_text(content + "\n", encoding="utf-8")
        except (OSError, FileOperationError) as e:
            raise VerificationError(
                f"Failed to save verification manifest: {e}",
                code="MANIFEST_SAVE_FAILED",
                path=manifest_path,
                operation="save_manifest",
            ) from e
        return manifest_path

    def load_manifest(self, target: Path) -> VerificationManifest:
        """Read and validate the manifest saved under target.

        Raises:
            VerificationError: If the manifest is missing, malformed or tampered with
        """
        manifest_path = target / MANIFEST_FILE
        if not path_exists(manifest_path):
            raise VerificationError(
                f"Verification manifest not found: {manifest_path}",
                code="MANIFEST_NOT_FOUND",
                path=manifest_path,
                operation="load_manifest",
            )

        try:
            data = json.loads(manifest_path.read_text(encoding="utf-8"))
            manifest = VerificationManifest.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise VerificationError(
                f"Invalid verification manifest at {manifest_path}: {e}",
                code="MANIFEST_INVALID",
                path=manifest_path,
                operation="load_manifest",
            ) from e

        if manifest.checksum != manifest_checksum(manifest):
            raise VerificationError(
                f"Verification manifest checksum mismatch: {manifest_path}",
                code="MANIFEST_CHECKSUM_MISMATCH",
                path=manifest_path,
                operation="load_manifest",
            )

        self._manifest = manifest
        return manifest

    def verify_installation(self, target: Path) -> VerificationResult:
        """Check target against the current manifest.

        The result is valid when no high or critical issue was found.

        Raises:
            VerificationError: If no manifest has been generated or loaded
        """
        if self._manifest is None:
            raise VerificationError(
                "No verification manifest available",
                code="MANIFEST_NOT_AVAILABLE",
                path=target,
                operation="verify_installation",
            )
        manifest = self._manifest

        issues: list[IntegrityIssue] = []
        valid_files = 0
        for relative, expected in manifest.files.items():
            file_issues = _check_file(target / relative, relative, expected)
            issues.extend(file_issues)
            if not file_issues:
                valid_files += 1

        for relative, expected_dir in manifest.directories.items():
            full_path = target / relative
            if not path_exists(full_path):
                severity: Severity = "high" if expected_dir.required else "medium"
                issues.append(IntegrityIssue(path=relative, issue="missing", severity=severity))
            elif not full_path.is_dir():
                issues.append(
                    IntegrityIssue(
                        path=relative,
                        issue="corrupted",
                        severity="high",
                        expected="directory",
                        actual="file",
                    )
                )

        issues.extend(_check_version(target, manifest.version))

        valid = not any(issue.severity in ("high", "critical") for issue in issues)
        checked_files = len(manifest.files)
        result = VerificationResult(
            valid=valid,
            checked_files=checked_files,
            valid_files=valid_files,
            issues=issues,
            summary=_summary(valid, checked_files, valid_files, issues),
        )
        logger.debug("Verified %s: %s", target, result.summary)
        return result


def _check_file(full_path: Path, relative: str, expected: ManifestFile) -> list[IntegrityIssue]:
    if not path_exists(full_path):
        severity: Severity = "high" if expected.required else "medium"
        return [IntegrityIssue(path=relative, issue="missing", severity=severity)]

    try:
        actual = get_file_info(full_path, with_checksum=expected.checksum is not None)
    except FileOperationError:
        return [IntegrityIssue(path=relative, issue="corrupted", severity="critical")]

    if actual.type != "file":
        return [
            IntegrityIssue(
                path=relative,
                issue="corrupted",
                severity="high",
                expected="file",
                actual=actual.type,
            )
        ]

    issues: list[IntegrityIssue] = []
    if actual.size != expected.size:
        issues.append(
            IntegrityIssue(
                path=relative,
                issue="size_mismatch",
                severity="medium",
                expected=expected.size,
                actual=actual.size,
            )
        )
    if expected.checksum and actual.checksum != expected.checksum:
        issues.append(
            IntegrityIssue(
                path=relative,
                issue="corrupted",
                severity="high",
                expected=expected.checksum,
                actual=actual.checksum,
            )
        )
    return issues


def _check_version(target: Path, expected_version: str) -> list[IntegrityIssue]:
    version_path = target / VERSION_FILE
    if not path_exists(version_path):
        return [IntegrityIssue(path=VERSION_FILE, issue="missing", severity="high")]
    try:
        actual = version_path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError):
        return [IntegrityIssue(path=VERSION_FILE, issue="corrupted", severity="high")]
    if actual != expected_version:
        return [
            IntegrityIssue(
                path=VERSION_FILE,
                issue="corrupted",
                severity="medium",
                expected=expected_version,
                actual=actual,
            )
        ]
    return []


def _summary(
    valid: bool, checked_files: int, valid_files: int, issues: list[IntegrityIssue]
) -> str:
    lines = [
        f"Installation {'valid' if valid else 'invalid'}: "
        f"{valid_files}/{checked_files} files verified"
    ]
    if issues:
        counts: dict[str, int] = {}
        for issue in issues:
            counts[issue.severity] = counts.get(issue.severity, 0) + 1
        breakdown = ", ".join(f"{count} {severity}" for severity, count in sorted(counts.items()))
        lines.append(f"{len(issues)} issue(s): {breakdown}")
    return "\n".join(lines)
