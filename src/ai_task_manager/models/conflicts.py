"""Conflict resolution models.

Resolution happens in two phases. A ``PlannedResolution`` is the immutable decision
for one conflict; an ``ApplicationOutcome`` is built separately once the decision
has been executed. Both are keyed by the conflict's relative path.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

from ai_task_manager.models.files import FileConflict

ResolutionAction = Literal["overwrite", "skip", "rename", "merge"]


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ConflictResolution:
    """What to do with one conflict. Carries no side effects."""

    action: ResolutionAction
    backup_original: bool = False
    new_name: str | None = None

    def __post_init__(self) -> None:
        if self.action == "rename" and not self.new_name:
            raise ValueError("rename resolution requires new_name")


@dataclass(frozen=True)
class PlannedResolution:
    """Decision reached for a conflict, before anything touches disk.

    ``error`` is set when the resolver itself failed; such a plan falls back to
    ``skip`` and is reported as a failed outcome.
    """

    conflict: FileConflict
    resolution: ConflictResolution
    resolved_at: datetime = field(default_factory=_now)
    error: str | None = None

    @property
    def path(self) -> str:
        return self.conflict.path


@dataclass(frozen=True)
class ApplicationOutcome:
    """Result of executing a planned resolution."""

    path: str
    success: bool
    error: str | None = None
    applied_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        if not self.success and not self.error:
            raise ValueError(f"Failed outcome for '{self.path}' must carry an error message")


@dataclass(frozen=True)
class ResolvedConflict:
    """A planned resolution joined with its outcome, for reporting."""

    plan: PlannedResolution
    outcome: ApplicationOutcome

    @property
    def path(self) -> str:
        return self.plan.path

    @property
    def resolution(self) -> ConflictResolution:
        return self.plan.resolution

    @property
    def success(self) -> bool:
        return self.outcome.success

    @property
    def error(self) -> str | None:
        return self.outcome.error


def join_outcomes(
    plans: list[PlannedResolution], outcomes: list[ApplicationOutcome]
) -> list[ResolvedConflict]:
    """Pair each plan with the outcome recorded for its path.

    Plans without an outcome were never applied and are reported as failed.
    """
    by_path = {outcome.path: outcome for outcome in outcomes}
    joined: list[ResolvedConflict] = []
    for plan in plans:
        outcome = by_path.get(plan.path)
        if outcome is None:
            outcome = ApplicationOutcome(
                path=plan.path, success=False, error="Resolution was never applied"
            )
        joined.append(ResolvedConflict(plan=plan, outcome=outcome))
    return joined


@dataclass(frozen=True)
class ResolutionPreview:
    """Human-readable preview of a resolution; produced without any I/O."""

    conflict: FileConflict
    resolution: ConflictResolution
    description: str
