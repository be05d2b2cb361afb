"""Tests for the two-phase conflict resolution records."""

from datetime import UTC, datetime
from pathlib import Path

import pytest

from ai_task_manager.models.conflicts import (
    ApplicationOutcome,
    ConflictResolution,
    PlannedResolution,
    join_outcomes,
)
from ai_task_manager.models.files import FileConflict, FileInfo


def _plan(path: str) -> PlannedResolution:
    info = FileInfo(
        path=Path(path),
        size=1,
        modified=datetime(2024, 1, 1, tzinfo=UTC),
        permissions=0o644,
        type="file",
    )
    conflict = FileConflict(path=path, type="file", existing=info, incoming=info)
    return PlannedResolution(conflict=conflict, resolution=ConflictResolution(action="skip"))


def test_rename_requires_new_name() -> None:
    with pytest.raises(ValueError, match="new_name"):
        ConflictResolution(action="rename")


def test_failed_outcome_requires_error() -> None:
    with pytest.raises(ValueError, match="must carry an error"):
        ApplicationOutcome(path="a.md", success=False)


def test_join_outcomes_pairs_by_path() -> None:
    plans = [_plan("a.md"), _plan("b.md")]
    outcomes = [
        ApplicationOutcome(path="b.md", success=False, error="disk full"),
        ApplicationOutcome(path="a.md", success=True),
    ]

    joined = join_outcomes(plans, outcomes)

    assert [(r.path, r.success, r.error) for r in joined] == [
        ("a.md", True, None),
        ("b.md", False, "disk full"),
    ]


def test_plans_without_outcome_are_failed() -> None:
    joined = join_outcomes([_plan("a.md")], [])

    assert not joined[0].success
    assert joined[0].error == "Resolution was never applied"
