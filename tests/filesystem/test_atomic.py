"""Tests for AtomicInstaller."""

from pathlib import Path

from ai_task_manager.filesystem.atomic import AtomicInstaller
from ai_task_manager.filesystem.events import EventBus, FileSystemEvent
from ai_task_manager.models.config import InstallationConfig
from ai_task_manager.models.operations import InstallationOperation


def _source(tmp_path: Path, name: str, content: str) -> Path:
    path = tmp_path / "source" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_execute_applies_all_operations(tmp_path: Path) -> None:
    target = tmp_path / "target"
    source = _source(tmp_path, "a.md", "aaa")
    operations = [
        InstallationOperation(type="create_directory", target=target / "dir"),
        InstallationOperation(type="copy_file", source=source, target=target / "dir" / "a.md"),
        InstallationOperation(type="write_file", target=target / "VERSION", content=b"1.4.0\n"),
    ]

    run = AtomicInstaller().execute(operations, InstallationConfig(target_directory=target))

    assert run.committed
    assert run.errors == []
    assert all(record.completed for record in run.operations)
    assert (target / "dir" / "a.md").read_text(encoding="utf-8") == "aaa"
    assert run.summary.total_operations == 3
    assert run.summary.successful_operations == 3
    assert run.summary.files_created == 2
    assert run.summary.directories_created == 1
    assert run.summary.bytes_transferred == 3 + 6
    assert (target / "dir" / "a.md").stat().st_mode & 0o777 == 0o644


def test_staging_failure_leaves_target_untouched(tmp_path: Path) -> None:
    """A failing copy partway through means none of the batch lands."""
    target = tmp_path / "target"
    target.mkdir()
    good = _source(tmp_path, "good.md", "good")
    operations = [
        InstallationOperation(type="copy_file", source=good, target=target / "good.md"),
        InstallationOperation(
            type="copy_file", source=tmp_path / "source" / "missing.md", target=target / "bad.md"
        ),
        InstallationOperation(type="copy_file", source=good, target=target / "late.md"),
    ]

    run = AtomicInstaller().execute(operations, InstallationConfig(target_directory=target))

    assert not run.committed
    assert list(target.iterdir()) == []
    assert len(run.errors) == 1
    assert run.errors[0].code == "FILE_COPY_FAILED"
    assert run.operations[1].error == run.errors[0].error
    assert not any(record.completed for record in run.operations)
    assert run.summary.failed_operations == 3


def test_dry_run_stages_but_promotes_nothing(tmp_path: Path) -> None:
    target = tmp_path / "target"
    source = _source(tmp_path, "a.md", "aaa")
    config = InstallationConfig(target_directory=target, dry_run=True)

    run = AtomicInstaller().execute(
        [InstallationOperation(type="copy_file", source=source, target=target / "a.md")], config
    )

    assert not run.committed
    assert run.errors == []
    assert not target.exists()
    assert run.operations[0].checksum is not None


def test_existing_files_are_not_counted_as_created(tmp_path: Path) -> None:
    target = tmp_path / "target"
    target.mkdir()
    (target / "a.md").write_text("old", encoding="utf-8")
    source = _source(tmp_path, "a.md", "new")

    run = AtomicInstaller().execute(
        [
            InstallationOperation(type="create_directory", target=target),
            InstallationOperation(type="copy_file", source=source, target=target / "a.md"),
        ],
        InstallationConfig(target_directory=target),
    )

    assert run.committed
    assert run.summary.files_created == 0
    assert run.summary.directories_created == 0
    assert (target / "a.md").read_text(encoding="utf-8") == "new"


def test_backup_flag_backs_up_before_replacing(tmp_path: Path) -> None:
    target = tmp_path / "target"
    target.mkdir()
    (target / "a.md").write_text("old", encoding="utf-8")
    source = _source(tmp_path, "a.md", "new")
    backups = tmp_path / "backups"

    AtomicInstaller().execute(
        [
            InstallationOperation(
                type="copy_file", source=source, target=target / "a.md", backup=True
            )
        ],
        InstallationConfig(target_directory=target),
        backups,
    )

    assert [p.read_text(encoding="utf-8") for p in backups.iterdir()] == ["old"]


def test_execute_publishes_events(tmp_path: Path) -> None:
    events: list[FileSystemEvent] = []
    target = tmp_path / "target"
    installer = AtomicInstaller(EventBus([events.append]))

    installer.execute(
        [InstallationOperation(type="create_directory", target=target)],
        InstallationConfig(target_directory=target),
    )

    assert [event.type for event in events] == [
        "operation_start",
        "operation_applied",
        "operation_complete",
    ]
    assert events[1].data == {"operation": "create_directory", "target": str(target)}
    assert events[2].data["committed"] is True
