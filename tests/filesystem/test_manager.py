"""Tests for FileSystemManager orchestration."""

import json
from pathlib import Path

import pytest

from ai_task_manager.errors import DirectoryCreationError, VerificationError
from ai_task_manager.filesystem.events import FileSystemEvent
from ai_task_manager.filesystem.manager import FileSystemManager
from ai_task_manager.models.assistant import create_assistant_config
from ai_task_manager.models.config import InstallationConfig
from ai_task_manager.models.operations import InstallState, PlanningFailure
from ai_task_manager.sources.base import CommandFile
from tests.fakes.sources import FakeCommandSource, FakeTemplateSource

COMMAND = Path(".claude") / "commands" / "tasks" / "create-plan.md"
TEMPLATE = Path(".ai") / "task-manager" / "templates" / "plan" / "PLAN_TEMPLATE.md"


def _states(events: list[FileSystemEvent]) -> list[str]:
    return [event.data["state"] for event in events if event.type == "state_changed"]


def test_install_lays_out_markers_templates_and_commands(
    manager: FileSystemManager, project: Path
) -> None:
    result = manager.install_ai_task_manager(project)

    assert result.success
    assert result.state == InstallState.INSTALLED
    assert result.errors == []
    assert (project / ".ai" / "task-manager" / "VERSION").read_text(encoding="utf-8") == "1.4.0\n"
    assert (project / TEMPLATE).read_text(encoding="utf-8") == "# Plan\n"
    assert (project / COMMAND).is_file()
    assert (project / ".ai" / "task-manager" / "MANIFEST.json").is_file()
    assert result.summary.total_operations == 7
    assert result.summary.files_created == 4
    assert result.summary.directories_created == 3


def test_install_writes_config_json(manager: FileSystemManager, project: Path) -> None:
    manager.install_ai_task_manager(project)

    config = json.loads(
        (project / ".ai" / "task-manager" / "config.json").read_text(encoding="utf-8")
    )

    assert config["version"] == "1.4.0"
    assert config["assistants"] == ["claude"]
    assert config["assistant_directories"] == {"claude": ".claude"}
    assert config["commands_directories"] == {"claude": ".claude/commands/tasks"}
    assert "created_at" in config


def test_reinstall_preserves_created_at(manager: FileSystemManager, project: Path) -> None:
    config_path = project / ".ai" / "task-manager" / "config.json"
    manager.install_ai_task_manager(project)
    first = json.loads(config_path.read_text(encoding="utf-8"))["created_at"]

    result = manager.install_ai_task_manager(project)

    assert result.success
    assert result.conflicts == []
    assert json.loads(config_path.read_text(encoding="utf-8"))["created_at"] == first


def test_install_publishes_state_transitions(
    manager: FileSystemManager, project: Path, events: list[FileSystemEvent]
) -> None:
    manager.install_ai_task_manager(project)

    assert _states(events) == [
        "detecting",
        "planning",
        "conflict_check",
        "applying",
        "verifying",
        "installed",
    ]
    assert "verification_complete" in [event.type for event in events]


def test_status_after_install_is_healthy(manager: FileSystemManager, project: Path) -> None:
    manager.install_ai_task_manager(project)

    status = manager.get_installation_status(project)

    assert status.is_installed
    assert status.health == "healthy"
    assert status.version == "1.4.0"
    assert status.details.templates
    assert status.details.commands
    assert status.details.config


def test_status_health_classification(manager: FileSystemManager, project: Path) -> None:
    assert manager.get_installation_status(project).health == "unknown"

    (project / ".ai" / "task-manager").mkdir(parents=True)
    (project / ".ai" / "task-manager" / "VERSION").write_text("1.4.0\n", encoding="utf-8")

    status = manager.get_installation_status(project)
    assert status.health == "partial"
    assert not status.is_installed
    assert not status.details.config


def test_plan_fan_out_for_two_assistants(manager: FileSystemManager, project: Path) -> None:
    assistant_config = create_assistant_config(["claude", "gemini"], project)

    operations = manager.plan_command_installation_for_assistants(project, assistant_config)

    assert not isinstance(operations, PlanningFailure)
    types = [operation.type for operation in operations]
    assert types.count("create_directory") == 4
    assert types.count("copy_file") == 2
    assert [op.target for op in operations] == [
        project / ".ai" / "claude" / "commands",
        project / ".ai" / "claude" / "tasks",
        project / ".ai" / "claude" / "commands" / "create-plan.md",
        project / ".ai" / "gemini" / "commands",
        project / ".ai" / "gemini" / "tasks",
        project / ".ai" / "gemini" / "commands" / "create-plan.md",
    ]


def test_plan_template_installation_creates_directory_first(
    manager: FileSystemManager, project: Path
) -> None:
    operations = manager.plan_template_installation(project)

    assert not isinstance(operations, PlanningFailure)
    assert [(op.type, op.target) for op in operations] == [
        ("create_directory", project / ".ai" / "task-manager" / "templates" / "plan"),
        ("copy_file", project / TEMPLATE),
    ]


def test_planning_failure_is_a_value(
    command_source: FakeCommandSource, project: Path
) -> None:
    manager = FileSystemManager(
        template_source=FakeTemplateSource(error="catalog offline"),
        command_source=command_source,
    )

    result = manager.plan_template_installation(project)

    assert result == PlanningFailure(source="templates", error="catalog offline")


def test_failing_template_source_degrades_scope(
    command_source: FakeCommandSource, project: Path
) -> None:
    """Commands are still installed; the template failure becomes a warning."""
    events: list[FileSystemEvent] = []
    manager = FileSystemManager(
        template_source=FakeTemplateSource(error="catalog offline"),
        command_source=command_source,
        event_listeners=[events.append],
    )

    result = manager.install_ai_task_manager(project)

    assert result.success
    assert result.warnings == ["templates planning failed: catalog offline"]
    assert (project / COMMAND).is_file()
    assert not (project / ".ai" / "task-manager" / "templates").exists()
    warning_events = [event for event in events if event.type == "planning_warning"]
    assert warning_events[0].data == {"source": "templates"}
    assert warning_events[0].error == "catalog offline"


def test_install_for_assistants(manager: FileSystemManager, project: Path) -> None:
    assistant_config = create_assistant_config(["claude", "gemini"], project)
    config = InstallationConfig(target_directory=project)

    result = manager.install_for_assistants(project, config, assistant_config)

    assert result.success
    for assistant in ("claude", "gemini"):
        base = project / ".ai" / assistant
        assert (base / "commands" / "create-plan.md").is_file()
        assert (base / "tasks").is_dir()
    stored = json.loads(
        (project / ".ai" / "task-manager" / "config.json").read_text(encoding="utf-8")
    )
    assert stored["assistants"] == ["claude", "gemini"]
    assert stored["commands_directories"] == {
        "claude": ".ai/claude/commands",
        "gemini": ".ai/gemini/commands",
    }
    assert manager.get_installation_status(project).details.commands


def test_directory_creation_failure_is_raised(
    manager: FileSystemManager, project: Path, events: list[FileSystemEvent]
) -> None:
    (project / ".ai").write_text("not a directory", encoding="utf-8")
    assistant_config = create_assistant_config(["claude", "gemini"], project)

    with pytest.raises(DirectoryCreationError) as exc_info:
        manager.install_for_assistants(
            project, InstallationConfig(target_directory=project), assistant_config
        )

    assert {assistant for assistant, _, _ in exc_info.value.failures} == {"claude", "gemini"}
    assert exc_info.value.code == "DIRECTORY_CREATE_FAILED"
    assert _states(events)[-1] == "failed"


def test_dry_run_writes_nothing(manager: FileSystemManager, project: Path) -> None:
    config = InstallationConfig(target_directory=project, dry_run=True)
    assistant_config = create_assistant_config(["claude"], project)

    result = manager.install_for_assistants(project, config, assistant_config)

    assert result.success
    assert result.state == InstallState.DRY_RUN
    assert list(project.iterdir()) == []
    assert result.summary.total_operations > 0


def test_staging_failure_leaves_project_untouched(
    template_source: FakeTemplateSource, source_dir: Path, project: Path
) -> None:
    """A command whose source file is gone aborts the whole batch."""
    ghost = CommandFile(filename="ghost.md", content="---\ndescription: x\n---\n")
    manager = FileSystemManager(
        template_source=template_source,
        command_source=FakeCommandSource(root=source_dir / "commands", commands=[ghost]),
    )

    result = manager.install_ai_task_manager(project)

    assert not result.success
    assert result.state == InstallState.FAILED
    assert result.errors[0].code == "FILE_COPY_FAILED"
    assert list(project.iterdir()) == []


def _write_existing_command(project: Path, content: str = "my own command\n") -> Path:
    path = project / COMMAND
    path.parent.mkdir(parents=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_skip_mode_keeps_existing_file(manager: FileSystemManager, project: Path) -> None:
    existing = _write_existing_command(project)
    config = InstallationConfig(target_directory=project, overwrite_mode="skip")

    result = manager.install_ai_task_manager(project, config)

    assert result.success
    assert existing.read_text(encoding="utf-8") == "my own command\n"
    assert [(c.path, c.resolution.action, c.success) for c in result.conflicts] == [
        (COMMAND.as_posix(), "skip", True)
    ]
    assert result.summary.skipped_operations == 1


def test_overwrite_mode_replaces_and_backs_up(
    manager: FileSystemManager, project: Path, events: list[FileSystemEvent]
) -> None:
    existing = _write_existing_command(project)
    config = InstallationConfig(target_directory=project, overwrite_mode="overwrite")

    result = manager.install_ai_task_manager(project, config)

    assert result.success
    assert existing.read_text(encoding="utf-8").startswith("---\ndescription: Create a plan")
    backups = list((project / ".ai" / "backups").iterdir())
    assert [backup.read_text(encoding="utf-8") for backup in backups] == ["my own command\n"]
    assert result.summary.conflicts_resolved == 1
    assert "backup_created" in [event.type for event in events]


def test_overwrite_without_backup(manager: FileSystemManager, project: Path) -> None:
    _write_existing_command(project)
    config = InstallationConfig(
        target_directory=project, overwrite_mode="overwrite", backup_mode="none"
    )

    result = manager.install_ai_task_manager(project, config)

    assert result.success
    assert not (project / ".ai" / "backups").exists()


def test_ask_mode_uses_prompt(
    template_source: FakeTemplateSource, command_source: FakeCommandSource, project: Path
) -> None:
    existing = _write_existing_command(project)
    asked: list[str] = []

    def prompt(message: str, choices: list[str]) -> str:
        asked.append(message)
        return "rename"

    manager = FileSystemManager(
        template_source=template_source, command_source=command_source, prompt=prompt
    )

    result = manager.install_ai_task_manager(project)

    assert len(asked) == 1
    assert result.success
    assert existing.read_text(encoding="utf-8") == "my own command\n"
    renamed = existing.with_name("create-plan.new.md")
    assert renamed.read_text(encoding="utf-8").startswith("---\ndescription: Create a plan")


def test_ask_mode_without_prompt_skips(manager: FileSystemManager, project: Path) -> None:
    existing = _write_existing_command(project)

    result = manager.install_ai_task_manager(project)

    assert existing.read_text(encoding="utf-8") == "my own command\n"
    assert result.conflicts[0].resolution.action == "skip"


def test_file_cannot_replace_directory(manager: FileSystemManager, project: Path) -> None:
    (project / COMMAND).mkdir(parents=True)
    (project / COMMAND / "inner.md").write_text("x", encoding="utf-8")
    config = InstallationConfig(target_directory=project, overwrite_mode="overwrite")

    result = manager.install_ai_task_manager(project, config)

    assert not result.success
    assert result.state == InstallState.PARTIALLY_INSTALLED
    assert result.conflicts[0].error == f"Cannot replace directory {COMMAND.as_posix()} with a file"
    assert (project / COMMAND / "inner.md").is_file()


def test_verify_installation(manager: FileSystemManager, project: Path) -> None:
    manager.install_ai_task_manager(project)

    assert manager.verify_installation(project).valid

    (project / TEMPLATE).write_text("tampered", encoding="utf-8")
    assert not manager.verify_installation(project).valid


def test_verify_without_installation_raises(manager: FileSystemManager, project: Path) -> None:
    with pytest.raises(VerificationError):
        manager.verify_installation(project)


def test_repair_valid_installation_does_nothing(
    manager: FileSystemManager, project: Path
) -> None:
    manager.install_ai_task_manager(project)

    result = manager.repair_installation(project)

    assert result.success
    assert result.operations == []


def test_repair_restores_modified_files(manager: FileSystemManager, project: Path) -> None:
    manager.install_ai_task_manager(project)
    (project / COMMAND).write_text("broken", encoding="utf-8")

    result = manager.repair_installation(project)

    assert result.success
    assert (project / COMMAND).read_text(encoding="utf-8").startswith("---\ndescription:")
    assert manager.verify_installation(project).valid
    assert (project / ".ai" / "backups").is_dir()


def test_repair_reinstalls_recorded_assistants(
    manager: FileSystemManager, project: Path
) -> None:
    assistant_config = create_assistant_config(["claude", "gemini"], project)
    manager.install_for_assistants(
        project, InstallationConfig(target_directory=project), assistant_config
    )
    gemini_command = project / ".ai" / "gemini" / "commands" / "create-plan.md"
    gemini_command.unlink()

    result = manager.repair_installation(project)

    assert result.success
    assert gemini_command.is_file()
    assert not (project / COMMAND).exists()


def test_uninstall_removes_installation(manager: FileSystemManager, project: Path) -> None:
    manager.install_ai_task_manager(project)

    assert manager.uninstall_ai_task_manager(project)

    assert not (project / ".ai" / "task-manager").exists()
    assert not (project / ".claude" / "commands" / "tasks").exists()


def test_uninstall_nothing_installed_succeeds(
    manager: FileSystemManager, project: Path, events: list[FileSystemEvent]
) -> None:
    assert manager.uninstall_ai_task_manager(project)
    assert _states(events) == ["detecting", "removed"]


def test_uninstall_for_assistants(manager: FileSystemManager, project: Path) -> None:
    assistant_config = create_assistant_config(["claude", "gemini"], project)
    manager.install_for_assistants(
        project, InstallationConfig(target_directory=project), assistant_config
    )

    assert manager.uninstall_for_assistants(project, assistant_config)

    assert not (project / ".ai" / "claude").exists()
    assert not (project / ".ai" / "gemini").exists()
    assert not (project / ".ai" / "task-manager").exists()


def test_event_listeners_can_be_added_and_removed(
    manager: FileSystemManager, project: Path
) -> None:
    extra: list[FileSystemEvent] = []
    manager.add_event_listener(extra.append)
    manager.uninstall_ai_task_manager(project)
    manager.remove_event_listener(extra.append)
    manager.uninstall_ai_task_manager(project)

    assert len(extra) == 2
