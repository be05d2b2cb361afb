"""Tests for the directory-backed template and command catalogs."""

from pathlib import Path

import pytest

from ai_task_manager.errors import PlanningError
from ai_task_manager.sources.base import CommandFile
from ai_task_manager.sources.bundled import (
    DirectoryCommandSource,
    DirectoryTemplateSource,
    is_valid_command,
)

VALID_COMMAND = "---\ndescription: Create a plan\nargument-hint: \"[prompt]\"\n---\n# Plan\n"


def _commands_dir(tmp_path: Path) -> Path:
    root = tmp_path / "commands"
    root.mkdir()
    (root / "create-plan.md").write_text(VALID_COMMAND, encoding="utf-8")
    (root / "notes.txt").write_text("ignored", encoding="utf-8")
    return root


def test_bundled_catalogs_ship_templates_and_commands() -> None:
    """The package data holds the plan and task templates and valid commands."""
    templates = DirectoryTemplateSource()
    commands = DirectoryCommandSource().get_available_commands()

    assert templates.get_available_templates() == ["plan", "task"]
    assert [c.filename for c in commands] == [
        "create-plan.md",
        "execute-blueprint.md",
        "generate-tasks.md",
    ]
    assert all(is_valid_command(command) for command in commands)


def test_template_config_lists_files_relative_to_template(tmp_path: Path) -> None:
    (tmp_path / "plan" / "nested").mkdir(parents=True)
    (tmp_path / "plan" / "PLAN.md").write_text("# Plan", encoding="utf-8")
    (tmp_path / "plan" / "nested" / "extra.md").write_text("x", encoding="utf-8")

    config = DirectoryTemplateSource(tmp_path).get_template_config("plan")

    assert config.name == "plan"
    assert config.description == "Template for plan"
    assert [(f.destination, f.name) for f in config.files] == [
        ("PLAN.md", "PLAN"),
        ("nested/extra.md", "extra"),
    ]


def test_unknown_template_raises(tmp_path: Path) -> None:
    with pytest.raises(PlanningError) as exc_info:
        DirectoryTemplateSource(tmp_path).get_template_config("missing")

    assert exc_info.value.code == "TEMPLATE_NOT_FOUND"


def test_missing_templates_root_raises(tmp_path: Path) -> None:
    with pytest.raises(PlanningError) as exc_info:
        DirectoryTemplateSource(tmp_path / "nope").get_available_templates()

    assert exc_info.value.code == "READ_TEMPLATES_FAILED"


def test_commands_parse_frontmatter(tmp_path: Path) -> None:
    commands = DirectoryCommandSource(_commands_dir(tmp_path)).get_available_commands()

    assert len(commands) == 1
    assert commands[0].filename == "create-plan.md"
    assert commands[0].frontmatter == {"description": "Create a plan", "argument-hint": "[prompt]"}


def test_malformed_frontmatter_yields_invalid_command(tmp_path: Path) -> None:
    root = tmp_path / "commands"
    root.mkdir()
    (root / "broken.md").write_text("---\ndescription: [unclosed\n---\nbody\n", encoding="utf-8")

    commands = DirectoryCommandSource(root).get_available_commands()

    assert commands[0].frontmatter == {}
    assert not is_valid_command(commands[0])


def test_missing_commands_root_raises(tmp_path: Path) -> None:
    with pytest.raises(PlanningError) as exc_info:
        DirectoryCommandSource(tmp_path / "nope").get_available_commands()

    assert exc_info.value.code == "READ_COMMANDS_FAILED"


def test_is_valid_command_requires_description() -> None:
    assert is_valid_command(
        CommandFile(filename="a.md", content=VALID_COMMAND, frontmatter={"description": "x"})
    )
    assert not is_valid_command(CommandFile(filename="a.md", content="# no frontmatter"))


def test_install_commands_skips_existing_unless_overwrite(tmp_path: Path) -> None:
    source = DirectoryCommandSource(_commands_dir(tmp_path))
    target = tmp_path / "project"
    installed_path = target / ".claude" / "commands" / "tasks" / "create-plan.md"

    first = source.install_commands(target)
    installed_path.write_text("edited", encoding="utf-8")
    second = source.install_commands(target)
    third = source.install_commands(target, overwrite=True)

    assert [c.filename for c in first.installed] == ["create-plan.md"]
    assert [c.filename for c in second.skipped] == ["create-plan.md"]
    assert [c.filename for c in third.installed] == ["create-plan.md"]
    assert installed_path.read_text(encoding="utf-8") == VALID_COMMAND


def test_install_commands_rejects_invalid_commands(tmp_path: Path) -> None:
    root = tmp_path / "commands"
    root.mkdir()
    (root / "plain.md").write_text("# No frontmatter\n", encoding="utf-8")

    result = DirectoryCommandSource(root).install_commands(tmp_path / "project")

    assert result.installed == []
    assert [(e.command, e.error) for e in result.errors] == [
        ("plain.md", "Command validation failed: missing required frontmatter")
    ]


def test_install_commands_into_custom_directory(tmp_path: Path) -> None:
    source = DirectoryCommandSource(_commands_dir(tmp_path))
    custom = tmp_path / "project" / ".ai" / "gemini" / "commands"

    source.install_commands(tmp_path / "project", commands_directory=custom)

    assert (custom / "create-plan.md").is_file()
    assert source.get_installation_status(tmp_path / "project", custom).is_installed


def test_installation_status_compares_content(tmp_path: Path) -> None:
    source = DirectoryCommandSource(_commands_dir(tmp_path))
    target = tmp_path / "project"

    before = source.get_installation_status(target)
    source.install_commands(target)
    installed = source.get_installation_status(target)
    (target / ".claude" / "commands" / "tasks" / "create-plan.md").write_text(
        "edited", encoding="utf-8"
    )
    edited = source.get_installation_status(target)

    assert not before.is_installed
    assert before.missing_commands == ["create-plan.md"]
    assert installed.is_installed
    assert installed.installed_commands == ["create-plan.md"]
    assert not edited.is_installed
    assert edited.conflicting_commands == ["create-plan.md"]
