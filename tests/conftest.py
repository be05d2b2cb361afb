from pathlib import Path

import pytest
from click.testing import CliRunner

from ai_task_manager.filesystem.events import FileSystemEvent
from ai_task_manager.filesystem.manager import FileSystemManager
from tests.fakes.sources import (
    FakeCommandSource,
    FakeTemplateSource,
    write_command,
    write_template_file,
)


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """An empty project directory to install into."""
    project_dir = tmp_path / "project"
    project_dir.mkdir()
    return project_dir


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    return tmp_path / "source"


@pytest.fixture
def template_source(source_dir: Path) -> FakeTemplateSource:
    """One ``plan`` template with a single file."""
    plan_file = write_template_file(
        source_dir / "templates", "plan", "PLAN_TEMPLATE.md", "# Plan\n"
    )
    return FakeTemplateSource(templates={"plan": [plan_file]})


@pytest.fixture
def command_source(source_dir: Path) -> FakeCommandSource:
    """One command, ``create-plan.md``."""
    commands_dir = source_dir / "commands"
    command = write_command(commands_dir, "create-plan.md", "Create a plan")
    return FakeCommandSource(root=commands_dir, commands=[command])


@pytest.fixture
def events() -> list[FileSystemEvent]:
    return []


@pytest.fixture
def manager(
    template_source: FakeTemplateSource,
    command_source: FakeCommandSource,
    events: list[FileSystemEvent],
) -> FileSystemManager:
    return FileSystemManager(
        template_source=template_source,
        command_source=command_source,
        event_listeners=[events.append],
    )
