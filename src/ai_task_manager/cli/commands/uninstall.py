"""Uninstall command."""

from pathlib import Path

import click

from ai_task_manager.cli.options import assistants_option, parse_assistants, target_option
from ai_task_manager.cli.output import user_output
from ai_task_manager.error_boundary import cli_error_boundary
from ai_task_manager.filesystem.manager import FileSystemManager
from ai_task_manager.models.assistant import create_assistant_config


@click.command()
@target_option
@assistants_option
@cli_error_boundary
def uninstall(target: Path, assistants: str | None) -> None:
    """Remove the AI task manager from a project.

    Removes .ai/task-manager and .claude/commands/tasks. With --assistants, also
    removes each assistant's .ai/<assistant> directories.
    """
    target = target.resolve()
    selected = parse_assistants(assistants)
    manager = FileSystemManager()

    if selected:
        removed = manager.uninstall_for_assistants(
            target, create_assistant_config(selected, target)
        )
    else:
        removed = manager.uninstall_ai_task_manager(target)

    if not removed:
        user_output(click.style("Error: ", fg="red") + "Some files could not be removed")
        raise SystemExit(1)
    user_output(f"Removed AI task manager from {target}")
