"""Install command."""

from pathlib import Path

import click

from ai_task_manager.cli.options import assistants_option, parse_assistants, target_option
from ai_task_manager.cli.output import report_installation, user_output
from ai_task_manager.error_boundary import cli_error_boundary
from ai_task_manager.filesystem.events import FileSystemEvent
from ai_task_manager.filesystem.manager import FileSystemManager
from ai_task_manager.io import build_installation_config, load_project_settings
from ai_task_manager.models.assistant import create_assistant_config


def prompt_resolution(message: str, choices: list[str]) -> str:
    """Ask the user how to resolve a conflict."""
    return click.prompt(message, type=click.Choice(choices), default="skip")


def show_event(event: FileSystemEvent) -> None:
    if event.type == "state_changed":
        user_output(f"... {event.data['state']}")
    elif event.type == "planning_warning":
        user_output(click.style("Warning: ", fg="yellow") + f"{event.error}")


@click.command()
@target_option
@assistants_option
@click.option("--force", "-f", is_flag=True, help="Overwrite conflicting files")
@click.option("--dry-run", is_flag=True, help="Plan and stage without writing anything")
@click.option("--no-backup", is_flag=True, help="Do not back up replaced files")
@click.option("--verbose", "-v", is_flag=True, help="Show each installation phase")
@cli_error_boundary
def install(
    target: Path,
    assistants: str | None,
    force: bool,
    dry_run: bool,
    no_backup: bool,
    verbose: bool,
) -> None:
    """Install the AI task manager into a project.

    Without --assistants (and without an ``assistants`` key in ai-task-manager.toml)
    commands go to .claude/commands/tasks. With assistants, each one gets its own
    .ai/<assistant>/commands and .ai/<assistant>/tasks directories.

    Examples:

        # Install for Claude into the current directory
        ai-task-manager install

        # Install for two assistants, replacing conflicting files
        ai-task-manager install --assistants claude,gemini --force
    """
    target = target.resolve()
    settings = load_project_settings(target)
    config = build_installation_config(
        target, settings, force=force, dry_run=dry_run, no_backup=no_backup
    )
    selected = parse_assistants(assistants) or settings.assistants

    manager = FileSystemManager(
        prompt=prompt_resolution,
        event_listeners=[show_event] if verbose else None,
    )
    if selected:
        result = manager.install_for_assistants(
            target, config, create_assistant_config(selected, target)
        )
    else:
        result = manager.install_ai_task_manager(target, config)

    report_installation(result)
    if not result.success:
        raise SystemExit(1)
