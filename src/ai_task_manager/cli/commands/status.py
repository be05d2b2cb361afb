"""Status command."""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from ai_task_manager.cli.options import target_option
from ai_task_manager.cli.output import machine_output
from ai_task_manager.error_boundary import cli_error_boundary
from ai_task_manager.filesystem.manager import FileSystemManager
from ai_task_manager.models.status import InstallationStatus

HEALTH_STYLES = {"healthy": "green", "partial": "yellow", "unknown": "dim"}


def _yes_no(value: bool) -> str:
    return "[green]yes[/green]" if value else "[red]no[/red]"


def render_status(target: Path, status: InstallationStatus) -> Table:
    table = Table(title=f"AI task manager in {target}", show_header=True, header_style="bold")
    table.add_column("Item", no_wrap=True)
    table.add_column("Value")

    health_style = HEALTH_STYLES[status.health]
    table.add_row("Installed", _yes_no(status.is_installed))
    table.add_row("Health", f"[{health_style}]{status.health}[/{health_style}]")
    table.add_row("Version", status.version or "-")
    table.add_row("Issues", str(status.issue_count))
    table.add_row("Templates", _yes_no(status.details.templates))
    table.add_row("Commands", _yes_no(status.details.commands))
    table.add_row("Config", _yes_no(status.details.config))
    last_modified = status.last_modified.isoformat() if status.last_modified else "-"
    table.add_row("Last modified", last_modified)
    return table


def status_as_json(status: InstallationStatus) -> str:
    return json.dumps(
        {
            "installed": status.is_installed,
            "health": status.health,
            "issue_count": status.issue_count,
            "version": status.version,
            "last_modified": status.last_modified.isoformat() if status.last_modified else None,
            "details": {
                "templates": status.details.templates,
                "commands": status.details.commands,
                "config": status.details.config,
            },
        },
        indent=2,
    )


@click.command()
@target_option
@click.option("--json", "as_json", is_flag=True, help="Print status as JSON on stdout")
@cli_error_boundary
def status(target: Path, as_json: bool) -> None:
    """Show whether the AI task manager is installed and healthy."""
    target = target.resolve()
    installation_status = FileSystemManager().get_installation_status(target)

    if as_json:
        machine_output(status_as_json(installation_status))
        return

    console = Console(stderr=True, width=200)
    console.print(render_status(target, installation_status))
