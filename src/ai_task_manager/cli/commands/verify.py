"""Verify command."""

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from ai_task_manager.cli.options import target_option
from ai_task_manager.cli.output import user_output
from ai_task_manager.error_boundary import cli_error_boundary
from ai_task_manager.filesystem.manager import FileSystemManager


@click.command()
@target_option
@cli_error_boundary
def verify(target: Path) -> None:
    """Check installed files against the manifest written at install time.

    Exits with status 1 when a high or critical issue is found.
    """
    target = target.resolve()
    result = FileSystemManager().verify_installation(target)

    user_output(result.summary)
    if result.issues:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Path")
        table.add_column("Issue")
        table.add_column("Severity")
        for issue in result.issues:
            table.add_row(issue.path, issue.issue, issue.severity)
        Console(stderr=True, width=200).print(table)

    if not result.valid:
        raise SystemExit(1)
