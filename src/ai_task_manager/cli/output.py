"""Output helpers for CLI commands.

``user_output`` is for people and goes to stderr; ``machine_output`` is for pipes
and goes to stdout.
"""

import click

from ai_task_manager.models.operations import InstallationResult, InstallState


def user_output(message: str = "") -> None:
    click.echo(message, err=True)


def machine_output(message: str) -> None:
    click.echo(message)


def report_installation(result: InstallationResult) -> None:
    """Print the outcome of an install or repair run."""
    summary = result.summary
    if result.state == InstallState.DRY_RUN:
        headline = click.style("Dry run", fg="yellow", bold=True)
        counts = f"{summary.total_operations} operations planned, nothing written"
    else:
        if result.success:
            headline = click.style("Installed", fg="green", bold=True)
        else:
            headline = click.style(result.state.value.replace("_", " ").capitalize(), fg="red")
        counts = f"{summary.successful_operations}/{summary.total_operations} operations"
    user_output(f"{headline}: {counts}")
    if result.state != InstallState.DRY_RUN:
        user_output(
            f"  files created: {summary.files_created}, "
            f"directories created: {summary.directories_created}, "
            f"skipped: {summary.skipped_operations}"
        )

    for conflict in result.conflicts:
        status = "ok" if conflict.success else f"failed: {conflict.error}"
        user_output(f"  conflict {conflict.path}: {conflict.resolution.action} ({status})")
    for warning in result.warnings:
        user_output(click.style("Warning: ", fg="yellow") + warning)
    for error in result.errors:
        user_output(click.style("Error: ", fg="red") + f"{error.error} [{error.code}]")
