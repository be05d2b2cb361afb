"""Repair command."""

from pathlib import Path

import click

from ai_task_manager.cli.commands.install import prompt_resolution
from ai_task_manager.cli.options import target_option
from ai_task_manager.cli.output import report_installation, user_output
from ai_task_manager.error_boundary import cli_error_boundary
from ai_task_manager.filesystem.manager import FileSystemManager
from ai_task_manager.io import build_installation_config, load_project_settings


@click.command()
@target_option
@click.option("--no-backup", is_flag=True, help="Do not back up replaced files")
@cli_error_boundary
def repair(target: Path, no_backup: bool) -> None:
    """Reinstall damaged or missing files of an installation.

    A valid installation is left alone.
    """
    target = target.resolve()
    config = build_installation_config(
        target, load_project_settings(target), no_backup=no_backup
    )
    manager = FileSystemManager(prompt=prompt_resolution)
    result = manager.repair_installation(target, config)

    if not result.operations and result.success:
        user_output("Installation is valid, nothing to repair")
        return
    report_installation(result)
    if not result.success:
        raise SystemExit(1)
