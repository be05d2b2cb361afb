"""Options and parsing shared by several commands."""

from pathlib import Path

import click

from ai_task_manager.models.assistant import SupportedAssistant, validate_assistants

target_option = click.option(
    "--target",
    "-t",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Project directory to operate on",
)

assistants_option = click.option(
    "--assistants",
    "-a",
    default=None,
    help="Comma separated assistants, e.g. 'claude,gemini'",
)


def parse_assistants(value: str | None) -> list[SupportedAssistant] | None:
    """Parse the --assistants value; None when the option was not given.

    Raises:
        ValueError: If the list is empty or names an unsupported assistant
    """
    if value is None:
        return None
    validation = validate_assistants(value)
    if not validation.valid:
        raise ValueError("; ".join(validation.errors) or "No valid assistants given")
    return validation.assistants
