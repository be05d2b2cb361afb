"""Assistant fan-out configuration.

The same bundle is installed once per assistant, each into its own directory tree
(by default ``.ai/<assistant>/{commands,tasks}``).
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Literal, cast

from pydantic import BaseModel, ConfigDict, Field, model_validator

SupportedAssistant = Literal["claude", "gemini"]

SUPPORTED_ASSISTANTS: tuple[SupportedAssistant, ...] = ("claude", "gemini")


class AssistantInstallationTarget(BaseModel):
    """Where one assistant's files go."""

    model_config = ConfigDict(frozen=True)

    assistant: SupportedAssistant
    base_directory: Path
    commands_directory: Path
    tasks_directory: Path


class AssistantConfig(BaseModel):
    """Assistants to install for, and where.

    Validation rejects configurations the installer cannot fan out safely: no
    assistants, assistants without a directory or target, duplicated targets, and
    base directories that overlap.
    """

    model_config = ConfigDict(frozen=True)

    assistants: list[SupportedAssistant] = Field(..., min_length=1)
    directories: dict[SupportedAssistant, Path]
    installation_targets: list[AssistantInstallationTarget]

    @model_validator(mode="after")
    def validate_targets(self) -> "AssistantConfig":
        errors: list[str] = []

        for assistant in self.assistants:
            if assistant not in self.directories:
                errors.append(f"Missing directory mapping for assistant: {assistant}")

        target_assistants = [target.assistant for target in self.installation_targets]
        for assistant in self.assistants:
            if assistant not in target_assistants:
                errors.append(f"Missing installation target for assistant: {assistant}")

        seen: set[str] = set()
        for assistant in target_assistants:
            if assistant in seen:
                errors.append(f"Duplicate installation target found for assistant: {assistant}")
            seen.add(assistant)

        resolved = [
            (target.assistant, target.base_directory.resolve())
            for target in self.installation_targets
        ]
        for index, (assistant, base) in enumerate(resolved):
            for other_assistant, other_base in resolved[index + 1 :]:
                nested = base.is_relative_to(other_base) or other_base.is_relative_to(base)
                if nested:
                    errors.append(
                        f"Base directories overlap for assistants {assistant} and "
                        f"{other_assistant}: {base} / {other_base}"
                    )

        if errors:
            raise ValueError("; ".join(errors))
        return self

    def target_for(self, assistant: str) -> AssistantInstallationTarget:
        """Return the installation target for an assistant.

        Raises:
            KeyError: If the assistant has no target
        """
        for target in self.installation_targets:
            if target.assistant == assistant:
                return target
        raise KeyError(assistant)


def get_base_directory(assistant: SupportedAssistant, project_path: Path) -> Path:
    """Base directory for an assistant's files (``.ai/<assistant>``)."""
    return project_path / ".ai" / assistant


def create_assistant_config(
    assistants: list[SupportedAssistant], project_path: Path
) -> AssistantConfig:
    """Create an assistant configuration with the default directory layout.

    Duplicates are dropped, first occurrence wins.

    Args:
        assistants: Assistants to configure, in installation order
        project_path: Target project directory

    Returns:
        Validated AssistantConfig

    Raises:
        ValueError: If no assistant is given
    """
    if not assistants:
        raise ValueError("At least one assistant must be specified")

    unique = list(dict.fromkeys(assistants))
    targets = []
    for assistant in unique:
        base = get_base_directory(assistant, project_path)
        targets.append(
            AssistantInstallationTarget(
                assistant=assistant,
                base_directory=base,
                commands_directory=base / "commands",
                tasks_directory=base / "tasks",
            )
        )

    return AssistantConfig(
        assistants=unique,
        directories={target.assistant: target.base_directory for target in targets},
        installation_targets=targets,
    )


@dataclass(frozen=True)
class AssistantValidationResult:
    """Outcome of parsing a comma separated assistant list."""

    valid: bool
    assistants: list[SupportedAssistant]
    errors: list[str]


def validate_assistants(value: str) -> AssistantValidationResult:
    """Parse and validate a comma separated list such as ``"claude, gemini"``.

    Names are trimmed and lowercased, duplicates dropped. The result is valid only
    when at least one name was given and every name is supported.
    """
    if not value or not value.strip():
        return AssistantValidationResult(
            valid=False, assistants=[], errors=["Assistant input cannot be empty"]
        )

    names = [name.strip().lower() for name in value.split(",")]
    names = [name for name in names if name]
    if not names:
        return AssistantValidationResult(
            valid=False, assistants=[], errors=["No valid assistant names found in input"]
        )

    unique = list(dict.fromkeys(names))
    valid_names = [
        cast(SupportedAssistant, name) for name in unique if name in SUPPORTED_ASSISTANTS
    ]
    invalid_names = [name for name in unique if name not in SUPPORTED_ASSISTANTS]

    errors: list[str] = []
    if invalid_names:
        plural = "s" if len(invalid_names) > 1 else ""
        errors.append(
            f"Invalid assistant name{plural}: {', '.join(invalid_names)}. "
            f"Supported assistants: {', '.join(SUPPORTED_ASSISTANTS)}"
        )

    return AssistantValidationResult(
        valid=bool(valid_names) and not invalid_names,
        assistants=valid_names,
        errors=errors,
    )
