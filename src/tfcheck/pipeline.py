"""
Pipeline step definitions.

A pipeline is an ordered list of immutable PipelineStep values, built once
per run. The default pipeline is the devcontainer's ``tfcheck`` chain:

    terraform fmt -check -recursive
    terraform validate
    tflint
    tfsec .
    checkov -d . --quiet

Usage:
    from tfcheck.pipeline import build_pipeline

    steps = build_pipeline(Path("infra"), settings, skip=["checkov"])
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from tfcheck.config import Settings
from tfcheck.errors import ConfigurationError

STEP_FMT = "fmt"
STEP_VALIDATE = "validate"
STEP_TFLINT = "tflint"
STEP_TFSEC = "tfsec"
STEP_CHECKOV = "checkov"

# Declared execution order.
DEFAULT_STEP_NAMES = (STEP_FMT, STEP_VALIDATE, STEP_TFLINT, STEP_TFSEC, STEP_CHECKOV)


@dataclass(frozen=True)
class PipelineStep:
    """
    One validation stage.

    Attributes:
        name: Short identifier, also used by ``--skip``
        command: Program followed by its arguments
        working_directory: IaC project root the command runs in
        description: Human-readable label for reports
    """

    name: str
    command: tuple[str, ...]
    working_directory: Path
    description: str = ""

    @property
    def program(self) -> str:
        """Executable the step invokes."""
        return self.command[0]

    @property
    def display_command(self) -> str:
        return " ".join(self.command)


def default_steps(target: Path, settings: Settings) -> list[PipelineStep]:
    """
    Build the default five-step pipeline for a target directory.

    Args:
        target: IaC project root
        settings: Settings providing tool executables

    Returns:
        Steps in declared execution order
    """
    return [
        PipelineStep(
            name=STEP_FMT,
            command=(settings.terraform_bin, "fmt", "-check", "-recursive"),
            working_directory=target,
            description="Format check",
        ),
        PipelineStep(
            name=STEP_VALIDATE,
            command=(settings.terraform_bin, "validate"),
            working_directory=target,
            description="Syntax validation",
        ),
        PipelineStep(
            name=STEP_TFLINT,
            command=(settings.tflint_bin,),
            working_directory=target,
            description="Lint",
        ),
        PipelineStep(
            name=STEP_TFSEC,
            command=(settings.tfsec_bin, "."),
            working_directory=target,
            description="Security scan",
        ),
        PipelineStep(
            name=STEP_CHECKOV,
            command=(settings.checkov_bin, "-d", ".", "--quiet"),
            working_directory=target,
            description="Compliance scan",
        ),
    ]


def select_steps(
    steps: Sequence[PipelineStep],
    skip: Iterable[str] = (),
) -> list[PipelineStep]:
    """
    Remove skipped steps while keeping the declared order.

    Args:
        steps: Full pipeline
        skip: Step names to leave out

    Returns:
        Remaining steps in their original order

    Raises:
        ConfigurationError: If a name is unknown or nothing would run
    """
    skip_set = set(skip)
    known = {step.name for step in steps}
    unknown = sorted(skip_set - known)
    if unknown:
        raise ConfigurationError(
            f"Unknown step(s): {', '.join(unknown)}. Known steps: {', '.join(s.name for s in steps)}",
            config_key="skip",
            reason="Unknown step name",
        )

    selected = [step for step in steps if step.name not in skip_set]
    if not selected:
        raise ConfigurationError(
            "All pipeline steps were skipped; nothing to run",
            config_key="skip",
            reason="Empty step selection",
        )
    return selected


def build_pipeline(
    target: Path,
    settings: Settings,
    skip: Iterable[str] = (),
) -> list[PipelineStep]:
    """Default pipeline for ``target`` minus any skipped steps."""
    return select_steps(default_steps(target, settings), skip)
