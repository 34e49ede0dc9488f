"""
Terraform convenience commands from the devcontainer shell profile.

Besides the validation pipeline, the devcontainer shipped a handful of shell
helpers. They are reproduced here so the CLI can offer them without a
custom ``.bashrc``:

    tfinit  -> init_with_backend()   terraform init -backend-config=<file>
    tfpc    -> plan_summary()        terraform plan, filtered to the summary lines
    aliases -> ALIASES               short name to full invocation (listing only)

check_tools() reports which pipeline programs are installed.
"""

import re
import shutil
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from tfcheck.config import Settings
from tfcheck.errors import ConfigurationError, StepTimeoutError, ToolNotFoundError
from tfcheck.logging_config import get_logger, log_with_context
from tfcheck.pipeline import PipelineStep, default_steps
from tfcheck.runner import PipelineResult, PipelineRunner, validate_target

logger = get_logger(__name__)

PLAN_SUMMARY_PATTERN = re.compile(r"^(Plan:|No changes|.*will be.*)")

ALIASES: dict[str, str] = {
    # Terraform
    "tf": "terraform",
    "tfi": "terraform init",
    "tfp": "terraform plan",
    "tfa": "terraform apply",
    "tfd": "terraform destroy",
    "tfv": "terraform validate",
    "tff": "terraform fmt -recursive",
    "tfws": "terraform workspace select",
    "tfwl": "terraform workspace list",
    # Terragrunt
    "tg": "terragrunt",
    "tgp": "terragrunt plan",
    "tga": "terragrunt apply",
    "tgd": "terragrunt destroy",
    "tgra": "terragrunt run-all",
    # Azure CLI
    "azl": "az login",
    "azll": "az account list -o table",
    "azs": "az account set --subscription",
    "azsh": "az account show",
}

TOOL_HINTS: dict[str, str] = {
    "terraform": "Install Terraform: https://developer.hashicorp.com/terraform/install",
    "tflint": "Install tflint: https://github.com/terraform-linters/tflint#installation",
    "tfsec": "Install tfsec: https://github.com/aquasecurity/tfsec#installation",
    "checkov": "Install checkov (e.g., pip install --user checkov).",
}


@dataclass
class ToolStatus:
    """
    Availability of one external program.

    Attributes:
        program: Executable name or path as configured
        path: Resolved absolute path, None if not found
        steps: Pipeline steps that use the program
        hint: Install hint shown when the program is missing
    """

    program: str
    path: str | None
    steps: list[str]
    hint: str

    @property
    def available(self) -> bool:
        return self.path is not None


@dataclass
class PlanSummary:
    """
    Filtered ``terraform plan`` output.

    Attributes:
        lines: Summary lines in plan order
        returncode: Exit status of terraform plan
        stderr: Captured standard error of terraform plan
    """

    lines: list[str]
    returncode: int
    stderr: str = ""

    @property
    def exit_code(self) -> int:
        """Exit status as a shell reports it, 128+N for a signal-killed plan."""
        if self.returncode < 0:
            return 128 + abs(self.returncode)
        return self.returncode


def check_tools(settings: Settings) -> list[ToolStatus]:
    """
    Report which pipeline programs are on PATH.

    Args:
        settings: Settings providing tool executables

    Returns:
        One ToolStatus per distinct program, in pipeline order
    """
    statuses: dict[str, ToolStatus] = {}
    for step in default_steps(Path("."), settings):
        status = statuses.get(step.program)
        if status is None:
            base_name = Path(step.program).name
            status = ToolStatus(
                program=step.program,
                path=shutil.which(step.program),
                steps=[],
                hint=TOOL_HINTS.get(base_name, f"Install {base_name} or fix PATH."),
            )
            statuses[step.program] = status
        status.steps.append(step.name)

    for status in statuses.values():
        log_with_context(
            logger,
            "debug",
            "Checked tool availability",
            program=status.program,
            path=status.path,
        )
    return list(statuses.values())


def init_with_backend(
    target: Path | str,
    backend_configs: Sequence[str],
    settings: Settings,
) -> PipelineResult:
    """
    Run ``terraform init`` with one or more backend configs.

    Args:
        target: IaC project root
        backend_configs: Values for ``-backend-config`` (files or key=value)
        settings: Settings providing the terraform executable

    Returns:
        PipelineResult holding the single init step

    Raises:
        ConfigurationError: If no backend config is given or the target is unusable
    """
    if not backend_configs:
        raise ConfigurationError(
            "At least one --backend-config is required",
            config_key="backend_config",
            reason="missing",
        )

    target_path = validate_target(target)
    command = [settings.terraform_bin, "init", "-input=false"]
    command.extend(f"-backend-config={cfg}" for cfg in backend_configs)
    step = PipelineStep(
        name="init",
        command=tuple(command),
        working_directory=target_path,
        description="Initialize backend",
    )
    runner = PipelineRunner(
        timeout_seconds=settings.step_timeout_seconds,
        output_tail_chars=settings.output_tail_chars,
    )
    return runner.run(target_path, [step])


def summarize_plan(plan_output: str) -> list[str]:
    """
    Keep only the summary lines of plan output.

    Matches the lines ``Plan: ...``, ``No changes...`` and any
    ``... will be ...`` resource action line.

    Args:
        plan_output: Full ``terraform plan -no-color`` output

    Returns:
        Matching lines in their original order
    """
    return [line for line in plan_output.splitlines() if PLAN_SUMMARY_PATTERN.match(line)]


def plan_summary(target: Path | str, settings: Settings) -> PlanSummary:
    """
    Run ``terraform plan -no-color`` and summarize the output.

    Args:
        target: IaC project root
        settings: Settings providing the terraform executable

    Returns:
        PlanSummary with the filtered lines and plan's exit status

    Raises:
        ConfigurationError: If the target is unusable
        ToolNotFoundError: If terraform is not installed or not executable
        StepTimeoutError: If plan outlives the configured step timeout
    """
    target_path = validate_target(target)
    command = [settings.terraform_bin, "plan", "-no-color", "-input=false"]
    log_with_context(logger, "debug", "Running plan", command=" ".join(command), cwd=str(target_path))

    try:
        proc = subprocess.run(
            command,
            cwd=target_path,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=settings.step_timeout_seconds,
            check=False,
        )
    except FileNotFoundError:
        raise ToolNotFoundError("plan", settings.terraform_bin) from None
    except OSError as e:
        raise ToolNotFoundError("plan", settings.terraform_bin, reason=e.strerror or str(e)) from None
    except subprocess.TimeoutExpired:
        raise StepTimeoutError("plan", settings.step_timeout_seconds or 0) from None

    summary = PlanSummary(
        lines=summarize_plan(proc.stdout),
        returncode=proc.returncode,
        stderr=proc.stderr,
    )
    log_with_context(
        logger,
        "info",
        "Plan summarized",
        returncode=proc.returncode,
        summary_lines=len(summary.lines),
    )
    return summary
