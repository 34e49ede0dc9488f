"""
Validation pipeline runner.

Runs an ordered list of PipelineStep values against an IaC project
directory, one blocking subprocess at a time, and stops at the first step
that does not pass. This replaces the shell's ``cmd1 && cmd2 && ...``
chain with an explicit loop over step descriptors and a tagged StepResult
per step.

Failure kinds recorded on a StepResult:
    - FAILED: the tool ran and exited non-zero (StepFailure)
    - TOOL_NOT_FOUND: the program is not installed (ToolNotFoundError)
    - TIMED_OUT: the optional per-step timeout expired (StepTimeoutError)

Steps after a failure are recorded as SKIPPED and never invoked, unless
the runner was created with ``keep_going=True``. Nothing is retried.

Usage:
    from tfcheck.runner import run_checks

    result = run_checks(Path("infra"), settings)
    sys.exit(result.exit_code)
"""

import os
import subprocess
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from tfcheck.config import Settings
from tfcheck.errors import (
    ConfigurationError,
    StepFailure,
    StepTimeoutError,
    TfCheckError,
    ToolNotFoundError,
)
from tfcheck.logging_config import LogContext, get_logger, get_run_id, log_with_context
from tfcheck.pipeline import PipelineStep, build_pipeline

logger = get_logger(__name__)


class StepStatus(str, Enum):
    """
    Outcome of a single pipeline step.

    Attributes:
        PASSED: Tool exited 0
        FAILED: Tool ran and exited non-zero
        TOOL_NOT_FOUND: Program is not installed
        TIMED_OUT: Per-step timeout expired
        SKIPPED: Not invoked because an earlier step failed
    """

    PASSED = "passed"
    FAILED = "failed"
    TOOL_NOT_FOUND = "tool_not_found"
    TIMED_OUT = "timed_out"
    SKIPPED = "skipped"


_FAILURE_STATUSES = frozenset({StepStatus.FAILED, StepStatus.TOOL_NOT_FOUND, StepStatus.TIMED_OUT})


@dataclass
class StepResult:
    """
    Result of running (or skipping) one step.

    Attributes:
        step: The step this result belongs to
        status: Outcome of the step
        returncode: Process exit status, None if the process never ran
        stdout: Tail of captured standard output
        stderr: Tail of captured standard error
        duration_seconds: Wall-clock time spent on the step
        error: Error describing a non-passing outcome
    """

    step: PipelineStep
    status: StepStatus
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""
    duration_seconds: float = 0.0
    error: TfCheckError | None = None

    @property
    def passed(self) -> bool:
        return self.status is StepStatus.PASSED

    @property
    def failed(self) -> bool:
        return self.status in _FAILURE_STATUSES

    def to_dict(self) -> dict[str, object]:
        """Serialize for JSON reports."""
        return {
            "name": self.step.name,
            "description": self.step.description,
            "command": list(self.step.command),
            "status": self.status.value,
            "returncode": self.returncode,
            "duration_seconds": round(self.duration_seconds, 3),
            "stdout": self.stdout,
            "stderr": self.stderr,
            "error": str(self.error) if self.error else None,
        }


@dataclass
class PipelineResult:
    """
    Result of one pipeline run.

    Attributes:
        target: Resolved IaC project directory
        steps: One StepResult per selected step, in execution order
        run_id: Run id the run was logged under
    """

    target: Path
    steps: list[StepResult] = field(default_factory=list)
    run_id: str | None = None

    @property
    def failed_step(self) -> StepResult | None:
        """First step that did not pass, if any."""
        for result in self.steps:
            if result.failed:
                return result
        return None

    @property
    def success(self) -> bool:
        return self.failed_step is None

    @property
    def exit_code(self) -> int:
        """0 on success, otherwise the exit code of the first failure."""
        failed = self.failed_step
        if failed is None:
            return 0
        if failed.error is not None:
            return failed.error.exit_code
        return 1

    @property
    def passed_steps(self) -> list[str]:
        return [r.step.name for r in self.steps if r.passed]

    @property
    def skipped_steps(self) -> list[str]:
        return [r.step.name for r in self.steps if r.status is StepStatus.SKIPPED]

    def to_dict(self) -> dict[str, object]:
        """Serialize for JSON reports."""
        failed = self.failed_step
        return {
            "target": str(self.target),
            "run_id": self.run_id,
            "success": self.success,
            "exit_code": self.exit_code,
            "failed_step": failed.step.name if failed else None,
            "steps": [r.to_dict() for r in self.steps],
        }


def validate_target(target: Path | str) -> Path:
    """
    Resolve the target directory and check it can be used.

    Args:
        target: Path to the IaC project root

    Returns:
        Absolute path to the directory

    Raises:
        ConfigurationError: If the path is missing, not a directory, or unreadable
    """
    path = Path(target).expanduser()
    if not path.exists():
        raise ConfigurationError(
            f"Target directory does not exist: {path}",
            config_key="target",
            reason="missing",
        )
    if not path.is_dir():
        raise ConfigurationError(
            f"Target is not a directory: {path}",
            config_key="target",
            reason="not a directory",
        )
    if not os.access(path, os.R_OK | os.X_OK):
        raise ConfigurationError(
            f"Target directory is not readable: {path}",
            config_key="target",
            reason="permission denied",
        )
    return path.resolve()


def _tail(text: str | bytes | None, limit: int) -> str:
    if not text:
        return ""
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    if limit <= 0:
        return ""
    return text[-limit:]


class PipelineRunner:
    """
    Executes pipeline steps sequentially with short-circuit on failure.

    Attributes:
        keep_going: Run remaining steps after a failure instead of skipping them
        timeout_seconds: Per-step timeout, None to wait indefinitely
        output_tail_chars: Characters of each output stream kept per step
    """

    def __init__(
        self,
        keep_going: bool = False,
        timeout_seconds: float | None = None,
        output_tail_chars: int = 4000,
        on_step_start: Callable[[PipelineStep], None] | None = None,
        on_step_complete: Callable[[StepResult], None] | None = None,
    ) -> None:
        """
        Initialize the runner.

        Args:
            keep_going: Continue past failing steps
            timeout_seconds: Per-step timeout in seconds
            output_tail_chars: Captured output kept per stream
            on_step_start: Called before each step is invoked
            on_step_complete: Called with each step's result, skipped ones included
        """
        self.keep_going = keep_going
        self.timeout_seconds = timeout_seconds
        self.output_tail_chars = output_tail_chars
        self._on_step_start = on_step_start
        self._on_step_complete = on_step_complete

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        keep_going: bool | None = None,
        timeout_seconds: float | None = None,
        on_step_start: Callable[[PipelineStep], None] | None = None,
        on_step_complete: Callable[[StepResult], None] | None = None,
    ) -> "PipelineRunner":
        """Build a runner from settings, letting explicit arguments win."""
        return cls(
            keep_going=settings.keep_going if keep_going is None else keep_going,
            timeout_seconds=(
                settings.step_timeout_seconds if timeout_seconds is None else timeout_seconds
            ),
            output_tail_chars=settings.output_tail_chars,
            on_step_start=on_step_start,
            on_step_complete=on_step_complete,
        )

    def run(self, target: Path | str, steps: Sequence[PipelineStep]) -> PipelineResult:
        """
        Run steps in order against a target directory.

        Every step's working directory is checked before the first step
        starts, so a configuration problem never leaves a partial run.

        Args:
            target: IaC project root
            steps: Steps in execution order

        Returns:
            PipelineResult with one StepResult per step

        Raises:
            ConfigurationError: If the target or a step directory is unusable
            KeyboardInterrupt: If interrupted; the running tool is killed first
        """
        target_path = validate_target(target)
        for directory in {step.working_directory for step in steps}:
            _ = validate_target(directory)

        result = PipelineResult(target=target_path, run_id=get_run_id())
        halted = False

        log_with_context(
            logger,
            "info",
            "Starting validation pipeline",
            target=str(target_path),
            steps=[s.name for s in steps],
            keep_going=self.keep_going,
        )

        for step in steps:
            if halted:
                step_result = StepResult(step=step, status=StepStatus.SKIPPED)
            else:
                step_result = self._run_step(step)
                if step_result.failed and not self.keep_going:
                    halted = True

            result.steps.append(step_result)
            if self._on_step_complete is not None:
                self._on_step_complete(step_result)

        log_with_context(
            logger,
            "info" if result.success else "warning",
            "Validation pipeline finished",
            success=result.success,
            exit_code=result.exit_code,
            failed_step=result.failed_step.step.name if result.failed_step else None,
        )
        return result

    def _run_step(self, step: PipelineStep) -> StepResult:
        if self._on_step_start is not None:
            self._on_step_start(step)

        started = time.perf_counter()
        try:
            stdout, stderr = self._execute(step)
        except ToolNotFoundError as e:
            log_with_context(
                logger,
                "error",
                "Tool not executable" if e.reason else "Tool not found",
                step=step.name,
                program=e.program,
                reason=e.reason,
            )
            return StepResult(
                step=step,
                status=StepStatus.TOOL_NOT_FOUND,
                duration_seconds=time.perf_counter() - started,
                error=e,
            )
        except StepTimeoutError as e:
            log_with_context(
                logger,
                "error",
                "Step timed out",
                step=step.name,
                timeout_seconds=e.timeout_seconds,
            )
            return StepResult(
                step=step,
                status=StepStatus.TIMED_OUT,
                stdout=e.stdout,
                stderr=e.stderr,
                duration_seconds=time.perf_counter() - started,
                error=e,
            )
        except StepFailure as e:
            log_with_context(
                logger,
                "warning",
                "Step failed",
                step=step.name,
                returncode=e.returncode,
            )
            return StepResult(
                step=step,
                status=StepStatus.FAILED,
                returncode=e.returncode,
                stdout=e.stdout,
                stderr=e.stderr,
                duration_seconds=time.perf_counter() - started,
                error=e,
            )
        except KeyboardInterrupt:
            log_with_context(logger, "warning", "Pipeline interrupted", step=step.name)
            raise

        duration = time.perf_counter() - started
        log_with_context(
            logger,
            "info",
            "Step passed",
            step=step.name,
            duration_seconds=round(duration, 3),
        )
        return StepResult(
            step=step,
            status=StepStatus.PASSED,
            returncode=0,
            stdout=stdout,
            stderr=stderr,
            duration_seconds=duration,
        )

    def _execute(self, step: PipelineStep) -> tuple[str, str]:
        """
        Invoke one step's command.

        Returns:
            Tails of (stdout, stderr) on exit status 0

        Raises:
            ToolNotFoundError: If the program cannot be found or executed
            StepTimeoutError: If the timeout expires (the process is killed)
            StepFailure: If the program exits non-zero
        """
        log_with_context(
            logger,
            "debug",
            "Running step",
            step=step.name,
            command=step.display_command,
            cwd=str(step.working_directory),
        )
        try:
            proc = subprocess.run(
                list(step.command),
                cwd=step.working_directory,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout_seconds,
                check=False,
            )
        except FileNotFoundError:
            # cwd was checked up front, so this is the program itself.
            raise ToolNotFoundError(step.name, step.program) from None
        except OSError as e:
            raise ToolNotFoundError(step.name, step.program, reason=e.strerror or str(e)) from None
        except subprocess.TimeoutExpired as e:
            raise StepTimeoutError(
                step.name,
                self.timeout_seconds or 0,
                stdout=_tail(e.stdout, self.output_tail_chars),
                stderr=_tail(e.stderr, self.output_tail_chars),
            ) from None

        stdout = _tail(proc.stdout, self.output_tail_chars)
        stderr = _tail(proc.stderr, self.output_tail_chars)
        if proc.returncode != 0:
            raise StepFailure(step.name, proc.returncode, stdout=stdout, stderr=stderr)
        return stdout, stderr


def run_checks(
    target: Path | str,
    settings: Settings,
    skip: Iterable[str] = (),
    keep_going: bool | None = None,
    timeout_seconds: float | None = None,
    on_step_start: Callable[[PipelineStep], None] | None = None,
    on_step_complete: Callable[[StepResult], None] | None = None,
) -> PipelineResult:
    """
    Run the default validation pipeline against a target directory.

    Args:
        target: IaC project root
        settings: Settings for tool locations and defaults
        skip: Step names to leave out
        keep_going: Override settings.keep_going
        timeout_seconds: Override settings.step_timeout_seconds
        on_step_start: Progress callback before each step
        on_step_complete: Progress callback after each step

    Returns:
        PipelineResult of the run

    Raises:
        ConfigurationError: If the target or the step selection is invalid
    """
    target_path = validate_target(target)
    steps = build_pipeline(target_path, settings, skip)
    runner = PipelineRunner.from_settings(
        settings,
        keep_going=keep_going,
        timeout_seconds=timeout_seconds,
        on_step_start=on_step_start,
        on_step_complete=on_step_complete,
    )
    with LogContext():
        return runner.run(target_path, steps)
