"""
Custom exception classes for tfcheck.

This module defines the exceptions raised while preparing and running the
validation pipeline. Each exception class represents one failure mode and
knows which process exit code it maps to, so the CLI can surface the
failure without inspecting the error any further.

Exception Hierarchy:
    TfCheckError (base)
    ├── ConfigurationError (bad target directory or settings, nothing ran)
    ├── ToolNotFoundError (external program missing from PATH)
    ├── StepFailure (tool ran and exited non-zero)
    └── StepTimeoutError (tool exceeded the per-step timeout)

Exit Codes:
    - StepFailure propagates the failing tool's own exit code
    - ToolNotFoundError uses 127, the shell's "command not found" code, or
      126 when the program exists but cannot be executed
    - StepTimeoutError uses 124, matching coreutils timeout(1)
    - ConfigurationError uses 2, the conventional usage-error code
"""

EXIT_CONFIGURATION_ERROR = 2
EXIT_TIMEOUT = 124
EXIT_TOOL_NOT_EXECUTABLE = 126
EXIT_TOOL_NOT_FOUND = 127
EXIT_INTERRUPTED = 130


class TfCheckError(Exception):
    """
    Base exception for all tfcheck errors.

    Attributes:
        message: Human-readable error description
        context: Additional context dictionary for structured logging
    """

    def __init__(
        self,
        message: str,
        context: dict[str, object] | None = None,
    ) -> None:
        """
        Initialize tfcheck error.

        Args:
            message: Human-readable error description
            context: Additional context for structured logging
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return string representation of error."""
        return self.message

    @property
    def exit_code(self) -> int:
        """Process exit code this error maps to."""
        return 1


class ConfigurationError(TfCheckError):
    """
    Error in tfcheck configuration.

    Raised before any step runs when the target directory is unusable,
    a setting is invalid, or the requested step selection is empty or
    names unknown steps. These require user intervention.

    Attributes:
        config_key: Configuration key or argument that is invalid
        reason: Specific validation failure reason
    """

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        reason: str | None = None,
    ) -> None:
        context = {
            "config_key": config_key,
            "reason": reason,
        }
        super().__init__(message, context=context)
        self.config_key = config_key
        self.reason = reason

    @property
    def exit_code(self) -> int:
        return EXIT_CONFIGURATION_ERROR


class ToolNotFoundError(TfCheckError):
    """
    External program required by a step is not installed.

    Kept separate from StepFailure so that "tflint is missing" is never
    confused with "tflint found problems".

    Attributes:
        step: Name of the step that could not start
        program: Program that was looked up
        reason: OS error text when the program exists but could not be run
    """

    def __init__(self, step: str, program: str, reason: str | None = None) -> None:
        """
        Initialize tool-not-found error.

        Args:
            step: Name of the pipeline step
            program: Executable name or path that was not found
            reason: Why an existing program could not be executed
        """
        if reason:
            message = f"Step '{step}': '{program}' could not be executed: {reason}"
        else:
            message = f"Step '{step}': '{program}' was not found on PATH"
        super().__init__(message, context={"step": step, "program": program, "reason": reason})
        self.step = step
        self.program = program
        self.reason = reason

    @property
    def exit_code(self) -> int:
        if self.reason:
            return EXIT_TOOL_NOT_EXECUTABLE
        return EXIT_TOOL_NOT_FOUND


class StepFailure(TfCheckError):
    """
    External tool ran and returned a non-zero exit status.

    Attributes:
        step: Name of the failing step
        returncode: Exit status reported by the tool
        stdout: Captured standard output (tail)
        stderr: Captured standard error (tail)
    """

    def __init__(
        self,
        step: str,
        returncode: int,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        """
        Initialize step failure.

        Args:
            step: Name of the failing step
            returncode: Exit status of the tool
            stdout: Captured standard output
            stderr: Captured standard error
        """
        message = f"Step '{step}' failed with exit code {returncode}"
        context = {
            "step": step,
            "returncode": returncode,
            "stderr": stderr[:500] if stderr else None,
        }
        super().__init__(message, context=context)
        self.step = step
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr

    @property
    def exit_code(self) -> int:
        # Negative return codes mean the child died from a signal; report
        # them the way a shell would.
        if self.returncode < 0:
            return 128 + abs(self.returncode)
        return self.returncode


class StepTimeoutError(TfCheckError):
    """
    External tool did not finish within the configured per-step timeout.

    Attributes:
        step: Name of the step that timed out
        timeout_seconds: Timeout that was exceeded
    """

    def __init__(
        self,
        step: str,
        timeout_seconds: float,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        message = f"Step '{step}' timed out after {timeout_seconds:g} seconds"
        super().__init__(
            message,
            context={"step": step, "timeout_seconds": timeout_seconds},
        )
        self.step = step
        self.timeout_seconds = timeout_seconds
        self.stdout = stdout
        self.stderr = stderr

    @property
    def exit_code(self) -> int:
        return EXIT_TIMEOUT
