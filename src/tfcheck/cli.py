"""
CLI interface for tfcheck.

Usage:
    tfcheck check [PATH] [--keep-going] [--timeout SECONDS] [--skip NAME] [--format json]
    tfcheck tools
    tfcheck init [PATH] --backend-config backend.hcl
    tfcheck plan-summary [PATH]
    tfcheck aliases

``tfcheck check`` with no arguments behaves like the devcontainer's
``tfcheck`` shell function: fmt, validate, tflint, tfsec and checkov in the
current directory, stopping at the first failure.
"""

import argparse
import json
import sys
from collections.abc import Sequence

from tfcheck import __version__
from tfcheck.config import VALID_LOG_LEVELS, Settings, check_timeout_seconds, get_settings
from tfcheck.errors import EXIT_INTERRUPTED, ConfigurationError, TfCheckError
from tfcheck.logging_config import get_logger, log_with_context, setup_logging
from tfcheck.pipeline import DEFAULT_STEP_NAMES, PipelineStep
from tfcheck.runner import PipelineResult, StepResult, StepStatus, run_checks
from tfcheck.terraform_helpers import ALIASES, check_tools, init_with_backend, plan_summary

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="tfcheck",
        description="tfcheck - Terraform validation pipeline runner",
    )
    _ = parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    _ = parser.add_argument(
        "--log-level",
        choices=VALID_LOG_LEVELS,
        default=None,
        help="Override TFCHECK_LOG_LEVEL for this invocation",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # check command
    check_parser = subparsers.add_parser(
        "check",
        help="Run fmt, validate, tflint, tfsec and checkov in order",
    )
    _ = check_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Terraform project directory (default: current directory)",
    )
    _ = check_parser.add_argument(
        "--keep-going",
        action="store_true",
        default=None,
        help="Run every step even after a failure",
    )
    _ = check_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Kill a step that runs longer than this",
    )
    _ = check_parser.add_argument(
        "--skip",
        action="append",
        default=[],
        choices=DEFAULT_STEP_NAMES,
        metavar="STEP",
        help=f"Leave a step out (repeatable; one of: {', '.join(DEFAULT_STEP_NAMES)})",
    )
    _ = check_parser.add_argument(
        "--format",
        choices=("text", "json"),
        default="text",
        help="Report format (default: text)",
    )
    _ = check_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show captured output of passing steps too",
    )

    # tools command
    _ = subparsers.add_parser(
        "tools",
        help="Show which pipeline tools are installed",
    )

    # init command
    init_parser = subparsers.add_parser(
        "init",
        help="terraform init with backend configuration",
    )
    _ = init_parser.add_argument("path", nargs="?", default=".", help="Terraform project directory")
    _ = init_parser.add_argument(
        "--backend-config",
        action="append",
        required=True,
        dest="backend_configs",
        metavar="CONFIG",
        help="Backend config file or key=value (repeatable)",
    )

    # plan-summary command
    plan_parser = subparsers.add_parser(
        "plan-summary",
        help="terraform plan reduced to its summary lines",
    )
    _ = plan_parser.add_argument("path", nargs="?", default=".", help="Terraform project directory")

    # aliases command
    _ = subparsers.add_parser(
        "aliases",
        help="List the devcontainer shell aliases",
    )

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """
    CLI main entry point.

    Args:
        argv: Arguments without the program name (default: sys.argv[1:])

    Returns:
        Process exit code
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    command: str | None = str(args.command) if args.command else None
    if not command:
        parser.print_help()
        return 1

    try:
        settings = get_settings()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return e.exit_code

    setup_logging(args.log_level or settings.log_level)

    try:
        if command == "check":
            return cmd_check(args, settings)
        if command == "tools":
            return cmd_tools(args, settings)
        if command == "init":
            return cmd_init(args, settings)
        if command == "plan-summary":
            return cmd_plan_summary(args, settings)
        if command == "aliases":
            return cmd_aliases(args, settings)
        print(f"Unknown command: {command}", file=sys.stderr)
        return 1

    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return e.exit_code

    except TfCheckError as e:
        print(f"Error: {e}", file=sys.stderr)
        return e.exit_code

    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return EXIT_INTERRUPTED

    except Exception as e:
        log_with_context(
            logger,
            "error",
            "Command failed",
            command=command,
            error=str(e),
        )
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_check(args: argparse.Namespace, settings: Settings) -> int:
    """
    Run the validation pipeline.

    Args:
        args: Command arguments
        settings: Application settings

    Returns:
        Exit code of the pipeline
    """
    text_output = args.format == "text"
    verbose = bool(args.verbose)

    timeout_seconds = check_timeout_seconds(args.timeout, "--timeout")

    if text_output:
        print("Running Terraform validation pipeline...")

    result = run_checks(
        args.path,
        settings,
        skip=args.skip,
        keep_going=args.keep_going,
        timeout_seconds=timeout_seconds,
        on_step_start=_print_step_start if text_output else None,
        on_step_complete=(lambda r: _print_step_result(r, verbose)) if text_output else None,
    )

    if text_output:
        _print_summary(result)
    else:
        print(json.dumps(result.to_dict(), indent=2))

    return result.exit_code


def cmd_tools(args: argparse.Namespace, settings: Settings) -> int:
    """
    Show installed pipeline tools.

    Returns:
        0 if every tool is available, 1 otherwise
    """
    _ = args  # Unused but part of CLI interface
    statuses = check_tools(settings)
    width = max(len(s.program) for s in statuses)

    for status in statuses:
        used_by = ", ".join(status.steps)
        if status.available:
            print(f"  {status.program:<{width}}  {status.path}  ({used_by})")
        else:
            print(f"  {status.program:<{width}}  MISSING  ({used_by})")
            print(f"  {'':<{width}}  {status.hint}")

    return 0 if all(s.available for s in statuses) else 1


def cmd_init(args: argparse.Namespace, settings: Settings) -> int:
    """
    Run terraform init with backend configuration.

    Returns:
        Exit code of terraform init
    """
    result = init_with_backend(args.path, args.backend_configs, settings)
    step_result = result.steps[0]
    _print_output(step_result)
    if not result.success and step_result.error is not None:
        print(f"Error: {step_result.error}", file=sys.stderr)
    return result.exit_code


def cmd_plan_summary(args: argparse.Namespace, settings: Settings) -> int:
    """
    Print the summary lines of terraform plan.

    Returns:
        Exit code of terraform plan
    """
    summary = plan_summary(args.path, settings)
    for line in summary.lines:
        print(line)
    if summary.returncode != 0:
        if summary.stderr:
            print(summary.stderr.rstrip(), file=sys.stderr)
        print(f"terraform plan failed with exit code {summary.exit_code}", file=sys.stderr)
    return summary.exit_code


def cmd_aliases(args: argparse.Namespace, settings: Settings) -> int:
    """Print the alias table."""
    _ = args, settings  # Unused but part of CLI interface
    width = max(len(name) for name in ALIASES)
    for name, expansion in ALIASES.items():
        print(f"  {name:<{width}}  {expansion}")
    return 0


def _print_step_start(step: PipelineStep) -> None:
    label = f"{step.name}: {step.description}" if step.description else step.name
    print(f"==> {label} ({step.display_command})", flush=True)


def _print_step_result(result: StepResult, verbose: bool = False) -> None:
    if result.status is StepStatus.SKIPPED:
        print(f"==> {result.step.name}: skipped")
        return

    if result.passed:
        print(f"    passed ({result.duration_seconds:.2f}s)")
        if verbose:
            _print_output(result)
        return

    if result.status is StepStatus.TOOL_NOT_FOUND:
        reason = getattr(result.error, "reason", None)
        if reason:
            print(f"    cannot execute: {result.step.program} ({reason})")
        else:
            print(f"    tool not found: {result.step.program}")
    elif result.status is StepStatus.TIMED_OUT:
        print(f"    timed out ({result.duration_seconds:.2f}s)")
    else:
        print(f"    failed with exit code {result.returncode} ({result.duration_seconds:.2f}s)")
    _print_output(result)


def _print_output(result: StepResult) -> None:
    if result.stdout.strip():
        print(_indent(result.stdout))
    if result.stderr.strip():
        print(_indent(result.stderr), file=sys.stderr)


def _indent(text: str) -> str:
    return "\n".join(f"    | {line}" for line in text.rstrip().splitlines())


def _print_summary(result: PipelineResult) -> None:
    print()
    failed = result.failed_step
    if failed is None:
        print(f"All {len(result.steps)} checks passed in {result.target}")
        return

    print(f"Validation failed at '{failed.step.name}' (exit code {result.exit_code})")
    if failed.error is not None:
        print(f"  {failed.error}")
    if result.passed_steps:
        print(f"  passed: {', '.join(result.passed_steps)}")
    if result.skipped_steps:
        print(f"  skipped: {', '.join(result.skipped_steps)}")
    others = [r.step.name for r in result.steps if r.failed and r is not failed]
    if others:
        print(f"  also failed: {', '.join(others)}")


if __name__ == "__main__":
    sys.exit(main())
