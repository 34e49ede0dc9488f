"""
Shared pytest fixtures for tfcheck tests.

Fixtures include a clean tfcheck environment, a sample Terraform project,
factories for pipeline steps backed by real Python subprocesses, and fake
tool executables placed first on PATH.

Usage:
    def test_something(terraform_project, script_step):
        step = script_step("fmt", exit_code=0)
"""

import logging
import os
import stat
import sys
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from _pytest.monkeypatch import MonkeyPatch

from tfcheck.config import Settings, get_settings
from tfcheck.pipeline import PipelineStep


# =============================================================================
# Environment Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_global_state() -> Generator[None, None, None]:
    """
    Clear cached settings and logging handlers around every test.

    The CLI calls get_settings() and setup_logging(), both of which leave
    process-wide state behind.
    """
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)


@pytest.fixture
def clean_env(monkeypatch: MonkeyPatch, tmp_path: Path) -> MonkeyPatch:
    """
    Remove TFCHECK_* variables and run from a directory without a .env file.

    Args:
        monkeypatch: pytest monkeypatch fixture
        tmp_path: pytest temporary directory fixture

    Returns:
        The monkeypatch fixture for further changes
    """
    for key in list(os.environ):
        if key.upper().startswith("TFCHECK_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


@pytest.fixture
def settings(clean_env: MonkeyPatch) -> Settings:
    """Default Settings built from an empty environment."""
    _ = clean_env
    return Settings(_env_file=None)  # pyright: ignore[reportCallIssue]


# =============================================================================
# Terraform Project Fixtures
# =============================================================================


@pytest.fixture
def terraform_project(tmp_path: Path) -> Path:
    """
    Create a small Terraform project directory.

    Returns:
        Path to the ``infra`` project root
    """
    project = tmp_path / "infra"
    project.mkdir()
    _ = (project / "main.tf").write_text('''terraform {
  required_version = ">= 1.5.0"

  required_providers {
    azurerm = {
      source  = "hashicorp/azurerm"
      version = "~> 3.0"
    }
  }
}

provider "azurerm" {
  features {}
}

resource "azurerm_resource_group" "rg" {
  name     = "rg-app-dev-weu-001"
  location = "westeurope"
}
''')
    return project


# =============================================================================
# Step Factories
# =============================================================================


@pytest.fixture
def invocation_log(tmp_path: Path) -> Path:
    """File that script steps and fake tools append their names to."""
    return tmp_path / "invocations.log"


@pytest.fixture
def invocations(invocation_log: Path) -> Callable[[], list[str]]:
    """Callable returning logged invocations in order, empty if nothing ran."""

    def _read() -> list[str]:
        if not invocation_log.exists():
            return []
        return [line.strip() for line in invocation_log.read_text().splitlines()]

    return _read


@pytest.fixture
def script_step(
    terraform_project: Path,
    invocation_log: Path,
) -> Callable[..., PipelineStep]:
    """
    Factory for steps that run a short Python script.

    Each script appends the step name to ``invocation_log``, prints the
    given text and exits with the given code.
    """

    def _make(
        name: str,
        exit_code: int = 0,
        stdout: str = "",
        stderr: str = "",
        sleep: float = 0,
    ) -> PipelineStep:
        code = (
            "import sys, time\n"
            f"with open({str(invocation_log)!r}, 'a') as log:\n"
            f"    log.write({name!r} + '\\n')\n"
            f"time.sleep({sleep!r})\n"
            f"sys.stdout.write({stdout!r})\n"
            f"sys.stderr.write({stderr!r})\n"
            f"sys.exit({exit_code!r})\n"
        )
        return PipelineStep(
            name=name,
            command=(sys.executable, "-c", code),
            working_directory=terraform_project,
            description=f"{name} script",
        )

    return _make


# =============================================================================
# Fake Tool Fixtures
# =============================================================================


@pytest.fixture
def fake_tools(
    tmp_path: Path,
    monkeypatch: MonkeyPatch,
    invocation_log: Path,
) -> Callable[..., Path]:
    """
    Factory that installs fake shell executables first on PATH.

    ``fake_tools(terraform={"validate": 1}, tflint=2)`` creates
    ``terraform`` (exiting 1 for ``validate``), ``tflint`` (exiting 2),
    and passing ``tfsec`` and ``checkov``. Every invocation is logged as
    ``<tool> <args>``.

    Returns:
        The directory holding the fake executables
    """
    if sys.platform == "win32":
        pytest.skip("fake tools are POSIX shell scripts")

    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")

    def _write(name: str, exit_codes: dict[str, int] | int) -> None:
        if isinstance(exit_codes, int):
            cases = f"  *) echo '{name} reported problems' >&2; exit {exit_codes} ;;\n" if exit_codes else ""
        else:
            cases = "".join(
                f"  {sub}) echo '{name} {sub} reported problems' >&2; exit {code} ;;\n"
                for sub, code in exit_codes.items()
            )
        script = (
            "#!/bin/sh\n"
            f'echo "{name} $*" >> "{invocation_log}"\n'
            'case "$1" in\n'
            f"{cases}"
            "esac\n"
            f'echo "{name} ok"\n'
            "exit 0\n"
        )
        path = bin_dir / name
        _ = path.write_text(script)
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    def _install(**tools: dict[str, int] | int) -> Path:
        for name in ("terraform", "tflint", "tfsec", "checkov"):
            _write(name, tools.get(name, 0))
        return bin_dir

    return _install
