"""
tfcheck: Terraform validation pipeline runner.

Runs a fixed chain of validation tools against a Terraform project and stops
at the first failure, the way the devcontainer's ``tfcheck`` shell function
did, but with distinct reporting for missing tools, optional per-step
timeouts and a JSON report.

Pipeline (in order, each run in the target directory):
    1. fmt       terraform fmt -check -recursive
    2. validate  terraform validate
    3. tflint    tflint
    4. tfsec     tfsec .
    5. checkov   checkov -d . --quiet

Key Components:
    - pipeline: PipelineStep descriptors and the default step list
    - runner: Sequential execution with short-circuit on failure
    - terraform_helpers: init with backend config, plan summary, aliases, tool check
    - cli: ``tfcheck`` command-line entry point

Usage:
    tfcheck check ./infra
    python -m tfcheck check --format json
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
