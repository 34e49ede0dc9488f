"""
Configuration management for tfcheck.

Settings are loaded from environment variables (prefix ``TFCHECK_``) and an
optional ``.env`` file using Pydantic settings. Command-line flags override
whatever is configured here.

Environment Variables:
    TFCHECK_LOG_LEVEL: Logging level (default: WARNING)
    TFCHECK_TERRAFORM_BIN: terraform executable (default: terraform)
    TFCHECK_TFLINT_BIN: tflint executable (default: tflint)
    TFCHECK_TFSEC_BIN: tfsec executable (default: tfsec)
    TFCHECK_CHECKOV_BIN: checkov executable (default: checkov)
    TFCHECK_STEP_TIMEOUT_SECONDS: Per-step timeout in seconds (default: none)
    TFCHECK_KEEP_GOING: Continue past failing steps (default: false)
    TFCHECK_OUTPUT_TAIL_CHARS: Captured output kept per stream (default: 4000)

Usage:
    from tfcheck.config import get_settings

    settings = get_settings()
    print(settings.terraform_bin)
"""

import math
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tfcheck.errors import ConfigurationError

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def check_timeout_seconds(value: float | None, config_key: str) -> float | None:
    """
    Validate a per-step timeout.

    Shared by TFCHECK_STEP_TIMEOUT_SECONDS and the --timeout flag.

    Raises:
        ConfigurationError: If the timeout is not a finite positive number
    """
    if value is None:
        return None
    if not math.isfinite(value) or value <= 0:
        raise ConfigurationError(
            f"{config_key} must be a finite number of seconds greater than zero, got {value:g}",
            config_key=config_key,
            reason="Invalid timeout",
        )
    return value


class Settings(BaseSettings):
    """
    tfcheck configuration settings.

    Every setting has a default, so an empty environment yields a working
    configuration that reproduces the plain shell pipeline.

    Attributes:
        log_level: Logging level for the JSON log stream on stderr
        terraform_bin: terraform executable used by fmt, validate, init, plan
        tflint_bin: tflint executable
        tfsec_bin: tfsec executable
        checkov_bin: checkov executable
        step_timeout_seconds: Per-step timeout; None waits indefinitely
        keep_going: Run remaining steps after a failure
        output_tail_chars: Characters of stdout/stderr kept per step
    """

    model_config = SettingsConfigDict(
        env_prefix="TFCHECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = Field(
        default="WARNING",
        description="Logging level",
    )

    # Tool locations
    terraform_bin: str = Field(default="terraform", description="terraform executable")
    tflint_bin: str = Field(default="tflint", description="tflint executable")
    tfsec_bin: str = Field(default="tfsec", description="tfsec executable")
    checkov_bin: str = Field(default="checkov", description="checkov executable")

    # Pipeline behavior
    step_timeout_seconds: float | None = Field(
        default=None,
        description="Per-step timeout in seconds",
    )
    keep_going: bool = Field(
        default=False,
        description="Continue running steps after a failure",
    )
    output_tail_chars: int = Field(
        default=4000,
        ge=0,
        description="Captured characters kept per output stream",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """
        Validate log level is recognized.

        Raises:
            ConfigurationError: If log level is invalid
        """
        v_upper = v.strip().upper()
        if v_upper not in VALID_LOG_LEVELS:
            raise ConfigurationError(
                f"TFCHECK_LOG_LEVEL '{v}' is not valid. Must be one of: {', '.join(VALID_LOG_LEVELS)}",
                config_key="TFCHECK_LOG_LEVEL",
                reason=f"Invalid log level: {v}",
            )
        return v_upper

    @field_validator("step_timeout_seconds")
    @classmethod
    def validate_step_timeout(cls, v: float | None) -> float | None:
        """Validate the timeout is a finite positive number of seconds."""
        return check_timeout_seconds(v, "TFCHECK_STEP_TIMEOUT_SECONDS")

    @field_validator("terraform_bin", "tflint_bin", "tfsec_bin", "checkov_bin")
    @classmethod
    def validate_tool_bin(cls, v: str) -> str:
        """
        Validate a tool executable setting is not blank.

        Raises:
            ConfigurationError: If the value is empty
        """
        if not v or not v.strip():
            raise ConfigurationError(
                "Tool executable settings must not be empty",
                config_key="TFCHECK_*_BIN",
                reason="Executable name is empty",
            )
        return v.strip()


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Validated Settings instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    try:
        return Settings()
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load configuration: {e}",
            reason=str(e),
        ) from e
