"""
Unit tests for configuration module.

Tests cover defaults, environment variable parsing, validation errors,
and the cached settings accessor.
"""

import pytest
from _pytest.monkeypatch import MonkeyPatch

from tfcheck.config import Settings, check_timeout_seconds, get_settings
from tfcheck.errors import ConfigurationError


class TestSettingsDefaults:
    """Tests for default values."""

    def test_defaults_reproduce_shell_pipeline(self, settings: Settings) -> None:
        """Test that an empty environment yields the plain tool names."""
        assert settings.terraform_bin == "terraform"
        assert settings.tflint_bin == "tflint"
        assert settings.tfsec_bin == "tfsec"
        assert settings.checkov_bin == "checkov"
        assert settings.keep_going is False
        assert settings.step_timeout_seconds is None

    def test_default_log_level(self, settings: Settings) -> None:
        """Test that logging defaults to WARNING."""
        assert settings.log_level == "WARNING"
        assert settings.output_tail_chars == 4000


class TestSettingsFromEnvironment:
    """Tests for TFCHECK_* environment variables."""

    def test_tool_overrides(self, clean_env: MonkeyPatch) -> None:
        """Test that tool executables can be overridden."""
        clean_env.setenv("TFCHECK_TERRAFORM_BIN", "/opt/terraform/1.7/terraform")
        clean_env.setenv("TFCHECK_CHECKOV_BIN", "  checkov3  ")

        settings = Settings(_env_file=None)  # pyright: ignore[reportCallIssue]

        assert settings.terraform_bin == "/opt/terraform/1.7/terraform"
        assert settings.checkov_bin == "checkov3"

    def test_pipeline_behavior(self, clean_env: MonkeyPatch) -> None:
        """Test keep-going and timeout parsing."""
        clean_env.setenv("TFCHECK_KEEP_GOING", "true")
        clean_env.setenv("TFCHECK_STEP_TIMEOUT_SECONDS", "90")

        settings = Settings(_env_file=None)  # pyright: ignore[reportCallIssue]

        assert settings.keep_going is True
        assert settings.step_timeout_seconds == 90

    def test_log_level_is_normalized(self, clean_env: MonkeyPatch) -> None:
        """Test that log level is upper-cased."""
        clean_env.setenv("TFCHECK_LOG_LEVEL", "debug")

        settings = Settings(_env_file=None)  # pyright: ignore[reportCallIssue]

        assert settings.log_level == "DEBUG"

    def test_env_file_is_read(self, clean_env: MonkeyPatch) -> None:
        """Test that a .env file in the working directory is honored."""
        _ = clean_env
        with open(".env", "w", encoding="utf-8") as f:
            _ = f.write("TFCHECK_TFLINT_BIN=tflint-0.50\n")

        settings = Settings()  # pyright: ignore[reportCallIssue]

        assert settings.tflint_bin == "tflint-0.50"


class TestSettingsValidation:
    """Tests for invalid configuration."""

    def test_invalid_log_level_raises(self, clean_env: MonkeyPatch) -> None:
        """Test that invalid TFCHECK_LOG_LEVEL raises error."""
        clean_env.setenv("TFCHECK_LOG_LEVEL", "LOUD")

        with pytest.raises(ConfigurationError) as exc_info:
            _ = Settings(_env_file=None)  # pyright: ignore[reportCallIssue]

        assert "TFCHECK_LOG_LEVEL" in str(exc_info.value)
        assert exc_info.value.exit_code == 2

    def test_blank_tool_bin_raises(self, clean_env: MonkeyPatch) -> None:
        """Test that an empty tool executable is rejected."""
        clean_env.setenv("TFCHECK_TFSEC_BIN", "   ")

        with pytest.raises(ConfigurationError):
            _ = Settings(_env_file=None)  # pyright: ignore[reportCallIssue]

    def test_get_settings_wraps_validation_errors(self, clean_env: MonkeyPatch) -> None:
        """Test that pydantic range errors surface as ConfigurationError."""
        clean_env.setenv("TFCHECK_OUTPUT_TAIL_CHARS", "-1")

        with pytest.raises(ConfigurationError) as exc_info:
            _ = get_settings()

        assert "Failed to load configuration" in str(exc_info.value)

    @pytest.mark.parametrize("value", ["0", "-5", "nan", "inf"])
    def test_invalid_step_timeout_raises(self, clean_env: MonkeyPatch, value: str) -> None:
        """Test that the step timeout must be a finite positive number."""
        clean_env.setenv("TFCHECK_STEP_TIMEOUT_SECONDS", value)

        with pytest.raises(ConfigurationError) as exc_info:
            _ = Settings(_env_file=None)  # pyright: ignore[reportCallIssue]

        assert "TFCHECK_STEP_TIMEOUT_SECONDS" in str(exc_info.value)

    def test_fractional_step_timeout_allowed(self, clean_env: MonkeyPatch) -> None:
        """Test that sub-second timeouts are accepted, as on the command line."""
        clean_env.setenv("TFCHECK_STEP_TIMEOUT_SECONDS", "0.5")

        settings = Settings(_env_file=None)  # pyright: ignore[reportCallIssue]

        assert settings.step_timeout_seconds == 0.5

    def test_check_timeout_seconds(self) -> None:
        """Test the shared timeout rule directly."""
        assert check_timeout_seconds(None, "--timeout") is None
        assert check_timeout_seconds(30, "--timeout") == 30

        with pytest.raises(ConfigurationError) as exc_info:
            _ = check_timeout_seconds(float("nan"), "--timeout")

        assert exc_info.value.context["config_key"] == "--timeout"


class TestGetSettings:
    """Tests for the cached accessor."""

    def test_get_settings_is_cached(self, clean_env: MonkeyPatch) -> None:
        """Test that repeated calls return the same instance."""
        _ = clean_env

        assert get_settings() is get_settings()

    def test_cache_clear_reloads(self, clean_env: MonkeyPatch) -> None:
        """Test that clearing the cache picks up new environment values."""
        first = get_settings()
        clean_env.setenv("TFCHECK_TFLINT_BIN", "tflint-next")
        get_settings.cache_clear()

        second = get_settings()

        assert first.tflint_bin == "tflint"
        assert second.tflint_bin == "tflint-next"
