"""Tests for promptevo structured logging."""

import logging
from pathlib import Path
from typing import Any

import pytest

from promptevo.core.logging import (
    PROMPTEVO_VERSION,
    add_common_fields,
    clear_module_log_levels,
    configure_logging,
    configure_logging_from_settings,
    get_module_log_level,
    reset_logging,
    set_module_log_level,
)
from promptevo.core.settings import PromptEvoSettings


@pytest.fixture(autouse=True)
def reset_logging_state():  # type: ignore[misc]
    """Reset logging state before each test."""
    reset_logging()
    yield
    reset_logging()


def _flush() -> None:
    for handler in logging.getLogger().handlers:
        handler.flush()


class TestProcessors:
    """Tests for custom structlog processors."""

    def test_add_common_fields_processor(self) -> None:
        """Test add_common_fields adds the package version."""
        event_dict: dict[str, Any] = {"event": "test"}

        result = add_common_fields(None, "info", event_dict)

        assert result["promptevo_version"] == PROMPTEVO_VERSION

    def test_add_common_fields_does_not_override(self) -> None:
        """Test that common fields don't override existing values."""
        event_dict: dict[str, Any] = {"event": "test", "promptevo_version": "custom"}

        result = add_common_fields(None, "info", event_dict)

        assert result["promptevo_version"] == "custom"


class TestModuleLogLevels:
    """Tests for module-specific log level configuration."""

    def test_set_and_get_module_log_level(self) -> None:
        """Test setting and getting module log levels."""
        assert get_module_log_level("promptevo.experiments") is None

        set_module_log_level("promptevo.experiments", logging.DEBUG)
        assert get_module_log_level("promptevo.experiments") == logging.DEBUG
        assert logging.getLogger("promptevo.experiments").level == logging.DEBUG

        set_module_log_level("promptevo.experiments", "warning")
        assert get_module_log_level("promptevo.experiments") == logging.WARNING

    def test_clear_module_log_levels(self) -> None:
        """Test clearing restores inheritance from the root logger."""
        set_module_log_level("promptevo.experiments", logging.DEBUG)
        set_module_log_level("promptevo.evolution", logging.ERROR)

        clear_module_log_levels()

        assert get_module_log_level("promptevo.experiments") is None
        assert get_module_log_level("promptevo.evolution") is None
        assert logging.getLogger("promptevo.evolution").level == logging.NOTSET

    def test_module_level_silences_module(self, tmp_path: Path) -> None:
        """Test a stricter module level drops that module's records."""
        log_file = tmp_path / "promptevo.log"
        configure_logging(
            level="INFO",
            json_output=True,
            log_file=str(log_file),
            module_levels={"promptevo.evolution": "ERROR"},
        )

        logging.getLogger("promptevo.evolution.generator").info("Generated v2")
        logging.getLogger("promptevo.experiments.manager").info("Started exp-1")
        _flush()

        content = log_file.read_text()
        assert "Generated v2" not in content
        assert "Started exp-1" in content

    def test_module_level_below_global(self, tmp_path: Path) -> None:
        """Test a module can log more verbosely than the global level."""
        log_file = tmp_path / "promptevo.log"
        configure_logging(
            level="WARNING",
            json_output=True,
            log_file=str(log_file),
            module_levels={"promptevo.experiments": logging.DEBUG},
        )

        logging.getLogger("promptevo.experiments.store").debug("Loaded 3")
        logging.getLogger("promptevo.evolution").info("Generated v2")
        _flush()

        content = log_file.read_text()
        assert "Loaded 3" in content
        assert "Generated v2" not in content


class TestConfigureLogging:
    """Tests for logging configuration."""

    def test_configure_logging_default(self) -> None:
        """Test default logging configuration."""
        configure_logging()

        root_logger = logging.getLogger()
        assert root_logger.level == logging.INFO
        assert len(root_logger.handlers) == 1

    def test_configure_logging_string_level(self) -> None:
        """Test logging configuration with string level."""
        configure_logging(level="WARNING")

        assert logging.getLogger().level == logging.WARNING

    def test_configure_logging_module_levels(self) -> None:
        """Test logging configuration with module levels."""
        configure_logging(
            module_levels={
                "promptevo.experiments": "DEBUG",
                "promptevo.evolution": logging.ERROR,
            }
        )

        assert get_module_log_level("promptevo.experiments") == logging.DEBUG
        assert get_module_log_level("promptevo.evolution") == logging.ERROR

    def test_configure_logging_log_file(self, tmp_path: Path) -> None:
        """Test stdlib records reach the log file."""
        log_file = tmp_path / "promptevo.log"
        configure_logging(level="INFO", json_output=True, log_file=str(log_file))

        logging.getLogger("promptevo.test").info("Started experiment %s", "exp-1")
        _flush()

        content = log_file.read_text()
        assert "Started experiment exp-1" in content
        assert PROMPTEVO_VERSION in content

    def test_reconfigure_replaces_handlers(self) -> None:
        """Test that configuring twice does not stack handlers."""
        configure_logging()
        configure_logging()

        assert len(logging.getLogger().handlers) == 1

    def test_configure_from_settings(self) -> None:
        """Test configuring logging from explicit settings."""
        settings = PromptEvoSettings(
            _skip_file_loading=True, logging={"level": "ERROR"}
        )

        configure_logging_from_settings(settings)

        assert logging.getLogger().level == logging.ERROR

    def test_configure_from_settings_module_levels(self) -> None:
        """Test per-module levels come from the logging section."""
        settings = PromptEvoSettings(
            _skip_file_loading=True,
            logging={"modules": {"promptevo.evolution": "debug"}},
        )

        configure_logging_from_settings(settings)

        assert get_module_log_level("promptevo.evolution") == logging.DEBUG

    def test_configure_from_settings_level_override(self) -> None:
        """Test an explicit level wins over the configured one."""
        settings = PromptEvoSettings(
            _skip_file_loading=True, logging={"level": "ERROR"}
        )

        configure_logging_from_settings(settings, level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG

    def test_reconfigure_drops_stale_module_levels(self) -> None:
        """Test configuring again forgets earlier module overrides."""
        configure_logging(module_levels={"promptevo.evolution": "ERROR"})
        configure_logging()

        assert get_module_log_level("promptevo.evolution") is None


class TestResetLogging:
    """Tests for reset_logging()."""

    def test_reset_clears_module_levels(self) -> None:
        """Test that reset clears module log levels and handlers."""
        configure_logging(module_levels={"promptevo.test": logging.DEBUG})

        reset_logging()

        assert get_module_log_level("promptevo.test") is None
        assert logging.getLogger("promptevo.test").level == logging.NOTSET
        assert logging.getLogger().handlers == []
