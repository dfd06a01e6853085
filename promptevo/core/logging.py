"""Structured logging for promptevo.

Library modules log through ``logging.getLogger(__name__)``; this module wires
the standard library into structlog so those records come out as key/value
console lines during development and as JSON in production.

Example usage:
    from promptevo.core.logging import configure_logging

    configure_logging(
        level="INFO",
        module_levels={"promptevo.evolution": "DEBUG"},
    )
"""

import logging
import sys
from typing import TYPE_CHECKING

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

if TYPE_CHECKING:
    from promptevo.core.settings import PromptEvoSettings

PROMPTEVO_VERSION = "0.3.0"

# Loggers whose level was overridden, so they can be restored
_module_log_levels: dict[str, int] = {}


def _to_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    numeric: int = getattr(logging, level.upper(), logging.INFO)
    return numeric


def add_common_fields(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add the package version to every event."""
    event_dict.setdefault("promptevo_version", PROMPTEVO_VERSION)
    return event_dict


def set_module_log_level(module: str, level: int | str) -> None:
    """Set the level of a module's logger and everything below it.

    Args:
        module: Logger name prefix (e.g., "promptevo.experiments").
        level: Log level name or number.
    """
    numeric_level = _to_level(level)
    logging.getLogger(module).setLevel(numeric_level)
    _module_log_levels[module] = numeric_level


def get_module_log_level(module: str) -> int | None:
    """Get the level override for a module, if any."""
    return _module_log_levels.get(module)


def clear_module_log_levels() -> None:
    """Return overridden loggers to inheriting the root level."""
    for module in _module_log_levels:
        logging.getLogger(module).setLevel(logging.NOTSET)
    _module_log_levels.clear()


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_common_fields,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.processors.format_exc_info,
    ]


def configure_logging(
    level: str | int = logging.INFO,
    json_output: bool | None = None,
    log_file: str | None = None,
    module_levels: dict[str, str | int] | None = None,
) -> None:
    """Configure structured logging for the application.

    Handlers accept every record; the root level and the per-module
    overrides decide what is emitted.

    Args:
        level: Global log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: Use JSON output. If None, JSON is used when stdout
            is not a TTY.
        log_file: Optional file path for log output.
        module_levels: Per-module log level overrides, applied on top of
            the global level in either direction.
    """
    if json_output is None:
        json_output = not sys.stdout.isatty()

    clear_module_log_levels()
    for module, mod_level in (module_levels or {}).items():
        set_module_log_level(module, mod_level)

    shared_processors = _shared_processors()

    structlog.configure(
        processors=shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    renderer: Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(_to_level(level))
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def configure_logging_from_settings(
    settings: "PromptEvoSettings | None" = None,
    level: str | None = None,
) -> None:
    """Configure logging from promptevo settings (cached settings by default).

    Args:
        settings: Settings to read the logging section from.
        level: Global level overriding the configured one (e.g. --verbose).
    """
    # Import here to avoid circular imports
    from promptevo.core.settings import get_cached_settings

    settings = settings or get_cached_settings()

    configure_logging(
        level=level or settings.logging.level,
        json_output=settings.logging.json_output,
        log_file=settings.logging.file,
        module_levels=dict(settings.logging.modules),
    )


def reset_logging() -> None:
    """Reset logging configuration to defaults (for testing)."""
    clear_module_log_levels()
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.WARNING)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
