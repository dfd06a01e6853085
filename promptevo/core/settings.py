"""promptevo configuration management.

Configuration is loaded from several sources, highest priority first:
1. Explicit keyword overrides (CLI options, tests)
2. Configuration file (promptevo.config.yaml, searched upwards from cwd)
3. Environment variables (with PROMPTEVO_ prefix)
4. Default values

File values are passed to the model as init data, which is why they win
over the environment.

Example usage:
    from promptevo.core.settings import get_settings

    settings = get_settings()
    print(settings.experiments.store_path)

Environment variable support:
    PROMPTEVO_LOG_LEVEL=DEBUG
    PROMPTEVO_EXPERIMENTS__AUTO_PERSIST=true
    PROMPTEVO_GENERATOR__MAX_VARIANTS_PER_TYPE=3
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES = ["promptevo.config.yaml", "promptevo.config.yml"]

_NESTED_SECTIONS = ("experiments", "generator", "logging")

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _find_config_file(start_dir: Path | None = None) -> Path | None:
    """Find configuration file by searching current directory and parents.

    Args:
        start_dir: Directory to start search from.
            Defaults to current working directory.

    Returns:
        Path to config file if found, None otherwise.
    """
    search_dir = start_dir or Path.cwd()

    for _ in range(10):
        for filename in CONFIG_FILE_NAMES:
            config_path = search_dir / filename
            if config_path.exists():
                return config_path

        parent = search_dir.parent
        if parent == search_dir:
            break
        search_dir = parent

    return None


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from a YAML file.

    Unreadable or malformed files are logged and treated as empty.
    """
    try:
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}
            return config if isinstance(config, dict) else {}
    except yaml.YAMLError as e:
        logger.warning("Failed to parse config file %s: %s", config_path, e)
        return {}
    except OSError as e:
        logger.warning("Failed to read config file %s: %s", config_path, e)
        return {}


def _merge_sections(
    file_config: dict[str, Any], data: dict[str, Any]
) -> dict[str, Any]:
    """Merge file values under explicit values, one nested section at a time."""
    merged = {**file_config, **data}
    for section in _NESTED_SECTIONS:
        file_section = file_config.get(section)
        data_section = data.get(section)
        if isinstance(file_section, dict):
            merged[section] = {
                **file_section,
                **(data_section if isinstance(data_section, dict) else {}),
            }
    return merged


class ExperimentSettings(BaseSettings):
    """Experiment manager settings."""

    store_path: Path = Field(
        default=Path("data/experiments.json"),
        description="JSON file holding the experiment store",
    )
    auto_persist: bool = Field(
        default=False,
        description="Save the store after every mutating operation",
    )
    auto_promote: bool = Field(
        default=True,
        description="Promote a winning treatment as soon as it concludes",
    )
    load_on_init: bool = Field(
        default=True,
        description="Load the store file when the manager is created",
    )
    max_duration_days: float = Field(
        default=14,
        gt=0,
        description="Conclude running experiments after this many days",
    )
    early_stop_confidence: float = Field(
        default=0.99,
        ge=0.5,
        le=1.0,
        description="Confidence required to conclude before the duration cap",
    )


class GeneratorSettings(BaseSettings):
    """Variant generator settings."""

    max_variants_per_type: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum live variants per content type",
    )
    min_impressions_for_analysis: int = Field(
        default=50,
        ge=0,
        description="Champion impressions required before proposing mutations",
    )
    max_history_size: int = Field(
        default=100,
        ge=1,
        description="Generation history entries kept in memory",
    )


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_output: bool = Field(
        default=False,
        description="Output logs in JSON format",
    )
    file: str | None = Field(
        default=None,
        description="Log file path (optional)",
    )
    modules: dict[str, str] = Field(
        default_factory=dict,
        description="Per-module log level overrides (module name to level)",
    )

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        upper_v = v.upper()
        if upper_v not in _VALID_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {_VALID_LEVELS}")
        return upper_v

    @field_validator("modules")
    @classmethod
    def validate_module_levels(cls, v: dict[str, str]) -> dict[str, str]:
        """Normalize per-module levels to upper case."""
        normalized = {}
        for module, level in v.items():
            upper_level = level.upper()
            if upper_level not in _VALID_LEVELS:
                raise ValueError(f"Invalid log level for {module}: {level}")
            normalized[module] = upper_level
        return normalized


class PromptEvoSettings(BaseSettings):
    """Main promptevo configuration.

    Example:
        settings = PromptEvoSettings()
        print(settings.generator.max_variants_per_type)

        settings = PromptEvoSettings(experiments={"auto_persist": True})
    """

    model_config = SettingsConfigDict(
        env_prefix="PROMPTEVO_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    experiments: ExperimentSettings = Field(default_factory=ExperimentSettings)
    generator: GeneratorSettings = Field(default_factory=GeneratorSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @model_validator(mode="before")
    @classmethod
    def load_from_config_file(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Merge values from promptevo.config.yaml under the provided data."""
        if data.get("_skip_file_loading"):
            data.pop("_skip_file_loading", None)
            return data

        config_path = _find_config_file()
        if config_path:
            file_config = _load_yaml_config(config_path)
            if file_config:
                logger.debug("Loaded configuration from %s", config_path)
                return _merge_sections(file_config, data)

        return data


def get_settings(
    config_file: Path | None = None,
    **overrides: Any,
) -> PromptEvoSettings:
    """Get a settings instance.

    Args:
        config_file: Optional explicit path to a configuration file.
        **overrides: Explicit configuration overrides.

    Returns:
        Configured PromptEvoSettings instance.
    """
    if config_file and config_file.exists():
        file_config = _load_yaml_config(config_file)
        merged = _merge_sections(file_config, overrides)
        return PromptEvoSettings(_skip_file_loading=True, **merged)

    return PromptEvoSettings(**overrides)


@lru_cache
def get_cached_settings() -> PromptEvoSettings:
    """Get cached settings instance.

    The cache can be cleared with get_cached_settings.cache_clear().
    """
    return get_settings()
