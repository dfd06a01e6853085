"""Shared state for CLI commands."""

from pathlib import Path

import click

from promptevo.core.settings import PromptEvoSettings, get_settings


class CliContext:
    """Context object shared by every subcommand."""

    def __init__(self) -> None:
        self.settings: PromptEvoSettings | None = None
        self.config_file: Path | None = None
        self.verbose: bool = False
        self.store_path: Path | None = None
        self.variants_file: Path | None = None

    def load_settings(self, config_file: Path | None = None) -> PromptEvoSettings:
        """Load settings once, from config_file or the discovered config."""
        if self.settings is None:
            self.config_file = config_file
            self.settings = get_settings(config_file)
        return self.settings


pass_cli_context = click.make_pass_decorator(CliContext, ensure=True)
