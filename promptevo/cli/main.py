"""Main CLI entry point for promptevo."""

import sys
from pathlib import Path

import click
from pydantic import ValidationError

from promptevo import __version__
from promptevo.cli.commands.evolve import evolve_command
from promptevo.cli.commands.experiment import experiment_command
from promptevo.cli.context import CliContext
from promptevo.core.logging import configure_logging_from_settings

# Exit codes
EXIT_SUCCESS = 0  # Command succeeded
EXIT_FAILURE = 1  # Operation refused (unknown id, illegal transition)
EXIT_ERROR = 2  # Error (invalid config, unreadable store, etc.)


@click.group(invoke_without_command=True)
@click.option(
    "--config",
    "-c",
    "config_file",
    type=click.Path(exists=True, path_type=Path),
    help="Path to promptevo.config.yaml configuration file",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable debug logging",
)
@click.version_option(version=__version__, prog_name="promptevo")
@click.pass_context
def cli(ctx: click.Context, config_file: Path | None, verbose: bool) -> None:
    """promptevo - prompt experimentation and evolution.

    Runs champion/candidate experiments on prompt variants and proposes new
    candidates by mutating underperforming prompts.

    Examples:

      # List experiments in the store
      promptevo experiment list

      # Analyze a running experiment
      promptevo experiment analyze EXPERIMENT_ID

      # Mutate a prompt file
      promptevo evolve mutate --strategy concise prompt.txt

      # Ask which mutation fits a variant's telemetry
      promptevo evolve suggest --error-rate 0.2 --latency 6500
    """
    cli_ctx = ctx.ensure_object(CliContext)
    cli_ctx.verbose = verbose

    try:
        settings = cli_ctx.load_settings(config_file)
    except ValidationError as e:
        click.echo(f"Invalid configuration: {e}", err=True)
        sys.exit(EXIT_ERROR)

    configure_logging_from_settings(settings, level="DEBUG" if verbose else None)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command(name="version")
def version_cmd() -> None:
    """Show promptevo version information."""
    click.echo(f"promptevo v{__version__}")
    click.echo(f"Python: {sys.version.split()[0]}")
    click.echo(f"Platform: {sys.platform}")


# Register commands
cli.add_command(experiment_command)
cli.add_command(evolve_command)


def main() -> None:
    """Main entry point for the CLI."""
    cli(auto_envvar_prefix="PROMPTEVO")


if __name__ == "__main__":
    main()
