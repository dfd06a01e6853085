"""CLI commands for prompt mutation and challenger generation."""

import json
import sys
from pathlib import Path
from typing import TextIO

import click
from rich.console import Console
from rich.table import Table

from promptevo.cli.context import CliContext, pass_cli_context
from promptevo.core.exceptions import PromptEvoError
from promptevo.evolution import (
    TRANSFORMATIONS,
    MutationStrategy,
    VariantGenerator,
    apply_mutation,
    suggest_improvements,
)
from promptevo.variants import (
    InMemoryMetricsCollector,
    PerformanceSignals,
    load_variants_file,
    save_variants_file,
)

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_ERROR = 2

_STRATEGY_CHOICES = [s.value for s in MutationStrategy]


@click.group(name="evolve")
def evolve_command() -> None:
    """Mutate prompts and propose challenger variants.

    Examples:

      # Rewrite a prompt with the concise recipe
      promptevo evolve mutate --strategy concise prompt.txt

      # Read the prompt from stdin
      cat prompt.txt | promptevo evolve mutate --strategy structured -

      # Which mutation fits a variant with many failures and slow answers?
      promptevo evolve suggest --error-rate 0.2 --latency 6500

      # Generate a challenger from a variant file
      promptevo evolve generate roadmap-v1 --variants variants.yaml --register
    """
    pass


@evolve_command.command(name="strategies")
def list_strategies() -> None:
    """List mutation strategies and their recipes."""
    console = Console()

    table = Table(
        title="Mutation Strategies", show_header=True, header_style="bold cyan"
    )
    table.add_column("Strategy", style="green", no_wrap=True)
    table.add_column("Recipe", style="blue")
    table.add_column("Description")

    for strategy in MutationStrategy:
        transform = TRANSFORMATIONS[strategy]
        table.add_row(strategy.value, transform.name, transform.description)

    console.print(table)


@evolve_command.command(name="mutate")
@click.argument("template_file", type=click.File("r", encoding="utf-8"))
@click.option(
    "--strategy",
    "-s",
    type=click.Choice(_STRATEGY_CHOICES),
    required=True,
    help="Mutation strategy to apply",
)
def mutate_prompt(template_file: TextIO, strategy: str) -> None:
    """Print TEMPLATE_FILE rewritten with a mutation strategy.

    TEMPLATE_FILE is a prompt text file, or - for stdin.

    Exit Codes:

      0 - Success
      2 - Error occurred
    """
    try:
        template = template_file.read()
    except OSError as e:
        click.echo(f"Error reading template: {e}", err=True)
        sys.exit(EXIT_ERROR)

    click.echo(apply_mutation(template, strategy))
    sys.exit(EXIT_SUCCESS)


@evolve_command.command(name="suggest")
@click.option("--error-rate", type=float, help="Share of failed generations (0-1)")
@click.option("--quality", type=float, help="Average quality score (0-1)")
@click.option("--latency", type=float, help="Average latency in milliseconds")
@click.option("--feedback", type=float, help="Average user feedback (1-5)")
@click.option(
    "--output",
    "-o",
    type=click.Choice(["console", "json"]),
    default="console",
    help="Output format",
)
def suggest(
    error_rate: float | None,
    quality: float | None,
    latency: float | None,
    feedback: float | None,
    output: str,
) -> None:
    """Rank mutation strategies for observed performance signals.

    Signals left out are treated as unobserved and never trigger a rule.

    Examples:

      promptevo evolve suggest --error-rate 0.15 --quality 0.6
    """
    signals = PerformanceSignals(
        error_rate=error_rate,
        avg_quality_score=quality,
        avg_latency_ms=latency,
        avg_feedback=feedback,
    )
    suggestions = suggest_improvements(signals)

    if output == "json":
        click.echo(
            json.dumps([s.model_dump(mode="json") for s in suggestions], indent=2)
        )
        sys.exit(EXIT_SUCCESS)

    console = Console()
    if not suggestions:
        console.print("No improvements suggested.")
        sys.exit(EXIT_SUCCESS)

    table = Table(title="Suggestions", show_header=True, header_style="bold cyan")
    table.add_column("Priority", justify="right")
    table.add_column("Strategy", style="green")
    table.add_column("Reason")
    for s in suggestions:
        table.add_row(str(s.priority), s.strategy.value, s.reason)
    console.print(table)
    sys.exit(EXIT_SUCCESS)


@evolve_command.command(name="generate")
@click.argument("parent_variant_id")
@click.option(
    "--variants",
    "variants_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="Variant file holding the parent variant",
)
@click.option(
    "--strategy",
    "-s",
    type=click.Choice(_STRATEGY_CHOICES),
    help="Mutation strategy (default: concise, as no telemetry is available)",
)
@click.option(
    "--register",
    is_flag=True,
    help="Add the generated variant to the variant file",
)
@pass_cli_context
def generate_variant(
    cli_ctx: CliContext,
    parent_variant_id: str,
    variants_file: Path,
    strategy: str | None,
    register: bool,
) -> None:
    """Generate a challenger from PARENT_VARIANT_ID and print it as JSON.

    Exit Codes:

      0 - Variant generated
      1 - Parent variant not found
      2 - Error occurred
    """
    try:
        registry = load_variants_file(variants_file)
        generator = VariantGenerator.from_settings(
            registry,
            InMemoryMetricsCollector(),
            cli_ctx.load_settings(),
        )

        if register:
            variant = generator.generate_and_register(
                parent_variant_id, strategy, reason="cli"
            )
            save_variants_file(registry, variants_file)
            click.echo(json.dumps(variant.model_dump(mode="json"), indent=2))
        else:
            config = generator.generate_variant(
                parent_variant_id, strategy, reason="cli"
            )
            click.echo(json.dumps(config.model_dump(mode="json"), indent=2))

        sys.exit(EXIT_SUCCESS)

    except PromptEvoError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FAILURE)
    except Exception as e:
        click.echo(f"Error generating variant: {e}", err=True)
        sys.exit(EXIT_ERROR)
