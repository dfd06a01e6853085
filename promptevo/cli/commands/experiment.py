"""CLI commands for managing champion/candidate experiments."""

import json
import sys
from pathlib import Path
from typing import Any, NoReturn

import click
from rich.console import Console
from rich.table import Table

from promptevo.cli.context import CliContext, pass_cli_context
from promptevo.core.exceptions import PersistenceError, PromptEvoError
from promptevo.experiments import (
    Experiment,
    ExperimentAnalysis,
    ExperimentManager,
    ExperimentStatus,
    check_and_conclude_experiments,
    get_experiment_summary,
)
from promptevo.variants import (
    InMemoryVariantRegistry,
    load_variants_file,
    save_variants_file,
)

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_ERROR = 2

_STATUS_CHOICES = [s.value for s in ExperimentStatus]


def _create_experiments_table(title: str = "Experiments") -> Table:
    """Create a Rich table for experiment display.

    Args:
        title: Table title.

    Returns:
        Configured Rich Table instance.
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="green")
    table.add_column("Content Type", style="blue")
    table.add_column("Status", style="magenta")
    table.add_column("Control", style="dim")
    table.add_column("Treatment", style="dim")
    table.add_column("Samples", justify="right")
    table.add_column("Winner", style="yellow")
    return table


def _create_analysis_table(title: str = "Arm Comparison") -> Table:
    """Create a Rich table comparing the two arms."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="green")
    table.add_column("Control", justify="right")
    table.add_column("Treatment", justify="right")
    table.add_column("Change %", justify="right")
    return table


def _format_status(status: str) -> str:
    """Format experiment status with color."""
    status_colors = {
        "draft": "[dim]DRAFT[/dim]",
        "running": "[green]RUNNING[/green]",
        "paused": "[yellow]PAUSED[/yellow]",
        "concluded": "[blue]CONCLUDED[/blue]",
        "promoted": "[bold green]PROMOTED[/bold green]",
    }
    return status_colors.get(status, status.upper())


def _format_winner(winner: str | None) -> str:
    """Format winner with color."""
    if winner is None:
        return "[dim]-[/dim]"
    winner_colors = {
        "control": "[blue]Control[/blue]",
        "treatment": "[green]Treatment[/green]",
    }
    return winner_colors.get(winner, winner)


def _format_change(change: float) -> str:
    change_str = f"{change * 100:+.1f}%"
    if change > 0:
        return f"[green]{change_str}[/green]"
    if change < 0:
        return f"[red]{change_str}[/red]"
    return change_str


def _experiment_row(experiment: Experiment) -> dict[str, Any]:
    conclusion = experiment.conclusion
    return {
        "id": experiment.id,
        "name": experiment.name,
        "content_type": experiment.content_type,
        "status": experiment.status.value,
        "control": experiment.control_variant_id,
        "treatment": experiment.treatment_variant_id,
        "control_samples": experiment.control_metrics.impressions,
        "treatment_samples": experiment.treatment_metrics.impressions,
        "winner": conclusion.winner.value if conclusion and conclusion.winner else None,
        "created_at": experiment.created_at.isoformat(),
    }


def _exit_with_error(e: Exception, action: str) -> NoReturn:
    """Report an exception and exit with the matching code.

    Refused operations (unknown ids, illegal transitions, conflicts) exit
    with EXIT_FAILURE; storage and unexpected errors exit with EXIT_ERROR.
    """
    if isinstance(e, PromptEvoError) and not isinstance(e, PersistenceError):
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FAILURE)
    click.echo(f"Error {action}: {e}", err=True)
    sys.exit(EXIT_ERROR)


def _open_manager(
    cli_ctx: CliContext,
) -> tuple[ExperimentManager, InMemoryVariantRegistry]:
    """Build a manager over the configured store and optional variant file.

    Raises:
        PersistenceError: If the store exists but cannot be read.
    """
    settings = cli_ctx.load_settings()
    if cli_ctx.store_path is not None:
        settings.experiments.store_path = cli_ctx.store_path

    if cli_ctx.variants_file is not None:
        registry = load_variants_file(cli_ctx.variants_file)
    else:
        registry = InMemoryVariantRegistry()

    manager = ExperimentManager.from_settings(
        registry,
        settings,
        auto_persist=False,
        load_on_init=False,
    )
    result = manager.load()
    if not result.ok:
        raise PersistenceError(
            f"Cannot read experiment store {result.path}: {result.error}"
        )
    return manager, registry


def _save(
    cli_ctx: CliContext,
    manager: ExperimentManager,
    registry: InMemoryVariantRegistry,
) -> None:
    """Write the store, and the variant file when one was given.

    Raises:
        PersistenceError: If the store cannot be written.
    """
    result = manager.persist()
    if not result.ok:
        raise PersistenceError(
            f"Cannot write experiment store {result.path}: {result.error}"
        )
    if cli_ctx.variants_file is not None:
        save_variants_file(registry, cli_ctx.variants_file)


@click.group(name="experiment")
@click.option(
    "--store",
    "store_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Experiment store file (default: experiments.store_path setting)",
)
@click.option(
    "--variants",
    "variants_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Variant file backing the registry (needed to create and promote)",
)
@pass_cli_context
def experiment_command(
    cli_ctx: CliContext,
    store_path: Path | None,
    variants_file: Path | None,
) -> None:
    """Manage champion/candidate experiments.

    Experiments compare a champion prompt (control) with a candidate
    (treatment) and decide statistically whether the candidate wins.

    Examples:

      # List all experiments
      promptevo experiment list

      # Create and start an experiment from a variant file
      promptevo experiment --variants variants.yaml create \\
          --control roadmap-v1 --treatment roadmap-concise-1
      promptevo experiment --variants variants.yaml start EXPERIMENT_ID

      # Analyze an experiment
      promptevo experiment analyze EXPERIMENT_ID

      # Conclude and promote the winner
      promptevo experiment --variants variants.yaml conclude EXPERIMENT_ID
    """
    cli_ctx.store_path = store_path
    cli_ctx.variants_file = variants_file


@experiment_command.command(name="list")
@click.option(
    "--status",
    "-s",
    type=click.Choice(_STATUS_CHOICES),
    help="Filter by experiment status",
)
@click.option(
    "--content-type",
    "-t",
    type=str,
    help="Filter by content type",
)
@click.option(
    "--output",
    "-o",
    type=click.Choice(["console", "json"]),
    default="console",
    help="Output format",
)
@pass_cli_context
def list_experiments(
    cli_ctx: CliContext,
    status: str | None,
    content_type: str | None,
    output: str,
) -> None:
    """List experiments, newest first.

    Examples:

      # List only running experiments
      promptevo experiment list --status=running

      # Output as JSON
      promptevo experiment list --output=json

    Exit Codes:

      0 - Success
      2 - Error occurred
    """
    console = Console()

    try:
        manager, _ = _open_manager(cli_ctx)
        status_filter = ExperimentStatus(status) if status else None
        if content_type:
            experiments = manager.get_by_content_type(content_type, status_filter)
        else:
            experiments = manager.list_experiments(status_filter)
        rows = [_experiment_row(e) for e in experiments]

        if output == "json":
            click.echo(json.dumps(rows, indent=2, default=str))
        else:
            _output_experiments_console(rows, console)

        sys.exit(EXIT_SUCCESS)

    except Exception as e:
        _exit_with_error(e, "listing experiments")


def _output_experiments_console(
    experiments: list[dict[str, Any]],
    console: Console,
) -> None:
    """Output experiments to console."""
    if not experiments:
        console.print("No experiments found.")
        return

    table = _create_experiments_table()

    for exp in experiments:
        table.add_row(
            exp["id"],
            exp["name"],
            exp["content_type"],
            _format_status(exp["status"]),
            exp["control"],
            exp["treatment"],
            f"{exp['control_samples']}/{exp['treatment_samples']}",
            _format_winner(exp["winner"]),
        )

    console.print(table)
    console.print(f"\nTotal: {len(experiments)} experiment(s)")


@experiment_command.command(name="show")
@click.argument("experiment_id")
@click.option(
    "--output",
    "-o",
    type=click.Choice(["console", "json"]),
    default="console",
    help="Output format",
)
@pass_cli_context
def show_experiment(cli_ctx: CliContext, experiment_id: str, output: str) -> None:
    """Show an experiment's configuration, counters and conclusion.

    Exit Codes:

      0 - Success
      1 - Experiment not found
      2 - Error occurred
    """
    console = Console()

    try:
        manager, _ = _open_manager(cli_ctx)
        experiment = manager.get(experiment_id)
        if experiment is None:
            click.echo(f"Error: Experiment not found: {experiment_id}", err=True)
            sys.exit(EXIT_FAILURE)

        if output == "json":
            click.echo(json.dumps(experiment.model_dump(mode="json"), indent=2))
        else:
            _output_experiment_console(experiment, console)

        sys.exit(EXIT_SUCCESS)

    except Exception as e:
        _exit_with_error(e, "showing experiment")


def _output_experiment_console(experiment: Experiment, console: Console) -> None:
    console.print(f"\n[bold]Experiment: {experiment.name}[/bold] ({experiment.id})")
    console.print(f"  Content type: {experiment.content_type}")
    console.print(f"  Status: {_format_status(experiment.status.value)}")
    console.print(
        f"  Control: {experiment.control_variant_id} "
        f"({experiment.traffic_split.control:.0%} traffic)"
    )
    console.print(
        f"  Treatment: {experiment.treatment_variant_id} "
        f"({experiment.traffic_split.treatment:.0%} traffic)"
    )
    if experiment.metadata.get("hypothesis"):
        console.print(f"  Hypothesis: {experiment.metadata['hypothesis']}")
    console.print(
        f"  Samples: {experiment.control_metrics.impressions} (control) / "
        f"{experiment.treatment_metrics.impressions} (treatment)"
    )
    console.print(f"  Created: {experiment.created_at.isoformat()}")
    if experiment.started_at:
        console.print(f"  Started: {experiment.started_at.isoformat()}")
    if experiment.concluded_at:
        console.print(f"  Concluded: {experiment.concluded_at.isoformat()}")

    conclusion = experiment.conclusion
    if conclusion is not None:
        winner = conclusion.winner.value if conclusion.winner else None
        console.print(f"  Reason: {conclusion.reason}")
        console.print(f"  Winner: {_format_winner(winner)}")
        console.print(f"\n[bold]Recommendation:[/bold] {conclusion.recommended_action}")


@experiment_command.command(name="analyze")
@click.argument("experiment_id")
@click.option(
    "--output",
    "-o",
    type=click.Choice(["console", "json"]),
    default="console",
    help="Output format",
)
@pass_cli_context
def analyze_experiment(cli_ctx: CliContext, experiment_id: str, output: str) -> None:
    """Run the significance test on an experiment's current counters.

    Exit Codes:

      0 - Success
      1 - Experiment not found
      2 - Error occurred
    """
    console = Console()

    try:
        manager, _ = _open_manager(cli_ctx)
        analysis = manager.analyze(experiment_id)

        if output == "json":
            click.echo(json.dumps(analysis.model_dump(mode="json"), indent=2))
        else:
            _output_analysis_console(analysis, console)

        sys.exit(EXIT_SUCCESS)

    except Exception as e:
        _exit_with_error(e, "analyzing experiment")


def _output_analysis_console(analysis: ExperimentAnalysis, console: Console) -> None:
    table = _create_analysis_table()
    table.add_row(
        "Success rate",
        f"{analysis.control_success_rate:.4f}",
        f"{analysis.treatment_success_rate:.4f}",
        _format_change(analysis.relative_improvement),
    )
    table.add_row(
        "Avg quality",
        f"{analysis.control_avg_quality:.4f}",
        f"{analysis.treatment_avg_quality:.4f}",
        _format_change(analysis.quality_improvement),
    )
    table.add_row(
        "Avg latency (ms)",
        f"{analysis.control_avg_latency:.1f}",
        f"{analysis.treatment_avg_latency:.1f}",
        _format_change(analysis.latency_change),
    )
    table.add_row(
        "Samples",
        str(analysis.control_samples),
        str(analysis.treatment_samples),
        "",
    )
    console.print(table)

    def _gate(passed: bool) -> str:
        return "[green]Yes[/green]" if passed else "[dim]No[/dim]"

    console.print(f"  z-score: {analysis.z_score:.4f}")
    console.print(f"  p-value: {analysis.p_value:.4f}")
    console.print(f"  Confidence: {analysis.confidence:.2%}")
    console.print(f"  Sufficient samples: {_gate(analysis.has_sufficient_samples)}")
    console.print(f"  Significant: {_gate(analysis.is_significant)}")
    console.print(f"  Minimum effect: {_gate(analysis.has_minimum_effect)}")
    winner = analysis.winner.value if analysis.winner else None
    console.print(f"  Winner: {_format_winner(winner)}")
    console.print(f"\n{analysis.winner_reason}")


@experiment_command.command(name="create")
@click.option("--control", "control_id", required=True, help="Champion variant ID")
@click.option("--treatment", "treatment_id", required=True, help="Candidate variant ID")
@click.option("--name", "-n", default="Unnamed Experiment", help="Experiment name")
@click.option("--description", "-d", default="", help="Experiment description")
@click.option("--hypothesis", default="", help="Expected outcome")
@click.option(
    "--traffic-split",
    type=str,
    default="50/50",
    help="Traffic split as control/treatment (e.g., 50/50, 70/30)",
)
@pass_cli_context
def create_experiment(
    cli_ctx: CliContext,
    control_id: str,
    treatment_id: str,
    name: str,
    description: str,
    hypothesis: str,
    traffic_split: str,
) -> None:
    """Create a draft experiment between two variants of the variant file.

    Exit Codes:

      0 - Experiment created
      1 - Unknown variant or invalid configuration
      2 - Error occurred
    """
    try:
        control_pct, treatment_pct = (int(p) for p in traffic_split.split("/"))
    except ValueError:
        click.echo(
            f"Error: Invalid traffic split '{traffic_split}'. Use format: 50/50",
            err=True,
        )
        sys.exit(EXIT_ERROR)

    try:
        manager, registry = _open_manager(cli_ctx)
        experiment = manager.create(
            {
                "control_variant_id": control_id,
                "treatment_variant_id": treatment_id,
                "name": name,
                "description": description,
                "hypothesis": hypothesis,
                "traffic_split": {
                    "control": control_pct / 100,
                    "treatment": treatment_pct / 100,
                },
            }
        )
        _save(cli_ctx, manager, registry)

        click.echo(f"Created experiment {experiment.id}")
        sys.exit(EXIT_SUCCESS)

    except Exception as e:
        _exit_with_error(e, "creating experiment")


@experiment_command.command(name="start")
@click.argument("experiment_id")
@pass_cli_context
def start_experiment(cli_ctx: CliContext, experiment_id: str) -> None:
    """Start a draft experiment or restart a paused one.

    Exit Codes:

      0 - Experiment started
      1 - Not found, wrong status, or another experiment is active
      2 - Error occurred
    """
    try:
        manager, registry = _open_manager(cli_ctx)
        manager.start(experiment_id)
        _save(cli_ctx, manager, registry)

        click.echo(f"Experiment {experiment_id} started.")
        sys.exit(EXIT_SUCCESS)

    except Exception as e:
        _exit_with_error(e, "starting experiment")


@experiment_command.command(name="pause")
@click.argument("experiment_id")
@pass_cli_context
def pause_experiment(cli_ctx: CliContext, experiment_id: str) -> None:
    """Pause a running experiment.

    Exit Codes:

      0 - Experiment paused
      1 - Not found or not running
      2 - Error occurred
    """
    try:
        manager, registry = _open_manager(cli_ctx)
        manager.pause(experiment_id)
        _save(cli_ctx, manager, registry)

        click.echo(f"Experiment {experiment_id} paused.")
        sys.exit(EXIT_SUCCESS)

    except Exception as e:
        _exit_with_error(e, "pausing experiment")


@experiment_command.command(name="conclude")
@click.argument("experiment_id")
@click.option(
    "--reason",
    "-r",
    type=str,
    default="manual",
    help="Reason for concluding the experiment",
)
@pass_cli_context
def conclude_experiment(cli_ctx: CliContext, experiment_id: str, reason: str) -> None:
    """Conclude an experiment and determine the winner.

    A treatment winner is promoted immediately when experiments.auto_promote
    is set and a variant file is given.

    Exit Codes:

      0 - Experiment concluded
      1 - Experiment not found
      2 - Error occurred
    """
    console = Console()

    try:
        manager, registry = _open_manager(cli_ctx)
        conclusion = manager.conclude(experiment_id, reason)
        _save(cli_ctx, manager, registry)

        winner = conclusion.winner.value if conclusion.winner else None
        console.print(f"[blue]Experiment {experiment_id} concluded.[/blue]")
        console.print(f"  Reason: {conclusion.reason}")
        console.print(f"  Winner: {_format_winner(winner)}")
        console.print(f"\n{conclusion.recommended_action}")

        sys.exit(EXIT_SUCCESS)

    except Exception as e:
        _exit_with_error(e, "concluding experiment")


@experiment_command.command(name="promote")
@click.argument("experiment_id")
@pass_cli_context
def promote_experiment(cli_ctx: CliContext, experiment_id: str) -> None:
    """Promote a concluded experiment's winning treatment to champion.

    Exit Codes:

      0 - Treatment promoted
      1 - No treatment winner, or the registry refused the promotion
      2 - Error occurred
    """
    try:
        manager, registry = _open_manager(cli_ctx)
        promoted = manager.promote_winner(experiment_id)
        if not promoted:
            click.echo(
                f"Error: Variant registry refused the promotion for {experiment_id}",
                err=True,
            )
            sys.exit(EXIT_FAILURE)
        _save(cli_ctx, manager, registry)

        click.echo(f"Experiment {experiment_id} promoted.")
        sys.exit(EXIT_SUCCESS)

    except Exception as e:
        _exit_with_error(e, "promoting experiment")


@experiment_command.command(name="check")
@pass_cli_context
def check_experiments(cli_ctx: CliContext) -> None:
    """Conclude every running experiment past the maximum duration.

    Exit Codes:

      0 - Success
      2 - Error occurred
    """
    try:
        manager, registry = _open_manager(cli_ctx)
        concluded = check_and_conclude_experiments(manager)
        if concluded:
            _save(cli_ctx, manager, registry)

        click.echo(f"Concluded {len(concluded)} experiment(s).")
        for experiment_id in concluded:
            click.echo(f"  {experiment_id}")
        sys.exit(EXIT_SUCCESS)

    except Exception as e:
        _exit_with_error(e, "checking experiments")


@experiment_command.command(name="summary")
@pass_cli_context
def experiment_summary(cli_ctx: CliContext) -> None:
    """Print a JSON summary of experiment activity.

    Exit Codes:

      0 - Success
      2 - Error occurred
    """
    try:
        manager, _ = _open_manager(cli_ctx)
        summary = get_experiment_summary(manager)
        for entry in summary["running"]:
            entry["analysis"] = entry["analysis"].model_dump(mode="json")

        click.echo(json.dumps(summary, indent=2, default=str))
        sys.exit(EXIT_SUCCESS)

    except Exception as e:
        _exit_with_error(e, "summarizing experiments")
