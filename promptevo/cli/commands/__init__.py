"""CLI commands package for promptevo."""

from promptevo.cli.commands.evolve import evolve_command
from promptevo.cli.commands.experiment import experiment_command

__all__ = [
    "evolve_command",
    "experiment_command",
]
