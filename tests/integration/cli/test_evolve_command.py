"""Integration tests for the evolve command."""

import json
import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from promptevo.cli.main import cli
from promptevo.core.logging import reset_logging
from promptevo.evolution import apply_mutation
from promptevo.variants import InMemoryVariantRegistry, save_variants_file


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch) -> Iterator[CliRunner]:
    """Create a CLI runner that only logs warnings."""
    monkeypatch.setenv("PROMPTEVO_LOGGING__LEVEL", "WARNING")
    yield CliRunner()
    reset_logging()


@pytest.fixture
def variants(tmp_path: Path, registry: InMemoryVariantRegistry) -> Path:
    """Write the shared registry to a variant file."""
    path = tmp_path / "variants.yaml"
    save_variants_file(registry, path)
    return path


class TestStrategiesCommand:
    """Tests for evolve strategies."""

    def test_lists_strategies(self, runner: CliRunner) -> None:
        """Test the strategy table."""
        result = runner.invoke(cli, ["evolve", "strategies"])

        assert result.exit_code == 0
        assert "Mutation Strategies" in result.output
        assert "concise" in result.output
        assert "structured" in result.output


class TestMutateCommand:
    """Tests for evolve mutate."""

    def test_mutate_file(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test mutating a prompt file."""
        template = "You are a planner.\nPlease create a roadmap. Output JSON."
        prompt = tmp_path / "prompt.txt"
        prompt.write_text(template)

        result = runner.invoke(
            cli, ["evolve", "mutate", "--strategy", "concise", str(prompt)]
        )

        assert result.exit_code == 0
        assert result.output == apply_mutation(template, "concise") + "\n"

    def test_mutate_stdin(self, runner: CliRunner) -> None:
        """Test reading the prompt from stdin."""
        result = runner.invoke(
            cli,
            ["evolve", "mutate", "-s", "output_focused", "-"],
            input="Create a roadmap.\n",
        )

        assert result.exit_code == 0
        assert result.output.startswith("Create a roadmap.\n\n## OUTPUT FORMAT")

    def test_strategy_required(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test the strategy option is mandatory and validated."""
        prompt = tmp_path / "prompt.txt"
        prompt.write_text("Create a roadmap.")

        missing = runner.invoke(cli, ["evolve", "mutate", str(prompt)])
        unknown = runner.invoke(
            cli, ["evolve", "mutate", "--strategy", "bogus", str(prompt)]
        )

        assert missing.exit_code == 2
        assert unknown.exit_code == 2


class TestSuggestCommand:
    """Tests for evolve suggest."""

    def test_suggest_json(self, runner: CliRunner) -> None:
        """Test ranked suggestions as JSON."""
        result = runner.invoke(
            cli,
            [
                "evolve",
                "suggest",
                "--error-rate",
                "0.2",
                "--latency",
                "6500",
                "--output",
                "json",
            ],
        )

        assert result.exit_code == 0
        suggestions = json.loads(result.output)
        assert [s["strategy"] for s in suggestions] == ["structured", "concise"]
        assert [s["priority"] for s in suggestions] == [1, 3]

    def test_suggest_nothing(self, runner: CliRunner) -> None:
        """Test healthy or unknown signals."""
        result = runner.invoke(cli, ["evolve", "suggest", "--quality", "0.95"])

        assert result.exit_code == 0
        assert "No improvements suggested." in result.output

    def test_suggest_console(self, runner: CliRunner) -> None:
        """Test the suggestion table."""
        result = runner.invoke(cli, ["evolve", "suggest", "--feedback", "2"])

        assert result.exit_code == 0
        assert "instructive" in result.output


class TestGenerateCommand:
    """Tests for evolve generate."""

    def test_generate(self, runner: CliRunner, variants: Path) -> None:
        """Test generating a challenger without registering it."""
        result = runner.invoke(
            cli,
            [
                "evolve",
                "generate",
                "roadmap-v1",
                "--variants",
                str(variants),
                "--strategy",
                "structured",
            ],
        )

        assert result.exit_code == 0
        config = json.loads(result.output)
        assert config["parent_variant_id"] == "roadmap-v1"
        assert config["status"] == "candidate"
        assert config["prompt_template"].startswith("## INSTRUCTIONS")
        saved = yaml.safe_load(variants.read_text())["variants"]
        assert len(saved) == 2

    def test_generate_and_register(self, runner: CliRunner, variants: Path) -> None:
        """Test --register appends the variant to the variant file."""
        result = runner.invoke(
            cli,
            [
                "evolve",
                "generate",
                "roadmap-v1",
                "--variants",
                str(variants),
                "--register",
            ],
        )

        assert result.exit_code == 0
        generated = json.loads(result.output)
        assert generated["metadata"]["strategy"] == "concise"
        saved = yaml.safe_load(variants.read_text())["variants"]
        assert [v["id"] for v in saved][-1] == generated["id"]

    def test_generate_unknown_parent(
        self, runner: CliRunner, variants: Path
    ) -> None:
        """Test an unknown parent variant."""
        result = runner.invoke(
            cli, ["evolve", "generate", "nope", "--variants", str(variants)]
        )

        assert result.exit_code == 1
        assert "Parent variant not found: nope" in result.output


class TestLoggingConfiguration:
    """Tests for logging set up by the CLI group."""

    def test_config_module_levels(self, runner: CliRunner, tmp_path: Path) -> None:
        """Test per-module levels from the config file are applied."""
        config = tmp_path / "promptevo.config.yaml"
        config.write_text("logging:\n  modules:\n    promptevo.evolution: ERROR\n")

        result = runner.invoke(
            cli, ["--config", str(config), "evolve", "strategies"]
        )

        assert result.exit_code == 0
        assert logging.getLogger("promptevo.evolution").level == logging.ERROR

    def test_verbose_enables_debug(self, runner: CliRunner) -> None:
        """Test --verbose overrides the configured level."""
        result = runner.invoke(cli, ["--verbose", "evolve", "strategies"])

        assert result.exit_code == 0
        assert logging.getLogger().level == logging.DEBUG
