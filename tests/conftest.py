"""Shared pytest fixtures for promptevo tests."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

from promptevo.experiments import Experiment, ExperimentManager, ExperimentMetrics
from promptevo.variants import (
    InMemoryMetricsCollector,
    InMemoryVariantRegistry,
    VariantConfig,
    VariantStatus,
)

CONTENT_TYPE = "Roadmap"

CHAMPION_TEMPLATE = """You are a helpful planning assistant.

Please create a roadmap for the user's goal.
You MUST output valid JSON and never include commentary.
Each milestone requires a due date."""


class FixedClock:
    """Controllable clock for managers and generators."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FixedClock:
    """Return a clock frozen at 2026-01-01 UTC."""
    return FixedClock(datetime(2026, 1, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
def champion_config() -> VariantConfig:
    """Return the champion roadmap variant."""
    return VariantConfig(
        id="roadmap-v1",
        name="Roadmap Baseline",
        content_type=CONTENT_TYPE,
        prompt_template=CHAMPION_TEMPLATE,
        status=VariantStatus.CHAMPION,
        metadata={"version": "1.2.0"},
    )


@pytest.fixture
def candidate_config() -> VariantConfig:
    """Return a challenger roadmap variant."""
    return VariantConfig(
        id="roadmap-v2",
        name="Roadmap Concise",
        content_type=CONTENT_TYPE,
        prompt_template="Create a roadmap. Output JSON.",
    )


@pytest.fixture
def registry(
    champion_config: VariantConfig, candidate_config: VariantConfig
) -> InMemoryVariantRegistry:
    """Return a registry holding a champion and one challenger."""
    return InMemoryVariantRegistry([champion_config, candidate_config])


@pytest.fixture
def collector() -> InMemoryMetricsCollector:
    """Return an empty metrics collector."""
    return InMemoryMetricsCollector()


@pytest.fixture
def manager(
    registry: InMemoryVariantRegistry, clock: FixedClock
) -> ExperimentManager:
    """Return an in-memory experiment manager on the fixed clock."""
    return ExperimentManager(registry, clock=clock)


@pytest.fixture
def make_experiment() -> Callable[..., Experiment]:
    """Return a factory for experiments with preset arm counters.

    Arms are given as (impressions, successes) pairs.
    """

    def factory(
        control: tuple[int, int] = (0, 0),
        treatment: tuple[int, int] = (0, 0),
        **fields: object,
    ) -> Experiment:
        def arm(counts: tuple[int, int]) -> ExperimentMetrics:
            impressions, successes = counts
            return ExperimentMetrics(
                impressions=impressions,
                successes=successes,
                failures=impressions - successes,
            )

        defaults: dict[str, object] = {
            "content_type": CONTENT_TYPE,
            "control_variant_id": "roadmap-v1",
            "treatment_variant_id": "roadmap-v2",
        }
        defaults.update(fields)
        return Experiment(
            control_metrics=arm(control),
            treatment_metrics=arm(treatment),
            **defaults,
        )

    return factory
