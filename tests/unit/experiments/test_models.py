"""Tests for experiment data models."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from promptevo.experiments import (
    Experiment,
    ExperimentCreate,
    ExperimentMetrics,
    ExperimentStatus,
    MetricObservation,
)


class TestExperimentMetrics:
    """Tests for per-arm counters."""

    def test_record_success(self) -> None:
        """Test a success counts latency and quality."""
        metrics = ExperimentMetrics()

        metrics.record(
            MetricObservation(success=True, latency_ms=1200, quality_score=0.8)
        )

        assert metrics.impressions == 1
        assert metrics.successes == 1
        assert metrics.failures == 0
        assert metrics.avg_latency == 1200
        assert metrics.avg_quality == pytest.approx(0.8)

    def test_record_failure_ignores_latency_and_quality(self) -> None:
        """Test failures only bump the failure counter."""
        metrics = ExperimentMetrics()

        metrics.record(
            MetricObservation(success=False, latency_ms=9000, quality_score=0.1)
        )

        assert metrics.impressions == 1
        assert metrics.failures == 1
        assert metrics.total_latency == 0.0
        assert metrics.total_quality == 0.0
        assert metrics.conversion_rate == 0.0

    def test_feedback_counted_for_any_outcome(self) -> None:
        """Test feedback is averaged over every observation that carries it."""
        metrics = ExperimentMetrics()

        metrics.record(MetricObservation(success=True, feedback=5))
        metrics.record(MetricObservation(success=False, feedback=2))
        metrics.record(MetricObservation(success=True))

        assert metrics.feedback_count == 2
        assert metrics.avg_feedback == pytest.approx(3.5)
        assert metrics.conversion_rate == pytest.approx(2 / 3)

    def test_empty_averages(self) -> None:
        """Test averages are zero without data."""
        metrics = ExperimentMetrics()
        assert metrics.conversion_rate == 0.0
        assert metrics.avg_latency == 0.0
        assert metrics.avg_quality == 0.0
        assert metrics.avg_feedback == 0.0

    def test_reset(self) -> None:
        """Test reset zeroes every counter."""
        metrics = ExperimentMetrics()
        metrics.record(MetricObservation(success=True, latency_ms=100, feedback=4))

        metrics.reset()

        assert metrics == ExperimentMetrics()


class TestExperimentCreate:
    """Tests for experiment configuration validation."""

    def test_defaults(self) -> None:
        """Test default configuration values."""
        config = ExperimentCreate(
            control_variant_id="roadmap-v1", treatment_variant_id="roadmap-v2"
        )
        assert config.name == "Unnamed Experiment"
        assert config.success_metric == "qualityScore"
        assert config.author == "system"
        assert config.traffic_split.control == 0.5
        assert config.id is None

    def test_same_variant_rejected(self) -> None:
        """Test an experiment needs two different variants."""
        with pytest.raises(ValidationError, match="different variants"):
            ExperimentCreate(
                control_variant_id="roadmap-v1", treatment_variant_id="roadmap-v1"
            )

    def test_traffic_split_bounds(self) -> None:
        """Test traffic shares are fractions."""
        with pytest.raises(ValidationError):
            ExperimentCreate(
                control_variant_id="a",
                treatment_variant_id="b",
                traffic_split={"control": 1.5, "treatment": 0.3},
            )


class TestExperiment:
    """Tests for the Experiment model."""

    def test_defaults(self, make_experiment: Callable[..., Experiment]) -> None:
        """Test a new experiment is a draft with a generated ID."""
        experiment = make_experiment()

        assert experiment.status == ExperimentStatus.DRAFT
        assert experiment.id
        assert not experiment.is_active
        assert not experiment.is_finished

    def test_arm_for(self, make_experiment: Callable[..., Experiment]) -> None:
        """Test variants map to their arm's counters."""
        experiment = make_experiment()

        assert experiment.arm_for("roadmap-v1") is experiment.control_metrics
        assert experiment.arm_for("roadmap-v2") is experiment.treatment_metrics
        assert experiment.arm_for("other") is None

    def test_days_running(self, make_experiment: Callable[..., Experiment]) -> None:
        """Test elapsed days since start."""
        started = datetime(2026, 1, 1, tzinfo=UTC)
        experiment = make_experiment(started_at=started)

        assert experiment.days_running(started + timedelta(hours=36)) == 1.5
        assert make_experiment().days_running(started) == 0.0

    @pytest.mark.parametrize(
        ("status", "finished"),
        [
            (ExperimentStatus.RUNNING, False),
            (ExperimentStatus.PAUSED, False),
            (ExperimentStatus.CONCLUDED, True),
            (ExperimentStatus.PROMOTED, True),
        ],
    )
    def test_is_finished(
        self,
        make_experiment: Callable[..., Experiment],
        status: ExperimentStatus,
        finished: bool,
    ) -> None:
        """Test which statuses count as finished."""
        assert make_experiment(status=status).is_finished is finished

    def test_json_round_trip(self, make_experiment: Callable[..., Experiment]) -> None:
        """Test an experiment survives JSON serialization."""
        experiment = make_experiment(
            control=(40, 30),
            treatment=(40, 35),
            status=ExperimentStatus.RUNNING,
            started_at=datetime(2026, 1, 1, tzinfo=UTC),
            metadata={"hypothesis": "shorter is better"},
        )

        restored = Experiment.model_validate_json(experiment.model_dump_json())

        assert restored == experiment
