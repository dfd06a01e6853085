"""Data models for champion/candidate prompt experiments."""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


class ExperimentStatus(str, Enum):
    """Status of an experiment."""

    DRAFT = "draft"  # Not yet started
    RUNNING = "running"  # Collecting data
    PAUSED = "paused"  # Temporarily stopped
    CONCLUDED = "concluded"  # Analysis snapshotted
    PROMOTED = "promoted"  # Winning treatment became champion


STARTABLE_STATUSES = frozenset({ExperimentStatus.DRAFT, ExperimentStatus.PAUSED})
FINISHED_STATUSES = frozenset({ExperimentStatus.CONCLUDED, ExperimentStatus.PROMOTED})


class Winner(str, Enum):
    """Arm that won an experiment."""

    CONTROL = "control"
    TREATMENT = "treatment"


class ConclusionReason(str, Enum):
    """Built-in reasons for concluding an experiment."""

    MANUAL = "manual"
    MAX_DURATION = "max_duration"
    EARLY_SIGNIFICANCE = "early_significance"


class TrafficSplit(BaseModel):
    """Share of traffic per arm. Carried as metadata, never enforced."""

    control: float = Field(default=0.5, ge=0.0, le=1.0)
    treatment: float = Field(default=0.5, ge=0.0, le=1.0)


class MetricObservation(BaseModel):
    """Outcome of a single generation served by a variant."""

    success: bool = Field(..., description="Whether the generation succeeded")
    latency_ms: float | None = Field(None, ge=0.0, description="Generation latency")
    quality_score: float | None = Field(None, description="Quality score, 0-1")
    feedback: float | None = Field(None, description="User rating, 1-5")


class ExperimentMetrics(BaseModel):
    """Per-arm counters. They only grow, except through reset()."""

    impressions: int = Field(default=0, ge=0, description="Times this arm served")
    successes: int = Field(default=0, ge=0)
    failures: int = Field(default=0, ge=0)
    total_latency: float = Field(default=0.0, description="Sum over successes")
    total_quality: float = Field(default=0.0, description="Sum over successes")
    total_feedback: float = Field(default=0.0)
    feedback_count: int = Field(default=0, ge=0)

    @property
    def conversion_rate(self) -> float:
        """Successes per impression."""
        if self.impressions == 0:
            return 0.0
        return self.successes / self.impressions

    @property
    def avg_latency(self) -> float:
        """Mean latency of successful generations."""
        if self.successes == 0:
            return 0.0
        return self.total_latency / self.successes

    @property
    def avg_quality(self) -> float:
        """Mean quality of successful generations."""
        if self.successes == 0:
            return 0.0
        return self.total_quality / self.successes

    @property
    def avg_feedback(self) -> float:
        """Mean user feedback."""
        if self.feedback_count == 0:
            return 0.0
        return self.total_feedback / self.feedback_count

    def record(self, observation: MetricObservation) -> None:
        """Accumulate one observation."""
        self.impressions += 1

        if observation.success:
            self.successes += 1
            if observation.latency_ms is not None:
                self.total_latency += observation.latency_ms
            if observation.quality_score is not None:
                self.total_quality += observation.quality_score
        else:
            self.failures += 1

        if observation.feedback is not None:
            self.total_feedback += observation.feedback
            self.feedback_count += 1

    def reset(self) -> None:
        """Zero every counter."""
        for name, info in type(self).model_fields.items():
            setattr(self, name, info.default)


class ConfidenceInterval(BaseModel):
    """Confidence interval for a proportion."""

    lower: float = 0.0
    upper: float = 0.0


class ExperimentAnalysis(BaseModel):
    """Statistical comparison of the two arms of an experiment."""

    # Sample sizes
    control_samples: int = 0
    treatment_samples: int = 0
    total_samples: int = 0

    # Success rates
    control_success_rate: float = 0.0
    treatment_success_rate: float = 0.0
    relative_improvement: float = 0.0

    # Quality and latency, informational only
    control_avg_quality: float = 0.0
    treatment_avg_quality: float = 0.0
    quality_improvement: float = 0.0
    control_avg_latency: float = 0.0
    treatment_avg_latency: float = 0.0
    latency_change: float = 0.0

    # Significance test
    z_score: float = 0.0
    p_value: float = 1.0
    control_ci: ConfidenceInterval = Field(default_factory=ConfidenceInterval)
    treatment_ci: ConfidenceInterval = Field(default_factory=ConfidenceInterval)

    # Decision gates
    is_significant: bool = False
    has_sufficient_samples: bool = False
    has_minimum_effect: bool = False
    confidence: float = 0.0

    # Decision
    winner: Winner | None = None
    winner_variant_id: str | None = None
    winner_reason: str = ""


class ExperimentConclusion(BaseModel):
    """Decision snapshot taken when an experiment concludes."""

    reason: str = Field(..., description="Why the experiment concluded")
    analysis: ExperimentAnalysis
    winner: Winner | None = None
    winner_variant_id: str | None = None
    recommended_action: str = ""
    promoted_at: datetime | None = None


class ExperimentCreate(BaseModel):
    """Configuration accepted by ExperimentManager.create()."""

    control_variant_id: str = Field(..., min_length=1)
    treatment_variant_id: str = Field(..., min_length=1)
    id: str | None = Field(None, description="Explicit ID (generated if omitted)")
    name: str = Field(default="Unnamed Experiment", max_length=200)
    description: str = Field(default="", max_length=2000)
    hypothesis: str = Field(default="")
    success_metric: str = Field(default="qualityScore")
    author: str = Field(default="system")
    traffic_split: TrafficSplit = Field(default_factory=TrafficSplit)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _distinct_variants(self) -> "ExperimentCreate":
        if self.control_variant_id == self.treatment_variant_id:
            raise ValueError("control and treatment must be different variants")
        return self


class Experiment(BaseModel):
    """Champion (control) versus candidate (treatment) experiment."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = Field(default="Unnamed Experiment")
    description: str = Field(default="")
    content_type: str = Field(..., description="Content category under test")
    status: ExperimentStatus = Field(default=ExperimentStatus.DRAFT)
    control_variant_id: str
    treatment_variant_id: str
    traffic_split: TrafficSplit = Field(default_factory=TrafficSplit)
    control_metrics: ExperimentMetrics = Field(default_factory=ExperimentMetrics)
    treatment_metrics: ExperimentMetrics = Field(default_factory=ExperimentMetrics)
    created_at: datetime = Field(default_factory=_utcnow)
    started_at: datetime | None = None
    concluded_at: datetime | None = None
    conclusion: ExperimentConclusion | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        """Check if the experiment is currently collecting data."""
        return self.status == ExperimentStatus.RUNNING

    @property
    def is_finished(self) -> bool:
        """Check if the experiment has concluded (and maybe promoted)."""
        return self.status in FINISHED_STATUSES

    def arm_for(self, variant_id: str) -> ExperimentMetrics | None:
        """Return the metrics of the arm served by a variant, if any."""
        if variant_id == self.control_variant_id:
            return self.control_metrics
        if variant_id == self.treatment_variant_id:
            return self.treatment_metrics
        return None

    def days_running(self, now: datetime) -> float:
        """Days elapsed since the experiment started (0 if never started)."""
        if self.started_at is None:
            return 0.0
        return (now - self.started_at).total_seconds() / 86400
