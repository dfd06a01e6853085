"""Data models for prompt variants.

Variants are owned by the variant registry; the experiment manager and the
generator only read them and hand new configurations back to the registry.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


class VariantStatus(str, Enum):
    """Lifecycle status of a prompt variant."""

    ACTIVE = "active"  # In rotation
    CANDIDATE = "candidate"  # Being tested against the champion
    CHAMPION = "champion"  # Current best performer
    RETIRED = "retired"  # No longer used
    PAUSED = "paused"  # Temporarily disabled


LIVE_STATUSES = frozenset(
    {VariantStatus.ACTIVE, VariantStatus.CANDIDATE, VariantStatus.CHAMPION}
)


class VariantPerformance(BaseModel):
    """Performance aggregates the registry keeps for a variant."""

    impressions: int = Field(default=0, ge=0)
    conversions: int = Field(default=0, ge=0)
    avg_latency_ms: float = Field(default=0.0, ge=0.0)
    avg_quality_score: float = Field(default=0.0)
    error_count: int = Field(default=0, ge=0)
    feedback_sum: float = Field(default=0.0)
    feedback_count: int = Field(default=0, ge=0)


class VariantConfig(BaseModel):
    """A variant configuration that has not been registered yet."""

    id: str = Field(..., min_length=1, description="Unique variant ID")
    name: str = Field(..., description="Human-readable name")
    content_type: str = Field(..., description="Content category served")
    prompt_template: str = Field(..., description="Prompt text")
    status: VariantStatus = Field(default=VariantStatus.ACTIVE)
    weight: float = Field(default=1.0, ge=0.0, description="Selection weight")
    description: str = Field(default="")
    author: str = Field(default="system")
    version: str = Field(default="1.0.0")
    tags: list[str] = Field(default_factory=list)
    parent_variant_id: str | None = Field(None, description="Variant mutated from")
    metadata: dict[str, Any] = Field(default_factory=dict)


class Variant(VariantConfig):
    """A registered variant."""

    performance: VariantPerformance = Field(default_factory=VariantPerformance)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_live(self) -> bool:
        """Whether the variant is still eligible to serve traffic."""
        return self.status in LIVE_STATUSES


class VariantMetricsSummary(BaseModel):
    """Aggregate telemetry for one variant, as answered by a metrics collector.

    An average is None when no generation reported that value.
    """

    count: int = Field(default=0, ge=0, description="Generations observed")
    success_count: int = Field(default=0, ge=0)
    avg_latency: float | None = Field(default=None, description="Mean latency in ms")
    avg_quality: float | None = Field(default=None, description="Mean quality, 0-1")
    avg_feedback: float | None = Field(default=None, description="Mean feedback, 1-5")


class PerformanceSignals(BaseModel):
    """Signals the generator derives from live telemetry.

    A field left as None means the signal was not observed, so no rule keyed
    on it can fire.
    """

    impressions: int = 0
    error_rate: float | None = None
    avg_quality_score: float | None = None
    avg_latency_ms: float | None = None
    avg_feedback: float | None = None

    @classmethod
    def from_summary(
        cls, summary: VariantMetricsSummary | None
    ) -> "PerformanceSignals":
        """Build signals from a collector summary (None means no data).

        Feedback ratings start at 1, so a feedback average of 0 from a
        collector that cannot report None also means no feedback.
        """
        if summary is None or summary.count == 0:
            return cls()
        return cls(
            impressions=summary.count,
            error_rate=1 - summary.success_count / summary.count,
            avg_quality_score=summary.avg_quality,
            avg_latency_ms=summary.avg_latency,
            avg_feedback=summary.avg_feedback or None,
        )
