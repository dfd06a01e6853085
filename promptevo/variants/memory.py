"""In-memory variant registry and metrics collector.

Used by the CLI and tests, and as a reference for production adapters.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from .models import (
    Variant,
    VariantConfig,
    VariantMetricsSummary,
    VariantStatus,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InMemoryVariantRegistry:
    """Dictionary-backed variant registry with a champion index."""

    def __init__(self, variants: Iterable[VariantConfig] | None = None) -> None:
        self._variants: dict[str, Variant] = {}
        self._by_content_type: dict[str, list[str]] = defaultdict(list)
        self._champions: dict[str, str] = {}
        for config in variants or ():
            self.register(config)

    def register(self, config: VariantConfig) -> Variant:
        """Store a variant configuration and index it.

        Registering a champion replaces any previous champion entry in the
        index for that content type.
        """
        if isinstance(config, Variant):
            variant = config
        else:
            variant = Variant(**config.model_dump())
        if variant.id not in self._variants:
            self._by_content_type[variant.content_type].append(variant.id)
        self._variants[variant.id] = variant
        if variant.status == VariantStatus.CHAMPION:
            self._champions[variant.content_type] = variant.id
        logger.debug("Registered variant %s (%s)", variant.id, variant.status.value)
        return variant

    def get(self, variant_id: str) -> Variant | None:
        return self._variants.get(variant_id)

    def list_variants(self) -> list[Variant]:
        """Every registered variant, in registration order."""
        return list(self._variants.values())

    def get_by_content_type(
        self,
        content_type: str,
        status: VariantStatus | Iterable[VariantStatus] | None = None,
        active_only: bool = False,
    ) -> list[Variant]:
        ids = self._by_content_type.get(content_type, [])
        variants = [self._variants[v] for v in ids]

        if status is not None:
            statuses = {status} if isinstance(status, VariantStatus) else set(status)
            variants = [v for v in variants if v.status in statuses]

        if active_only:
            variants = [v for v in variants if v.is_live]

        return variants

    def get_champion(self, content_type: str) -> Variant | None:
        champion_id = self._champions.get(content_type)
        return self._variants.get(champion_id) if champion_id else None

    def set_as_candidate(self, variant_id: str) -> bool:
        variant = self._variants.get(variant_id)
        if variant is None:
            return False
        variant.status = VariantStatus.CANDIDATE
        variant.updated_at = _utcnow()
        return True

    def promote_to_champion(self, variant_id: str) -> bool:
        variant = self._variants.get(variant_id)
        if variant is None:
            return False

        current_id = self._champions.get(variant.content_type)
        if current_id and current_id != variant_id:
            current = self._variants[current_id]
            current.status = VariantStatus.RETIRED
            current.updated_at = _utcnow()

        variant.status = VariantStatus.CHAMPION
        variant.updated_at = _utcnow()
        self._champions[variant.content_type] = variant_id
        logger.info("Promoted %s to champion for %s", variant_id, variant.content_type)
        return True


def _mean(total: float, count: int) -> float | None:
    return total / count if count else None


@dataclass
class _Totals:
    count: int = 0
    success_count: int = 0
    latency_sum: float = 0.0
    latency_count: int = 0
    quality_sum: float = 0.0
    quality_count: int = 0
    feedback_sum: float = 0.0
    feedback_count: int = 0


class InMemoryMetricsCollector:
    """Accumulates per-generation telemetry and answers aggregate queries."""

    def __init__(self) -> None:
        self._totals: dict[str, _Totals] = defaultdict(_Totals)

    def record(
        self,
        variant_id: str,
        success: bool,
        latency_ms: float | None = None,
        quality_score: float | None = None,
        feedback: float | None = None,
    ) -> None:
        """Record one generation served by a variant."""
        totals = self._totals[variant_id]
        totals.count += 1
        if success:
            totals.success_count += 1
        if latency_ms is not None:
            totals.latency_sum += latency_ms
            totals.latency_count += 1
        if quality_score is not None:
            totals.quality_sum += quality_score
            totals.quality_count += 1
        if feedback is not None:
            totals.feedback_sum += feedback
            totals.feedback_count += 1

    def get_variant_metrics(self, variant_id: str) -> VariantMetricsSummary | None:
        totals = self._totals.get(variant_id)
        if totals is None or totals.count == 0:
            return None
        return VariantMetricsSummary(
            count=totals.count,
            success_count=totals.success_count,
            avg_latency=_mean(totals.latency_sum, totals.latency_count),
            avg_quality=_mean(totals.quality_sum, totals.quality_count),
            avg_feedback=_mean(totals.feedback_sum, totals.feedback_count),
        )
