"""Challenger generation for underperforming champions.

The generator reads live telemetry for a variant, turns weak signals into
ranked mutation suggestions and produces candidate configurations that the
variant registry can register and the experiment manager can test.
"""

import logging
from collections import Counter, deque
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from promptevo.core.exceptions import NotFoundError
from promptevo.core.settings import PromptEvoSettings, get_cached_settings
from promptevo.variants.interfaces import MetricsCollector, VariantRegistry
from promptevo.variants.models import (
    PerformanceSignals,
    Variant,
    VariantConfig,
    VariantStatus,
)

from .mutations import MutationStrategy, apply_mutation, recipe_name, resolve_strategy

logger = logging.getLogger(__name__)

# Rule thresholds
HIGH_ERROR_RATE = 0.1
LOW_QUALITY_SCORE = 0.7
HIGH_LATENCY_MS = 5000
LOW_FEEDBACK = 3

GENERATED_VARIANT_WEIGHT = 0.3
GENERATED_VARIANT_AUTHOR = "system:evolution"
AUTO_GENERATED_TAG = "auto-generated"


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


class Suggestion(BaseModel):
    """A mutation strategy worth trying, and why."""

    strategy: MutationStrategy
    reason: str
    priority: int = Field(..., description="Lower runs first")


class GenerationHistoryEntry(BaseModel):
    """Record of one generated variant."""

    timestamp: datetime
    parent_variant_id: str
    new_variant_id: str
    content_type: str
    strategy: str
    reason: str = "manual"


def suggest_improvements(
    metrics: PerformanceSignals | Mapping[str, Any],
) -> list[Suggestion]:
    """Rank mutation strategies for a variant's performance.

    Rules:
        error rate > 10%    -> structured (priority 1)
        quality < 0.7       -> detailed (priority 2)
        latency > 5000 ms   -> concise (priority 3)
        feedback < 3        -> instructive (priority 2)

    A signal that was not observed never fires its rule. Suggestions with
    equal priority keep rule order.
    """
    if not isinstance(metrics, PerformanceSignals):
        metrics = PerformanceSignals.model_validate(metrics)

    suggestions: list[Suggestion] = []

    if metrics.error_rate is not None and metrics.error_rate > HIGH_ERROR_RATE:
        suggestions.append(
            Suggestion(
                strategy=MutationStrategy.STRUCTURED,
                reason=(
                    f"High error rate ({metrics.error_rate * 100:.1f}%) "
                    "- add more structure"
                ),
                priority=1,
            )
        )

    if (
        metrics.avg_quality_score is not None
        and metrics.avg_quality_score < LOW_QUALITY_SCORE
    ):
        suggestions.append(
            Suggestion(
                strategy=MutationStrategy.DETAILED,
                reason=(
                    f"Low quality ({metrics.avg_quality_score * 100:.1f}%) "
                    "- add more detail"
                ),
                priority=2,
            )
        )

    if metrics.avg_latency_ms is not None and metrics.avg_latency_ms > HIGH_LATENCY_MS:
        suggestions.append(
            Suggestion(
                strategy=MutationStrategy.CONCISE,
                reason=(
                    f"High latency ({metrics.avg_latency_ms / 1000:.1f}s) "
                    "- make more concise"
                ),
                priority=3,
            )
        )

    if metrics.avg_feedback is not None and metrics.avg_feedback < LOW_FEEDBACK:
        suggestions.append(
            Suggestion(
                strategy=MutationStrategy.INSTRUCTIVE,
                reason=(
                    f"Low feedback ({metrics.avg_feedback:.1f}/5) "
                    "- add explicit instructions"
                ),
                priority=2,
            )
        )

    suggestions.sort(key=lambda s: s.priority)
    return suggestions


class VariantGenerator:
    """Generates challenger variants by mutating existing prompts.

    Example:
        generator = VariantGenerator(registry, collector)

        # Mutate with an explicit strategy
        config = generator.generate_variant("roadmap-v1", strategy="concise")

        # Let telemetry decide what the champion needs
        configs = generator.analyze_and_generate("Roadmap")
    """

    def __init__(
        self,
        registry: VariantRegistry,
        collector: MetricsCollector,
        *,
        max_variants_per_type: int = 5,
        min_impressions_for_analysis: int = 50,
        max_history_size: int = 100,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the generator.

        Args:
            registry: Source of parent variants and destination of new ones.
            collector: Telemetry used to pick strategies.
            max_variants_per_type: Live variants allowed per content type.
            min_impressions_for_analysis: Champion impressions required
                before analyze_and_generate proposes anything.
            max_history_size: Generation history entries kept.
            clock: Source of the current time (defaults to UTC now).
        """
        self.registry = registry
        self.collector = collector
        self.max_variants_per_type = max_variants_per_type
        self.min_impressions_for_analysis = min_impressions_for_analysis
        self.max_history_size = max_history_size
        self._clock = clock or _utcnow
        self._history: deque[GenerationHistoryEntry] = deque(maxlen=max_history_size)

    @classmethod
    def from_settings(
        cls,
        registry: VariantRegistry,
        collector: MetricsCollector,
        settings: PromptEvoSettings | None = None,
        **kwargs: Any,
    ) -> "VariantGenerator":
        """Build a generator configured from settings."""
        settings = settings or get_cached_settings()
        gen = settings.generator
        options: dict[str, Any] = {
            "max_variants_per_type": gen.max_variants_per_type,
            "min_impressions_for_analysis": gen.min_impressions_for_analysis,
            "max_history_size": gen.max_history_size,
        }
        options.update(kwargs)
        return cls(registry, collector, **options)

    def generate_variant(
        self,
        parent_variant_id: str,
        strategy: MutationStrategy | str | None = None,
        reason: str | None = None,
    ) -> VariantConfig:
        """Mutate a parent variant into a new candidate configuration.

        Args:
            parent_variant_id: Variant to mutate.
            strategy: Strategy to apply. When omitted, the top suggestion for
                the parent's live performance is used, falling back to
                concise.
            reason: Why the variant is generated (recorded in history).

        Returns:
            Configuration for the new variant. It is not registered.

        Raises:
            NotFoundError: If the parent variant does not exist.
        """
        parent = self.registry.get(parent_variant_id)
        if parent is None:
            raise NotFoundError("Parent variant", parent_variant_id)

        if strategy is None:
            strategy = self._select_strategy(parent)
        resolved = resolve_strategy(strategy)
        strategy_value = resolved.value if resolved else str(strategy)

        now = self._clock()
        millis = int(now.timestamp() * 1000)

        config = VariantConfig(
            id=f"{parent.content_type.lower()}-{strategy_value}-{millis}",
            name=f"{parent.name} ({recipe_name(strategy)})",
            content_type=parent.content_type,
            prompt_template=apply_mutation(parent.prompt_template, strategy),
            status=VariantStatus.CANDIDATE,
            weight=GENERATED_VARIANT_WEIGHT,
            description=(
                f"Auto-generated from {parent.name} using {strategy_value} strategy"
            ),
            author=GENERATED_VARIANT_AUTHOR,
            version="1.0.0",
            tags=[AUTO_GENERATED_TAG, strategy_value],
            parent_variant_id=parent.id,
            metadata={
                "generated_at": now.isoformat(),
                "strategy": strategy_value,
                "parent_version": parent.metadata.get("version", parent.version),
            },
        )

        self._history.append(
            GenerationHistoryEntry(
                timestamp=now,
                parent_variant_id=parent.id,
                new_variant_id=config.id,
                content_type=config.content_type,
                strategy=strategy_value,
                reason=reason or "manual",
            )
        )

        logger.info(
            "Generated %s from %s using %s", config.id, parent.id, strategy_value
        )
        return config

    def generate_and_register(
        self,
        parent_variant_id: str,
        strategy: MutationStrategy | str | None = None,
        reason: str | None = None,
    ) -> Variant:
        """Generate a variant and register it with the registry."""
        config = self.generate_variant(parent_variant_id, strategy, reason)
        return self.registry.register(config)

    def analyze_and_generate(self, content_type: str) -> list[VariantConfig]:
        """Propose challengers for a content type's champion.

        Nothing is proposed when there is no champion, the champion has too
        few impressions, no rule fires, or the content type has no free
        variant slots. Strategies already carried by a live variant are
        skipped.

        Returns:
            Generated configurations, unregistered.
        """
        champion = self.registry.get_champion(content_type)
        if champion is None:
            return []

        signals = self._performance(champion.id)
        if signals.impressions < self.min_impressions_for_analysis:
            logger.debug(
                "Skipping %s: %d impressions, need %d",
                content_type,
                signals.impressions,
                self.min_impressions_for_analysis,
            )
            return []

        suggestions = suggest_improvements(signals)
        if not suggestions:
            return []

        existing = self.registry.get_by_content_type(content_type, active_only=True)
        slots = self.max_variants_per_type - len(existing)
        if slots <= 0:
            return []

        existing_strategies = {v.metadata.get("strategy") for v in existing}
        generated = []
        for suggestion in suggestions[:slots]:
            if suggestion.strategy.value in existing_strategies:
                continue
            generated.append(
                self.generate_variant(
                    champion.id,
                    strategy=suggestion.strategy,
                    reason=suggestion.reason,
                )
            )

        return generated

    def get_history(
        self,
        content_type: str | None = None,
        limit: int | None = None,
    ) -> list[GenerationHistoryEntry]:
        """Generation history, oldest first, optionally filtered.

        Args:
            content_type: Only entries for this content type.
            limit: Only the most recent N entries.
        """
        history = list(self._history)
        if content_type is not None:
            history = [h for h in history if h.content_type == content_type]
        if limit:
            history = history[-limit:]
        return history

    def get_stats(self) -> dict[str, Any]:
        """Generation counts and configuration."""
        return {
            "total_generated": len(self._history),
            "by_strategy": dict(Counter(h.strategy for h in self._history)),
            "max_variants_per_type": self.max_variants_per_type,
            "min_impressions_for_analysis": self.min_impressions_for_analysis,
            "max_history_size": self.max_history_size,
        }

    def _performance(self, variant_id: str) -> PerformanceSignals:
        """Live signals for a variant; empty when telemetry is unavailable."""
        try:
            summary = self.collector.get_variant_metrics(variant_id)
        except Exception as e:
            logger.warning("Failed to read metrics for %s: %s", variant_id, e)
            return PerformanceSignals()
        return PerformanceSignals.from_summary(summary)

    def _select_strategy(self, variant: Variant) -> MutationStrategy:
        suggestions = suggest_improvements(self._performance(variant.id))
        if suggestions:
            return suggestions[0].strategy
        return MutationStrategy.CONCISE
