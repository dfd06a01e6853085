"""Tests for the in-memory variant registry and metrics collector."""

import pytest

from promptevo.variants import (
    InMemoryMetricsCollector,
    InMemoryVariantRegistry,
    MetricsCollector,
    Variant,
    VariantConfig,
    VariantRegistry,
    VariantStatus,
)


class TestInMemoryVariantRegistry:
    """Tests for InMemoryVariantRegistry."""

    def test_implements_protocol(self, registry: InMemoryVariantRegistry) -> None:
        """Test the registry satisfies VariantRegistry."""
        assert isinstance(registry, VariantRegistry)

    def test_register_and_get(self, registry: InMemoryVariantRegistry) -> None:
        """Test registered configurations become variants."""
        variant = registry.register(
            VariantConfig(
                id="summary-v1",
                name="Summary",
                content_type="Summary",
                prompt_template="Summarize.",
            )
        )

        assert isinstance(variant, Variant)
        assert registry.get("summary-v1") is variant
        assert registry.get("nope") is None
        assert [v.id for v in registry.list_variants()] == [
            "roadmap-v1",
            "roadmap-v2",
            "summary-v1",
        ]

    def test_reregister_replaces(self, registry: InMemoryVariantRegistry) -> None:
        """Test registering an existing ID replaces it without duplicating."""
        registry.register(
            VariantConfig(
                id="roadmap-v2",
                name="Roadmap Concise v2",
                content_type="Roadmap",
                prompt_template="Roadmap. JSON.",
            )
        )

        assert registry.get("roadmap-v2").name == "Roadmap Concise v2"
        assert len(registry.get_by_content_type("Roadmap")) == 2

    def test_get_champion(self, registry: InMemoryVariantRegistry) -> None:
        """Test the champion index."""
        assert registry.get_champion("Roadmap").id == "roadmap-v1"
        assert registry.get_champion("Summary") is None

    def test_get_by_content_type_filters(
        self, registry: InMemoryVariantRegistry
    ) -> None:
        """Test status and liveness filters."""
        registry.get("roadmap-v2").status = VariantStatus.RETIRED

        assert [v.id for v in registry.get_by_content_type("Roadmap")] == [
            "roadmap-v1",
            "roadmap-v2",
        ]
        assert [
            v.id
            for v in registry.get_by_content_type("Roadmap", VariantStatus.RETIRED)
        ] == ["roadmap-v2"]
        assert [
            v.id for v in registry.get_by_content_type("Roadmap", active_only=True)
        ] == ["roadmap-v1"]

    def test_set_as_candidate(self, registry: InMemoryVariantRegistry) -> None:
        """Test marking a candidate."""
        assert registry.set_as_candidate("roadmap-v2") is True
        assert registry.get("roadmap-v2").status == VariantStatus.CANDIDATE
        assert registry.set_as_candidate("nope") is False

    def test_promote_to_champion(self, registry: InMemoryVariantRegistry) -> None:
        """Test promotion retires the previous champion."""
        assert registry.promote_to_champion("roadmap-v2") is True

        assert registry.get_champion("Roadmap").id == "roadmap-v2"
        assert registry.get("roadmap-v2").status == VariantStatus.CHAMPION
        assert registry.get("roadmap-v1").status == VariantStatus.RETIRED
        assert registry.promote_to_champion("nope") is False


class TestInMemoryMetricsCollector:
    """Tests for InMemoryMetricsCollector."""

    def test_implements_protocol(self, collector: InMemoryMetricsCollector) -> None:
        """Test the collector satisfies MetricsCollector."""
        assert isinstance(collector, MetricsCollector)

    def test_unknown_variant(self, collector: InMemoryMetricsCollector) -> None:
        """Test variants without data have no summary."""
        assert collector.get_variant_metrics("roadmap-v1") is None

    def test_summary(self, collector: InMemoryMetricsCollector) -> None:
        """Test averages only count observations that carry the value."""
        collector.record("roadmap-v1", True, latency_ms=1000, quality_score=0.8)
        collector.record("roadmap-v1", True, latency_ms=3000, feedback=4)
        collector.record("roadmap-v1", False)

        summary = collector.get_variant_metrics("roadmap-v1")

        assert summary.count == 3
        assert summary.success_count == 2
        assert summary.avg_latency == pytest.approx(2000)
        assert summary.avg_quality == pytest.approx(0.8)
        assert summary.avg_feedback == pytest.approx(4)

    def test_summary_without_optional_values(
        self, collector: InMemoryMetricsCollector
    ) -> None:
        """Test averages nobody reported are None rather than 0."""
        collector.record("roadmap-v1", True)

        summary = collector.get_variant_metrics("roadmap-v1")

        assert summary.count == 1
        assert summary.avg_latency is None
        assert summary.avg_quality is None
        assert summary.avg_feedback is None
