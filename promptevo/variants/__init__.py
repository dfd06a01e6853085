"""Prompt variants and the collaborators that own them."""

from .files import load_variants_file, save_variants_file
from .interfaces import MetricsCollector, VariantRegistry
from .memory import InMemoryMetricsCollector, InMemoryVariantRegistry
from .models import (
    LIVE_STATUSES,
    PerformanceSignals,
    Variant,
    VariantConfig,
    VariantMetricsSummary,
    VariantPerformance,
    VariantStatus,
)

__all__ = [
    # Interfaces
    "MetricsCollector",
    "VariantRegistry",
    # In-memory implementations
    "InMemoryMetricsCollector",
    "InMemoryVariantRegistry",
    # Variant files
    "load_variants_file",
    "save_variants_file",
    # Models
    "LIVE_STATUSES",
    "PerformanceSignals",
    "Variant",
    "VariantConfig",
    "VariantMetricsSummary",
    "VariantPerformance",
    "VariantStatus",
]
