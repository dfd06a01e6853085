"""Interfaces to the collaborators that own variants and telemetry."""

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from .models import Variant, VariantConfig, VariantMetricsSummary, VariantStatus


@runtime_checkable
class VariantRegistry(Protocol):
    """Owns variant CRUD, champion designation and performance aggregates."""

    def get(self, variant_id: str) -> Variant | None:
        """Return the variant or None."""
        ...

    def get_by_content_type(
        self,
        content_type: str,
        status: VariantStatus | Iterable[VariantStatus] | None = None,
        active_only: bool = False,
    ) -> list[Variant]:
        """Return variants for a content type, optionally filtered."""
        ...

    def get_champion(self, content_type: str) -> Variant | None:
        """Return the current champion for a content type."""
        ...

    def set_as_candidate(self, variant_id: str) -> bool:
        """Mark a variant as the candidate under test."""
        ...

    def promote_to_champion(self, variant_id: str) -> bool:
        """Make a variant the champion, retiring the previous one."""
        ...

    def register(self, config: VariantConfig) -> Variant:
        """Persist a new variant configuration."""
        ...


@runtime_checkable
class MetricsCollector(Protocol):
    """Stores per-generation telemetry and answers aggregate queries."""

    def get_variant_metrics(self, variant_id: str) -> VariantMetricsSummary | None:
        """Return aggregate telemetry for a variant, or None when unknown."""
        ...
