"""Prompt evolution: mutation recipes and challenger generation."""

from .generator import (
    GenerationHistoryEntry,
    Suggestion,
    VariantGenerator,
    suggest_improvements,
)
from .mutations import (
    TRANSFORMATIONS,
    MutationStrategy,
    Transformation,
    apply_mutation,
    recipe_name,
)

__all__ = [
    "GenerationHistoryEntry",
    "MutationStrategy",
    "Suggestion",
    "TRANSFORMATIONS",
    "Transformation",
    "VariantGenerator",
    "apply_mutation",
    "recipe_name",
    "suggest_improvements",
]
