"""promptevo - champion/candidate experiments and prompt evolution."""

from promptevo.core.logging import PROMPTEVO_VERSION
from promptevo.evolution import (
    MutationStrategy,
    VariantGenerator,
    apply_mutation,
    suggest_improvements,
)
from promptevo.experiments import (
    ExperimentManager,
    ExperimentStatus,
    JsonExperimentRepository,
    analyze_experiment,
)

__version__ = PROMPTEVO_VERSION

__all__ = [
    "ExperimentManager",
    "ExperimentStatus",
    "JsonExperimentRepository",
    "MutationStrategy",
    "VariantGenerator",
    "__version__",
    "analyze_experiment",
    "apply_mutation",
    "suggest_improvements",
]
