"""Champion/candidate experiments: lifecycle, statistics and storage."""

from .manager import ExperimentManager
from .models import (
    ConclusionReason,
    ConfidenceInterval,
    Experiment,
    ExperimentAnalysis,
    ExperimentConclusion,
    ExperimentCreate,
    ExperimentMetrics,
    ExperimentStatus,
    MetricObservation,
    TrafficSplit,
    Winner,
)
from .persistence import (
    ExperimentRepository,
    JsonExperimentRepository,
    LoadResult,
    PersistenceResult,
)
from .statistics import (
    CONFIDENCE_LEVEL,
    EFFECT_SIZE_THRESHOLD,
    MIN_SAMPLE_SIZE,
    analyze_experiment,
    confidence_interval,
    p_value,
    z_score,
)
from .store import ExperimentStore
from .workflow import (
    check_and_conclude_experiments,
    get_experiment_summary,
    start_champion_experiment,
)

__all__ = [
    # Manager
    "ExperimentManager",
    "ExperimentStore",
    # Models
    "ConclusionReason",
    "ConfidenceInterval",
    "Experiment",
    "ExperimentAnalysis",
    "ExperimentConclusion",
    "ExperimentCreate",
    "ExperimentMetrics",
    "ExperimentStatus",
    "MetricObservation",
    "TrafficSplit",
    "Winner",
    # Persistence
    "ExperimentRepository",
    "JsonExperimentRepository",
    "LoadResult",
    "PersistenceResult",
    # Statistics
    "CONFIDENCE_LEVEL",
    "EFFECT_SIZE_THRESHOLD",
    "MIN_SAMPLE_SIZE",
    "analyze_experiment",
    "confidence_interval",
    "p_value",
    "z_score",
    # Workflows
    "check_and_conclude_experiments",
    "get_experiment_summary",
    "start_champion_experiment",
]
