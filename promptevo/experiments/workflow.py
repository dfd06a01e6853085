"""Champion-versus-candidate workflows built on the experiment manager."""

import logging
from datetime import datetime
from typing import Any

from promptevo.core.exceptions import NotFoundError
from promptevo.variants.interfaces import VariantRegistry
from promptevo.variants.models import VariantStatus

from .manager import ExperimentManager
from .models import (
    ConclusionReason,
    Experiment,
    ExperimentCreate,
    ExperimentStatus,
    TrafficSplit,
)
from .statistics import analyze_experiment

logger = logging.getLogger(__name__)

CHAMPION_TRAFFIC_SPLIT = TrafficSplit(control=0.7, treatment=0.3)
RECENT_CONCLUSIONS_LIMIT = 5

_CHALLENGER_STATUSES = frozenset({VariantStatus.CANDIDATE, VariantStatus.ACTIVE})


def start_champion_experiment(
    manager: ExperimentManager,
    registry: VariantRegistry,
    content_type: str,
    *,
    candidate_id: str | None = None,
    author: str = "system",
    success_metric: str = "qualityScore",
) -> Experiment:
    """Start an experiment pitting the champion against a challenger.

    The challenger is candidate_id when given, otherwise the first variant
    of the content type that is neither the champion nor retired or paused.

    Raises:
        NotFoundError: If there is no champion or no challenger.
        ConflictError: If an experiment is already active for content_type.
    """
    champion = registry.get_champion(content_type)
    if champion is None:
        raise NotFoundError("Champion variant", content_type)

    if candidate_id is not None:
        challenger = registry.get(candidate_id)
    else:
        challenger = next(
            (
                v
                for v in registry.get_by_content_type(content_type)
                if v.id != champion.id and v.status in _CHALLENGER_STATUSES
            ),
            None,
        )
    if challenger is None:
        raise NotFoundError("Candidate variant", candidate_id or content_type)

    today = manager.now().date().isoformat()
    experiment = manager.create(
        ExperimentCreate(
            control_variant_id=champion.id,
            treatment_variant_id=challenger.id,
            name=f"{content_type} A/B Test - {today}",
            description=f"Testing {challenger.name} against {champion.name}",
            hypothesis=f"{challenger.name} will outperform {champion.name}",
            success_metric=success_metric,
            author=author,
            traffic_split=CHAMPION_TRAFFIC_SPLIT,
        )
    )
    return manager.start(experiment.id)


def check_and_conclude_experiments(
    manager: ExperimentManager,
    now: datetime | None = None,
) -> list[str]:
    """Conclude every running experiment past the maximum duration.

    Running experiments otherwise only conclude when a metric arrives, so a
    scheduler calls this to close experiments that stopped receiving traffic.

    Returns:
        IDs of the experiments concluded.
    """
    now = now or manager.now()
    concluded = []
    for experiment in manager.list_experiments(ExperimentStatus.RUNNING):
        if experiment.days_running(now) >= manager.max_duration_days:
            manager.conclude(experiment.id, ConclusionReason.MAX_DURATION)
            concluded.append(experiment.id)

    if concluded:
        logger.info("Concluded %d experiments past max duration", len(concluded))
    return concluded


def get_experiment_summary(manager: ExperimentManager) -> dict[str, Any]:
    """Snapshot of experiment activity for dashboards and the CLI."""
    running = [
        {
            "id": e.id,
            "name": e.name,
            "content_type": e.content_type,
            "started_at": e.started_at,
            "analysis": analyze_experiment(e),
        }
        for e in manager.list_experiments(ExperimentStatus.RUNNING)
    ]

    finished = [
        e
        for e in manager.list_experiments(
            [ExperimentStatus.CONCLUDED, ExperimentStatus.PROMOTED]
        )
        if e.concluded_at is not None
    ]
    finished.sort(key=lambda e: e.concluded_at or e.created_at, reverse=True)

    recent = [
        {
            "id": e.id,
            "name": e.name,
            "content_type": e.content_type,
            "status": e.status.value,
            "concluded_at": e.concluded_at,
            "winner": e.conclusion.winner.value
            if e.conclusion and e.conclusion.winner
            else None,
            "reason": e.conclusion.reason if e.conclusion else None,
        }
        for e in finished[:RECENT_CONCLUSIONS_LIMIT]
    ]

    return {
        "stats": manager.get_stats(),
        "running": running,
        "recent_conclusions": recent,
    }
