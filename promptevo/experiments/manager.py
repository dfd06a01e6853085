"""Experiment lifecycle management.

The manager pairs a champion (control) with a candidate (treatment), counts
outcomes per arm, and decides when the candidate should replace the champion.

Lifecycle:
    draft -> running <-> paused
    running/paused/draft -> concluded -> promoted (treatment winners only)

At most one experiment per content type is active at a time. A paused
experiment keeps its active slot until it is restarted or concluded, but
loses it when the store is reloaded.
"""

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from promptevo.core.exceptions import (
    ConflictError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
)
from promptevo.core.settings import PromptEvoSettings, get_cached_settings
from promptevo.variants.interfaces import VariantRegistry

from .models import (
    STARTABLE_STATUSES,
    ConclusionReason,
    Experiment,
    ExperimentAnalysis,
    ExperimentConclusion,
    ExperimentCreate,
    ExperimentStatus,
    MetricObservation,
    Winner,
)
from .persistence import (
    ExperimentRepository,
    JsonExperimentRepository,
    LoadResult,
    PersistenceResult,
)
from .statistics import analyze_experiment
from .store import ExperimentStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_DURATION_DAYS = 14
DEFAULT_EARLY_STOP_CONFIDENCE = 0.99


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


def _recommended_action(analysis: ExperimentAnalysis) -> str:
    if analysis.winner is None:
        return "No clear winner - continue testing or modify variants"
    return (
        f"Promote {analysis.winner.value} variant ({analysis.winner_variant_id})"
    )


class ExperimentManager:
    """Manages champion/candidate experiments and their decisions.

    Example:
        registry = InMemoryVariantRegistry(...)
        manager = ExperimentManager(registry)

        experiment = manager.create(
            ExperimentCreate(
                control_variant_id="roadmap-v1",
                treatment_variant_id="roadmap-concise-1",
            )
        )
        manager.start(experiment.id)

        manager.record_metric("roadmap-v1", {"success": True, "latency_ms": 900})

    Mutating operations hold a re-entrant lock, so a manager may be shared
    between threads. The store must not be modified by anything else.
    """

    def __init__(
        self,
        registry: VariantRegistry,
        repository: ExperimentRepository | None = None,
        *,
        auto_promote: bool = True,
        auto_persist: bool = False,
        load_on_init: bool = True,
        max_duration_days: float = DEFAULT_MAX_DURATION_DAYS,
        early_stop_confidence: float = DEFAULT_EARLY_STOP_CONFIDENCE,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the experiment manager.

        Args:
            registry: Variant registry used to validate and promote variants.
            repository: Where the store is loaded from and saved to. Without
                one the manager is purely in-memory.
            auto_promote: Promote a winning treatment as soon as it concludes.
            auto_persist: Save the store after every mutating operation.
            load_on_init: Load the repository contents immediately.
            max_duration_days: Running experiments conclude after this long.
            early_stop_confidence: Confidence required to conclude early.
            clock: Source of the current time (defaults to UTC now).
        """
        self.registry = registry
        self.repository = repository
        self.auto_promote = auto_promote
        self.auto_persist = auto_persist
        self.max_duration_days = max_duration_days
        self.early_stop_confidence = early_stop_confidence
        self._clock = clock or _utcnow
        self._store = ExperimentStore()
        self._lock = threading.RLock()

        if load_on_init and repository is not None:
            self.load()

    @classmethod
    def from_settings(
        cls,
        registry: VariantRegistry,
        settings: PromptEvoSettings | None = None,
        **kwargs: Any,
    ) -> "ExperimentManager":
        """Build a manager backed by the JSON store named in settings."""
        settings = settings or get_cached_settings()
        exp = settings.experiments
        options: dict[str, Any] = {
            "auto_promote": exp.auto_promote,
            "auto_persist": exp.auto_persist,
            "load_on_init": exp.load_on_init,
            "max_duration_days": exp.max_duration_days,
            "early_stop_confidence": exp.early_stop_confidence,
        }
        options.update(kwargs)
        return cls(registry, JsonExperimentRepository(exp.store_path), **options)

    # ==================== Lifecycle ====================

    def create(self, config: ExperimentCreate | Mapping[str, Any]) -> Experiment:
        """Create a draft experiment between two variants.

        Args:
            config: Experiment configuration, as a model or a plain mapping.

        Returns:
            The created experiment.

        Raises:
            NotFoundError: If either variant is unknown to the registry.
            InvalidArgumentError: If the variants serve different content
                types, or the requested ID is already taken.
        """
        if not isinstance(config, ExperimentCreate):
            try:
                config = ExperimentCreate.model_validate(config)
            except ValidationError as e:
                raise InvalidArgumentError(
                    f"Invalid experiment configuration: {e}"
                ) from e

        control = self.registry.get(config.control_variant_id)
        if control is None:
            raise NotFoundError("Control variant", config.control_variant_id)
        treatment = self.registry.get(config.treatment_variant_id)
        if treatment is None:
            raise NotFoundError("Treatment variant", config.treatment_variant_id)
        if control.content_type != treatment.content_type:
            raise InvalidArgumentError(
                "Control and treatment must be for the same content type "
                f"({control.content_type} != {treatment.content_type})"
            )

        metadata = {
            "author": config.author,
            "hypothesis": config.hypothesis,
            "success_metric": config.success_metric,
            **config.metadata,
        }
        fields: dict[str, Any] = {
            "name": config.name,
            "description": config.description,
            "content_type": control.content_type,
            "control_variant_id": control.id,
            "treatment_variant_id": treatment.id,
            "traffic_split": config.traffic_split,
            "created_at": self._clock(),
            "metadata": metadata,
        }
        if config.id is not None:
            fields["id"] = config.id
        experiment = Experiment(**fields)

        with self._lock:
            if experiment.id in self._store:
                raise InvalidArgumentError(
                    f"Experiment ID already exists: {experiment.id}"
                )
            self._store.add(experiment)
            self._autosave()

        logger.info(
            "Created experiment %s for %s (%s vs %s)",
            experiment.id,
            experiment.content_type,
            experiment.control_variant_id,
            experiment.treatment_variant_id,
        )
        return experiment

    def start(self, experiment_id: str) -> Experiment:
        """Start a draft experiment or restart a paused one.

        Args:
            experiment_id: Experiment ID.

        Returns:
            The running experiment.

        Raises:
            NotFoundError: If the experiment does not exist.
            InvalidStateError: If the experiment is not draft or paused.
            ConflictError: If another experiment is active for the same
                content type.
        """
        with self._lock:
            experiment = self._require(experiment_id)

            if experiment.status not in STARTABLE_STATUSES:
                raise InvalidStateError(
                    f"Cannot start experiment in status: {experiment.status.value}",
                    current_status=experiment.status.value,
                )

            active_id = self._store.active_id(experiment.content_type)
            if active_id is not None and active_id != experiment_id:
                raise ConflictError(
                    f"Another experiment is already active for "
                    f"{experiment.content_type}: {active_id}",
                    content_type=experiment.content_type,
                    active_id=active_id,
                )

            self.registry.set_as_candidate(experiment.treatment_variant_id)

            experiment.status = ExperimentStatus.RUNNING
            experiment.started_at = self._clock()
            self._store.set_active(experiment)
            self._autosave()

        logger.info("Started experiment %s", experiment_id)
        return experiment

    def pause(self, experiment_id: str) -> Experiment:
        """Pause a running experiment.

        Counters are kept and the experiment keeps its active slot.

        Raises:
            NotFoundError: If the experiment does not exist.
            InvalidStateError: If the experiment is not running.
        """
        with self._lock:
            experiment = self._require(experiment_id)

            if experiment.status != ExperimentStatus.RUNNING:
                raise InvalidStateError(
                    f"Cannot pause experiment in status: {experiment.status.value}",
                    current_status=experiment.status.value,
                )

            experiment.status = ExperimentStatus.PAUSED
            self._autosave()

        logger.info("Paused experiment %s", experiment_id)
        return experiment

    def record_metric(
        self,
        variant_id: str,
        observation: MetricObservation | Mapping[str, Any],
    ) -> Experiment | None:
        """Record the outcome of one generation served by a variant.

        The observation goes to the first running experiment that uses the
        variant as control or treatment. Afterwards the experiment is checked
        for auto-conclusion.

        Args:
            variant_id: Variant that served the generation.
            observation: Outcome (success, latency_ms, quality_score, feedback).

        Returns:
            The experiment that received the observation, or None if no
            running experiment uses the variant.

        Raises:
            InvalidArgumentError: If the observation is malformed.
        """
        if not isinstance(observation, MetricObservation):
            try:
                observation = MetricObservation.model_validate(observation)
            except ValidationError as e:
                raise InvalidArgumentError(f"Invalid observation: {e}") from e

        with self._lock:
            for experiment in self._store:
                if experiment.status != ExperimentStatus.RUNNING:
                    continue
                arm = experiment.arm_for(variant_id)
                if arm is None:
                    continue

                arm.record(observation)
                self._check_auto_conclusion(experiment)
                self._autosave()
                return experiment

        return None

    def _check_auto_conclusion(self, experiment: Experiment) -> None:
        """Conclude when the duration cap is hit or the result is very clear."""
        if experiment.days_running(self._clock()) >= self.max_duration_days:
            self.conclude(experiment.id, ConclusionReason.MAX_DURATION)
            return

        # Early stopping needs more confidence than the standard 0.95 bar.
        analysis = analyze_experiment(experiment)
        if (
            analysis.has_sufficient_samples
            and analysis.is_significant
            and analysis.has_minimum_effect
            and analysis.confidence >= self.early_stop_confidence
        ):
            self.conclude(experiment.id, ConclusionReason.EARLY_SIGNIFICANCE)

    def conclude(
        self,
        experiment_id: str,
        reason: str | ConclusionReason = ConclusionReason.MANUAL,
    ) -> ExperimentConclusion:
        """Conclude an experiment and snapshot its analysis.

        Concluding an already concluded or promoted experiment returns the
        existing conclusion unchanged.

        Args:
            experiment_id: Experiment ID.
            reason: Why the experiment is concluding.

        Returns:
            The experiment's conclusion.

        Raises:
            NotFoundError: If the experiment does not exist.
        """
        with self._lock:
            experiment = self._require(experiment_id)

            if experiment.is_finished and experiment.conclusion is not None:
                return experiment.conclusion

            if isinstance(reason, ConclusionReason):
                reason = reason.value
            analysis = analyze_experiment(experiment)

            experiment.status = ExperimentStatus.CONCLUDED
            experiment.concluded_at = self._clock()
            experiment.conclusion = ExperimentConclusion(
                reason=reason,
                analysis=analysis,
                winner=analysis.winner,
                winner_variant_id=analysis.winner_variant_id,
                recommended_action=_recommended_action(analysis),
            )
            self._store.clear_active(experiment)

            logger.info(
                "Concluded experiment %s (%s): %s",
                experiment_id,
                reason,
                analysis.winner_reason,
            )

            if self.auto_promote and analysis.winner == Winner.TREATMENT:
                self.promote_winner(experiment_id)

            self._autosave()
            return experiment.conclusion

    def promote_winner(self, experiment_id: str) -> bool:
        """Make a winning treatment the champion.

        Args:
            experiment_id: Experiment ID.

        Returns:
            Whether the registry accepted the promotion.

        Raises:
            NotFoundError: If the experiment does not exist.
            InvalidStateError: If the experiment is not concluded or the
                treatment did not win.
        """
        with self._lock:
            experiment = self._require(experiment_id)

            if experiment.status != ExperimentStatus.CONCLUDED:
                raise InvalidStateError(
                    f"Cannot promote experiment in status: {experiment.status.value}",
                    current_status=experiment.status.value,
                )
            conclusion = experiment.conclusion
            if conclusion is None or conclusion.winner != Winner.TREATMENT:
                winner = conclusion.winner if conclusion else None
                raise InvalidStateError(
                    f"Experiment {experiment_id} has no treatment winner to promote "
                    f"(winner: {winner.value if winner else None})",
                    current_status=experiment.status.value,
                )

            treatment_id = experiment.treatment_variant_id
            promoted = self.registry.promote_to_champion(treatment_id)
            if not promoted:
                logger.warning(
                    "Registry refused to promote %s for experiment %s",
                    experiment.treatment_variant_id,
                    experiment_id,
                )
                return False

            experiment.status = ExperimentStatus.PROMOTED
            conclusion.promoted_at = self._clock()
            self._autosave()

        logger.info(
            "Promoted %s to champion for %s",
            experiment.treatment_variant_id,
            experiment.content_type,
        )
        return True

    # ==================== Queries ====================

    def now(self) -> datetime:
        """Current time according to the manager's clock."""
        return self._clock()

    def get(self, experiment_id: str) -> Experiment | None:
        """Get an experiment by ID, or None."""
        return self._store.get(experiment_id)

    def get_active(self, content_type: str) -> Experiment | None:
        """Get the active experiment for a content type, or None."""
        active_id = self._store.active_id(content_type)
        return self._store.get(active_id) if active_id else None

    def get_by_content_type(
        self,
        content_type: str,
        status: ExperimentStatus | Iterable[ExperimentStatus] | None = None,
    ) -> list[Experiment]:
        """List experiments for a content type, newest first."""
        ids = self._store.ids_for_content_type(content_type)
        experiments = [e for e in (self._store.get(i) for i in ids) if e is not None]
        return self._filter_and_sort(experiments, status)

    def list_experiments(
        self,
        status: ExperimentStatus | Iterable[ExperimentStatus] | None = None,
    ) -> list[Experiment]:
        """List all experiments, newest first."""
        return self._filter_and_sort(list(self._store), status)

    def analyze(self, experiment_id: str) -> ExperimentAnalysis:
        """Run the statistical analysis on an experiment's current counters.

        Raises:
            NotFoundError: If the experiment does not exist.
        """
        return analyze_experiment(self._require(experiment_id))

    def get_stats(self) -> dict[str, Any]:
        """Summarize experiments by status and content type."""
        by_status: dict[str, int] = {}
        by_content_type: dict[str, dict[str, Any]] = {}
        active = self._store.active_items()
        active_by_content_type = dict(active)

        for experiment in self._store:
            status = experiment.status.value
            by_status[status] = by_status.get(status, 0) + 1

            entry = by_content_type.setdefault(
                experiment.content_type,
                {
                    "total": 0,
                    "active": active_by_content_type.get(experiment.content_type),
                },
            )
            entry["total"] += 1

        return {
            "total": len(self._store),
            "by_status": by_status,
            "by_content_type": by_content_type,
            "active_experiments": [
                {"content_type": content_type, "experiment_id": experiment_id}
                for content_type, experiment_id in active
            ],
        }

    # ==================== Persistence ====================

    def load(self) -> LoadResult:
        """Load experiments from the repository into the store.

        A failed load is logged and leaves the store as it was.
        """
        if self.repository is None:
            return LoadResult(ok=True)

        result = self.repository.load()
        if not result.ok:
            logger.warning(
                "Failed to load experiments from %s: %s", result.path, result.error
            )
            return result

        with self._lock:
            self._store.load(result.experiments)
        logger.debug("Loaded %d experiments from %s", result.count, result.path)
        return result

    def persist(self) -> PersistenceResult:
        """Save the store now, regardless of auto_persist."""
        with self._lock:
            return self._save()

    def clear(self) -> None:
        """Remove every experiment from memory (for testing)."""
        with self._lock:
            self._store.clear()

    def _autosave(self) -> None:
        if self.auto_persist:
            self._save()

    def _save(self) -> PersistenceResult:
        if self.repository is None:
            return PersistenceResult(ok=False, error="No repository configured")

        try:
            result = self.repository.save(self._store)
        except (OSError, PersistenceError) as e:
            result = PersistenceResult(ok=False, error=str(e))

        if not result.ok:
            logger.warning(
                "Failed to save experiments to %s: %s", result.path, result.error
            )
        return result

    # ==================== Helpers ====================

    def _require(self, experiment_id: str) -> Experiment:
        experiment = self._store.get(experiment_id)
        if experiment is None:
            raise NotFoundError("Experiment", experiment_id)
        return experiment

    @staticmethod
    def _filter_and_sort(
        experiments: list[Experiment],
        status: ExperimentStatus | Iterable[ExperimentStatus] | None,
    ) -> list[Experiment]:
        if status is not None:
            statuses = {status} if isinstance(status, ExperimentStatus) else set(status)
            experiments = [e for e in experiments if e.status in statuses]
        return sorted(experiments, key=lambda e: e.created_at, reverse=True)
