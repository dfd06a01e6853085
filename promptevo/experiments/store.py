"""In-memory experiment store.

Keeps three indices in step: experiments by id, experiment ids by content
type, and the single active experiment id per content type. Only the
experiment manager mutates a store.
"""

from collections.abc import Iterable, Iterator

from .models import Experiment, ExperimentStatus


class ExperimentStore:
    """Experiments indexed by id, by content type, and by active content type."""

    def __init__(self) -> None:
        self._experiments: dict[str, Experiment] = {}
        self._by_content_type: dict[str, set[str]] = {}
        self._active_by_content_type: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._experiments)

    def __iter__(self) -> Iterator[Experiment]:
        return iter(list(self._experiments.values()))

    def __contains__(self, experiment_id: object) -> bool:
        return experiment_id in self._experiments

    def get(self, experiment_id: str) -> Experiment | None:
        return self._experiments.get(experiment_id)

    def add(self, experiment: Experiment) -> None:
        """Insert an experiment, re-registering it as active if running."""
        self._experiments[experiment.id] = experiment
        self._by_content_type.setdefault(experiment.content_type, set()).add(
            experiment.id
        )
        if experiment.status == ExperimentStatus.RUNNING:
            self._active_by_content_type[experiment.content_type] = experiment.id

    def ids_for_content_type(self, content_type: str) -> set[str]:
        return set(self._by_content_type.get(content_type, ()))

    def active_id(self, content_type: str) -> str | None:
        return self._active_by_content_type.get(content_type)

    def set_active(self, experiment: Experiment) -> None:
        self._active_by_content_type[experiment.content_type] = experiment.id

    def clear_active(self, experiment: Experiment) -> None:
        """Drop the active entry if it points at this experiment."""
        if self._active_by_content_type.get(experiment.content_type) == experiment.id:
            del self._active_by_content_type[experiment.content_type]

    def active_items(self) -> list[tuple[str, str]]:
        """(content_type, experiment_id) pairs for every active entry."""
        return sorted(self._active_by_content_type.items())

    def load(self, experiments: Iterable[Experiment]) -> int:
        """Add experiments in bulk, rebuilding indices. Returns the count."""
        count = 0
        for experiment in experiments:
            self.add(experiment)
            count += 1
        return count

    def clear(self) -> None:
        self._experiments.clear()
        self._by_content_type.clear()
        self._active_by_content_type.clear()
