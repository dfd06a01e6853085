"""Tests for the in-memory experiment store."""

from collections.abc import Callable

import pytest

from promptevo.experiments import Experiment, ExperimentStatus, ExperimentStore


@pytest.fixture
def store() -> ExperimentStore:
    """Create an empty store."""
    return ExperimentStore()


class TestExperimentStore:
    """Tests for ExperimentStore indices."""

    def test_add_and_get(
        self, store: ExperimentStore, make_experiment: Callable[..., Experiment]
    ) -> None:
        """Test experiments are indexed by id and content type."""
        experiment = make_experiment(id="exp-1")

        store.add(experiment)

        assert store.get("exp-1") is experiment
        assert "exp-1" in store
        assert len(store) == 1
        assert store.ids_for_content_type("Roadmap") == {"exp-1"}
        assert store.ids_for_content_type("Summary") == set()

    def test_draft_does_not_take_active_slot(
        self, store: ExperimentStore, make_experiment: Callable[..., Experiment]
    ) -> None:
        """Test only running experiments take the slot when added."""
        store.add(make_experiment(id="exp-1"))
        store.add(make_experiment(id="exp-2", status=ExperimentStatus.CONCLUDED))
        store.add(make_experiment(id="exp-3", status=ExperimentStatus.PAUSED))

        assert store.active_id("Roadmap") is None

    def test_add_registers_active_slot(
        self, store: ExperimentStore, make_experiment: Callable[..., Experiment]
    ) -> None:
        """Test loading a running experiment restores its slot."""
        store.add(make_experiment(id="exp-1", status=ExperimentStatus.RUNNING))

        assert store.active_id("Roadmap") == "exp-1"
        assert store.active_items() == [("Roadmap", "exp-1")]

    def test_clear_active_only_for_owner(
        self, store: ExperimentStore, make_experiment: Callable[..., Experiment]
    ) -> None:
        """Test clearing the slot for a different experiment is a no-op."""
        owner = make_experiment(id="exp-1", status=ExperimentStatus.RUNNING)
        other = make_experiment(id="exp-2")
        store.add(owner)
        store.add(other)

        store.clear_active(other)
        assert store.active_id("Roadmap") == "exp-1"

        store.clear_active(owner)
        assert store.active_id("Roadmap") is None

    def test_load_and_clear(
        self, store: ExperimentStore, make_experiment: Callable[..., Experiment]
    ) -> None:
        """Test bulk load counts experiments and clear empties every index."""
        count = store.load(
            [
                make_experiment(id="exp-1", status=ExperimentStatus.RUNNING),
                make_experiment(id="exp-2", content_type="Summary"),
            ]
        )

        assert count == 2
        assert {e.id for e in store} == {"exp-1", "exp-2"}

        store.clear()

        assert len(store) == 0
        assert store.active_id("Roadmap") is None
        assert store.ids_for_content_type("Summary") == set()

    def test_iteration_is_a_snapshot(
        self, store: ExperimentStore, make_experiment: Callable[..., Experiment]
    ) -> None:
        """Test adding while iterating does not break iteration."""
        store.add(make_experiment(id="exp-1"))

        for _ in store:
            store.add(make_experiment(id="exp-2"))

        assert len(store) == 2
