"""Durable storage for the experiment store.

Persistence reports failures as values instead of raising, so the manager
can keep deciding experiments while the disk is unavailable.
"""

import contextlib
import json
import os
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field, ValidationError

from promptevo.core.exceptions import PersistenceError

from .models import Experiment

STORE_FORMAT_VERSION = "1.0.0"


class PersistenceResult(BaseModel):
    """Outcome of a save attempt."""

    ok: bool = Field(..., description="Whether the operation succeeded")
    count: int = Field(default=0, description="Experiments written or read")
    path: str | None = Field(None, description="Location used")
    error: str | None = Field(None, description="Failure description")


class LoadResult(PersistenceResult):
    """Outcome of a load attempt, with the experiments read."""

    experiments: list[Experiment] = Field(default_factory=list)


@runtime_checkable
class ExperimentRepository(Protocol):
    """Where the experiment store is loaded from and saved to."""

    def load(self) -> LoadResult:
        """Read every stored experiment."""
        ...

    def save(self, experiments: Iterable[Experiment]) -> PersistenceResult:
        """Replace the stored experiments."""
        ...


def dump_store(experiments: Iterable[Experiment]) -> dict[str, Any]:
    """Build the JSON document for a set of experiments."""
    return {
        "version": STORE_FORMAT_VERSION,
        "saved_at": datetime.now(UTC).isoformat(),
        "experiments": [e.model_dump(mode="json") for e in experiments],
    }


def parse_store(data: Any) -> list[Experiment]:
    """Parse a JSON document produced by dump_store().

    Raises:
        PersistenceError: If the document is not a valid experiment store.
    """
    if not isinstance(data, dict):
        raise PersistenceError("Experiment store must be a JSON object")

    raw = data.get("experiments", [])
    if not isinstance(raw, list):
        raise PersistenceError("'experiments' must be a list")

    try:
        return [Experiment.model_validate(item) for item in raw]
    except ValidationError as e:
        raise PersistenceError(f"Invalid experiment record: {e}") from e


class JsonExperimentRepository:
    """Experiment store kept in a single JSON file.

    Writes go to a temporary sibling file that then replaces the target, so
    a crash mid-write leaves the previous store intact.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> LoadResult:
        if not self.path.exists():
            return LoadResult(ok=True, count=0, path=str(self.path))

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            experiments = parse_store(data)
        except (OSError, json.JSONDecodeError, PersistenceError) as e:
            return LoadResult(ok=False, path=str(self.path), error=str(e))

        return LoadResult(
            ok=True,
            count=len(experiments),
            path=str(self.path),
            experiments=experiments,
        )

    def save(self, experiments: Iterable[Experiment]) -> PersistenceResult:
        document = dump_store(experiments)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
            os.replace(tmp, self.path)
        except OSError as e:
            with contextlib.suppress(OSError):
                tmp.unlink(missing_ok=True)
            return PersistenceResult(ok=False, path=str(self.path), error=str(e))

        return PersistenceResult(
            ok=True,
            count=len(document["experiments"]),
            path=str(self.path),
        )
