"""Exercise catalog boundary.

The catalog itself lives outside the training core; lookups are treated as
optional and a missing entry falls back to the raw exercise id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Protocol


@dataclass(frozen=True)
class ExerciseInfo:
    id: str
    name: str
    movement_category: str = ""
    primary_muscles: tuple[str, ...] = ()
    equipment: tuple[str, ...] = ()
    substitutions: tuple[str, ...] = ()


class ExerciseCatalog(Protocol):
    def get(self, exercise_id: str) -> ExerciseInfo | None:
        ...


@dataclass
class InMemoryExerciseCatalog:
    """Dict-backed catalog, mostly for tests and offline use."""

    entries: dict[str, ExerciseInfo] = field(default_factory=dict)

    @classmethod
    def from_items(cls, items: Iterable[ExerciseInfo]) -> "InMemoryExerciseCatalog":
        return cls({item.id: item for item in items})

    def get(self, exercise_id: str) -> ExerciseInfo | None:
        return self.entries.get(exercise_id)


def display_name(catalog: ExerciseCatalog | None, exercise_id: str) -> str:
    if catalog is None:
        return exercise_id
    info = catalog.get(exercise_id)
    if info is None or not info.name:
        return exercise_id
    return info.name
