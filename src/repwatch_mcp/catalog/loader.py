"""Exercise catalog loading utilities."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Iterator

import yaml
from pydantic import ValidationError

from .models import ExerciseDefinition

logger = logging.getLogger(__name__)

_SUFFIXES = (".yaml", ".yml")


class CatalogLoadError(RuntimeError):
    """Raised when one or more exercise files cannot be parsed."""


class ExerciseCatalog:
    """Exercise definitions gathered from YAML files in one or more directories.

    Directories are read in order, so a later directory can replace a bundled
    exercise by reusing its id. Two files in the same directory defining one id
    is treated as a mistake and reported as a load error.
    """

    def __init__(self, search_paths: Iterable[Path] | None = None) -> None:
        paths = [Path(path) for path in (search_paths or [])]
        self._search_paths: list[Path] = [path for path in paths if path.is_dir()]
        self._sources: dict[str, Path] = {}

    @property
    def search_paths(self) -> list[Path]:
        return list(self._search_paths)

    def source_of(self, exercise_id: str) -> Path | None:
        """Return the file the exercise was last loaded from, if any."""

        return self._sources.get(exercise_id)

    def load_all(self) -> dict[str, ExerciseDefinition]:
        exercises: dict[str, ExerciseDefinition] = {}
        sources: dict[str, Path] = {}
        errors: list[str] = []

        for base in self._search_paths:
            seen_here: dict[str, Path] = {}
            for path in _exercise_files(base):
                for entry in _read_entries(path, errors):
                    try:
                        exercise = ExerciseDefinition.model_validate(entry)
                    except ValidationError as exc:
                        errors.append(f"Exercise validation error in {path}: {exc}")
                        continue

                    if exercise.id in seen_here:
                        errors.append(
                            f"Exercise '{exercise.id}' is defined in both {seen_here[exercise.id]} and {path}"
                        )
                        continue
                    seen_here[exercise.id] = path

                    if exercise.id in sources:
                        logger.info(
                            "Exercise definition overridden",
                            extra={
                                "exercise_id": exercise.id,
                                "previous": str(sources[exercise.id]),
                                "source": str(path),
                            },
                        )
                    exercises[exercise.id] = exercise
                    sources[exercise.id] = path

        if errors:
            raise CatalogLoadError("; ".join(errors))

        self._sources = sources
        return exercises

    def get(self, exercise_id: str) -> ExerciseDefinition:
        exercises = self.load_all()
        try:
            return exercises[exercise_id]
        except KeyError as exc:
            known = ", ".join(sorted(exercises)) or "none"
            raise CatalogLoadError(f"Unknown exercise '{exercise_id}' (available: {known})") from exc


def _exercise_files(base: Path) -> list[Path]:
    return sorted(path for path in base.iterdir() if path.is_file() and path.suffix in _SUFFIXES)


def _read_entries(path: Path, errors: list[str]) -> Iterator[dict[str, Any]]:
    """Yield the exercise mappings in a file that holds one mapping or a list."""

    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        errors.append(f"Failed to parse YAML in {path}: {exc}")
        return

    if document is None:
        return

    entries = document if isinstance(document, list) else [document]
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            errors.append(f"Entry {index} in {path} is not a mapping")
            continue
        yield entry


def load_exercises(search_paths: Iterable[Path] | None = None) -> dict[str, ExerciseDefinition]:
    """Convenience wrapper for loading exercises from the provided paths."""

    return ExerciseCatalog(search_paths).load_all()


__all__ = ["CatalogLoadError", "ExerciseCatalog", "ExerciseDefinition", "load_exercises"]
