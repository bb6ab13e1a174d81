"""Exercise catalog models and loader exports."""

from .loader import CatalogLoadError, ExerciseCatalog, load_exercises
from .models import ExerciseDefinition

__all__ = [
    "CatalogLoadError",
    "ExerciseCatalog",
    "ExerciseDefinition",
    "load_exercises",
]
