"""Exercise catalog and fault vocabulary."""

from formcoach.models.exercise import Exercise, ExerciseType, EXERCISES, get_exercise
from formcoach.models.mistake import Mistake

__all__ = [
    "Exercise",
    "ExerciseType",
    "EXERCISES",
    "get_exercise",
    "Mistake",
]
