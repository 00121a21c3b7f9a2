"""Supported exercises and their metadata."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


class ExerciseType:
    """How an exercise is scored."""
    REPS = "reps"
    ISOMETRIC = "isometric"

    @classmethod
    def all(cls) -> List[str]:
        return [cls.REPS, cls.ISOMETRIC]


@dataclass(frozen=True)
class Exercise:
    """Catalog entry for a supported exercise."""
    id: str
    name: str
    met_value: float  # Metabolic Equivalent of Task, for calorie estimates
    type: str = ExerciseType.REPS
    difficulty: str = "beginner"
    muscle_groups: List[str] = field(default_factory=list)

    @property
    def is_isometric(self) -> bool:
        return self.type == ExerciseType.ISOMETRIC


EXERCISES: Dict[str, Exercise] = {
    "squats": Exercise(
        id="squats",
        name="Squats",
        met_value=5.0,
        muscle_groups=["Quadriceps", "Glutes", "Hamstrings", "Core"],
    ),
    "pushups": Exercise(
        id="pushups",
        name="Push-ups",
        met_value=8.0,
        muscle_groups=["Chest", "Shoulders", "Triceps", "Core"],
    ),
    "lunges": Exercise(
        id="lunges",
        name="Lunges",
        met_value=3.8,
        difficulty="intermediate",
        muscle_groups=["Quadriceps", "Glutes", "Hamstrings", "Calves"],
    ),
    "plank": Exercise(
        id="plank",
        name="Plank",
        met_value=3.0,
        type=ExerciseType.ISOMETRIC,
        muscle_groups=["Core", "Shoulders", "Glutes"],
    ),
}


def get_exercise(exercise_id: str) -> Optional[Exercise]:
    """Look up an exercise by id, None when unknown."""
    return EXERCISES.get(exercise_id)
