"""Analysis result and workout summary schemas."""

from typing import Optional, List, Dict
from pydantic import BaseModel

from formcoach.analysis.feedback_scheduler import FeedbackType, Priority, Risk


class LandmarkResponse(BaseModel):
    x: float
    y: float
    z: float = 0.0
    visibility: float = 0.0

    class Config:
        from_attributes = True


class FeedbackResponse(BaseModel):
    """Schema for one coaching message."""
    message: str
    voice_message: str
    type: FeedbackType
    problem_landmarks: List[int] = []
    confidence: float
    biomechanical_risk: Risk
    priority: Priority
    progressive_hint: Optional[str] = None
    actionable_cue: Optional[str] = None
    detailed_explanation: Optional[str] = None
    encouragement_level: Optional[int] = None
    rep_count: Optional[int] = None

    class Config:
        from_attributes = True


class PhysicsResponse(BaseModel):
    velocity: float
    acceleration: float
    momentum: float
    stability: float
    power_output: float

    class Config:
        from_attributes = True


class BiomechanicsResponse(BaseModel):
    joint_angles: Dict[str, float]
    range_of_motion: float
    asymmetry: float
    balance_score: float
    depth_estimate: float

    class Config:
        from_attributes = True


class MovementQualityResponse(BaseModel):
    overall: float
    smoothness: float
    control: float
    efficiency: float
    details: List[str] = []

    class Config:
        from_attributes = True


class RepQualityResponse(BaseModel):
    """Schema for the quality breakdown of a counted rep."""
    form_score: float
    depth_score: float
    stability_score: float
    tempo_score: float
    overall_score: float
    duration_s: float
    range_of_motion: float
    timestamp: float

    class Config:
        from_attributes = True


class AnalysisResultResponse(BaseModel):
    """Schema for a single analyzed frame."""
    stage: str
    rep_counted: bool
    mistake: Optional[str] = None
    form_score: float
    feedback: FeedbackResponse

    physics: Optional[PhysicsResponse] = None
    biomechanics: Optional[BiomechanicsResponse] = None
    movement_quality: Optional[MovementQualityResponse] = None
    fatigue_level: float = 0.0
    injury_risk: float = 0.0
    improvement_trend: str = "stable"

    rep_count: int = 0
    deliver_feedback: bool = False
    predicted_next_stage: Optional[str] = None
    repeat_mistake_count: int = 0
    rep_quality: Optional[RepQualityResponse] = None
    applied_penalties: Dict[str, float] = {}
    smoothed_landmarks: Optional[List[LandmarkResponse]] = None
    timestamp: float = 0.0
    errors: List[str] = []

    class Config:
        from_attributes = True


class RepStatsResponse(BaseModel):
    total: int
    valid: int
    invalid: int
    accuracy: float
    average_quality: float
    best_quality: float
    consistency: float

    class Config:
        from_attributes = True


class FatigueResponse(BaseModel):
    is_fatigued: bool
    severity: float
    performance_drop: float

    class Config:
        from_attributes = True


class LearningProgressResponse(BaseModel):
    learning_phase: bool
    consecutive_positive: int
    total_mistakes: int

    class Config:
        from_attributes = True


class WorkoutSummaryResponse(BaseModel):
    """Schema for the end-of-workout summary."""
    exercise_id: str
    exercise_name: str
    clean_reps: int
    mistakes: Dict[str, int]
    duration_seconds: float
    calories_burned: float
    average_form_score: float
    peak_power: float
    average_velocity: float
    consistency_score: float
    biomechanical_efficiency: float
    time_held_seconds: Optional[float] = None
    improvement_trend: str
    rep_stats: RepStatsResponse
    fatigue: FatigueResponse
    learning: LearningProgressResponse

    class Config:
        from_attributes = True

    @property
    def total_mistakes(self) -> int:
        return sum(self.mistakes.values())
