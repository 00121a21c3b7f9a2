"""Pydantic schemas for serializing analysis output."""

from formcoach.schemas.analysis import (
    LandmarkResponse,
    FeedbackResponse,
    PhysicsResponse,
    BiomechanicsResponse,
    MovementQualityResponse,
    RepQualityResponse,
    AnalysisResultResponse,
    RepStatsResponse,
    WorkoutSummaryResponse,
)

__all__ = [
    "LandmarkResponse",
    "FeedbackResponse",
    "PhysicsResponse",
    "BiomechanicsResponse",
    "MovementQualityResponse",
    "RepQualityResponse",
    "AnalysisResultResponse",
    "RepStatsResponse",
    "WorkoutSummaryResponse",
]
