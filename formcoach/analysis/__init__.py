"""
Frame-by-frame exercise analysis pipeline.

PIPELINE COMPONENTS:
1. LandmarkStreamFilter: outlier rejection, Gaussian smoothing, velocity/acceleration
2. Biomechanics: joint angles, physics estimates, asymmetry and balance
3. RepStateMachine: hysteresis rep counting with per-rep quality
4. FaultRuleEngine: ordered per-exercise fault tables (first match wins)
5. AdaptiveRiskModel: personal thresholds, fatigue and injury risk
6. FeedbackScheduler: priority cooldowns and repeated-fault escalation
7. ExerciseSession: per-workout orchestration and summary

Usage:
    from formcoach.analysis import create_session

    session = create_session("squats", body_weight_kg=75)
    for landmarks, t in frames:
        result = session.analyze(landmarks, timestamp=t)
        if result.deliver_feedback:
            print(result.feedback.message)
    print(session.summarize())
"""

from formcoach.analysis.landmarks import Landmark, LandmarkFrame, PoseLandmark
from formcoach.analysis.landmark_filter import EnhancedLandmark, LandmarkStreamFilter
from formcoach.analysis.biomechanics import (
    BiomechanicalSnapshot,
    PhysicsSnapshot,
    angle_2d,
    angle_3d,
    compute_biomechanics,
    compute_physics,
)
from formcoach.analysis.rep_state_machine import (
    RepPhase,
    RepQuality,
    RepStateMachine,
    RepStats,
    RepUpdate,
)
from formcoach.analysis.fault_rules import (
    FaultEvaluation,
    FaultRule,
    FaultRuleEngine,
    RuleContext,
    RuleSet,
    RULE_SETS,
)
from formcoach.analysis.adaptive_risk import (
    AdaptiveRiskModel,
    FatigueAssessment,
    MovementQuality,
)
from formcoach.analysis.feedback_scheduler import (
    Feedback,
    FeedbackScheduler,
    FeedbackType,
    Priority,
    Risk,
)
from formcoach.analysis.session import (
    AnalysisResult,
    ExerciseSession,
    WorkoutSummary,
    analyze,
    create_session,
)

__all__ = [
    # Landmarks
    "Landmark",
    "LandmarkFrame",
    "PoseLandmark",
    "EnhancedLandmark",
    "LandmarkStreamFilter",
    # Biomechanics
    "BiomechanicalSnapshot",
    "PhysicsSnapshot",
    "angle_2d",
    "angle_3d",
    "compute_biomechanics",
    "compute_physics",
    # Rep counting
    "RepPhase",
    "RepQuality",
    "RepStateMachine",
    "RepStats",
    "RepUpdate",
    # Fault rules
    "FaultEvaluation",
    "FaultRule",
    "FaultRuleEngine",
    "RuleContext",
    "RuleSet",
    "RULE_SETS",
    # Adaptive model
    "AdaptiveRiskModel",
    "FatigueAssessment",
    "MovementQuality",
    # Feedback
    "Feedback",
    "FeedbackScheduler",
    "FeedbackType",
    "Priority",
    "Risk",
    # Session
    "AnalysisResult",
    "ExerciseSession",
    "WorkoutSummary",
    "analyze",
    "create_session",
]
