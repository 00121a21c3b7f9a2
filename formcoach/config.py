"""Analysis pipeline configuration."""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pipeline settings loaded from environment variables."""

    # Timing
    assumed_fps: float = 30.0  # Fallback only, frame timestamps drive all physics

    # Landmark filtering
    filter_buffer_size: int = 10
    velocity_history_size: int = 5
    filter_confidence_threshold: float = 0.5
    outlier_max_movement: float = 0.15  # 15% of normalized frame size
    max_consecutive_outliers: int = 3

    # Visibility gate for required joints
    required_visibility: float = 0.8

    # Physics calibration
    body_height_m: float = 1.7
    reference_shoulder_width: float = 0.15
    default_body_weight_kg: float = 70.0
    motion_velocity_floor: float = 0.01  # m/s, below this the body is "still"
    start_position_velocity_floor: float = 0.05  # m/s, push-up/lunge idle check

    # Rep state machine
    transition_frames: int = 2
    min_rep_duration_ms: float = 300.0
    max_rep_duration_ms: float = 15000.0
    rep_cooldown_ms: float = 500.0
    ideal_rep_duration_ms: float = 2000.0
    valid_rep_quality: float = 45.0
    quality_trend_window: int = 5

    # Adaptive risk model
    learning_window: int = 30
    min_adaptive_samples: int = 5
    fatigue_window: int = 5
    fatigue_drop_threshold: float = 15.0

    # Feedback scheduling (seconds)
    high_priority_cooldown_s: float = 2.0
    medium_priority_cooldown_s: float = 4.0
    low_priority_cooldown_s: float = 6.0
    positive_cooldown_s: float = 1.5
    mistake_repeat_cooldown_s: float = 12.0
    escalation_occurrences: int = 3

    class Config:
        env_prefix = "FORMCOACH_"
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
