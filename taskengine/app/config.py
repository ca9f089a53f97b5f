"""Engine configuration."""

from datetime import datetime, timezone

from pydantic_settings import BaseSettings, SettingsConfigDict

from taskengine.app.models.common import UtcDatetime


class Settings(BaseSettings):
    """Engine settings."""

    # Redis (optimistic commit adapter)
    redis_url: str = "redis://localhost:6379"
    lock_timeout: int = 30  # seconds

    # Critical path
    slack_tolerance: float = 1e-9

    # Velocity
    sprint_duration_days: int = 14
    project_start: UtcDatetime = datetime(1970, 1, 1, tzinfo=timezone.utc)

    # Estimation
    trend_window: int = 5
    trend_threshold: float = 0.1
    priority_match_weight: float = 1.5
    description_length_scale: float = 100.0

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False
    )


# Global settings instance
settings = Settings()
