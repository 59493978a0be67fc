"""cohort settings loaded from environment variables."""

from enum import StrEnum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    """Deployment environment."""

    DEV = "dev"
    STAGING = "staging"
    PROD = "prod"


class LogLevel(StrEnum):
    """Supported log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Settings loaded from environment variables / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Database ---
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./cohort.db",
        description="Async SQLAlchemy connection string for scenario storage.",
    )

    # --- Editing engine timers ---
    SAVE_DEBOUNCE_MS: int = Field(
        default=400, ge=0,
        description="Quiet period after the last edit before a save starts.",
    )
    ANALYTICS_DEBOUNCE_MS: int = Field(
        default=400, ge=0,
        description="Quiet period before satisfaction analytics are recomputed.",
    )
    UPDATE_COALESCE_MS: int = Field(
        default=500, ge=0,
        description="Window in which group field edits merge into one undo step.",
    )
    SAVE_MAX_RETRIES: int = Field(
        default=3, ge=0,
        description="Retries after a failed write before the save is marked failed.",
    )
    SAVE_RETRY_DELAYS_MS: list[int] = Field(
        default_factory=lambda: [1000, 2000, 4000],
        description="Backoff before each retry; the last value repeats if short.",
    )
    SAVED_IDLE_MS: int = Field(
        default=2000, ge=0,
        description="How long the 'saved' status shows before reverting to idle.",
    )

    # --- Optimizer ---
    OPTIMIZER_SWAP_BUDGET: int = Field(
        default=300, ge=0,
        description="Randomised swap trials per optimizer run.",
    )

    # --- Logging ---
    LOG_LEVEL: LogLevel = Field(
        default=LogLevel.INFO,
        description="Application log level.",
    )

    # --- Environment ---
    ENVIRONMENT: Environment = Field(
        default=Environment.DEV,
        description="Deployment environment (dev/staging/prod).",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.ENVIRONMENT == Environment.PROD


def get_settings() -> Settings:
    """Factory function so callers and tests can build fresh settings."""
    return Settings()
