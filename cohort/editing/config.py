"""Editing engine timing configuration, in seconds."""

from pydantic import Field

from cohort.config.settings import Settings, get_settings
from cohort.models.common import CohortBase


class EditingConfig(CohortBase, frozen=True):
    save_debounce_s: float = Field(default=0.4, ge=0.0)
    analytics_debounce_s: float = Field(default=0.4, ge=0.0)
    update_coalesce_s: float = Field(default=0.5, ge=0.0)
    max_retries: int = Field(default=3, ge=0)
    retry_delays_s: tuple[float, ...] = Field(default=(1.0, 2.0, 4.0))
    saved_idle_s: float = Field(default=2.0, ge=0.0)

    def retry_delay(self, attempt: int) -> float:
        """Backoff before retry number ``attempt + 1``; the last delay repeats."""
        if not self.retry_delays_s:
            return 0.0
        return self.retry_delays_s[min(attempt, len(self.retry_delays_s) - 1)]

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "EditingConfig":
        settings = settings or get_settings()
        return cls(
            save_debounce_s=settings.SAVE_DEBOUNCE_MS / 1000,
            analytics_debounce_s=settings.ANALYTICS_DEBOUNCE_MS / 1000,
            update_coalesce_s=settings.UPDATE_COALESCE_MS / 1000,
            max_retries=settings.SAVE_MAX_RETRIES,
            retry_delays_s=tuple(ms / 1000 for ms in settings.SAVE_RETRY_DELAYS_MS),
            saved_idle_s=settings.SAVED_IDLE_MS / 1000,
        )
