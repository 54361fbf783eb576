"""Application configuration using pydantic-settings pattern."""

from functools import lru_cache
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from meeting_intel.errors import ConfigurationError
from meeting_intel.time_utils import load_timezone, parse_clock


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Meeting Intelligence Engine"
    app_version: str = "0.1.0"
    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Anthropic (LLM used only to phrase advisory text)
    anthropic_api_key: str | None = Field(default=None)
    anthropic_model: str = Field(default="claude-sonnet-4-5")

    # Google Calendar
    google_calendar_credentials: str | None = Field(default=None)

    # User profile
    user_email: str | None = Field(default=None)
    user_timezone: str = Field(default="UTC")
    working_hours_start: str = Field(default="09:00")
    working_hours_end: str = Field(default="17:00")

    # Pattern learning
    lookback_days: int = Field(default=90, ge=1, le=365)
    min_sample_size: int = Field(default=1, ge=1)

    # Conflict detection
    back_to_back_gap_minutes: int = Field(default=15, ge=0, le=120)
    overload_multiplier: float = Field(default=1.5, gt=0)
    overload_min_meetings: int = Field(default=4, ge=1)

    # Focus time
    focus_target_hours_per_week: float = Field(default=14.0, ge=0, le=60)
    focus_min_block_minutes: int = Field(default=60, ge=15)
    focus_max_block_minutes: int = Field(default=240, ge=15)

    # Reschedule search
    reschedule_max_delay_days: int = Field(default=14, ge=1, le=60)

    # Caller-side timeouts (seconds)
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    analysis_timeout_seconds: float = Field(default=120.0, gt=0)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


class EngineConfig(BaseModel):
    """Policy values handed to the analytics engines.

    Engines receive this explicitly instead of reading process settings.
    """

    user_email: str | None = Field(
        default=None, description="Email whose responses define acceptance"
    )
    timezone: str = Field(default="UTC", description="IANA zone for day/hour buckets")
    working_hours_start: str = Field(default="09:00", description="HH:MM")
    working_hours_end: str = Field(default="17:00", description="HH:MM")
    min_sample_size: int = Field(
        default=1, ge=1, description="Fewer meetings than this means no patterns"
    )
    back_to_back_gap_minutes: int = Field(default=15, ge=0)
    overload_multiplier: float = Field(default=1.5, gt=0)
    overload_min_meetings: int = Field(default=4, ge=1)
    day_bonus_weight: int = Field(
        default=15, description="Max reschedule bonus from day-of-week acceptance"
    )
    hour_bonus_weight: int = Field(
        default=15, description="Max reschedule bonus from hour-of-day acceptance"
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> "EngineConfig":
        """Build engine policy from application settings."""
        return cls(
            user_email=settings.user_email,
            timezone=settings.user_timezone,
            working_hours_start=settings.working_hours_start,
            working_hours_end=settings.working_hours_end,
            min_sample_size=settings.min_sample_size,
            back_to_back_gap_minutes=settings.back_to_back_gap_minutes,
            overload_multiplier=settings.overload_multiplier,
            overload_min_meetings=settings.overload_min_meetings,
        )

    def zone(self) -> ZoneInfo:
        """Resolve the configured timezone.

        Raises:
            ConfigurationError: If the zone name is unknown
        """
        return load_timezone(self.timezone)

    def working_hours(self) -> tuple[int, int]:
        """Working hours as whole-hour bounds ``[start, end)``.

        A start that is not on the hour rounds up; an end rounds down.

        Raises:
            ConfigurationError: If either value is malformed or start >= end
        """
        start = parse_clock(self.working_hours_start)
        end = parse_clock(self.working_hours_end)
        start_hour = start.hour + (1 if start.minute else 0)
        end_hour = end.hour
        if start_hour >= end_hour:
            raise ConfigurationError(
                f"Working hours {self.working_hours_start}-{self.working_hours_end} "
                "must span at least one full hour"
            )
        return start_hour, end_hour


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
