# practice_scheduler/config.py - Scheduling service configuration
from dotenv import load_dotenv

load_dotenv()
from dataclasses import dataclass
from datetime import time
from typing import List, Tuple, Union
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    """Service settings with validation and environment variable support (Pydantic V2 Syntax)"""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="allow",
        case_sensitive=False
    )

    # Application
    app_name: str = "Practice Scheduler"
    app_version: str = "1.0.0"
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database
    database_url: str = Field(..., alias="DATABASE_URL")

    # All stored schedule times are naive wall-clock times in this zone
    practice_timezone: str = Field(default="America/Denver", alias="PRACTICE_TIMEZONE")

    # Default weekly template (0 = Sunday)
    default_weekday_blocks: List[Tuple[str, str]] = Field(default=[("09:00", "12:00"), ("13:00", "17:00")])
    default_working_days: List[int] = Field(default=[1, 2, 3, 4, 5])

    # Default booking policy
    default_max_daily_appointments: int = 20
    default_booking_buffer_minutes: int = 15
    default_advance_booking_days: int = 90
    default_minimum_notice_hours: int = 24
    default_cancellation_notice_hours: int = 24
    default_emergency_slots_per_day: int = 2
    default_emergency_slot_duration_minutes: int = 30
    default_new_patient_appointment_types: List[str] = Field(default=["initial_consultation"])

    default_appointment_duration_minutes: int = Field(default=60, alias="DEFAULT_APPOINTMENT_DURATION")
    recurrence_safety_cap: int = 52
    confirmation_code_length: int = 8
    enforce_booking_window: bool = Field(default=False, alias="ENFORCE_BOOKING_WINDOW")

    # Rate limiting for the public booking endpoint
    booking_rate_limit: str = Field(default="5/minute", alias="BOOKING_RATE_LIMIT")
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")

    # CORS
    cors_origins: Union[str, list[str]] = Field(default=["http://localhost:3000"], alias="CORS_ORIGINS")

    # --- Pydantic V2 Validators ---
    @field_validator("cors_origins", mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            if not v.strip():
                return ["http://localhost:3000"]
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        if not v:
            raise ValueError("DATABASE_URL is required")
        if not v.startswith(("postgresql://", "postgresql+psycopg2://", "sqlite://")):
            raise ValueError("DATABASE_URL must be a valid PostgreSQL or SQLite URL")
        return v

    @field_validator("default_working_days")
    @classmethod
    def validate_working_days(cls, v):
        for day in v:
            if day < 0 or day > 6:
                raise ValueError("default_working_days entries must be 0 (Sunday) through 6 (Saturday)")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    def scheduling_defaults(self) -> "SchedulingDefaults":
        return SchedulingDefaults(
            weekday_blocks=tuple(
                (time.fromisoformat(start), time.fromisoformat(end))
                for start, end in self.default_weekday_blocks
            ),
            working_days=tuple(self.default_working_days),
            max_daily_appointments=self.default_max_daily_appointments,
            booking_buffer_minutes=self.default_booking_buffer_minutes,
            advance_booking_days=self.default_advance_booking_days,
            minimum_notice_hours=self.default_minimum_notice_hours,
            cancellation_notice_hours=self.default_cancellation_notice_hours,
            emergency_slots_per_day=self.default_emergency_slots_per_day,
            emergency_slot_duration_minutes=self.default_emergency_slot_duration_minutes,
            new_patient_appointment_types=tuple(self.default_new_patient_appointment_types),
            appointment_duration_minutes=self.default_appointment_duration_minutes,
            recurrence_safety_cap=self.recurrence_safety_cap,
            confirmation_code_length=self.confirmation_code_length,
            enforce_booking_window=self.enforce_booking_window,
        )


@dataclass(frozen=True)
class SchedulingDefaults:
    """Fallback values used whenever a provider has not configured hours or policy yet."""
    weekday_blocks: Tuple[Tuple[time, time], ...] = ((time(9, 0), time(12, 0)), (time(13, 0), time(17, 0)))
    working_days: Tuple[int, ...] = (1, 2, 3, 4, 5)
    max_daily_appointments: int = 20
    booking_buffer_minutes: int = 15
    advance_booking_days: int = 90
    minimum_notice_hours: int = 24
    cancellation_notice_hours: int = 24
    emergency_slots_per_day: int = 2
    emergency_slot_duration_minutes: int = 30
    new_patient_appointment_types: Tuple[str, ...] = ("initial_consultation",)
    appointment_duration_minutes: int = 60
    recurrence_safety_cap: int = 52
    confirmation_code_length: int = 8
    enforce_booking_window: bool = False
    telehealth_enabled: bool = True
    in_person_enabled: bool = True
    self_booking_enabled: bool = True
    third_party_booking_enabled: bool = True
    case_manager_booking_enabled: bool = True
    accepts_new_patients: bool = True
    allow_patient_cancellation: bool = True
    auto_confirm_appointments: bool = False
    require_insurance_verification: bool = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


@lru_cache()
def get_scheduling_defaults() -> SchedulingDefaults:
    return get_settings().scheduling_defaults()

# Note: Do not instantiate settings at import time to avoid failing
# on missing environment variables. Use `get_settings()` instead.
