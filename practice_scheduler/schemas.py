# practice_scheduler/schemas.py
from datetime import datetime, date, time
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, EmailStr, field_validator, model_validator
from .models import ExceptionType, RecurrencePattern, AppointmentStatus, ProviderRole
from enum import Enum


class AcceptanceStatus(str, Enum):
    active = "active"
    future = "future"
    not_accepted = "not-accepted"

    @property
    def sort_rank(self) -> int:
        return _ACCEPTANCE_RANK[self]


_ACCEPTANCE_RANK = {
    AcceptanceStatus.active: 0,
    AcceptanceStatus.future: 1,
    AcceptanceStatus.not_accepted: 2,
}


# --- Base Schemas ---
class BaseSchema(BaseModel):
    class Config:
        from_attributes = True


# --- Weekly Template Schemas ---
class TimeBlock(BaseSchema):
    id: Optional[int] = None
    start_time: time
    end_time: time

    @model_validator(mode='after')
    def check_ordering(self):
        if self.start_time >= self.end_time:
            raise ValueError('Block end time must be after start time.')
        return self


class DaySchedule(BaseSchema):
    day_of_week: int = Field(..., ge=0, le=6)  # 0=Sunday, 6=Saturday
    is_available: bool = False
    time_blocks: List[TimeBlock] = []

    @model_validator(mode='after')
    def check_blocks_do_not_overlap(self):
        ordered = sorted(self.time_blocks, key=lambda b: b.start_time)
        for earlier, later in zip(ordered, ordered[1:]):
            if later.start_time < earlier.end_time:
                raise ValueError(
                    f'Blocks {earlier.start_time:%H:%M}-{earlier.end_time:%H:%M} and '
                    f'{later.start_time:%H:%M}-{later.end_time:%H:%M} overlap on day {self.day_of_week}.'
                )
        self.time_blocks = ordered
        return self


class WeeklyTemplate(BaseSchema):
    provider_id: Optional[int] = None
    days: List[DaySchedule]
    is_default: bool = False

    @field_validator('days')
    @classmethod
    def one_entry_per_day(cls, v):
        by_day = {day.day_of_week: day for day in v}
        if len(by_day) != len(v):
            raise ValueError('Each day of week may appear only once.')
        return [by_day.get(d, DaySchedule(day_of_week=d)) for d in range(7)]

    def for_day(self, day_of_week: int) -> DaySchedule:
        return self.days[day_of_week]


# --- Exception Schemas ---
class ExceptionCreate(BaseSchema):
    # Required-ness and cross-field rules are checked together by the exception service
    exception_date: Optional[date] = None
    end_date: Optional[date] = None
    exception_type: ExceptionType = ExceptionType.unavailable
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    note: Optional[str] = Field(None, max_length=500)

    is_recurring: bool = False
    recurrence_pattern: Optional[RecurrencePattern] = None
    recurrence_interval: int = Field(1, ge=1)
    recurrence_count: Optional[int] = Field(None, ge=1)
    recurrence_end_date: Optional[date] = None
    recurrence_days: Optional[List[int]] = None

    @field_validator('recurrence_days')
    @classmethod
    def valid_weekdays(cls, v):
        if v is None:
            return v
        if any(day < 0 or day > 6 for day in v):
            raise ValueError('recurrence_days must be 0 (Sunday) through 6 (Saturday).')
        return sorted(set(v))


class ExceptionResponse(BaseSchema):
    id: int
    provider_id: int
    exception_date: date
    end_date: Optional[date] = None
    exception_type: ExceptionType
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    note: Optional[str] = None
    is_recurring: bool = False
    recurrence_pattern: Optional[RecurrencePattern] = None

    def covers(self, day: date) -> bool:
        return self.exception_date <= day <= (self.end_date or self.exception_date)


class SavedExceptions(BaseSchema):
    ids: List[int]
    dates: List[date]


# --- Booking Policy Schemas ---
class BookingPolicy(BaseSchema):
    provider_id: int
    max_daily_appointments: int = Field(..., ge=0)
    booking_buffer_minutes: int = Field(..., ge=0)
    advance_booking_days: int = Field(..., ge=0)
    minimum_notice_hours: int = Field(..., ge=0)
    cancellation_notice_hours: int = Field(..., ge=0)
    telehealth_enabled: bool = True
    in_person_enabled: bool = True
    emergency_slots_per_day: int = Field(0, ge=0)
    emergency_slot_duration_minutes: int = Field(30, ge=0)
    self_booking_enabled: bool = True
    third_party_booking_enabled: bool = True
    case_manager_booking_enabled: bool = True
    accepts_new_patients: bool = True
    new_patient_appointment_types: List[str] = []
    allow_patient_cancellation: bool = True
    auto_confirm_appointments: bool = False
    require_insurance_verification: bool = True
    is_default: bool = False

    @field_validator('new_patient_appointment_types', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        return v or []


# --- Slot Schemas ---
class TimeSlot(BaseSchema):
    start: datetime
    end: datetime

    @property
    def date(self) -> date:
        return self.start.date()


class ProviderSummary(BaseSchema):
    id: int
    first_name: str
    last_name: str
    title: Optional[str] = None
    role: ProviderRole
    npi: Optional[str] = None
    display_name: str


class AvailableSlot(BaseSchema):
    date: date
    start_time: time
    end_time: time
    provider_id: int
    provider_display_name: str
    duration: int
    is_available: bool = True


class AvailabilityResult(BaseSchema):
    slots: List[AvailableSlot] = []
    skipped_dates: List[date] = []


class ProviderSlots(BaseSchema):
    provider: ProviderSummary
    slots: List[AvailableSlot]


# --- Payer Schemas ---
class PayerRecord(BaseSchema):
    id: Optional[int] = None
    name: str
    payer_type: Optional[str] = None
    state: Optional[str] = None
    credentialing_status: Optional[str] = None
    effective_date: Optional[date] = None
    projected_effective_date: Optional[date] = None
    requires_attending: bool = False
    requires_individual_contract: bool = False

    @field_validator('credentialing_status', mode='before')
    @classmethod
    def strip_status(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v

    @field_validator('requires_attending', 'requires_individual_contract', mode='before')
    @classmethod
    def none_is_false(cls, v):
        return bool(v)


class PayerAcceptance(BaseSchema):
    status: AcceptanceStatus
    message: str


class PayerWithStatus(PayerRecord):
    acceptance_status: AcceptanceStatus
    status_message: str


# --- Booking Schemas ---
class PatientInfo(BaseSchema):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    date_of_birth: Optional[date] = None
    preferred_name: Optional[str] = Field(None, max_length=100)

    @field_validator('email', mode='before')
    @classmethod
    def empty_str_to_none(cls, v):
        if v == "":
            return None
        return v


class InsuranceInfo(BaseSchema):
    member_id: Optional[str] = None
    group_number: Optional[str] = None
    effective_date: Optional[date] = None


class BookingDetails(BaseSchema):
    selected_provider_id: int
    payer_id: Optional[int] = None  # None = self-pay
    # Attending already chosen by the supervision lookup; required when the payer needs one
    billing_provider_id: Optional[int] = None
    start_time: datetime
    end_time: datetime
    appointment_type: str = Field(default="initial_consultation", max_length=50)
    patient: PatientInfo
    insurance: Optional[InsuranceInfo] = None

    @model_validator(mode='after')
    def check_times(self):
        if self.end_time <= self.start_time:
            raise ValueError('Appointment end time must be after start time.')
        return self

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)


class CreatedAppointment(BaseSchema):
    appointment_id: int
    confirmation_code: Optional[str] = None
    provider_id: int
    rendering_provider_id: Optional[int] = None
    requires_supervision: bool = False


class AppointmentResponse(BaseSchema):
    id: int
    provider_id: int
    rendering_provider_id: Optional[int] = None
    scheduled_provider_id: int
    payer_id: Optional[int] = None
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    appointment_type: str
    status: AppointmentStatus
    patient_first_name: str
    patient_last_name: str
    requires_supervision: bool
    billing_provider_npi: Optional[str] = None
    rendering_provider_npi: Optional[str] = None
    confirmation_code: Optional[str] = None
    insurance_info: Optional[Dict[str, Any]] = None


class BookingLeadCreate(BaseSchema):
    payer_id: int
    patient: PatientInfo
    reason: Optional[str] = Field(None, max_length=500)


class BookingLeadResponse(BaseSchema):
    id: int
    email: Optional[str] = None
    phone: Optional[str] = None
    preferred_name: Optional[str] = None
    requested_payer_id: Optional[int] = None
    requested_payer_name: Optional[str] = None
    reason: Optional[str] = None
    status: str
