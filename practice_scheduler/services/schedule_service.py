# practice_scheduler/services/schedule_service.py
# Weekly template and booking policy resolvers. Reads never fail: defaults stand in.
from typing import Dict, List, Optional

import structlog
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..compliance_logger import compliance_logger
from ..config import SchedulingDefaults, get_scheduling_defaults
from ..errors import NotFoundError, UpstreamStoreError

logger = structlog.get_logger(__name__)

POLICY_FIELDS = (
    "max_daily_appointments",
    "booking_buffer_minutes",
    "advance_booking_days",
    "minimum_notice_hours",
    "cancellation_notice_hours",
    "telehealth_enabled",
    "in_person_enabled",
    "emergency_slots_per_day",
    "emergency_slot_duration_minutes",
    "self_booking_enabled",
    "third_party_booking_enabled",
    "case_manager_booking_enabled",
    "accepts_new_patients",
    "new_patient_appointment_types",
    "allow_patient_cancellation",
    "auto_confirm_appointments",
    "require_insurance_verification",
)


def default_weekly_template(defaults: SchedulingDefaults, provider_id: Optional[int] = None) -> schemas.WeeklyTemplate:
    days = []
    for day in range(7):
        if day in defaults.working_days:
            blocks = [schemas.TimeBlock(start_time=start, end_time=end) for start, end in defaults.weekday_blocks]
            days.append(schemas.DaySchedule(day_of_week=day, is_available=True, time_blocks=blocks))
        else:
            days.append(schemas.DaySchedule(day_of_week=day, is_available=False))
    return schemas.WeeklyTemplate(provider_id=provider_id, days=days, is_default=True)


def default_booking_policy(defaults: SchedulingDefaults, provider_id: int) -> schemas.BookingPolicy:
    values = {name: getattr(defaults, name) for name in POLICY_FIELDS}
    values["new_patient_appointment_types"] = list(defaults.new_patient_appointment_types)
    return schemas.BookingPolicy(provider_id=provider_id, is_default=True, **values)


class ScheduleService:
    def __init__(self, db: Session, defaults: Optional[SchedulingDefaults] = None):
        self.db = db
        self.defaults = defaults or get_scheduling_defaults()

    # --- Weekly template ---

    def get_weekly_template(self, provider_id: int) -> schemas.WeeklyTemplate:
        """One entry per day 0-6. A provider who never saved hours gets the default template."""
        try:
            header = crud.get_provider_schedule(self.db, provider_id)
            if header is None:
                logger.info("weekly_template.default", provider_id=provider_id)
                return default_weekly_template(self.defaults, provider_id)
            blocks = crud.get_availability_blocks(self.db, provider_id)
        except UpstreamStoreError as e:
            logger.warning("weekly_template.store_unavailable", provider_id=provider_id, error=str(e))
            return default_weekly_template(self.defaults, provider_id)

        by_day: Dict[int, List[schemas.TimeBlock]] = {day: [] for day in range(7)}
        for block in blocks:
            by_day.setdefault(block.day_of_week, []).append(schemas.TimeBlock.model_validate(block))

        days = [
            schemas.DaySchedule(day_of_week=day, is_available=bool(by_day[day]), time_blocks=by_day[day])
            for day in range(7)
        ]
        return schemas.WeeklyTemplate(provider_id=provider_id, days=days, is_default=False)

    def save_weekly_template(self, provider_id: int, template: schemas.WeeklyTemplate) -> schemas.WeeklyTemplate:
        """Replaces every stored block for the provider. Days marked unavailable store nothing."""
        if crud.get_provider(self.db, provider_id) is None:
            raise NotFoundError("Provider", provider_id)

        rows = [
            (day.day_of_week, block.start_time, block.end_time)
            for day in template.days if day.is_available
            for block in day.time_blocks
        ]
        crud.replace_availability_blocks(self.db, provider_id, rows)
        logger.info("weekly_template.saved", provider_id=provider_id, blocks=len(rows))
        compliance_logger.log_event(
            self.db,
            action="SCHEDULE_UPDATE",
            category="SCHEDULE",
            details=f"Replaced weekly template for provider {provider_id} with {len(rows)} blocks",
            resource_type="Provider",
            resource_id=provider_id,
        )
        return self.get_weekly_template(provider_id)

    # --- Booking policy ---

    def get_booking_policy(self, provider_id: int) -> schemas.BookingPolicy:
        try:
            row = crud.get_booking_settings(self.db, provider_id)
        except UpstreamStoreError as e:
            logger.warning("booking_policy.store_unavailable", provider_id=provider_id, error=str(e))
            return default_booking_policy(self.defaults, provider_id)
        if row is None:
            return default_booking_policy(self.defaults, provider_id)

        values = {}
        for name in POLICY_FIELDS:
            value = getattr(row, name)
            values[name] = getattr(self.defaults, name) if value is None else value
        if row.new_patient_appointment_types is None:
            values["new_patient_appointment_types"] = list(self.defaults.new_patient_appointment_types)
        return schemas.BookingPolicy(provider_id=provider_id, is_default=False, **values)

    def save_booking_policy(self, policy: schemas.BookingPolicy) -> schemas.BookingPolicy:
        if crud.get_provider(self.db, policy.provider_id) is None:
            raise NotFoundError("Provider", policy.provider_id)

        values = policy.model_dump(include=set(POLICY_FIELDS))
        crud.upsert_booking_settings(self.db, policy.provider_id, values)
        logger.info("booking_policy.saved", provider_id=policy.provider_id)
        compliance_logger.log_event(
            self.db,
            action="POLICY_UPDATE",
            category="BOOKING_POLICY",
            details=f"Saved booking policy for provider {policy.provider_id}",
            resource_type="Provider",
            resource_id=policy.provider_id,
            new_values=values,
        )
        return self.get_booking_policy(policy.provider_id)
