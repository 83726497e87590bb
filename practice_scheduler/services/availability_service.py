# practice_scheduler/services/availability_service.py
# Availability orchestrator: template + exceptions + policy + bookings -> open slots, one date at a time.
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

import structlog
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..config import SchedulingDefaults, get_scheduling_defaults
from ..errors import InvalidWindowError, NotFoundError, PartialComputationWarning, ValidationError
from . import slot_service
from .exception_service import ExceptionService
from .schedule_service import ScheduleService

logger = structlog.get_logger(__name__)

Window = Tuple[time, time]


def exception_for_date(exceptions: Sequence[schemas.ExceptionResponse], day: date) -> Optional[schemas.ExceptionResponse]:
    """The row dated exactly on `day` wins over a multi-day row that merely covers it."""
    covering = [e for e in exceptions if e.covers(day)]
    for exception in covering:
        if exception.exception_date == day:
            return exception
    return covering[0] if covering else None


def resolve_day_windows(day: date, template: schemas.WeeklyTemplate, exceptions: Sequence[schemas.ExceptionResponse]) -> List[Window]:
    """
    Effective windows for one date.

    `unavailable` and `vacation` close the date. An exception with its own window
    replaces the weekly blocks with that single window. A `recurring_change` falls
    through to the template entry for the weekday.
    """
    exception = exception_for_date(exceptions, day)
    if exception is not None:
        if exception.exception_type.closes_day:
            return []
        if exception.exception_type.has_window:
            if exception.start_time is None or exception.end_time is None:
                raise InvalidWindowError(f"Exception {exception.id} on {day} has no time window")
            return [(exception.start_time, exception.end_time)]

    schedule = template.for_day(day.isoweekday() % 7)
    if not schedule.is_available:
        return []
    return [(block.start_time, block.end_time) for block in schedule.time_blocks]


def _date_range(start_date: date, end_date: date):
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


class AvailabilityService:
    def __init__(
        self,
        db: Session,
        defaults: Optional[SchedulingDefaults] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.defaults = defaults or get_scheduling_defaults()
        self.clock = clock or datetime.now
        self.schedules = ScheduleService(db, self.defaults)
        self.exceptions = ExceptionService(db, self.defaults)

    def _check_request(self, start_date: date, end_date: date, duration: int) -> None:
        errors = []
        if end_date < start_date:
            errors.append("End date must be on or after the start date.")
        if duration <= 0:
            errors.append("Appointment duration must be a positive number of minutes.")
        if errors:
            raise ValidationError(errors)

    def compute_availability(self, provider_id: int, start_date: date, end_date: date, duration: Optional[int] = None) -> schemas.AvailabilityResult:
        """
        Open slots for one provider over an inclusive date range.

        A date whose windows cannot be resolved is skipped, logged and listed in
        `skipped_dates` instead of failing the whole range.
        """
        if duration is None:
            duration = self.defaults.appointment_duration_minutes
        self._check_request(start_date, end_date, duration)

        provider = crud.get_provider(self.db, provider_id)
        if provider is None:
            raise NotFoundError("Provider", provider_id)

        template = self.schedules.get_weekly_template(provider_id)
        policy = self.schedules.get_booking_policy(provider_id)
        exceptions = self.exceptions.get_exceptions(provider_id, start_date, end_date)
        appointments = crud.get_appointments_in_range(self.db, provider_id, start_date, end_date)

        booked_starts: Set[datetime] = set()
        existing_counts: Dict[date, int] = defaultdict(int)
        for appointment in appointments:
            booked_starts.add(appointment.start_time)
            existing_counts[appointment.start_time.date()] += 1

        candidates: List[schemas.TimeSlot] = []
        skipped: List[date] = []
        for day in _date_range(start_date, end_date):
            try:
                windows = resolve_day_windows(day, template, exceptions)
                day_slots = slot_service.generate_day_slots(day, windows, duration, policy.booking_buffer_minutes)
            except ValueError as e:
                logger.warning("availability.date_skipped", provider_id=provider_id, date=day.isoformat(), error=str(e))
                skipped.append(day)
                continue
            candidates.extend(
                slot_service.filter_available(day_slots, booked_starts, policy.max_daily_appointments, existing_counts)
            )

        if self.defaults.enforce_booking_window:
            candidates = slot_service.within_booking_window(
                candidates, self.clock(), policy.minimum_notice_hours, policy.advance_booking_days
            )

        slots = [
            schemas.AvailableSlot(
                date=slot.date,
                start_time=slot.start.time(),
                end_time=slot.end.time(),
                provider_id=provider.id,
                provider_display_name=provider.display_name,
                duration=duration,
            )
            for slot in candidates
        ]
        slots = slot_service.reconcile_daily_cap(slots, policy.max_daily_appointments, existing_counts)

        if skipped:
            warning = PartialComputationWarning(skipped)
            logger.warning("availability.partial", provider_id=provider_id, detail=str(warning))

        logger.debug(
            "availability.computed",
            provider_id=provider_id,
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
            slots=len(slots),
        )
        return schemas.AvailabilityResult(slots=slots, skipped_dates=skipped)

    def get_available_slots(self, provider_id: int, start_date: date, end_date: date, duration: Optional[int] = None) -> List[schemas.AvailableSlot]:
        return self.compute_availability(provider_id, start_date, end_date, duration).slots

    def get_available_providers(self, payer_id: int, day: date, duration: Optional[int] = None) -> List[schemas.ProviderSlots]:
        """
        Every generally bookable provider with at least one open slot on `day`,
        sorted by display name. Network membership is not checked here.
        """
        if crud.get_payer(self.db, payer_id) is None:
            raise NotFoundError("Payer", payer_id)

        results = []
        for provider in crud.get_bookable_providers(self.db):
            slots = self.get_available_slots(provider.id, day, day, duration)
            if slots:
                results.append(schemas.ProviderSlots(provider=schemas.ProviderSummary.model_validate(provider), slots=slots))

        results.sort(key=lambda r: (r.provider.display_name.lower(), r.provider.id))
        logger.info("availability.providers", payer_id=payer_id, date=day.isoformat(), providers=len(results))
        return results

    def get_merged_availability(self, payer_id: int, start_date: date, end_date: date, duration: Optional[int] = None) -> schemas.AvailabilityResult:
        """Slots of every in-network provider for the payer, pooled in chronological order."""
        if crud.get_payer(self.db, payer_id) is None:
            raise NotFoundError("Payer", payer_id)

        pooled: List[schemas.AvailableSlot] = []
        skipped: Set[date] = set()
        for provider in crud.get_in_network_providers(self.db, payer_id):
            result = self.compute_availability(provider.id, start_date, end_date, duration)
            pooled.extend(result.slots)
            skipped.update(result.skipped_dates)

        pooled.sort(key=lambda s: (s.date, s.start_time, s.provider_display_name))
        return schemas.AvailabilityResult(slots=pooled, skipped_dates=sorted(skipped))
