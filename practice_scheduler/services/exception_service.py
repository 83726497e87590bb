# practice_scheduler/services/exception_service.py
# Exception resolver: validates input, expands recurring series into dated rows, stores them as one batch.
import calendar
from datetime import date, timedelta
from typing import List, Optional, Tuple

import structlog
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..compliance_logger import compliance_logger
from ..config import SchedulingDefaults, get_scheduling_defaults
from ..errors import NotFoundError, ValidationError
from ..models import ExceptionType, RecurrencePattern

logger = structlog.get_logger(__name__)

# (exception_date, end_date) of one materialized occurrence
Occurrence = Tuple[date, Optional[date]]


def validate_exception(data: schemas.ExceptionCreate) -> List[str]:
    """Every violated rule, in a stable order. An empty list means the input may be expanded."""
    errors = []
    if data.exception_date is None:
        errors.append("Start date is required.")
    elif data.end_date is not None and data.end_date < data.exception_date:
        errors.append("End date must be on or after the start date.")

    if data.exception_type.has_window:
        if data.start_time is None or data.end_time is None:
            errors.append("Start time and end time are required for custom hours and partial blocks.")
        elif data.start_time >= data.end_time:
            errors.append("End time must be after start time.")

    if data.is_recurring:
        if data.recurrence_pattern is None:
            errors.append("Recurrence pattern is required for recurring exceptions.")
        if data.recurrence_count is None and data.recurrence_end_date is None:
            errors.append("Either a recurrence count or an end date is required for recurring exceptions.")
        if (
            data.recurrence_end_date is not None
            and data.exception_date is not None
            and data.recurrence_end_date < data.exception_date
        ):
            errors.append("Recurrence end date must be on or after the start date.")
    return errors


def add_months(day: date, months: int) -> date:
    """Calendar month arithmetic; the 31st clamps to the last day of shorter months."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def _cycle_dates(data: schemas.ExceptionCreate, cycle: int) -> List[date]:
    base = data.exception_date
    interval = data.recurrence_interval or 1
    pattern = data.recurrence_pattern

    if pattern == RecurrencePattern.daily:
        return [base + timedelta(days=cycle * interval)]
    if pattern == RecurrencePattern.monthly:
        return [add_months(base, cycle * interval)]

    anchor = base + timedelta(weeks=cycle * interval)
    if not data.recurrence_days:
        return [anchor]
    anchor_weekday = anchor.isoweekday() % 7  # 0=Sunday
    return sorted(anchor + timedelta(days=(weekday - anchor_weekday) % 7) for weekday in data.recurrence_days)


def expand_recurrence(data: schemas.ExceptionCreate, safety_cap: int = 52) -> List[Occurrence]:
    """
    Materializes the dates an exception applies to.

    A single exception yields its own date. A recurring one steps forward by
    `recurrence_interval` days/weeks/months from the base date for at most
    `safety_cap` cycles. Weekly series with `recurrence_days` fan each cycle out
    to the selected weekdays falling in the seven days from the cycle anchor.
    `recurrence_count` counts occurrences including the base date, and no
    occurrence lands after `recurrence_end_date`. Multi-day exceptions keep
    their day span on every occurrence.
    """
    base = data.exception_date
    span = (data.end_date - base) if data.end_date else None

    def occurrence(day: date) -> Occurrence:
        return (day, day + span if span is not None else None)

    if not data.is_recurring or data.recurrence_pattern is None:
        return [occurrence(base)]

    limit = data.recurrence_count
    stop = data.recurrence_end_date
    seen = {base}
    dates = [base]

    for cycle in range(safety_cap):
        if limit is not None and len(dates) >= limit:
            break
        candidates = _cycle_dates(data, cycle)
        if stop is not None and min(candidates) > stop:
            break
        for day in candidates:
            if day in seen or (stop is not None and day > stop):
                continue
            seen.add(day)
            dates.append(day)
            if limit is not None and len(dates) >= limit:
                break

    return [occurrence(day) for day in sorted(dates)]


class ExceptionService:
    def __init__(self, db: Session, defaults: Optional[SchedulingDefaults] = None):
        self.db = db
        self.defaults = defaults or get_scheduling_defaults()

    def get_exceptions(self, provider_id: int, start_date: Optional[date] = None, end_date: Optional[date] = None) -> List[schemas.ExceptionResponse]:
        """Stored rows overlapping the range, already expanded, ordered by date."""
        rows = crud.get_exceptions(self.db, provider_id, start_date, end_date)
        return [schemas.ExceptionResponse.model_validate(row) for row in rows]

    def save_exception(self, provider_id: int, data: schemas.ExceptionCreate) -> schemas.SavedExceptions:
        """Validates, expands and bulk-inserts. Nothing is written unless every rule passes."""
        if crud.get_provider(self.db, provider_id) is None:
            raise NotFoundError("Provider", provider_id)

        errors = validate_exception(data)
        if errors:
            logger.info("exception.rejected", provider_id=provider_id, errors=errors)
            raise ValidationError(errors)

        occurrences = expand_recurrence(data, self.defaults.recurrence_safety_cap)
        taken = crud.get_exception_dates(self.db, provider_id, [day for day, _ in occurrences])
        if taken:
            raise ValidationError(
                [f"An exception already exists on {day.isoformat()}." for day in taken]
            )

        keeps_window = data.exception_type.has_window
        shared = {
            "provider_id": provider_id,
            "exception_type": data.exception_type,
            "start_time": data.start_time if keeps_window else None,
            "end_time": data.end_time if keeps_window else None,
            "note": data.note,
            "is_recurring": data.is_recurring,
            "recurrence_pattern": data.recurrence_pattern if data.is_recurring else None,
            "recurrence_interval": data.recurrence_interval if data.is_recurring else None,
            "recurrence_count": data.recurrence_count if data.is_recurring else None,
            "recurrence_end_date": data.recurrence_end_date if data.is_recurring else None,
            "recurrence_days": data.recurrence_days if data.is_recurring else None,
        }
        rows = crud.insert_exceptions(
            self.db,
            [dict(shared, exception_date=day, end_date=end) for day, end in occurrences],
        )

        saved = schemas.SavedExceptions(ids=[row.id for row in rows], dates=[row.exception_date for row in rows])
        logger.info("exception.saved", provider_id=provider_id, count=len(rows), exception_type=data.exception_type.value)
        compliance_logger.log_event(
            self.db,
            action="BULK_ACTION" if len(rows) > 1 else "CREATE",
            category="SCHEDULE_EXCEPTION",
            details=f"Added {len(rows)} {data.exception_type.value} exception(s) for provider {provider_id}",
            resource_type="Provider",
            resource_id=provider_id,
            new_values={"dates": [d.isoformat() for d in saved.dates]},
        )
        return saved

    def delete_exception(self, exception_id: int) -> None:
        existing = crud.get_exception(self.db, exception_id)
        if existing is None:
            raise NotFoundError("Exception", exception_id)
        provider_id = existing.provider_id
        crud.delete_exception(self.db, exception_id)
        logger.info("exception.deleted", exception_id=exception_id, provider_id=provider_id)
        compliance_logger.log_event(
            self.db,
            action="DELETE",
            category="SCHEDULE_EXCEPTION",
            details=f"Deleted exception {exception_id} for provider {provider_id}",
            resource_type="AvailabilityException",
            resource_id=exception_id,
        )
