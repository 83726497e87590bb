# tests/test_exception_service.py
from datetime import date, time, timedelta

import pytest

from practice_scheduler import models
from practice_scheduler.errors import NotFoundError, ValidationError
from practice_scheduler.models import ExceptionType, RecurrencePattern
from practice_scheduler.schemas import ExceptionCreate
from practice_scheduler.services.exception_service import ExceptionService, add_months, expand_recurrence, validate_exception

MONDAY = date(2030, 1, 7)


def dates_of(occurrences):
    return [day for day, _ in occurrences]


def test_weekly_expansion_mon_wed_fri_count_six(db, defaults, make_provider):
    provider = make_provider()
    data = ExceptionCreate(
        exception_date=MONDAY,
        exception_type=ExceptionType.unavailable,
        is_recurring=True,
        recurrence_pattern=RecurrencePattern.weekly,
        recurrence_interval=1,
        recurrence_days=[1, 3, 5],
        recurrence_count=6,
    )
    service = ExceptionService(db, defaults)
    saved = service.save_exception(provider.id, data)
    assert len(saved.ids) == 6

    stored = service.get_exceptions(provider.id, MONDAY, MONDAY + timedelta(days=20))
    assert [e.exception_date for e in stored] == [
        MONDAY, MONDAY + timedelta(days=2), MONDAY + timedelta(days=4),
        MONDAY + timedelta(days=7), MONDAY + timedelta(days=9), MONDAY + timedelta(days=11),
    ]
    assert all(e.exception_date.isoweekday() % 7 in (1, 3, 5) for e in stored)


def test_incomplete_recurrence_is_rejected_before_any_insert(db, defaults, make_provider):
    provider = make_provider()
    data = ExceptionCreate(
        exception_date=MONDAY,
        is_recurring=True,
        recurrence_pattern=RecurrencePattern.daily,
    )
    with pytest.raises(ValidationError) as exc_info:
        ExceptionService(db, defaults).save_exception(provider.id, data)

    assert exc_info.value.errors == ["Either a recurrence count or an end date is required for recurring exceptions."]
    assert db.query(models.AvailabilityException).count() == 0


def test_validation_collects_every_violation():
    data = ExceptionCreate(
        exception_date=MONDAY,
        end_date=MONDAY - timedelta(days=1),
        exception_type=ExceptionType.custom_hours,
        is_recurring=True,
    )
    errors = validate_exception(data)
    assert errors == [
        "End date must be on or after the start date.",
        "Start time and end time are required for custom hours and partial blocks.",
        "Recurrence pattern is required for recurring exceptions.",
        "Either a recurrence count or an end date is required for recurring exceptions.",
    ]


def test_validation_requires_start_date_and_ordered_window():
    data = ExceptionCreate(exception_type=ExceptionType.partial_block, start_time=time(11), end_time=time(10))
    assert validate_exception(data) == ["Start date is required.", "End time must be after start time."]


def test_single_exception_is_one_row():
    data = ExceptionCreate(exception_date=MONDAY)
    assert expand_recurrence(data) == [(MONDAY, None)]


def test_daily_count_includes_base_date():
    data = ExceptionCreate(exception_date=MONDAY, is_recurring=True, recurrence_pattern=RecurrencePattern.daily, recurrence_count=3)
    assert dates_of(expand_recurrence(data)) == [MONDAY, MONDAY + timedelta(days=1), MONDAY + timedelta(days=2)]


def test_daily_interval_steps():
    data = ExceptionCreate(
        exception_date=MONDAY, is_recurring=True, recurrence_pattern=RecurrencePattern.daily,
        recurrence_interval=3, recurrence_count=3,
    )
    assert dates_of(expand_recurrence(data)) == [MONDAY, MONDAY + timedelta(days=3), MONDAY + timedelta(days=6)]


def test_weekly_days_clipped_to_recurrence_end_date():
    data = ExceptionCreate(
        exception_date=MONDAY,
        is_recurring=True,
        recurrence_pattern=RecurrencePattern.weekly,
        recurrence_days=[1, 3, 5],
        recurrence_end_date=MONDAY + timedelta(days=9),
    )
    assert dates_of(expand_recurrence(data)) == [
        MONDAY, MONDAY + timedelta(days=2), MONDAY + timedelta(days=4),
        MONDAY + timedelta(days=7), MONDAY + timedelta(days=9),
    ]


def test_every_other_week():
    data = ExceptionCreate(
        exception_date=MONDAY, is_recurring=True, recurrence_pattern=RecurrencePattern.weekly,
        recurrence_interval=2, recurrence_count=3,
    )
    assert dates_of(expand_recurrence(data)) == [MONDAY, MONDAY + timedelta(weeks=2), MONDAY + timedelta(weeks=4)]


def test_safety_cap_bounds_open_ended_series():
    data = ExceptionCreate(
        exception_date=MONDAY, is_recurring=True, recurrence_pattern=RecurrencePattern.daily,
        recurrence_end_date=MONDAY + timedelta(days=400),
    )
    assert len(expand_recurrence(data, safety_cap=52)) == 52


def test_monthly_clamps_to_month_end():
    base = date(2030, 1, 31)
    data = ExceptionCreate(exception_date=base, is_recurring=True, recurrence_pattern=RecurrencePattern.monthly, recurrence_count=3)
    assert dates_of(expand_recurrence(data)) == [date(2030, 1, 31), date(2030, 2, 28), date(2030, 3, 31)]


def test_add_months_rolls_over_year():
    assert add_months(date(2030, 11, 15), 3) == date(2031, 2, 15)


def test_multi_day_span_is_preserved_on_each_occurrence():
    data = ExceptionCreate(
        exception_date=MONDAY,
        end_date=MONDAY + timedelta(days=2),
        exception_type=ExceptionType.vacation,
        is_recurring=True,
        recurrence_pattern=RecurrencePattern.weekly,
        recurrence_count=2,
    )
    assert expand_recurrence(data) == [
        (MONDAY, MONDAY + timedelta(days=2)),
        (MONDAY + timedelta(weeks=1), MONDAY + timedelta(weeks=1, days=2)),
    ]


def test_existing_date_rejects_whole_batch(db, defaults, make_provider):
    provider = make_provider()
    service = ExceptionService(db, defaults)
    service.save_exception(provider.id, ExceptionCreate(exception_date=MONDAY + timedelta(days=1)))

    data = ExceptionCreate(exception_date=MONDAY, is_recurring=True, recurrence_pattern=RecurrencePattern.daily, recurrence_count=3)
    with pytest.raises(ValidationError) as exc_info:
        service.save_exception(provider.id, data)

    assert "2030-01-08" in str(exc_info.value)
    assert db.query(models.AvailabilityException).count() == 1


def test_custom_hours_row_keeps_window(db, defaults, make_provider):
    provider = make_provider()
    service = ExceptionService(db, defaults)
    service.save_exception(provider.id, ExceptionCreate(
        exception_date=MONDAY, exception_type=ExceptionType.custom_hours,
        start_time=time(10), end_time=time(11), note="Clinic offsite",
    ))
    (row,) = service.get_exceptions(provider.id, MONDAY, MONDAY)
    assert (row.start_time, row.end_time, row.note) == (time(10), time(11), "Clinic offsite")


def test_range_query_includes_multi_day_rows_starting_earlier(db, defaults, make_provider):
    provider = make_provider()
    service = ExceptionService(db, defaults)
    service.save_exception(provider.id, ExceptionCreate(
        exception_date=MONDAY, end_date=MONDAY + timedelta(days=4), exception_type=ExceptionType.unavailable,
    ))
    rows = service.get_exceptions(provider.id, MONDAY + timedelta(days=2), MONDAY + timedelta(days=3))
    assert len(rows) == 1
    assert rows[0].covers(MONDAY + timedelta(days=3))


def test_save_for_unknown_provider(db, defaults):
    with pytest.raises(NotFoundError):
        ExceptionService(db, defaults).save_exception(404, ExceptionCreate(exception_date=MONDAY))


def test_delete_exception(db, defaults, make_provider):
    provider = make_provider()
    service = ExceptionService(db, defaults)
    saved = service.save_exception(provider.id, ExceptionCreate(exception_date=MONDAY))

    service.delete_exception(saved.ids[0])
    assert service.get_exceptions(provider.id) == []
    with pytest.raises(NotFoundError):
        service.delete_exception(saved.ids[0])
