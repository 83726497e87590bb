# tests/test_slot_service.py
from datetime import date, datetime, time

import pytest

from practice_scheduler.errors import InvalidWindowError
from practice_scheduler.schemas import AvailableSlot, TimeSlot
from practice_scheduler.services import slot_service

DAY = date(2030, 1, 7)


def at(hour, minute=0, day=DAY):
    return datetime.combine(day, time(hour, minute))


def starts(slots):
    return [s.start.time() for s in slots]


def test_one_hour_window_one_hour_slot():
    slots = slot_service.generate_slots(DAY, time(9), time(10), 60, 0)
    assert len(slots) == 1
    assert slots[0].start == at(9)
    assert slots[0].end == at(10)


def test_half_hour_slots_back_to_back():
    slots = slot_service.generate_slots(DAY, time(9), time(10), 30, 0)
    assert starts(slots) == [time(9), time(9, 30)]


def test_buffer_pushes_second_slot_out_of_window():
    slots = slot_service.generate_slots(DAY, time(9), time(10), 45, 15)
    assert starts(slots) == [time(9)]


def test_no_partial_trailing_slot():
    assert slot_service.generate_slots(DAY, time(9), time(9, 50), 60, 0) == []


def test_buffer_spacing_across_morning_block():
    slots = slot_service.generate_slots(DAY, time(9), time(12), 60, 15)
    assert starts(slots) == [time(9), time(10, 15)]


def test_inverted_window_is_rejected():
    with pytest.raises(InvalidWindowError):
        slot_service.generate_slots(DAY, time(10), time(9), 30, 0)


def test_zero_length_window_yields_no_slots():
    assert slot_service.generate_slots(DAY, time(10), time(10), 30, 0) == []
    assert slot_service.generate_day_slots(DAY, [(time(10), time(10)), (time(11), time(12))], 60, 0)[0].start == at(11)


def test_invalid_window_is_a_value_error():
    assert issubclass(InvalidWindowError, ValueError)


def test_day_slots_concatenate_windows_in_order():
    windows = [(time(13), time(14)), (time(9), time(10))]
    slots = slot_service.generate_day_slots(DAY, windows, 60, 0)
    assert starts(slots) == [time(9), time(13)]


def test_filter_removes_exact_start_matches_only():
    candidates = slot_service.generate_slots(DAY, time(9), time(12), 60, 0)
    # 10:30 overlaps the 10:00 slot but does not share its start time
    kept = slot_service.filter_available(candidates, [at(9), at(10, 30)], daily_cap=20)
    assert starts(kept) == [time(10), time(11)]


def test_filter_caps_remaining_per_date_earliest_first():
    candidates = slot_service.generate_slots(DAY, time(9), time(17), 60, 0)
    kept = slot_service.filter_available(candidates, [], daily_cap=3, existing_counts={DAY: 1})
    assert starts(kept) == [time(9), time(10)]


def test_filter_never_goes_negative_when_day_is_overbooked():
    candidates = slot_service.generate_slots(DAY, time(9), time(12), 60, 0)
    assert slot_service.filter_available(candidates, [], daily_cap=2, existing_counts={DAY: 5}) == []


def _available(day, hour):
    return AvailableSlot(
        date=day,
        start_time=time(hour),
        end_time=time(hour + 1),
        provider_id=1,
        provider_display_name="Dr. Ada Lovelace",
        duration=60,
    )


def test_reconcile_daily_cap_applies_per_date():
    tuesday = date(2030, 1, 8)
    slots = [_available(DAY, h) for h in (11, 9, 10)] + [_available(tuesday, h) for h in (9, 10)]
    kept = slot_service.reconcile_daily_cap(slots, daily_cap=2, existing_counts={tuesday: 1})
    assert [(s.date, s.start_time.hour) for s in kept] == [(DAY, 9), (DAY, 10), (tuesday, 9)]


def test_booking_window_drops_too_soon_and_too_far():
    now = at(8)
    slots = [
        TimeSlot(start=at(9), end=at(10)),
        TimeSlot(start=at(9, day=date(2030, 1, 8)), end=at(10, day=date(2030, 1, 8))),
        TimeSlot(start=at(9, day=date(2030, 1, 10)), end=at(10, day=date(2030, 1, 10))),
    ]
    kept = slot_service.within_booking_window(slots, now, minimum_notice_hours=24, advance_booking_days=2)
    assert [s.date for s in kept] == [date(2030, 1, 8)]
