# practice_scheduler/services/slot_service.py
# Pure slot arithmetic: no session, no clock, no logging.
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..errors import InvalidWindowError
from ..schemas import TimeSlot, AvailableSlot


def generate_slots(target_date: date, window_start: time, window_end: time, duration_minutes: int, buffer_minutes: int = 0) -> List[TimeSlot]:
    """
    Cuts one availability window into back-to-back candidates.

    Each slot lasts `duration_minutes`; the cursor then advances by duration plus
    `buffer_minutes`. A candidate is emitted only if it ends at or before the window end.
    Overnight windows are not supported and raise InvalidWindowError.
    """
    if window_start is None or window_end is None or window_end < window_start:
        raise InvalidWindowError(f"Window {window_start}-{window_end} on {target_date} ends before it starts")
    if duration_minutes <= 0:
        raise InvalidWindowError(f"Slot duration must be positive, got {duration_minutes}")
    if buffer_minutes < 0:
        raise InvalidWindowError(f"Buffer must not be negative, got {buffer_minutes}")

    cursor = datetime.combine(target_date, window_start)
    end_dt = datetime.combine(target_date, window_end)
    duration = timedelta(minutes=duration_minutes)
    step = duration + timedelta(minutes=buffer_minutes)

    slots = []
    while cursor + duration <= end_dt:
        slots.append(TimeSlot(start=cursor, end=cursor + duration))
        cursor += step
    return slots


def generate_day_slots(target_date: date, windows: Sequence[Tuple[time, time]], duration_minutes: int, buffer_minutes: int = 0) -> List[TimeSlot]:
    """Concatenates the candidates of every window for one date, ordered by start."""
    slots = []
    for window_start, window_end in windows:
        slots.extend(generate_slots(target_date, window_start, window_end, duration_minutes, buffer_minutes))
    return sorted(slots, key=lambda s: s.start)


def filter_available(candidates: Iterable[TimeSlot], booked_starts: Iterable[datetime], daily_cap: int, existing_counts: Optional[Dict[date, int]] = None) -> List[TimeSlot]:
    """
    Drops candidates whose start equals a booked start, then keeps at most
    `daily_cap - existing bookings` per date, earliest first.
    """
    booked = set(booked_starts)
    existing_counts = existing_counts or {}

    by_date: Dict[date, List[TimeSlot]] = defaultdict(list)
    for slot in candidates:
        if slot.start in booked:
            continue
        by_date[slot.date].append(slot)

    kept = []
    for slot_date in sorted(by_date):
        remaining = max(0, daily_cap - existing_counts.get(slot_date, 0))
        kept.extend(sorted(by_date[slot_date], key=lambda s: s.start)[:remaining])
    return kept


def reconcile_daily_cap(slots: Iterable[AvailableSlot], daily_cap: int, existing_counts: Optional[Dict[date, int]] = None) -> List[AvailableSlot]:
    """Second pass over a whole range so the per-date cap holds however the candidates were produced."""
    existing_counts = existing_counts or {}
    per_date: Dict[date, int] = defaultdict(int)
    kept = []
    for slot in sorted(slots, key=lambda s: (s.date, s.start_time)):
        allowed = daily_cap - existing_counts.get(slot.date, 0)
        if per_date[slot.date] >= allowed:
            continue
        per_date[slot.date] += 1
        kept.append(slot)
    return kept


def within_booking_window(slots: Iterable[TimeSlot], now: datetime, minimum_notice_hours: int, advance_booking_days: int) -> List[TimeSlot]:
    """Keeps slots starting at least `minimum_notice_hours` from now and no later than the horizon date."""
    earliest = now + timedelta(hours=minimum_notice_hours)
    last_date = now.date() + timedelta(days=advance_booking_days)
    return [s for s in slots if s.start >= earliest and s.date <= last_date]
