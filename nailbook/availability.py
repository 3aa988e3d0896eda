"""
Bookable slot calculation for a single day.

Pure functions only: no database, no I/O. Times of day are integer minutes
since midnight; "HH:MM" strings are parsed and formatted at the edges.

Steps:
1. Resolve the day's windows: special-day windows replace the weekly ones.
2. Expand every window into slot starts at a fixed step.
3. Mark the steps occupied by active bookings (each with its own duration).
4. Flag each slot: free, and, for a requested duration, the whole span
   stays inside open slots.
"""

from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, Optional

SLOT_STEP_MINUTES = 30


@dataclass(frozen=True)
class TimeWindow:
    start: int
    end: int


@dataclass(frozen=True)
class BookingInterval:
    start: int
    duration: Optional[int] = None


@dataclass(frozen=True)
class Slot:
    time: int
    available: bool

    def as_dict(self) -> dict:
        return {"time": format_hhmm(self.time), "available": self.available}


def parse_hhmm(value: str) -> int:
    """Convert "HH:MM" to minutes since midnight."""
    raw = (value or "").strip()
    parts = raw.split(":")
    if len(parts) != 2 or not all(p.isdigit() and len(p) == 2 for p in parts):
        raise ValueError(f"invalid time {value!r}, expected HH:MM")
    hour, minute = int(parts[0]), int(parts[1])
    if hour > 23 or minute > 59:
        raise ValueError(f"invalid time {value!r}, expected HH:MM")
    return hour * 60 + minute


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def weekday_index(day: date) -> int:
    """Weekday with Sunday as 0, the convention of stored working hours."""
    return (day.weekday() + 1) % 7


def _check_step(step: int) -> None:
    if int(step) < 1:
        raise ValueError(f"slot step must be a positive number of minutes, got {step!r}")


def step_count(duration: int, step: int = SLOT_STEP_MINUTES) -> int:
    _check_step(step)
    return -(-int(duration) // step)


def resolve_windows(
    weekly: Iterable[TimeWindow],
    special: Iterable[TimeWindow],
) -> list[TimeWindow]:
    """Special-day windows, when any exist, replace the weekly schedule entirely."""
    special = list(special)
    chosen = special if special else list(weekly)
    return sorted(chosen, key=lambda w: (w.start, w.end))


def expand_windows(windows: Iterable[TimeWindow], step: int = SLOT_STEP_MINUTES) -> list[int]:
    _check_step(step)
    times: list[int] = []
    for window in windows:
        t = window.start
        while t < window.end:
            times.append(t)
            t += step
    return times


def occupied_steps(bookings: Iterable[BookingInterval], step: int = SLOT_STEP_MINUTES) -> set[int]:
    occupied: set[int] = set()
    for booking in bookings:
        # Zero or unknown duration still blocks its starting step.
        steps = max(1, step_count(booking.duration or 0, step))
        for i in range(steps):
            occupied.add(booking.start + i * step)
    return occupied


def compute_availability(
    weekly: Iterable[TimeWindow],
    special: Iterable[TimeWindow] = (),
    bookings: Iterable[BookingInterval] = (),
    duration: Optional[int] = None,
    step: int = SLOT_STEP_MINUTES,
) -> list[Slot]:
    _check_step(step)
    windows = resolve_windows(weekly, special)
    slot_times = expand_windows(windows, step)
    if not slot_times:
        return []

    occupied = occupied_steps(bookings, step)
    if not duration or duration <= 0:
        return [Slot(time=t, available=t not in occupied) for t in slot_times]

    open_times = set(slot_times)
    needed = step_count(duration, step)
    slots: list[Slot] = []
    for t in slot_times:
        span = [t + i * step for i in range(needed)]
        fits = all(s in open_times and s not in occupied for s in span)
        slots.append(Slot(time=t, available=fits))
    return slots


def availability_for_date(
    day: date,
    duration: Optional[int],
    *,
    list_working_windows: Callable[[int], Iterable[TimeWindow]],
    list_special_day_windows: Callable[[date], Iterable[TimeWindow]],
    list_active_bookings: Callable[[date], Iterable[BookingInterval]],
    step: int = SLOT_STEP_MINUTES,
) -> list[Slot]:
    """Fetch the day's inputs from the given sources and compute its slots.

    The weekly schedule is only read when the date has no special-day windows.
    """
    special = list(list_special_day_windows(day))
    weekly = [] if special else list(list_working_windows(weekday_index(day)))
    if not special and not weekly:
        return []
    bookings = list(list_active_bookings(day))
    return compute_availability(weekly, special, bookings, duration=duration, step=step)
