"""Slot arithmetic shared by availability queries and booking writes.

Every interval handled here is half-open, ``[start, start + duration)``, and
times of day are compared as minutes since midnight. Nothing in this module
touches the data store, so the same inputs always produce the same output.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Mapping, Optional, Sequence

from salon_agenda.schemas.booking import ACTIVE_STATUSES, Booking
from salon_agenda.schemas.catalog import OperatingWindow

logger = logging.getLogger(__name__)


def weekday_index(day: dt.date) -> int:
    """Return the weekday of ``day`` with Sunday as 0, as operating hours store it."""

    return (day.weekday() + 1) % 7


def to_minutes(value: dt.time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> dt.time:
    return dt.time(minutes // 60, minutes % 60)


def intervals_overlap(a_start: int, a_duration: int, b_start: int, b_duration: int) -> bool:
    return a_start < b_start + b_duration and b_start < a_start + a_duration


@dataclass(frozen=True)
class BusyInterval:
    start: dt.time
    duration_minutes: int
    booking_id: Optional[str] = None

    @property
    def start_minute(self) -> int:
        return to_minutes(self.start)

    @property
    def end_minute(self) -> int:
        return self.start_minute + self.duration_minutes


class CandidateSlots:
    """Start times inside an operating window, recomputed on every iteration."""

    def __init__(self, window: OperatingWindow, service_duration_minutes: int) -> None:
        if service_duration_minutes <= 0:
            raise ValueError("service duration must be positive")
        self.window = window
        self.service_duration_minutes = service_duration_minutes

    def __iter__(self) -> Iterator[dt.time]:
        current = to_minutes(self.window.opens_at)
        closes = to_minutes(self.window.closes_at)
        step = self.window.slot_granularity_minutes
        while current + self.service_duration_minutes <= closes:
            yield from_minutes(current)
            current += step

    def __repr__(self) -> str:
        return (
            f"CandidateSlots({self.window.opens_at}-{self.window.closes_at}, "
            f"every {self.window.slot_granularity_minutes}m, "
            f"duration {self.service_duration_minutes}m)"
        )


def generate_candidates(window: OperatingWindow, service_duration_minutes: int) -> CandidateSlots:
    return CandidateSlots(window, service_duration_minutes)


def fits_window(window: OperatingWindow, start: dt.time, duration_minutes: int) -> bool:
    if start.second or start.microsecond:
        return False
    start_minute = to_minutes(start)
    return (
        to_minutes(window.opens_at) <= start_minute
        and start_minute + duration_minutes <= to_minutes(window.closes_at)
    )


def busy_intervals(
    bookings: Iterable[Booking],
    durations: Mapping[str, int],
    *,
    fallback_minutes: int,
    exclude_booking_id: Optional[str] = None,
) -> List[BusyInterval]:
    """Turn bookings into the intervals they occupy.

    Only pending and confirmed bookings occupy time. Each booking is as wide as
    its own service; a booking whose service is no longer in ``durations``
    falls back to ``fallback_minutes``.
    """

    intervals: List[BusyInterval] = []
    for booking in bookings:
        if booking.status not in ACTIVE_STATUSES or booking.id == exclude_booking_id:
            continue
        duration = durations.get(booking.service_id)
        if duration is None:
            logger.warning(
                "Booking %s references unknown service %s; assuming %s minutes",
                booking.id,
                booking.service_id,
                fallback_minutes,
            )
            duration = fallback_minutes
        intervals.append(BusyInterval(booking.start_time, duration, booking.id))
    return intervals


def conflicts_for(
    start: dt.time, duration_minutes: int, existing: Sequence[BusyInterval]
) -> List[BusyInterval]:
    start_minute = to_minutes(start)
    return [
        interval
        for interval in existing
        if intervals_overlap(
            start_minute, duration_minutes, interval.start_minute, interval.duration_minutes
        )
    ]


def filter_available(
    candidates: Iterable[dt.time],
    existing: Sequence[BusyInterval],
    service_duration_minutes: int,
) -> List[dt.time]:
    return [
        candidate
        for candidate in candidates
        if not conflicts_for(candidate, service_duration_minutes, existing)
    ]
