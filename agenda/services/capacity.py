from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, time

from sqlalchemy.orm import Session

from agenda import repository
from agenda.models import Booking
from agenda.services.availability_calc import MINUTES_PER_DAY, minute_of_day
from agenda.services.rules import ResolvedDay, ResolvedWindow, Slot

logger = logging.getLogger("agenda.availability")


@dataclass(frozen=True)
class Capacity:
    """Remaining capacity: unbounded, or a bounded count that may be zero.

    ``remaining`` is None only for the unbounded case.
    """

    remaining: int | None

    @classmethod
    def unbounded(cls) -> Capacity:
        return cls(remaining=None)

    @classmethod
    def bounded(cls, remaining: int) -> Capacity:
        return cls(remaining=max(0, remaining))

    @property
    def is_unbounded(self) -> bool:
        return self.remaining is None

    @property
    def is_exhausted(self) -> bool:
        return self.remaining is not None and self.remaining <= 0

    def admits(self, party_size: int) -> bool:
        if party_size <= 0:
            return False
        return self.remaining is None or self.remaining >= party_size

    def to_dict(self) -> dict[str, object]:
        return {"unbounded": self.is_unbounded, "remaining": self.remaining}


def effective_capacity(
    slot_override: int | None = None,
    window_capacity: int | None = None,
    service_default: int | None = None,
) -> int | None:
    for value in (slot_override, window_capacity, service_default):
        if value is not None:
            return value
    return None


def booking_span(booking: Booking) -> tuple[int, int]:
    start = minute_of_day(booking.start_time) if booking.start_time is not None else 0
    end = minute_of_day(booking.end_time) if booking.end_time is not None else MINUTES_PER_DAY
    if end <= start:
        end = MINUTES_PER_DAY
    return start, end


def peak_occupancy(bookings: Iterable[Booking], start: time | None, end: time | None) -> int:
    """Highest concurrent party size within [start, end).

    None bounds stand for the whole day. Ends sort before starts at the same
    minute, so back-to-back bookings never stack.
    """
    lower = minute_of_day(start) if start is not None else 0
    upper = minute_of_day(end) if end is not None else MINUTES_PER_DAY

    events: list[tuple[int, int, int]] = []
    for booking in bookings:
        booking_start, booking_end = booking_span(booking)
        clipped_start = max(lower, booking_start)
        clipped_end = min(upper, booking_end)
        if clipped_start >= clipped_end:
            continue
        party = max(0, int(booking.party_size or 0))
        events.append((clipped_start, 1, party))
        events.append((clipped_end, 0, party))

    events.sort()
    current = 0
    peak = 0
    for _, is_start, party in events:
        if is_start:
            current += party
            peak = max(peak, current)
        else:
            current -= party
    return peak


def remaining_for_interval(
    bookings: Iterable[Booking],
    *,
    capacity: int | None,
    start: time | None,
    end: time | None,
) -> Capacity:
    if capacity is None:
        return Capacity.unbounded()
    return Capacity.bounded(capacity - peak_occupancy(bookings, start, end))


def remaining_capacity(
    db: Session,
    merchant_id: int,
    service_id: int,
    day: date,
    target: ResolvedWindow | Slot | ResolvedDay,
) -> Capacity:
    """Remaining capacity for a window, a slot, or a whole resolved day.

    Only PENDING and CONFIRMED bookings occupy capacity.
    """
    service = repository.get_service(db, merchant_id, service_id)
    bookings = repository.list_active_bookings(db, merchant_id, service_id, day)

    if isinstance(target, ResolvedDay):
        limit = effective_capacity(None, target.day_capacity, service.max_capacity_per_slot)
        if target.is_closed:
            limit = 0
        result = remaining_for_interval(bookings, capacity=limit, start=None, end=None)
    elif isinstance(target, Slot):
        limit = effective_capacity(target.override_capacity, target.window_capacity, service.max_capacity_per_slot)
        result = remaining_for_interval(bookings, capacity=limit, start=target.start_time, end=target.end_time)
    else:
        limit = effective_capacity(None, target.max_capacity, service.max_capacity_per_slot)
        result = remaining_for_interval(bookings, capacity=limit, start=target.open_time, end=target.close_time)

    logger.debug(
        "remaining_capacity_computed",
        extra={
            "merchant_id": merchant_id,
            "service_id": service_id,
            "day": day,
            "capacity": limit,
            "remaining": result.remaining,
        },
    )
    return result
