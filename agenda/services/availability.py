from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, time

from sqlalchemy.orm import Session

from agenda import repository
from agenda.errors import ConfigurationError
from agenda.models import BookingMode, Service
from agenda.services.availability_calc import covering_windows, expand_slots, find_slot, resolve_rules
from agenda.services.capacity import Capacity, effective_capacity, remaining_capacity, remaining_for_interval
from agenda.services.rules import ResolvedDay, ResolvedWindow, Slot

logger = logging.getLogger("agenda.availability")


def _resolve_for_service(db: Session, merchant_id: int, service: Service, day: date) -> ResolvedDay:
    closures = repository.list_closures(db, merchant_id, day)
    if closures:
        # Closure wins outright, the lower layers are not read.
        return resolve_rules(day, closures=closures, exception=None, recurring=())

    exception = repository.get_exception(db, merchant_id, service.id, day)
    if exception is not None:
        return resolve_rules(day, closures=(), exception=exception, recurring=())

    recurring, recurring_closed = repository.list_recurring_windows(db, merchant_id, service.id, day.weekday())
    return resolve_rules(
        day,
        closures=(),
        exception=None,
        recurring=recurring,
        recurring_closed=recurring_closed,
    )


def resolve_day(db: Session, merchant_id: int, service_id: int, day: date) -> ResolvedDay:
    service = repository.get_service(db, merchant_id, service_id)
    resolved = _resolve_for_service(db, merchant_id, service, day)
    logger.debug(
        "day_resolved",
        extra={
            "merchant_id": merchant_id,
            "service_id": service_id,
            "day": day,
            "is_closed": resolved.is_closed,
            "source": resolved.source,
            "window_count": len(resolved.windows),
        },
    )
    return resolved


def _slots_for_service(db: Session, merchant_id: int, service: Service, day: date) -> list[Slot]:
    if service.booking_mode != BookingMode.TIME_SLOT:
        raise ConfigurationError(f"Service {service.id} does not use slot booking.")
    resolved = _resolve_for_service(db, merchant_id, service, day)
    if resolved.is_closed:
        return []
    overrides = repository.list_slot_overrides(db, merchant_id, service.id, day.weekday())
    return expand_slots(
        resolved,
        service_slot_duration_minutes=service.slot_duration_minutes,
        slot_overrides=overrides,
    )


def resolve_slots(db: Session, merchant_id: int, service_id: int, day: date) -> list[Slot]:
    service = repository.get_service(db, merchant_id, service_id)
    return _slots_for_service(db, merchant_id, service, day)


def _tighter(left: Capacity, right: Capacity) -> Capacity:
    if left.remaining is None:
        return right
    if right.remaining is None:
        return left
    return left if left.remaining <= right.remaining else right


@dataclass(frozen=True)
class AvailabilityDecision:
    available: bool
    reason: str | None = None
    remaining: Capacity | None = None
    slot: Slot | None = None


def evaluate_request(
    db: Session,
    merchant_id: int,
    service_id: int,
    day: date,
    start: time | None,
    end: time | None,
    party_size: int,
) -> AvailabilityDecision:
    if party_size <= 0:
        return AvailabilityDecision(False, "INVALID_PARTY_SIZE")

    service = repository.get_service(db, merchant_id, service_id)
    if not service.is_active:
        return AvailabilityDecision(False, "SERVICE_INACTIVE")

    if service.booking_mode == BookingMode.TIME_SLOT:
        if start is None:
            return AvailabilityDecision(False, "SLOT_REQUIRED")
        slot = find_slot(_slots_for_service(db, merchant_id, service, day), start, end)
        if slot is None:
            return AvailabilityDecision(False, "NO_SUCH_SLOT")
        remaining = remaining_capacity(db, merchant_id, service_id, day, slot)
        if not remaining.admits(party_size):
            return AvailabilityDecision(False, "CAPACITY", remaining, slot)
        return AvailabilityDecision(True, None, remaining, slot)

    resolved = _resolve_for_service(db, merchant_id, service, day)
    if resolved.is_closed:
        return AvailabilityDecision(False, "CLOSED")

    if service.booking_mode == BookingMode.DAY_ONLY:
        remaining = remaining_capacity(db, merchant_id, service_id, day, resolved)
        if not remaining.admits(party_size):
            return AvailabilityDecision(False, "CAPACITY", remaining)
        return AvailabilityDecision(True, None, remaining)

    if start is None or end is None:
        return AvailabilityDecision(False, "RANGE_REQUIRED")
    chain = covering_windows(resolved.windows, start, end)
    if not chain:
        return AvailabilityDecision(False, "OUTSIDE_HOURS")

    bookings = repository.list_active_bookings(db, merchant_id, service_id, day)
    tightest: Capacity | None = None
    for window in chain:
        limit = effective_capacity(None, window.max_capacity, service.max_capacity_per_slot)
        remaining = remaining_for_interval(
            bookings,
            capacity=limit,
            start=max(start, window.open_time),
            end=min(end, window.close_time),
        )
        tightest = remaining if tightest is None else _tighter(tightest, remaining)
        if not remaining.admits(party_size):
            return AvailabilityDecision(False, "CAPACITY", remaining)
    return AvailabilityDecision(True, None, tightest)


def is_available(
    db: Session,
    merchant_id: int,
    service_id: int,
    day: date,
    start: time | None,
    end: time | None,
    party_size: int,
) -> bool:
    """Whether a request fits the resolved day and its remaining capacity.

    Returns False for every kind of "no room"; only missing configuration or
    an unknown service raise.
    """
    decision = evaluate_request(db, merchant_id, service_id, day, start, end, party_size)
    if not decision.available:
        logger.debug(
            "availability_denied",
            extra={"merchant_id": merchant_id, "service_id": service_id, "day": day, "reason": decision.reason},
        )
    return decision.available


def slot_capacities(db: Session, merchant_id: int, service_id: int, day: date) -> list[tuple[Slot, Capacity]]:
    service = repository.get_service(db, merchant_id, service_id)
    slots = _slots_for_service(db, merchant_id, service, day)
    if not slots:
        return []
    bookings = repository.list_active_bookings(db, merchant_id, service_id, day)
    return [
        (
            slot,
            remaining_for_interval(
                bookings,
                capacity=effective_capacity(slot.override_capacity, slot.window_capacity, service.max_capacity_per_slot),
                start=slot.start_time,
                end=slot.end_time,
            ),
        )
        for slot in slots
    ]


def window_capacities(
    db: Session,
    merchant_id: int,
    service_id: int,
    day: date,
) -> tuple[ResolvedDay, list[tuple[ResolvedWindow, Capacity]]]:
    service = repository.get_service(db, merchant_id, service_id)
    resolved = _resolve_for_service(db, merchant_id, service, day)
    if resolved.is_closed:
        return resolved, []
    bookings = repository.list_active_bookings(db, merchant_id, service_id, day)
    return resolved, [
        (
            window,
            remaining_for_interval(
                bookings,
                capacity=effective_capacity(None, window.max_capacity, service.max_capacity_per_slot),
                start=window.open_time,
                end=window.close_time,
            ),
        )
        for window in resolved.windows
    ]
