from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from agenda import repository
from agenda.errors import ApiError, CapacityExceededError, ConcurrencyConflict, InvalidStateError
from agenda.locks import booking_lock
from agenda.models import Booking, BookingStatus
from agenda.services.availability import evaluate_request

logger = logging.getLogger("agenda.bookings")

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}


def create_booking(
    db: Session,
    *,
    merchant_id: int,
    service_id: int,
    customer_ref: str,
    booking_date: date,
    start_time: time | None,
    end_time: time | None,
    party_size: int,
    notes: str | None = None,
    now_utc: datetime | None = None,
) -> Booking:
    """Admit a booking only if capacity still allows it at insert time.

    The availability check and the insert run under one lock per
    (merchant, service, date), and the service row is locked FOR UPDATE so
    other processes on the same database serialize as well.
    """
    current = now_utc or datetime.now(timezone.utc)
    repository.get_service(db, merchant_id, service_id)

    with booking_lock(merchant_id, service_id, booking_date):
        try:
            repository.get_service(db, merchant_id, service_id, for_update=True)
            decision = evaluate_request(
                db,
                merchant_id,
                service_id,
                booking_date,
                start_time,
                end_time,
                party_size,
            )
            if not decision.available:
                db.rollback()
                if decision.reason == "CAPACITY":
                    raise CapacityExceededError(
                        "Not enough remaining capacity for this booking.",
                        details={
                            "party_size": party_size,
                            "remaining": decision.remaining.to_dict() if decision.remaining else None,
                        },
                    )
                raise ApiError(
                    409,
                    "NOT_AVAILABLE",
                    "Requested time is not bookable.",
                    details={"reason": decision.reason},
                )

            if decision.slot is not None:
                start_time = decision.slot.start_time
                end_time = decision.slot.end_time

            booking = Booking(
                merchant_id=merchant_id,
                service_id=service_id,
                customer_ref=customer_ref,
                booking_date=booking_date,
                start_time=start_time,
                end_time=end_time,
                party_size=party_size,
                status=BookingStatus.PENDING,
                notes=notes,
                created_at=current,
            )
            db.add(booking)
            db.commit()
        except DBAPIError as exc:
            db.rollback()
            if repository.is_concurrency_error(exc):
                logger.warning(
                    "booking_write_conflict",
                    extra={"merchant_id": merchant_id, "service_id": service_id, "booking_date": booking_date},
                )
                raise ConcurrencyConflict() from exc
            raise

    db.refresh(booking)
    logger.info(
        "booking_created",
        extra={
            "merchant_id": merchant_id,
            "service_id": service_id,
            "booking_id": booking.id,
            "booking_date": booking_date,
            "party_size": party_size,
        },
    )
    return booking


def transition_booking(
    db: Session,
    merchant_id: int,
    booking_id: int,
    target: BookingStatus,
    *,
    now_utc: datetime | None = None,
) -> Booking:
    booking = repository.get_booking(db, merchant_id, booking_id)
    if target not in ALLOWED_TRANSITIONS[booking.status]:
        raise InvalidStateError(f"Booking cannot move from {booking.status.value} to {target.value}.")

    current = now_utc or datetime.now(timezone.utc)
    previous = booking.status
    booking.status = target
    if target == BookingStatus.CONFIRMED:
        booking.confirmed_at = current
    elif target == BookingStatus.CANCELLED:
        booking.cancelled_at = current
    db.commit()
    db.refresh(booking)
    logger.info(
        "booking_status_changed",
        extra={
            "merchant_id": merchant_id,
            "booking_id": booking.id,
            "from_status": previous.value,
            "to_status": target.value,
        },
    )
    return booking


def list_bookings(
    db: Session,
    merchant_id: int,
    *,
    service_id: int | None = None,
    booking_date: date | None = None,
    status: BookingStatus | None = None,
) -> list[Booking]:
    stmt = (
        select(Booking)
        .where(Booking.merchant_id == merchant_id)
        .order_by(Booking.booking_date.asc(), Booking.start_time.asc(), Booking.id.asc())
    )
    if service_id is not None:
        stmt = stmt.where(Booking.service_id == service_id)
    if booking_date is not None:
        stmt = stmt.where(Booking.booking_date == booking_date)
    if status is not None:
        stmt = stmt.where(Booking.status == status)
    return list(db.scalars(stmt).all())
