from __future__ import annotations

from collections.abc import Iterable
from datetime import date, time

from sqlalchemy import or_, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, selectinload

from agenda.errors import NotFoundError
from agenda.models import (
    Booking,
    BookingStatus,
    BusinessHours,
    BusinessHoursException,
    ClosurePeriod,
    Employee,
    LeaveRequest,
    LeaveStatus,
    Service,
    Shift,
    SlotCapacityOverride,
    WorkingHoursLimit,
)
from agenda.services.rules import ClosureRule, DateException, RecurringWindow, WindowSpec

CAPACITY_HOLDING_STATUSES: tuple[BookingStatus, ...] = (BookingStatus.PENDING, BookingStatus.CONFIRMED)

# lock_not_available, serialization_failure, deadlock_detected
_CONCURRENCY_SQLSTATES = frozenset({"55P03", "40001", "40P01"})


def is_concurrency_error(exc: DBAPIError) -> bool:
    original = getattr(exc, "orig", None)
    sqlstate = getattr(original, "sqlstate", None) or getattr(original, "pgcode", None)
    if sqlstate in _CONCURRENCY_SQLSTATES:
        return True
    return "database is locked" in str(original or exc).lower()


def get_service(db: Session, merchant_id: int, service_id: int, *, for_update: bool = False) -> Service:
    stmt = select(Service).where(Service.id == service_id, Service.merchant_id == merchant_id)
    if for_update:
        stmt = stmt.with_for_update()
    service = db.scalar(stmt)
    if service is None:
        raise NotFoundError("Service")
    return service


def get_employee(db: Session, merchant_id: int, employee_id: int, *, for_update: bool = False) -> Employee:
    stmt = select(Employee).where(Employee.id == employee_id, Employee.merchant_id == merchant_id)
    if for_update:
        stmt = stmt.with_for_update()
    employee = db.scalar(stmt)
    if employee is None:
        raise NotFoundError("Employee")
    return employee


def get_shift(db: Session, merchant_id: int, shift_id: int, *, for_update: bool = False) -> Shift:
    stmt = select(Shift).where(Shift.id == shift_id, Shift.merchant_id == merchant_id)
    if for_update:
        stmt = stmt.with_for_update()
    shift = db.scalar(stmt)
    if shift is None:
        raise NotFoundError("Shift")
    return shift


def get_booking(db: Session, merchant_id: int, booking_id: int) -> Booking:
    booking = db.scalar(select(Booking).where(Booking.id == booking_id, Booking.merchant_id == merchant_id))
    if booking is None:
        raise NotFoundError("Booking")
    return booking


def list_closures(db: Session, merchant_id: int, day: date) -> list[ClosureRule]:
    rows = db.scalars(
        select(ClosurePeriod)
        .where(
            ClosurePeriod.merchant_id == merchant_id,
            ClosurePeriod.is_active.is_(True),
            ClosurePeriod.start_date <= day,
            ClosurePeriod.end_date >= day,
        )
        .order_by(ClosurePeriod.start_date.asc(), ClosurePeriod.id.asc())
    ).all()
    return [ClosureRule(start_date=row.start_date, end_date=row.end_date, reason=row.reason or "") for row in rows]


def get_exception(db: Session, merchant_id: int, service_id: int, day: date) -> DateException | None:
    row = db.scalar(
        select(BusinessHoursException)
        .options(selectinload(BusinessHoursException.windows))
        .where(
            BusinessHoursException.merchant_id == merchant_id,
            BusinessHoursException.service_id == service_id,
            BusinessHoursException.exception_date == day,
        )
    )
    if row is None:
        return None
    windows = tuple(
        WindowSpec(
            open_time=window.open_time,
            close_time=window.close_time,
            max_capacity=window.max_capacity,
            slot_duration_minutes=window.slot_duration_minutes,
            label=window.label,
        )
        for window in row.windows
    )
    return DateException(
        exception_date=row.exception_date,
        is_closed=row.is_closed,
        windows=windows,
        max_capacity=row.max_capacity,
        reason=row.reason,
    )


def list_recurring_windows(
    db: Session,
    merchant_id: int,
    service_id: int,
    day_of_week: int,
) -> tuple[list[RecurringWindow], bool]:
    """Open weekly windows for one weekday, plus whether the weekday is explicitly closed."""
    rows = db.scalars(
        select(BusinessHours)
        .where(
            BusinessHours.merchant_id == merchant_id,
            BusinessHours.service_id == service_id,
            BusinessHours.day_of_week == day_of_week,
        )
        .order_by(BusinessHours.sort_order.asc(), BusinessHours.open_time.asc(), BusinessHours.id.asc())
    ).all()

    windows: list[RecurringWindow] = []
    closed_rows = 0
    for row in rows:
        if row.is_closed or row.open_time is None or row.close_time is None:
            closed_rows += 1
            continue
        windows.append(
            RecurringWindow(
                day_of_week=row.day_of_week,
                open_time=row.open_time,
                close_time=row.close_time,
                max_capacity=row.max_capacity,
                slot_duration_minutes=row.slot_duration_minutes,
                label=row.label,
            )
        )
    return windows, bool(rows) and closed_rows == len(rows)


def list_slot_overrides(db: Session, merchant_id: int, service_id: int, day_of_week: int) -> dict[time, int]:
    rows = db.scalars(
        select(SlotCapacityOverride).where(
            SlotCapacityOverride.merchant_id == merchant_id,
            SlotCapacityOverride.service_id == service_id,
            or_(SlotCapacityOverride.day_of_week.is_(None), SlotCapacityOverride.day_of_week == day_of_week),
        )
    ).all()
    overrides: dict[time, int] = {}
    # Weekday-specific rows win over rows that apply to every day.
    for row in sorted(rows, key=lambda item: item.day_of_week is not None):
        overrides[row.slot_time] = row.max_capacity
    return overrides


def list_active_bookings(db: Session, merchant_id: int, service_id: int, day: date) -> list[Booking]:
    return list(
        db.scalars(
            select(Booking)
            .where(
                Booking.merchant_id == merchant_id,
                Booking.service_id == service_id,
                Booking.booking_date == day,
                Booking.status.in_(CAPACITY_HOLDING_STATUSES),
            )
            .order_by(Booking.start_time.asc(), Booking.id.asc())
        ).all()
    )


def list_active_shifts(
    db: Session,
    merchant_id: int,
    employee_id: int,
    start_date: date,
    end_date: date,
    *,
    exclude_shift_ids: Iterable[int] = (),
) -> list[Shift]:
    stmt = (
        select(Shift)
        .where(
            Shift.merchant_id == merchant_id,
            Shift.employee_id == employee_id,
            Shift.is_active.is_(True),
            Shift.shift_date >= start_date,
            Shift.shift_date <= end_date,
        )
        .order_by(Shift.shift_date.asc(), Shift.start_time.asc(), Shift.id.asc())
    )
    excluded = [item for item in exclude_shift_ids if item is not None]
    if excluded:
        stmt = stmt.where(Shift.id.not_in(excluded))
    return list(db.scalars(stmt).all())


def list_blocking_leaves(db: Session, merchant_id: int, employee_id: int, day: date) -> list[LeaveRequest]:
    return list(
        db.scalars(
            select(LeaveRequest)
            .where(
                LeaveRequest.merchant_id == merchant_id,
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status.in_((LeaveStatus.APPROVED, LeaveStatus.PENDING)),
                LeaveRequest.start_date <= day,
                LeaveRequest.end_date >= day,
            )
            .order_by(LeaveRequest.start_date.asc(), LeaveRequest.id.asc())
        ).all()
    )


def get_active_limit(db: Session, merchant_id: int, employee_id: int, day: date) -> WorkingHoursLimit | None:
    """Limit whose [valid_from, valid_to) holds ``day``; latest created wins, then highest id."""
    return db.scalar(
        select(WorkingHoursLimit)
        .where(
            WorkingHoursLimit.merchant_id == merchant_id,
            WorkingHoursLimit.employee_id == employee_id,
            WorkingHoursLimit.is_active.is_(True),
            WorkingHoursLimit.valid_from <= day,
            or_(WorkingHoursLimit.valid_to.is_(None), WorkingHoursLimit.valid_to > day),
        )
        .order_by(WorkingHoursLimit.created_at.desc(), WorkingHoursLimit.id.desc())
        .limit(1)
    )
