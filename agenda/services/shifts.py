from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, time, timedelta

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from agenda import repository
from agenda.errors import ConcurrencyConflict, InvalidStateError, ShiftConflictError
from agenda.locks import employee_lock
from agenda.models import Shift, ShiftType
from agenda.services.shift_calc import (
    ProposedShift,
    ValidationResult,
    iso_week_bounds,
    month_bounds,
    scheduled_minutes_in_range,
)
from agenda.services.shift_conflicts import validate_assignment

logger = logging.getLogger("agenda.shifts")


def _enforce(result: ValidationResult, *, block_on_warnings: bool, force: bool) -> None:
    if not result.ok:
        raise ShiftConflictError([item.to_dict() for item in result.conflicts])
    if block_on_warnings and not force and result.warnings:
        raise ShiftConflictError([item.to_dict() for item in result.warnings])


def create_shift(
    db: Session,
    *,
    merchant_id: int,
    employee_id: int,
    shift_date: date,
    start_time: time,
    end_time: time,
    break_minutes: int = 0,
    shift_type: ShiftType = ShiftType.CUSTOM,
    notes: str | None = None,
    block_on_warnings: bool = False,
    force: bool = False,
) -> tuple[Shift, ValidationResult]:
    proposed = ProposedShift(
        shift_date=shift_date,
        start_time=start_time,
        end_time=end_time,
        break_minutes=break_minutes,
    )
    employee = repository.get_employee(db, merchant_id, employee_id)
    if not employee.is_active:
        raise InvalidStateError("Employee is not active.")

    with employee_lock(merchant_id, employee_id):
        try:
            repository.get_employee(db, merchant_id, employee_id, for_update=True)
            result = validate_assignment(db, merchant_id, employee_id, proposed)
            try:
                _enforce(result, block_on_warnings=block_on_warnings, force=force)
            except ShiftConflictError:
                db.rollback()
                raise

            shift = Shift(
                merchant_id=merchant_id,
                employee_id=employee_id,
                shift_date=shift_date,
                start_time=start_time,
                end_time=end_time,
                break_minutes=break_minutes,
                shift_type=shift_type,
                notes=notes,
                is_active=True,
            )
            db.add(shift)
            db.commit()
        except DBAPIError as exc:
            db.rollback()
            if repository.is_concurrency_error(exc):
                raise ConcurrencyConflict() from exc
            raise

    db.refresh(shift)
    logger.info(
        "shift_created",
        extra={
            "merchant_id": merchant_id,
            "employee_id": employee_id,
            "shift_id": shift.id,
            "shift_date": shift_date,
            "warning_count": len(result.warnings),
        },
    )
    return shift, result


def update_shift(
    db: Session,
    *,
    merchant_id: int,
    shift_id: int,
    shift_date: date | None = None,
    start_time: time | None = None,
    end_time: time | None = None,
    break_minutes: int | None = None,
    shift_type: ShiftType | None = None,
    notes: str | None = None,
    block_on_warnings: bool = False,
    force: bool = False,
) -> tuple[Shift, ValidationResult]:
    shift = repository.get_shift(db, merchant_id, shift_id)
    if shift.check_in_ts is not None:
        raise InvalidStateError("A shift with recorded punches cannot be rescheduled.")
    if not shift.is_active:
        raise InvalidStateError("Shift is not active.")

    proposed = ProposedShift(
        shift_date=shift_date or shift.shift_date,
        start_time=start_time or shift.start_time,
        end_time=end_time or shift.end_time,
        break_minutes=shift.break_minutes if break_minutes is None else break_minutes,
    )

    with employee_lock(merchant_id, shift.employee_id):
        try:
            repository.get_employee(db, merchant_id, shift.employee_id, for_update=True)
            result = validate_assignment(db, merchant_id, shift.employee_id, proposed, exclude_shift_id=shift.id)
            try:
                _enforce(result, block_on_warnings=block_on_warnings, force=force)
            except ShiftConflictError:
                db.rollback()
                raise

            shift.shift_date = proposed.shift_date
            shift.start_time = proposed.start_time
            shift.end_time = proposed.end_time
            shift.break_minutes = proposed.break_minutes
            if shift_type is not None:
                shift.shift_type = shift_type
            if notes is not None:
                shift.notes = notes
            db.commit()
        except DBAPIError as exc:
            db.rollback()
            if repository.is_concurrency_error(exc):
                raise ConcurrencyConflict() from exc
            raise

    db.refresh(shift)
    logger.info(
        "shift_updated",
        extra={"merchant_id": merchant_id, "shift_id": shift.id, "warning_count": len(result.warnings)},
    )
    return shift, result


def deactivate_shift(db: Session, merchant_id: int, shift_id: int) -> Shift:
    shift = repository.get_shift(db, merchant_id, shift_id)
    if shift.check_in_ts is not None:
        raise InvalidStateError("A shift with recorded punches cannot be removed.")
    shift.is_active = False
    db.commit()
    db.refresh(shift)
    return shift


def list_shifts(
    db: Session,
    merchant_id: int,
    *,
    employee_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    include_inactive: bool = False,
) -> list[Shift]:
    stmt = (
        select(Shift)
        .where(Shift.merchant_id == merchant_id)
        .order_by(Shift.shift_date.asc(), Shift.start_time.asc(), Shift.id.asc())
    )
    if employee_id is not None:
        stmt = stmt.where(Shift.employee_id == employee_id)
    if start_date is not None:
        stmt = stmt.where(Shift.shift_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(Shift.shift_date <= end_date)
    if not include_inactive:
        stmt = stmt.where(Shift.is_active.is_(True))
    return list(db.scalars(stmt).all())


@dataclass(frozen=True)
class EmployeeHourStats:
    employee_id: int
    reference_date: date
    week_start: date
    week_end: date
    month_start: date
    month_end: date
    scheduled_minutes_week: int
    scheduled_minutes_month: int
    scheduled_minutes_last_month: int
    shift_count_week: int
    shift_count_month: int
    average_minutes_per_shift: int
    max_minutes_per_week: int | None
    max_minutes_per_month: int | None
    remaining_minutes_week: int | None
    remaining_minutes_month: int | None
    is_over_limit: bool


def _remaining(maximum: int | None, total: int) -> int | None:
    if maximum is None:
        return None
    return max(0, maximum - total)


def employee_hour_stats(db: Session, merchant_id: int, employee_id: int, *, today: date) -> EmployeeHourStats:
    """Scheduled hours for the ISO week and month holding ``today``, against the limit active that day."""
    employee = repository.get_employee(db, merchant_id, employee_id)
    week_start, week_end = iso_week_bounds(today)
    month_start, month_end = month_bounds(today)
    last_month_start, last_month_end = month_bounds(month_start - timedelta(days=1))

    shifts = repository.list_active_shifts(
        db,
        merchant_id,
        employee.id,
        min(week_start, last_month_start),
        max(week_end, month_end),
    )
    week_total = scheduled_minutes_in_range(shifts, week_start, week_end)
    month_total = scheduled_minutes_in_range(shifts, month_start, month_end)
    week_count = sum(1 for shift in shifts if week_start <= shift.shift_date <= week_end)
    month_count = sum(1 for shift in shifts if month_start <= shift.shift_date <= month_end)

    limit = repository.get_active_limit(db, merchant_id, employee.id, today)
    max_week = limit.max_minutes_per_week if limit is not None else None
    max_month = limit.max_minutes_per_month if limit is not None else None

    return EmployeeHourStats(
        employee_id=employee.id,
        reference_date=today,
        week_start=week_start,
        week_end=week_end,
        month_start=month_start,
        month_end=month_end,
        scheduled_minutes_week=week_total,
        scheduled_minutes_month=month_total,
        scheduled_minutes_last_month=scheduled_minutes_in_range(shifts, last_month_start, last_month_end),
        shift_count_week=week_count,
        shift_count_month=month_count,
        average_minutes_per_shift=month_total // month_count if month_count else 0,
        max_minutes_per_week=max_week,
        max_minutes_per_month=max_month,
        remaining_minutes_week=_remaining(max_week, week_total),
        remaining_minutes_month=_remaining(max_month, month_total),
        is_over_limit=(max_week is not None and week_total > max_week)
        or (max_month is not None and month_total > max_month),
    )
