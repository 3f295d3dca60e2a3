from __future__ import annotations

from calendar import monthrange
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from agenda import repository
from agenda.errors import ApiError, InvalidStateError, NotFoundError
from agenda.models import LeaveRequest, LeaveStatus
from agenda.schemas import LeaveCreateRequest

_LEAVE_TRANSITIONS: dict[LeaveStatus, frozenset[LeaveStatus]] = {
    LeaveStatus.PENDING: frozenset({LeaveStatus.APPROVED, LeaveStatus.REJECTED, LeaveStatus.CANCELLED}),
    LeaveStatus.APPROVED: frozenset({LeaveStatus.CANCELLED}),
    LeaveStatus.REJECTED: frozenset(),
    LeaveStatus.CANCELLED: frozenset(),
}


def _get_leave(db: Session, merchant_id: int, leave_id: int) -> LeaveRequest:
    leave = db.scalar(
        select(LeaveRequest).where(LeaveRequest.id == leave_id, LeaveRequest.merchant_id == merchant_id)
    )
    if leave is None:
        raise NotFoundError("Leave")
    return leave


def create_leave(
    db: Session,
    merchant_id: int,
    payload: LeaveCreateRequest,
    *,
    now_utc: datetime | None = None,
) -> LeaveRequest:
    repository.get_employee(db, merchant_id, payload.employee_id)

    if payload.end_date < payload.start_date:
        raise ApiError(422, "VALIDATION_ERROR", "end_date must be greater than or equal to start_date")

    current = now_utc or datetime.now(timezone.utc)
    leave = LeaveRequest(
        merchant_id=merchant_id,
        employee_id=payload.employee_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        leave_type=payload.leave_type,
        status=payload.status,
        note=payload.note,
        created_at=current,
        decided_at=current if payload.status != LeaveStatus.PENDING else None,
    )
    db.add(leave)
    db.commit()
    db.refresh(leave)
    return leave


def update_leave_status(
    db: Session,
    merchant_id: int,
    leave_id: int,
    status: LeaveStatus,
    *,
    now_utc: datetime | None = None,
) -> LeaveRequest:
    leave = _get_leave(db, merchant_id, leave_id)
    if status not in _LEAVE_TRANSITIONS[leave.status]:
        raise InvalidStateError(f"Leave cannot move from {leave.status.value} to {status.value}.")
    leave.status = status
    leave.decided_at = now_utc or datetime.now(timezone.utc)
    db.commit()
    db.refresh(leave)
    return leave


def list_leaves(
    db: Session,
    merchant_id: int,
    *,
    employee_id: int | None = None,
    year: int | None = None,
    month: int | None = None,
) -> list[LeaveRequest]:
    if (year is None) != (month is None):
        raise ApiError(422, "VALIDATION_ERROR", "year and month must be provided together")

    stmt = (
        select(LeaveRequest)
        .where(LeaveRequest.merchant_id == merchant_id)
        .order_by(LeaveRequest.start_date.asc(), LeaveRequest.id.asc())
    )
    if employee_id is not None:
        stmt = stmt.where(LeaveRequest.employee_id == employee_id)

    if year is not None and month is not None:
        days_in_month = monthrange(year, month)[1]
        start = date(year, month, 1)
        end = date(year, month, days_in_month)
        stmt = stmt.where(
            LeaveRequest.start_date <= end,
            LeaveRequest.end_date >= start,
        )

    return list(db.scalars(stmt).all())


def delete_leave(db: Session, merchant_id: int, leave_id: int) -> None:
    leave = _get_leave(db, merchant_id, leave_id)
    db.delete(leave)
    db.commit()
