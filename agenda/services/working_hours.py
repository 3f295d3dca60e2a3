from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from agenda import repository
from agenda.errors import NotFoundError
from agenda.models import WorkingHoursLimit
from agenda.schemas import WorkingHoursLimitUpsert


def _get_limit(db: Session, merchant_id: int, limit_id: int) -> WorkingHoursLimit:
    limit = db.scalar(
        select(WorkingHoursLimit).where(
            WorkingHoursLimit.id == limit_id,
            WorkingHoursLimit.merchant_id == merchant_id,
        )
    )
    if limit is None:
        raise NotFoundError("Working hours limit")
    return limit


def _apply_payload(limit: WorkingHoursLimit, payload: WorkingHoursLimitUpsert) -> None:
    limit.max_minutes_per_day = payload.max_minutes_per_day
    limit.max_minutes_per_week = payload.max_minutes_per_week
    limit.max_minutes_per_month = payload.max_minutes_per_month
    limit.min_minutes_per_week = payload.min_minutes_per_week
    limit.min_minutes_per_month = payload.min_minutes_per_month
    limit.allow_overtime = payload.allow_overtime
    limit.max_overtime_minutes_per_week = payload.max_overtime_minutes_per_week
    limit.max_overtime_minutes_per_month = payload.max_overtime_minutes_per_month
    limit.valid_from = payload.valid_from
    limit.valid_to = payload.valid_to


def create_limit(
    db: Session,
    merchant_id: int,
    payload: WorkingHoursLimitUpsert,
    *,
    now_utc: datetime | None = None,
) -> WorkingHoursLimit:
    """Add a limit record. Older overlapping records stay; the newest one is active."""
    repository.get_employee(db, merchant_id, payload.employee_id)
    limit = WorkingHoursLimit(
        merchant_id=merchant_id,
        employee_id=payload.employee_id,
        is_active=True,
        created_at=now_utc or datetime.now(timezone.utc),
    )
    _apply_payload(limit, payload)
    db.add(limit)
    db.commit()
    db.refresh(limit)
    return limit


def update_limit(
    db: Session,
    merchant_id: int,
    limit_id: int,
    payload: WorkingHoursLimitUpsert,
) -> WorkingHoursLimit:
    limit = _get_limit(db, merchant_id, limit_id)
    if payload.employee_id != limit.employee_id:
        repository.get_employee(db, merchant_id, payload.employee_id)
        limit.employee_id = payload.employee_id
    _apply_payload(limit, payload)
    db.commit()
    db.refresh(limit)
    return limit


def deactivate_limit(db: Session, merchant_id: int, limit_id: int) -> WorkingHoursLimit:
    limit = _get_limit(db, merchant_id, limit_id)
    limit.is_active = False
    db.commit()
    db.refresh(limit)
    return limit


def list_limits(
    db: Session,
    merchant_id: int,
    *,
    employee_id: int | None = None,
    include_inactive: bool = False,
) -> list[WorkingHoursLimit]:
    stmt = (
        select(WorkingHoursLimit)
        .where(WorkingHoursLimit.merchant_id == merchant_id)
        .order_by(WorkingHoursLimit.employee_id.asc(), WorkingHoursLimit.valid_from.desc(), WorkingHoursLimit.id.desc())
    )
    if employee_id is not None:
        stmt = stmt.where(WorkingHoursLimit.employee_id == employee_id)
    if not include_inactive:
        stmt = stmt.where(WorkingHoursLimit.is_active.is_(True))
    return list(db.scalars(stmt).all())


def active_limit_for(db: Session, merchant_id: int, employee_id: int, day: date) -> WorkingHoursLimit:
    repository.get_employee(db, merchant_id, employee_id)
    limit = repository.get_active_limit(db, merchant_id, employee_id, day)
    if limit is None:
        raise NotFoundError("Working hours limit")
    return limit
