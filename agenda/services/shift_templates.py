from __future__ import annotations

import logging
from contextlib import ExitStack
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from agenda import repository
from agenda.errors import ApiError, ConcurrencyConflict, InvalidStateError, NotFoundError, ShiftConflictError
from agenda.locks import employee_lock
from agenda.models import Shift, ShiftTemplate
from agenda.schemas import ShiftTemplateUpsert
from agenda.services.shift_calc import Conflict, ProposedShift
from agenda.services.shift_conflicts import validate_assignment

logger = logging.getLogger("agenda.shifts")

MAX_TEMPLATE_RANGE_DAYS = 93


@dataclass(frozen=True)
class TemplateAssignment:
    employee_id: int
    shift_date: date
    conflicts: tuple[Conflict, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "shift_date": self.shift_date.isoformat(),
            "conflicts": [item.to_dict() for item in self.conflicts],
        }


@dataclass
class TemplateRun:
    created: list[Shift] = field(default_factory=list)
    skipped: list[TemplateAssignment] = field(default_factory=list)
    warnings: list[TemplateAssignment] = field(default_factory=list)


def get_template(db: Session, merchant_id: int, template_id: int) -> ShiftTemplate:
    template = db.scalar(
        select(ShiftTemplate).where(ShiftTemplate.id == template_id, ShiftTemplate.merchant_id == merchant_id)
    )
    if template is None:
        raise NotFoundError("Shift template")
    return template


def _apply_payload(template: ShiftTemplate, payload: ShiftTemplateUpsert) -> None:
    template.name = payload.name.strip()
    template.description = payload.description
    template.shift_type = payload.shift_type
    template.start_time = payload.start_time
    template.end_time = payload.end_time
    template.break_minutes = payload.break_minutes
    template.days_of_week = sorted(set(payload.days_of_week))
    template.color = payload.color
    template.is_active = payload.is_active


def create_template(db: Session, merchant_id: int, payload: ShiftTemplateUpsert) -> ShiftTemplate:
    template = ShiftTemplate(merchant_id=merchant_id)
    _apply_payload(template, payload)
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


def update_template(
    db: Session,
    merchant_id: int,
    template_id: int,
    payload: ShiftTemplateUpsert,
    *,
    now_utc: datetime | None = None,
) -> ShiftTemplate:
    template = get_template(db, merchant_id, template_id)
    _apply_payload(template, payload)
    template.updated_at = now_utc or datetime.now(timezone.utc)
    db.commit()
    db.refresh(template)
    return template


def deactivate_template(db: Session, merchant_id: int, template_id: int) -> ShiftTemplate:
    template = get_template(db, merchant_id, template_id)
    template.is_active = False
    db.commit()
    db.refresh(template)
    return template


def list_templates(db: Session, merchant_id: int, *, include_inactive: bool = False) -> list[ShiftTemplate]:
    stmt = (
        select(ShiftTemplate)
        .where(ShiftTemplate.merchant_id == merchant_id)
        .order_by(ShiftTemplate.name.asc(), ShiftTemplate.id.asc())
    )
    if not include_inactive:
        stmt = stmt.where(ShiftTemplate.is_active.is_(True))
    return list(db.scalars(stmt).all())


def template_dates(
    template: ShiftTemplate,
    start_date: date,
    end_date: date,
    days_of_week: list[int] | None = None,
) -> list[date]:
    """Dates in [start_date, end_date] on the requested weekdays.

    Explicit ``days_of_week`` win over the template's own; neither means every day.
    """
    if end_date < start_date:
        raise ApiError(422, "VALIDATION_ERROR", "end_date must not be before start_date.")
    span = (end_date - start_date).days + 1
    if span > MAX_TEMPLATE_RANGE_DAYS:
        raise ApiError(422, "VALIDATION_ERROR", f"Template range is limited to {MAX_TEMPLATE_RANGE_DAYS} days.")
    weekdays = set(days_of_week if days_of_week else template.days_of_week or range(7))
    return [
        day
        for day in (start_date + timedelta(days=offset) for offset in range(span))
        if day.weekday() in weekdays
    ]


def create_shifts_from_template(
    db: Session,
    *,
    merchant_id: int,
    template_id: int,
    employee_ids: list[int],
    start_date: date,
    end_date: date,
    days_of_week: list[int] | None = None,
    skip_conflicts: bool = False,
    block_on_warnings: bool = False,
    force: bool = False,
) -> TemplateRun:
    """Stamp the template onto every matching date for every employee.

    Each assignment goes through ``validate_assignment`` and sees the shifts
    generated before it in the same run. Blocked assignments are collected;
    unless ``skip_conflicts`` is set, any of them rejects the whole run with
    every blocked assignment listed and nothing written.
    """
    template = get_template(db, merchant_id, template_id)
    if not template.is_active:
        raise InvalidStateError("Shift template is not active.")
    dates = template_dates(template, start_date, end_date, days_of_week)

    employees = [repository.get_employee(db, merchant_id, employee_id) for employee_id in sorted(set(employee_ids))]
    inactive = [employee.id for employee in employees if not employee.is_active]
    if inactive:
        raise InvalidStateError(f"Employees not active: {', '.join(str(item) for item in inactive)}.")

    run = TemplateRun()
    with ExitStack() as stack:
        # Locks are taken in employee id order.
        for employee in employees:
            stack.enter_context(employee_lock(merchant_id, employee.id))
        try:
            for employee in employees:
                repository.get_employee(db, merchant_id, employee.id, for_update=True)
                for day in dates:
                    proposed = ProposedShift(
                        shift_date=day,
                        start_time=template.start_time,
                        end_time=template.end_time,
                        break_minutes=template.break_minutes,
                    )
                    result = validate_assignment(db, merchant_id, employee.id, proposed)
                    blocking = result.hard_conflicts
                    if block_on_warnings and not force:
                        blocking = blocking + result.warnings
                    if blocking:
                        run.skipped.append(TemplateAssignment(employee.id, day, tuple(blocking)))
                        continue

                    shift = Shift(
                        merchant_id=merchant_id,
                        employee_id=employee.id,
                        shift_template_id=template.id,
                        shift_date=day,
                        start_time=template.start_time,
                        end_time=template.end_time,
                        break_minutes=template.break_minutes,
                        shift_type=template.shift_type,
                        is_active=True,
                    )
                    db.add(shift)
                    db.flush()
                    run.created.append(shift)
                    if result.warnings:
                        run.warnings.append(TemplateAssignment(employee.id, day, tuple(result.warnings)))

            if run.skipped and not skip_conflicts:
                db.rollback()
                raise ShiftConflictError(
                    [
                        {**conflict.to_dict(), "employee_id": item.employee_id, "shift_date": item.shift_date.isoformat()}
                        for item in run.skipped
                        for conflict in item.conflicts
                    ]
                )
            db.commit()
        except DBAPIError as exc:
            db.rollback()
            if repository.is_concurrency_error(exc):
                raise ConcurrencyConflict() from exc
            raise

    for shift in run.created:
        db.refresh(shift)
    logger.info(
        "shift_template_applied",
        extra={
            "merchant_id": merchant_id,
            "template_id": template.id,
            "created_count": len(run.created),
            "skipped_count": len(run.skipped),
            "warning_count": len(run.warnings),
        },
    )
    return run
