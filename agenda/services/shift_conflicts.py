from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import timedelta

from sqlalchemy.orm import Session

from agenda import repository
from agenda.services.shift_calc import (
    ProposedShift,
    ValidationResult,
    evaluate_limits,
    find_overlaps,
    iso_week_bounds,
    leave_conflicts,
    month_bounds,
)

logger = logging.getLogger("agenda.shifts")


def validate_assignment(
    db: Session,
    merchant_id: int,
    employee_id: int,
    proposed: ProposedShift,
    *,
    exclude_shift_id: int | None = None,
    exclude_shift_ids: Iterable[int] = (),
) -> ValidationResult:
    """Every conflict the proposed shift would cause. Nothing is written.

    Overlap, leave and limit checks all run, so the result is complete.
    """
    repository.get_employee(db, merchant_id, employee_id)
    excluded = [item for item in (exclude_shift_id, *exclude_shift_ids) if item is not None]

    week_start, week_end = iso_week_bounds(proposed.shift_date)
    month_start, month_end = month_bounds(proposed.shift_date)
    range_start = min(week_start, month_start, proposed.shift_date - timedelta(days=1))
    range_end = max(week_end, month_end, proposed.shift_date + timedelta(days=1))
    shifts = repository.list_active_shifts(
        db,
        merchant_id,
        employee_id,
        range_start,
        range_end,
        exclude_shift_ids=excluded,
    )

    neighbours = [
        shift
        for shift in shifts
        if proposed.shift_date - timedelta(days=1) <= shift.shift_date <= proposed.shift_date + timedelta(days=1)
    ]
    conflicts = find_overlaps(proposed, neighbours)
    conflicts.extend(
        leave_conflicts(proposed, repository.list_blocking_leaves(db, merchant_id, employee_id, proposed.shift_date))
    )
    limit = repository.get_active_limit(db, merchant_id, employee_id, proposed.shift_date)
    conflicts.extend(evaluate_limits(proposed, shifts, limit))

    result = ValidationResult(conflicts=tuple(conflicts))
    if result.conflicts:
        logger.info(
            "shift_conflicts_detected",
            extra={
                "merchant_id": merchant_id,
                "employee_id": employee_id,
                "shift_date": proposed.shift_date,
                "ok": result.ok,
                "kinds": [item.kind for item in result.conflicts],
            },
        )
    return result
