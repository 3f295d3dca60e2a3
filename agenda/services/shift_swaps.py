from __future__ import annotations

import logging
from contextlib import ExitStack
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from agenda import repository
from agenda.errors import ApiError, ConcurrencyConflict, InvalidStateError, NotFoundError, ShiftConflictError
from agenda.locks import employee_lock
from agenda.models import Shift, ShiftSwapRequest, SwapStatus
from agenda.services.shift_calc import ProposedShift
from agenda.services.shift_conflicts import validate_assignment

logger = logging.getLogger("agenda.shifts")


def _proposed(shift: Shift) -> ProposedShift:
    return ProposedShift(
        shift_date=shift.shift_date,
        start_time=shift.start_time,
        end_time=shift.end_time,
        break_minutes=shift.break_minutes or 0,
    )


def _get_swap(db: Session, merchant_id: int, swap_id: int) -> ShiftSwapRequest:
    swap = db.scalar(
        select(ShiftSwapRequest).where(
            ShiftSwapRequest.id == swap_id,
            ShiftSwapRequest.merchant_id == merchant_id,
        )
    )
    if swap is None:
        raise NotFoundError("Swap request")
    return swap


def create_swap_request(
    db: Session,
    merchant_id: int,
    *,
    requesting_employee_id: int,
    shift_id: int,
    target_employee_id: int | None = None,
    offered_shift_id: int | None = None,
    message: str | None = None,
) -> ShiftSwapRequest:
    shift = repository.get_shift(db, merchant_id, shift_id)
    if shift.employee_id != requesting_employee_id:
        raise NotFoundError("Shift")
    if not shift.is_active or shift.check_in_ts is not None:
        raise InvalidStateError("Only upcoming active shifts can be swapped.")

    if target_employee_id is not None:
        if target_employee_id == requesting_employee_id:
            raise ApiError(422, "VALIDATION_ERROR", "Cannot swap a shift with yourself.")
        repository.get_employee(db, merchant_id, target_employee_id)

    if offered_shift_id is not None:
        offered = repository.get_shift(db, merchant_id, offered_shift_id)
        if target_employee_id is None or offered.employee_id != target_employee_id:
            raise ApiError(422, "VALIDATION_ERROR", "Offered shift must belong to the target employee.")

    duplicate = db.scalar(
        select(ShiftSwapRequest.id).where(
            ShiftSwapRequest.merchant_id == merchant_id,
            ShiftSwapRequest.shift_id == shift_id,
            ShiftSwapRequest.status == SwapStatus.PENDING,
        )
    )
    if duplicate is not None:
        raise InvalidStateError("A pending swap request already exists for this shift.")

    swap = ShiftSwapRequest(
        merchant_id=merchant_id,
        shift_id=shift_id,
        requesting_employee_id=requesting_employee_id,
        target_employee_id=target_employee_id,
        offered_shift_id=offered_shift_id,
        status=SwapStatus.PENDING,
        message=message,
    )
    db.add(swap)
    db.commit()
    db.refresh(swap)
    logger.info(
        "swap_requested",
        extra={"merchant_id": merchant_id, "swap_id": swap.id, "shift_id": shift_id},
    )
    return swap


def _swap_conflicts(
    db: Session,
    merchant_id: int,
    swap: ShiftSwapRequest,
    shift: Shift,
    offered: Shift | None,
    target_employee_id: int,
) -> list[dict[str, Any]]:
    excluded = [shift.id] + ([offered.id] if offered is not None else [])
    blocking: list[dict[str, Any]] = []

    checks: list[tuple[int, Shift]] = [(target_employee_id, shift)]
    if offered is not None:
        checks.append((swap.requesting_employee_id, offered))

    for employee_id, candidate in checks:
        result = validate_assignment(
            db,
            merchant_id,
            employee_id,
            _proposed(candidate),
            exclude_shift_ids=excluded,
        )
        for conflict in result.hard_conflicts:
            item = conflict.to_dict()
            item["employee_id"] = employee_id
            item["shift_id"] = candidate.id
            blocking.append(item)
    return blocking


def respond_to_swap(
    db: Session,
    merchant_id: int,
    swap_id: int,
    *,
    approve: bool,
    target_employee_id: int | None = None,
    response_message: str | None = None,
) -> ShiftSwapRequest:
    """Approve or reject a pending swap.

    Approval re-runs the conflict checks for everyone whose schedule changes;
    any hard conflict blocks the swap and nothing is written.
    """
    swap = _get_swap(db, merchant_id, swap_id)
    if swap.status != SwapStatus.PENDING:
        raise InvalidStateError(f"Swap request is already {swap.status.value}.")

    if not approve:
        swap.status = SwapStatus.REJECTED
        swap.response_message = response_message
        db.commit()
        db.refresh(swap)
        return swap

    target_id = swap.target_employee_id or target_employee_id
    if target_id is None:
        raise ApiError(422, "VALIDATION_ERROR", "A target employee is required to approve this swap.")
    if target_id == swap.requesting_employee_id:
        raise ApiError(422, "VALIDATION_ERROR", "Cannot swap a shift with yourself.")
    target = repository.get_employee(db, merchant_id, target_id)
    if not target.is_active:
        raise InvalidStateError("Target employee is not active.")

    employee_ids = sorted({swap.requesting_employee_id, target_id})
    with ExitStack() as stack:
        for employee_id in employee_ids:
            stack.enter_context(employee_lock(merchant_id, employee_id))
        try:
            shift = repository.get_shift(db, merchant_id, swap.shift_id, for_update=True)
            offered = (
                repository.get_shift(db, merchant_id, swap.offered_shift_id, for_update=True)
                if swap.offered_shift_id is not None
                else None
            )
            if shift.employee_id != swap.requesting_employee_id or (
                offered is not None and offered.employee_id != target_id
            ):
                db.rollback()
                raise InvalidStateError("Shift ownership changed since the request was made.")

            blocking = _swap_conflicts(db, merchant_id, swap, shift, offered, target_id)
            if blocking:
                db.rollback()
                raise ShiftConflictError(blocking)

            shift.employee_id = target_id
            if offered is not None:
                offered.employee_id = swap.requesting_employee_id
            swap.target_employee_id = target_id
            swap.status = SwapStatus.APPROVED
            swap.response_message = response_message
            db.commit()
        except DBAPIError as exc:
            db.rollback()
            if repository.is_concurrency_error(exc):
                raise ConcurrencyConflict() from exc
            raise

    db.refresh(swap)
    logger.info(
        "swap_approved",
        extra={
            "merchant_id": merchant_id,
            "swap_id": swap.id,
            "shift_id": swap.shift_id,
            "offered_shift_id": swap.offered_shift_id,
            "target_employee_id": target_id,
        },
    )
    return swap


def cancel_swap_request(
    db: Session,
    merchant_id: int,
    swap_id: int,
    *,
    requesting_employee_id: int,
) -> ShiftSwapRequest:
    swap = _get_swap(db, merchant_id, swap_id)
    if swap.requesting_employee_id != requesting_employee_id:
        raise NotFoundError("Swap request")
    if swap.status != SwapStatus.PENDING:
        raise InvalidStateError(f"Swap request is already {swap.status.value}.")
    swap.status = SwapStatus.CANCELLED
    db.commit()
    db.refresh(swap)
    return swap


def list_swap_requests(
    db: Session,
    merchant_id: int,
    *,
    employee_id: int | None = None,
    status: SwapStatus | None = None,
) -> list[ShiftSwapRequest]:
    stmt = (
        select(ShiftSwapRequest)
        .where(ShiftSwapRequest.merchant_id == merchant_id)
        .order_by(ShiftSwapRequest.created_at.desc(), ShiftSwapRequest.id.desc())
    )
    if employee_id is not None:
        stmt = stmt.where(
            or_(
                ShiftSwapRequest.requesting_employee_id == employee_id,
                ShiftSwapRequest.target_employee_id == employee_id,
            )
        )
    if status is not None:
        stmt = stmt.where(ShiftSwapRequest.status == status)
    return list(db.scalars(stmt).all())
