from datetime import date, time

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agenda.db import get_db
from agenda.schemas import (
    AvailabilityCheckResponse,
    CapacityRead,
    ResolvedDayRead,
    SlotListResponse,
    SlotRead,
    WindowRead,
)
from agenda.security import Principal, require_principal
from agenda.services.availability import evaluate_request, resolve_day, slot_capacities, window_capacities
from agenda.services.capacity import Capacity

router = APIRouter(tags=["availability"])


def _capacity_read(capacity: Capacity) -> CapacityRead:
    return CapacityRead(unbounded=capacity.is_unbounded, remaining=capacity.remaining)


@router.get("/api/services/{service_id}/days/{day}", response_model=ResolvedDayRead)
def get_resolved_day(
    service_id: int,
    day: date,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
) -> ResolvedDayRead:
    resolved = resolve_day(db, principal.merchant_id, service_id, day)
    return ResolvedDayRead(
        service_id=service_id,
        day=day,
        is_closed=resolved.is_closed,
        source=resolved.source,
        reason=resolved.reason,
        windows=[WindowRead.model_validate(window) for window in resolved.windows],
    )


@router.get("/api/services/{service_id}/days/{day}/slots", response_model=SlotListResponse)
def get_slots(
    service_id: int,
    day: date,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
) -> SlotListResponse:
    items = slot_capacities(db, principal.merchant_id, service_id, day)
    return SlotListResponse(
        service_id=service_id,
        day=day,
        slots=[
            SlotRead(start_time=slot.start_time, end_time=slot.end_time, capacity=_capacity_read(capacity))
            for slot, capacity in items
        ],
    )


@router.get("/api/services/{service_id}/days/{day}/capacity", response_model=list[SlotRead])
def get_window_capacity(
    service_id: int,
    day: date,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
) -> list[SlotRead]:
    _, items = window_capacities(db, principal.merchant_id, service_id, day)
    return [
        SlotRead(start_time=window.open_time, end_time=window.close_time, capacity=_capacity_read(capacity))
        for window, capacity in items
    ]


@router.get("/api/services/{service_id}/days/{day}/availability", response_model=AvailabilityCheckResponse)
def check_availability(
    service_id: int,
    day: date,
    start: time | None = Query(default=None),
    end: time | None = Query(default=None),
    party_size: int = Query(default=1, ge=1, le=500),
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
) -> AvailabilityCheckResponse:
    decision = evaluate_request(db, principal.merchant_id, service_id, day, start, end, party_size)
    return AvailabilityCheckResponse(
        service_id=service_id,
        day=day,
        available=decision.available,
        reason=decision.reason,
        remaining=_capacity_read(decision.remaining) if decision.remaining is not None else None,
    )
