from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from agenda.audit import list_audit_entries
from agenda.db import get_db
from agenda.deps import audit_write, get_now_utc
from agenda.errors import ApiError
from agenda.models import AuditActorType, LeaveStatus, SwapStatus
from agenda.schemas import (
    AuditLogRead,
    LeaveCreateRequest,
    LeaveRead,
    LeaveStatusUpdateRequest,
    SwapCreateRequest,
    SwapDecisionRequest,
    SwapRead,
    WorkingHoursLimitRead,
    WorkingHoursLimitUpsert,
)
from agenda.security import Principal, require_employee, require_merchant, require_principal
from agenda.services.leaves import create_leave, delete_leave, list_leaves, update_leave_status
from agenda.services.shift_swaps import (
    cancel_swap_request,
    create_swap_request,
    list_swap_requests,
    respond_to_swap,
)
from agenda.services.working_hours import (
    active_limit_for,
    create_limit,
    deactivate_limit,
    list_limits,
    update_limit,
)

router = APIRouter(tags=["staff"])


@router.post("/api/leaves", response_model=LeaveRead, status_code=status.HTTP_201_CREATED)
def create_leave_endpoint(
    payload: LeaveCreateRequest,
    request: Request,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
    now_utc: datetime = Depends(get_now_utc),
) -> LeaveRead:
    if principal.role == "employee":
        if payload.employee_id != principal.employee_id:
            raise ApiError(status_code=403, code="FORBIDDEN", message="Employees can only request their own leave.")
        payload = payload.model_copy(update={"status": LeaveStatus.PENDING})
    leave = create_leave(db, principal.merchant_id, payload, now_utc=now_utc)
    audit_write(
        db,
        request,
        principal,
        action="LEAVE_CREATED",
        entity_type="leave",
        entity_id=leave.id,
        details={"employee_id": leave.employee_id, "status": leave.status.value},
        now_utc=now_utc,
    )
    return leave


@router.get("/api/leaves", response_model=list[LeaveRead])
def list_leaves_endpoint(
    employee_id: int | None = Query(default=None, ge=1),
    year: int | None = Query(default=None, ge=1970),
    month: int | None = Query(default=None, ge=1, le=12),
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> list[LeaveRead]:
    return list_leaves(db, principal.merchant_id, employee_id=employee_id, year=year, month=month)


@router.post("/api/leaves/{leave_id}/status", response_model=LeaveRead)
def update_leave_status_endpoint(
    leave_id: int,
    payload: LeaveStatusUpdateRequest,
    request: Request,
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
    now_utc: datetime = Depends(get_now_utc),
) -> LeaveRead:
    leave = update_leave_status(db, principal.merchant_id, leave_id, payload.status, now_utc=now_utc)
    audit_write(
        db,
        request,
        principal,
        action="LEAVE_STATUS_CHANGED",
        entity_type="leave",
        entity_id=leave.id,
        details={"status": leave.status.value},
        now_utc=now_utc,
    )
    return leave


@router.delete("/api/leaves/{leave_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_leave_endpoint(
    leave_id: int,
    request: Request,
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> Response:
    delete_leave(db, principal.merchant_id, leave_id)
    audit_write(db, request, principal, action="LEAVE_DELETED", entity_type="leave", entity_id=leave_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/api/working-hours-limits", response_model=WorkingHoursLimitRead, status_code=status.HTTP_201_CREATED)
def create_limit_endpoint(
    payload: WorkingHoursLimitUpsert,
    request: Request,
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
    now_utc: datetime = Depends(get_now_utc),
) -> WorkingHoursLimitRead:
    limit = create_limit(db, principal.merchant_id, payload, now_utc=now_utc)
    audit_write(
        db,
        request,
        principal,
        action="WORKING_HOURS_LIMIT_CREATED",
        entity_type="working_hours_limit",
        entity_id=limit.id,
        details={"employee_id": limit.employee_id},
        now_utc=now_utc,
    )
    return limit


@router.get("/api/working-hours-limits", response_model=list[WorkingHoursLimitRead])
def list_limits_endpoint(
    employee_id: int | None = Query(default=None, ge=1),
    include_inactive: bool = Query(default=False),
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> list[WorkingHoursLimitRead]:
    return list_limits(db, principal.merchant_id, employee_id=employee_id, include_inactive=include_inactive)


@router.get("/api/employees/{employee_id}/working-hours-limit", response_model=WorkingHoursLimitRead)
def active_limit_endpoint(
    employee_id: int,
    on: date = Query(...),
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> WorkingHoursLimitRead:
    return active_limit_for(db, principal.merchant_id, employee_id, on)


@router.put("/api/working-hours-limits/{limit_id}", response_model=WorkingHoursLimitRead)
def update_limit_endpoint(
    limit_id: int,
    payload: WorkingHoursLimitUpsert,
    request: Request,
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> WorkingHoursLimitRead:
    limit = update_limit(db, principal.merchant_id, limit_id, payload)
    audit_write(
        db,
        request,
        principal,
        action="WORKING_HOURS_LIMIT_UPDATED",
        entity_type="working_hours_limit",
        entity_id=limit.id,
    )
    return limit


@router.delete("/api/working-hours-limits/{limit_id}", response_model=WorkingHoursLimitRead)
def deactivate_limit_endpoint(
    limit_id: int,
    request: Request,
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> WorkingHoursLimitRead:
    limit = deactivate_limit(db, principal.merchant_id, limit_id)
    audit_write(
        db,
        request,
        principal,
        action="WORKING_HOURS_LIMIT_DEACTIVATED",
        entity_type="working_hours_limit",
        entity_id=limit.id,
    )
    return limit


@router.post("/api/me/swaps", response_model=SwapRead, status_code=status.HTTP_201_CREATED)
def create_swap_endpoint(
    payload: SwapCreateRequest,
    request: Request,
    principal: Principal = Depends(require_employee),
    db: Session = Depends(get_db),
) -> SwapRead:
    swap = create_swap_request(
        db,
        principal.merchant_id,
        requesting_employee_id=principal.employee_id,  # type: ignore[arg-type]
        shift_id=payload.shift_id,
        target_employee_id=payload.target_employee_id,
        offered_shift_id=payload.offered_shift_id,
        message=payload.message,
    )
    audit_write(db, request, principal, action="SWAP_REQUESTED", entity_type="shift_swap", entity_id=swap.id)
    return swap


@router.post("/api/me/swaps/{swap_id}/cancel", response_model=SwapRead)
def cancel_swap_endpoint(
    swap_id: int,
    request: Request,
    principal: Principal = Depends(require_employee),
    db: Session = Depends(get_db),
) -> SwapRead:
    swap = cancel_swap_request(
        db,
        principal.merchant_id,
        swap_id,
        requesting_employee_id=principal.employee_id,  # type: ignore[arg-type]
    )
    audit_write(db, request, principal, action="SWAP_CANCELLED", entity_type="shift_swap", entity_id=swap.id)
    return swap


@router.get("/api/swaps", response_model=list[SwapRead])
def list_swaps_endpoint(
    employee_id: int | None = Query(default=None, ge=1),
    swap_status: SwapStatus | None = Query(default=None, alias="status"),
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> list[SwapRead]:
    return list_swap_requests(db, principal.merchant_id, employee_id=employee_id, status=swap_status)


@router.post("/api/swaps/{swap_id}/decision", response_model=SwapRead)
def decide_swap_endpoint(
    swap_id: int,
    payload: SwapDecisionRequest,
    request: Request,
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> SwapRead:
    swap = respond_to_swap(
        db,
        principal.merchant_id,
        swap_id,
        approve=payload.approve,
        target_employee_id=payload.target_employee_id,
        response_message=payload.response_message,
    )
    audit_write(
        db,
        request,
        principal,
        action="SWAP_APPROVED" if payload.approve else "SWAP_REJECTED",
        entity_type="shift_swap",
        entity_id=swap.id,
    )
    return swap


@router.get("/api/audit-logs", response_model=list[AuditLogRead])
def list_audit_logs_endpoint(
    action: str | None = Query(default=None),
    entity_type: str | None = Query(default=None),
    entity_id: str | None = Query(default=None),
    actor_type: AuditActorType | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> list[AuditLogRead]:
    return list_audit_entries(
        db,
        principal.merchant_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_type=actor_type,
        limit=limit,
    )
