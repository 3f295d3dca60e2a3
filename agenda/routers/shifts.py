from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from agenda.db import get_db
from agenda.deps import audit_write, get_now_utc
from agenda.schemas import (
    ConflictRead,
    EmployeeHourStatsRead,
    ShiftCreateRequest,
    ShiftRead,
    ShiftTemplateRead,
    ShiftTemplateUpsert,
    ShiftUpdateRequest,
    ShiftValidateRequest,
    ShiftWriteResponse,
    TemplateApplyRequest,
    TemplateApplyResponse,
    TemplateAssignmentRead,
    ValidationResultRead,
)
from agenda.security import Principal, require_employee, require_merchant
from agenda.services.shift_calc import ProposedShift, ValidationResult
from agenda.services.shift_conflicts import validate_assignment
from agenda.services.shift_templates import (
    TemplateAssignment,
    create_shifts_from_template,
    create_template,
    deactivate_template,
    list_templates,
    update_template,
)
from agenda.services.shifts import create_shift, deactivate_shift, employee_hour_stats, list_shifts, update_shift
from agenda.services.timekeeping import schedule_today

router = APIRouter(tags=["shifts"])


def _write_response(shift, result: ValidationResult) -> ShiftWriteResponse:  # type: ignore[no-untyped-def]
    return ShiftWriteResponse(
        shift=ShiftRead.model_validate(shift),
        warnings=[ConflictRead(**item.to_dict()) for item in result.warnings],
    )


@router.post("/api/shifts/validate", response_model=ValidationResultRead)
def validate_shift_endpoint(
    payload: ShiftValidateRequest,
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> ValidationResultRead:
    proposed = ProposedShift(
        shift_date=payload.shift_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        break_minutes=payload.break_minutes,
    )
    result = validate_assignment(
        db,
        principal.merchant_id,
        payload.employee_id,
        proposed,
        exclude_shift_id=payload.exclude_shift_id,
    )
    return ValidationResultRead(**result.to_dict())


@router.post("/api/shifts", response_model=ShiftWriteResponse, status_code=status.HTTP_201_CREATED)
def create_shift_endpoint(
    payload: ShiftCreateRequest,
    request: Request,
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> ShiftWriteResponse:
    shift, result = create_shift(
        db,
        merchant_id=principal.merchant_id,
        employee_id=payload.employee_id,
        shift_date=payload.shift_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        break_minutes=payload.break_minutes,
        shift_type=payload.shift_type,
        notes=payload.notes,
        block_on_warnings=payload.block_on_warnings,
        force=payload.force,
    )
    audit_write(
        db,
        request,
        principal,
        action="SHIFT_CREATED",
        entity_type="shift",
        entity_id=shift.id,
        details={
            "employee_id": shift.employee_id,
            "shift_date": shift.shift_date.isoformat(),
            "warnings": [item.kind for item in result.warnings],
        },
    )
    return _write_response(shift, result)


@router.patch("/api/shifts/{shift_id}", response_model=ShiftWriteResponse)
def update_shift_endpoint(
    shift_id: int,
    payload: ShiftUpdateRequest,
    request: Request,
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> ShiftWriteResponse:
    shift, result = update_shift(
        db,
        merchant_id=principal.merchant_id,
        shift_id=shift_id,
        shift_date=payload.shift_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        break_minutes=payload.break_minutes,
        shift_type=payload.shift_type,
        notes=payload.notes,
        block_on_warnings=payload.block_on_warnings,
        force=payload.force,
    )
    audit_write(
        db,
        request,
        principal,
        action="SHIFT_UPDATED",
        entity_type="shift",
        entity_id=shift.id,
        details={"warnings": [item.kind for item in result.warnings]},
    )
    return _write_response(shift, result)


@router.delete("/api/shifts/{shift_id}", response_model=ShiftRead)
def delete_shift_endpoint(
    shift_id: int,
    request: Request,
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> ShiftRead:
    shift = deactivate_shift(db, principal.merchant_id, shift_id)
    audit_write(db, request, principal, action="SHIFT_DEACTIVATED", entity_type="shift", entity_id=shift.id)
    return shift


@router.get("/api/shifts", response_model=list[ShiftRead])
def list_shifts_endpoint(
    employee_id: int | None = Query(default=None, ge=1),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    include_inactive: bool = Query(default=False),
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> list[ShiftRead]:
    return list_shifts(
        db,
        principal.merchant_id,
        employee_id=employee_id,
        start_date=start_date,
        end_date=end_date,
        include_inactive=include_inactive,
    )


def _assignment_read(item: TemplateAssignment) -> TemplateAssignmentRead:
    return TemplateAssignmentRead(**item.to_dict())


@router.post("/api/shift-templates", response_model=ShiftTemplateRead, status_code=status.HTTP_201_CREATED)
def create_template_endpoint(
    payload: ShiftTemplateUpsert,
    request: Request,
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> ShiftTemplateRead:
    template = create_template(db, principal.merchant_id, payload)
    audit_write(
        db,
        request,
        principal,
        action="SHIFT_TEMPLATE_CREATED",
        entity_type="shift_template",
        entity_id=template.id,
        details={"name": template.name},
    )
    return template


@router.get("/api/shift-templates", response_model=list[ShiftTemplateRead])
def list_templates_endpoint(
    include_inactive: bool = Query(default=False),
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> list[ShiftTemplateRead]:
    return list_templates(db, principal.merchant_id, include_inactive=include_inactive)


@router.put("/api/shift-templates/{template_id}", response_model=ShiftTemplateRead)
def update_template_endpoint(
    template_id: int,
    payload: ShiftTemplateUpsert,
    request: Request,
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
    now_utc: datetime = Depends(get_now_utc),
) -> ShiftTemplateRead:
    template = update_template(db, principal.merchant_id, template_id, payload, now_utc=now_utc)
    audit_write(
        db,
        request,
        principal,
        action="SHIFT_TEMPLATE_UPDATED",
        entity_type="shift_template",
        entity_id=template.id,
        now_utc=now_utc,
    )
    return template


@router.delete("/api/shift-templates/{template_id}", response_model=ShiftTemplateRead)
def delete_template_endpoint(
    template_id: int,
    request: Request,
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> ShiftTemplateRead:
    template = deactivate_template(db, principal.merchant_id, template_id)
    audit_write(
        db,
        request,
        principal,
        action="SHIFT_TEMPLATE_DEACTIVATED",
        entity_type="shift_template",
        entity_id=template.id,
    )
    return template


@router.post("/api/shift-templates/{template_id}/apply", response_model=TemplateApplyResponse)
def apply_template_endpoint(
    template_id: int,
    payload: TemplateApplyRequest,
    request: Request,
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> TemplateApplyResponse:
    run = create_shifts_from_template(
        db,
        merchant_id=principal.merchant_id,
        template_id=template_id,
        employee_ids=payload.employee_ids,
        start_date=payload.start_date,
        end_date=payload.end_date,
        days_of_week=payload.days_of_week,
        skip_conflicts=payload.skip_conflicts,
        block_on_warnings=payload.block_on_warnings,
        force=payload.force,
    )
    audit_write(
        db,
        request,
        principal,
        action="SHIFT_TEMPLATE_APPLIED",
        entity_type="shift_template",
        entity_id=template_id,
        details={
            "start_date": payload.start_date.isoformat(),
            "end_date": payload.end_date.isoformat(),
            "created_shift_ids": [shift.id for shift in run.created],
            "skipped_count": len(run.skipped),
        },
    )
    return TemplateApplyResponse(
        created=[ShiftRead.model_validate(shift) for shift in run.created],
        skipped=[_assignment_read(item) for item in run.skipped],
        warnings=[_assignment_read(item) for item in run.warnings],
    )


@router.get("/api/employees/{employee_id}/hour-stats", response_model=EmployeeHourStatsRead)
def employee_hour_stats_endpoint(
    employee_id: int,
    reference_date: date | None = Query(default=None),
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
    now_utc: datetime = Depends(get_now_utc),
) -> EmployeeHourStatsRead:
    today = reference_date or schedule_today(now_utc)
    stats = employee_hour_stats(db, principal.merchant_id, employee_id, today=today)
    return EmployeeHourStatsRead.model_validate(stats, from_attributes=True)


@router.get("/api/me/hour-stats", response_model=EmployeeHourStatsRead)
def my_hour_stats_endpoint(
    principal: Principal = Depends(require_employee),
    db: Session = Depends(get_db),
    now_utc: datetime = Depends(get_now_utc),
) -> EmployeeHourStatsRead:
    stats = employee_hour_stats(
        db,
        principal.merchant_id,
        principal.employee_id,  # type: ignore[arg-type]
        today=schedule_today(now_utc),
    )
    return EmployeeHourStatsRead.model_validate(stats, from_attributes=True)
