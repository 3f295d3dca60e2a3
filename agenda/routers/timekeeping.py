from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from agenda.db import get_db
from agenda.deps import audit_write, get_now_utc
from agenda.models import CorrectionStatus
from agenda.schemas import (
    AnomalyRead,
    AnomalyResolveRequest,
    CheckOutRequest,
    CheckOutResponse,
    CorrectionCreateRequest,
    CorrectionDecisionRequest,
    CorrectionRead,
    MissingPunchScanRequest,
    OvertimeApproveRequest,
    OvertimeClassifyRequest,
    OvertimeRead,
    ShiftRead,
)
from agenda.security import Principal, require_employee, require_merchant
from agenda.services.timekeeping import (
    approve_overtime,
    classify_overtime,
    decide_correction,
    flag_missing_punches,
    list_anomalies,
    list_corrections,
    list_overtime,
    record_check_in,
    record_check_out,
    resolve_anomaly,
    review_anomaly,
    submit_correction,
)

router = APIRouter(tags=["timekeeping"])


@router.post("/api/me/shifts/{shift_id}/check-in", response_model=ShiftRead)
def check_in_endpoint(
    shift_id: int,
    request: Request,
    principal: Principal = Depends(require_employee),
    db: Session = Depends(get_db),
    now_utc: datetime = Depends(get_now_utc),
) -> ShiftRead:
    shift = record_check_in(
        db,
        principal.merchant_id,
        shift_id,
        employee_id=principal.employee_id,
        now_utc=now_utc,
    )
    audit_write(db, request, principal, action="SHIFT_CHECK_IN", entity_type="shift", entity_id=shift.id, now_utc=now_utc)
    return shift


@router.post("/api/me/shifts/{shift_id}/check-out", response_model=CheckOutResponse)
def check_out_endpoint(
    shift_id: int,
    payload: CheckOutRequest,
    request: Request,
    principal: Principal = Depends(require_employee),
    db: Session = Depends(get_db),
    now_utc: datetime = Depends(get_now_utc),
) -> CheckOutResponse:
    shift, classification = record_check_out(
        db,
        principal.merchant_id,
        shift_id,
        employee_id=principal.employee_id,
        actual_break_minutes=payload.actual_break_minutes,
        now_utc=now_utc,
    )
    audit_write(
        db,
        request,
        principal,
        action="SHIFT_CHECK_OUT",
        entity_type="shift",
        entity_id=shift.id,
        details={
            "overtime_minutes": classification.overtime_minutes,
            "anomalies": [item.anomaly_type.value for item in classification.anomalies],
        },
        now_utc=now_utc,
    )
    return CheckOutResponse(
        shift=ShiftRead.model_validate(shift),
        overtime_minutes=classification.overtime_minutes,
        overtime_auto_approved=classification.overtime_auto_approved,
        anomalies=[item.anomaly_type for item in classification.anomalies],
    )


@router.post("/api/me/shifts/{shift_id}/corrections", response_model=CorrectionRead)
def submit_correction_endpoint(
    shift_id: int,
    payload: CorrectionCreateRequest,
    request: Request,
    principal: Principal = Depends(require_employee),
    db: Session = Depends(get_db),
    now_utc: datetime = Depends(get_now_utc),
) -> CorrectionRead:
    correction = submit_correction(
        db,
        principal.merchant_id,
        shift_id,
        employee_id=principal.employee_id,  # type: ignore[arg-type]
        field=payload.field,
        new_value=payload.new_value,
        reason=payload.reason,
        now_utc=now_utc,
    )
    audit_write(
        db,
        request,
        principal,
        action="SHIFT_CORRECTION_SUBMITTED",
        entity_type="shift_correction",
        entity_id=correction.id,
        details={"status": correction.status.value, "field": correction.corrected_field.value},
        now_utc=now_utc,
    )
    return correction


@router.post("/api/me/overtime/{record_id}/classify", response_model=OvertimeRead)
def classify_overtime_endpoint(
    record_id: int,
    payload: OvertimeClassifyRequest,
    principal: Principal = Depends(require_employee),
    db: Session = Depends(get_db),
) -> OvertimeRead:
    return classify_overtime(
        db,
        principal.merchant_id,
        record_id,
        employee_id=principal.employee_id,  # type: ignore[arg-type]
        overtime_type=payload.overtime_type,
        notes=payload.notes,
    )


@router.post("/api/me/anomalies/{anomaly_id}/resolve", response_model=AnomalyRead)
def resolve_anomaly_endpoint(
    anomaly_id: int,
    payload: AnomalyResolveRequest,
    principal: Principal = Depends(require_employee),
    db: Session = Depends(get_db),
    now_utc: datetime = Depends(get_now_utc),
) -> AnomalyRead:
    return resolve_anomaly(
        db,
        principal.merchant_id,
        anomaly_id,
        employee_id=principal.employee_id,  # type: ignore[arg-type]
        reason=payload.reason,
        notes=payload.notes,
        now_utc=now_utc,
    )


@router.get("/api/corrections", response_model=list[CorrectionRead])
def list_corrections_endpoint(
    correction_status: CorrectionStatus | None = Query(default=None, alias="status"),
    employee_id: int | None = Query(default=None, ge=1),
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> list[CorrectionRead]:
    return list_corrections(db, principal.merchant_id, status=correction_status, employee_id=employee_id)


@router.post("/api/corrections/{correction_id}/decision", response_model=CorrectionRead)
def decide_correction_endpoint(
    correction_id: int,
    payload: CorrectionDecisionRequest,
    request: Request,
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
    now_utc: datetime = Depends(get_now_utc),
) -> CorrectionRead:
    correction = decide_correction(
        db,
        principal.merchant_id,
        correction_id,
        approve=payload.approve,
        decided_by=principal.actor_id,
        now_utc=now_utc,
    )
    audit_write(
        db,
        request,
        principal,
        action="SHIFT_CORRECTION_APPROVED" if payload.approve else "SHIFT_CORRECTION_REJECTED",
        entity_type="shift_correction",
        entity_id=correction.id,
        now_utc=now_utc,
    )
    return correction


@router.get("/api/overtime", response_model=list[OvertimeRead])
def list_overtime_endpoint(
    employee_id: int | None = Query(default=None, ge=1),
    only_unapproved: bool = Query(default=False),
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> list[OvertimeRead]:
    return list_overtime(db, principal.merchant_id, employee_id=employee_id, only_unapproved=only_unapproved)


@router.post("/api/overtime/{record_id}/approve", response_model=OvertimeRead)
def approve_overtime_endpoint(
    record_id: int,
    payload: OvertimeApproveRequest,
    request: Request,
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
    now_utc: datetime = Depends(get_now_utc),
) -> OvertimeRead:
    record = approve_overtime(
        db,
        principal.merchant_id,
        record_id,
        approved_by=principal.actor_id,
        overtime_type=payload.overtime_type,
        now_utc=now_utc,
    )
    audit_write(
        db,
        request,
        principal,
        action="OVERTIME_APPROVED",
        entity_type="overtime_record",
        entity_id=record.id,
        details={"overtime_type": record.overtime_type.value, "duration_minutes": record.duration_minutes},
        now_utc=now_utc,
    )
    return record


@router.get("/api/anomalies", response_model=list[AnomalyRead])
def list_anomalies_endpoint(
    shift_id: int | None = Query(default=None, ge=1),
    unresolved_only: bool = Query(default=False),
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> list[AnomalyRead]:
    return list_anomalies(db, principal.merchant_id, shift_id=shift_id, unresolved_only=unresolved_only)


@router.post("/api/anomalies/{anomaly_id}/review", response_model=AnomalyRead)
def review_anomaly_endpoint(
    anomaly_id: int,
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
    now_utc: datetime = Depends(get_now_utc),
) -> AnomalyRead:
    return review_anomaly(db, principal.merchant_id, anomaly_id, now_utc=now_utc)


@router.post("/api/timekeeping/missing-punches", response_model=list[AnomalyRead])
def scan_missing_punches_endpoint(
    payload: MissingPunchScanRequest,
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
    now_utc: datetime = Depends(get_now_utc),
) -> list[AnomalyRead]:
    return flag_missing_punches(db, principal.merchant_id, payload.day, now_utc=now_utc)
