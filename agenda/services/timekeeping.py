from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from agenda import repository
from agenda.errors import ApiError, InvalidStateError, NotFoundError
from agenda.models import (
    AnomalyReason,
    AnomalyType,
    CorrectionField,
    CorrectionStatus,
    OvertimeRecord,
    OvertimeType,
    Shift,
    ShiftAnomaly,
    ShiftCorrection,
    ValidationStatus,
)
from agenda.services.shift_calc import shift_bounds
from agenda.services.timekeeping_calc import (
    AnomalyPolicy,
    Classification,
    ScheduledShift,
    classify,
    evaluate_correction,
)
from agenda.settings import get_settings

logger = logging.getLogger("agenda.timekeeping")

SELF_JUSTIFYING_REASONS = frozenset(
    {
        AnomalyReason.TRAFFIC,
        AnomalyReason.TECHNICAL_ISSUE,
        AnomalyReason.SMART_WORKING,
    }
)
MISSING_PUNCH_TYPES = frozenset({AnomalyType.MISSING_CHECK_IN, AnomalyType.MISSING_CHECK_OUT})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_ts(ts_utc: datetime | None) -> datetime | None:
    if ts_utc is None:
        return None
    if ts_utc.tzinfo is None:
        return ts_utc.replace(tzinfo=timezone.utc)
    return ts_utc.astimezone(timezone.utc)


@lru_cache
def _schedule_timezone() -> ZoneInfo:
    raw_name = (get_settings().schedule_timezone or "").strip() or "Europe/Rome"
    try:
        return ZoneInfo(raw_name)
    except Exception:
        return ZoneInfo("Europe/Rome")


def schedule_today(now_utc: datetime) -> date:
    return _normalize_ts(now_utc).astimezone(_schedule_timezone()).date()  # type: ignore[union-attr]


def scheduled_shift(shift: Shift) -> ScheduledShift:
    tz = _schedule_timezone()
    start_local, end_local = shift_bounds(shift.shift_date, shift.start_time, shift.end_time)
    return ScheduledShift(
        start_utc=start_local.replace(tzinfo=tz).astimezone(timezone.utc),
        end_utc=end_local.replace(tzinfo=tz).astimezone(timezone.utc),
        break_minutes=shift.break_minutes or 0,
    )


def _get_owned_shift(db: Session, merchant_id: int, shift_id: int, employee_id: int | None) -> Shift:
    shift = repository.get_shift(db, merchant_id, shift_id)
    if employee_id is not None and shift.employee_id != employee_id:
        raise NotFoundError("Shift")
    return shift


def _classify_shift(shift: Shift, now_utc: datetime) -> Classification:
    return classify(
        scheduled_shift(shift),
        _normalize_ts(shift.check_in_ts),
        _normalize_ts(shift.check_out_ts),
        actual_break_minutes=shift.actual_break_minutes,
        now_utc=now_utc,
        policy=AnomalyPolicy.from_settings(),
    )


def _persist_classification(db: Session, shift: Shift, classification: Classification, now_utc: datetime) -> None:
    """Replace the shift's open anomalies and unapproved overtime with a fresh classification.

    Anomaly types the employee or merchant already resolved are not raised again.
    """
    existing = list(db.scalars(select(ShiftAnomaly).where(ShiftAnomaly.shift_id == shift.id)).all())
    resolved_types = {item.anomaly_type for item in existing if item.is_resolved}
    for item in existing:
        if not item.is_resolved:
            db.delete(item)

    for detected in classification.anomalies:
        if detected.anomaly_type in resolved_types:
            continue
        db.add(
            ShiftAnomaly(
                merchant_id=shift.merchant_id,
                shift_id=shift.id,
                anomaly_type=detected.anomaly_type,
                severity=detected.severity,
                deviation_minutes=detected.deviation_minutes,
                requires_merchant_review=detected.requires_review,
                detected_at=now_utc,
            )
        )

    record = db.scalar(select(OvertimeRecord).where(OvertimeRecord.shift_id == shift.id))
    if record is not None and record.is_approved and not record.is_auto_detected:
        return
    if classification.overtime_minutes <= 0:
        if record is not None and not record.is_approved:
            db.delete(record)
        return

    if record is None:
        record = OvertimeRecord(
            merchant_id=shift.merchant_id,
            shift_id=shift.id,
            employee_id=shift.employee_id,
            overtime_date=shift.shift_date,
            is_auto_detected=True,
        )
        db.add(record)
    record.duration_minutes = classification.overtime_minutes
    record.overtime_type = classification.overtime_type
    record.is_approved = classification.overtime_auto_approved
    record.approved_by = "system" if classification.overtime_auto_approved else None
    record.approved_at = now_utc if classification.overtime_auto_approved else None


def record_check_in(
    db: Session,
    merchant_id: int,
    shift_id: int,
    *,
    employee_id: int | None = None,
    now_utc: datetime | None = None,
) -> Shift:
    current = _normalize_ts(now_utc) or _utcnow()
    shift = _get_owned_shift(db, merchant_id, shift_id, employee_id)
    if not shift.is_active:
        raise InvalidStateError("Shift is not active.")
    if shift.check_in_ts is not None:
        raise InvalidStateError("Shift already has a check-in.")

    shift.check_in_ts = current
    db.commit()
    db.refresh(shift)
    logger.info(
        "shift_check_in",
        extra={"merchant_id": merchant_id, "shift_id": shift.id, "employee_id": shift.employee_id},
    )
    return shift


def record_check_out(
    db: Session,
    merchant_id: int,
    shift_id: int,
    *,
    employee_id: int | None = None,
    actual_break_minutes: int | None = None,
    now_utc: datetime | None = None,
) -> tuple[Shift, Classification]:
    """Close the shift and persist its overtime and anomalies."""
    current = _normalize_ts(now_utc) or _utcnow()
    shift = _get_owned_shift(db, merchant_id, shift_id, employee_id)
    if shift.check_in_ts is None:
        raise InvalidStateError("Shift has no check-in.")
    if shift.check_out_ts is not None:
        raise InvalidStateError("Shift already has a check-out.")
    if current <= _normalize_ts(shift.check_in_ts):
        raise InvalidStateError("Check-out must come after check-in.")

    shift.check_out_ts = current
    if actual_break_minutes is not None:
        shift.actual_break_minutes = max(0, actual_break_minutes)

    classification = _classify_shift(shift, current)
    _persist_classification(db, shift, classification, current)
    shift.validation_status = (
        ValidationStatus.REQUIRES_REVIEW if classification.requires_review else ValidationStatus.AUTO_APPROVED
    )
    shift.validated_at = current
    shift.validated_by = "system"
    db.commit()
    db.refresh(shift)
    logger.info(
        "shift_check_out",
        extra={
            "merchant_id": merchant_id,
            "shift_id": shift.id,
            "overtime_minutes": classification.overtime_minutes,
            "anomalies": [item.anomaly_type.value for item in classification.anomalies],
            "validation_status": shift.validation_status.value,
        },
    )
    return shift, classification


def flag_missing_punches(
    db: Session,
    merchant_id: int,
    day: date,
    *,
    now_utc: datetime | None = None,
) -> list[ShiftAnomaly]:
    """Raise MISSING_CHECK_IN / MISSING_CHECK_OUT for shifts on ``day`` past their grace period."""
    current = _normalize_ts(now_utc) or _utcnow()
    shifts = db.scalars(
        select(Shift).where(
            Shift.merchant_id == merchant_id,
            Shift.shift_date == day,
            Shift.is_active.is_(True),
        )
    ).all()

    created: list[ShiftAnomaly] = []
    for shift in shifts:
        classification = _classify_shift(shift, current)
        missing = [item for item in classification.anomalies if item.anomaly_type in MISSING_PUNCH_TYPES]
        if not missing:
            continue
        known = set(
            db.scalars(select(ShiftAnomaly.anomaly_type).where(ShiftAnomaly.shift_id == shift.id)).all()
        )
        for detected in missing:
            if detected.anomaly_type in known:
                continue
            anomaly = ShiftAnomaly(
                merchant_id=merchant_id,
                shift_id=shift.id,
                anomaly_type=detected.anomaly_type,
                severity=detected.severity,
                deviation_minutes=detected.deviation_minutes,
                requires_merchant_review=detected.requires_review,
                detected_at=current,
            )
            db.add(anomaly)
            created.append(anomaly)
            shift.validation_status = ValidationStatus.REQUIRES_REVIEW

    db.commit()
    if created:
        logger.info(
            "missing_punches_flagged",
            extra={"merchant_id": merchant_id, "day": day, "count": len(created)},
        )
    return created


def _parse_correction_value(field: CorrectionField, raw_value: str) -> datetime | int:
    value = (raw_value or "").strip()
    if field == CorrectionField.BREAK_MINUTES:
        try:
            minutes = int(value)
        except ValueError as exc:
            raise ApiError(422, "VALIDATION_ERROR", "Break correction must be a whole number of minutes.") from exc
        if minutes < 0:
            raise ApiError(422, "VALIDATION_ERROR", "Break correction must not be negative.")
        return minutes
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise ApiError(422, "VALIDATION_ERROR", "Punch correction must be an ISO-8601 timestamp.") from exc
    return _normalize_ts(parsed)


def _original_punch(shift: Shift, field: CorrectionField) -> tuple[datetime, str | None]:
    scheduled = scheduled_shift(shift)
    if field == CorrectionField.CHECK_IN:
        punch = _normalize_ts(shift.check_in_ts)
        return punch or scheduled.start_utc, punch.isoformat() if punch else None
    punch = _normalize_ts(shift.check_out_ts)
    if field == CorrectionField.CHECK_OUT:
        return punch or scheduled.end_utc, punch.isoformat() if punch else None
    original_break = None if shift.actual_break_minutes is None else str(shift.actual_break_minutes)
    return punch or scheduled.end_utc, original_break


def _corrected_punches(
    shift: Shift,
    field: CorrectionField,
    new_value: str,
) -> tuple[datetime | None, datetime | None, int | None]:
    """Punches the shift would hold after the correction. Nothing on ``shift`` changes."""
    value = _parse_correction_value(field, new_value)
    check_in = _normalize_ts(shift.check_in_ts)
    check_out = _normalize_ts(shift.check_out_ts)
    break_minutes = shift.actual_break_minutes
    if field == CorrectionField.CHECK_IN:
        check_in = value
    elif field == CorrectionField.CHECK_OUT:
        check_out = value
    else:
        break_minutes = value

    if check_in is not None and check_out is not None and check_out <= check_in:
        raise ApiError(422, "VALIDATION_ERROR", "Corrected check-out must come after check-in.")
    return check_in, check_out, break_minutes


def _apply_correction(
    db: Session,
    shift: Shift,
    correction: ShiftCorrection,
    *,
    status_after: ValidationStatus,
    decided_by: str,
    now_utc: datetime,
) -> None:
    check_in, check_out, break_minutes = _corrected_punches(shift, correction.corrected_field, correction.new_value)
    shift.check_in_ts = check_in
    shift.check_out_ts = check_out
    shift.actual_break_minutes = break_minutes

    classification = _classify_shift(shift, now_utc)
    _persist_classification(db, shift, classification, now_utc)
    shift.validation_status = ValidationStatus.REQUIRES_REVIEW if classification.requires_review else status_after
    shift.validated_at = now_utc
    shift.validated_by = decided_by


def submit_correction(
    db: Session,
    merchant_id: int,
    shift_id: int,
    *,
    employee_id: int,
    field: CorrectionField,
    new_value: str,
    reason: str | None = None,
    now_utc: datetime | None = None,
) -> ShiftCorrection:
    """File a punch correction; within 24h of the original punch it applies at once."""
    current = _normalize_ts(now_utc) or _utcnow()
    shift = _get_owned_shift(db, merchant_id, shift_id, employee_id)
    _corrected_punches(shift, field, new_value)

    original_ts, original_value = _original_punch(shift, field)
    within_window = evaluate_correction(original_ts, current)
    correction = ShiftCorrection(
        merchant_id=merchant_id,
        shift_id=shift.id,
        employee_id=shift.employee_id,
        corrected_field=field,
        original_value=original_value,
        new_value=new_value.strip(),
        reason=reason,
        original_punch_ts=original_ts,
        submitted_at=current,
        is_within_window=within_window,
        status=CorrectionStatus.AUTO_APPROVED if within_window else CorrectionStatus.PENDING,
    )

    if within_window:
        _apply_correction(
            db,
            shift,
            correction,
            status_after=ValidationStatus.SELF_CORRECTED,
            decided_by="system",
            now_utc=current,
        )
        correction.decided_at = current
        correction.decided_by = "system"
    else:
        shift.validation_status = ValidationStatus.REQUIRES_REVIEW
    db.add(correction)
    db.commit()
    db.refresh(correction)
    logger.info(
        "shift_correction_submitted",
        extra={
            "merchant_id": merchant_id,
            "shift_id": shift.id,
            "correction_id": correction.id,
            "field": field.value,
            "status": correction.status.value,
        },
    )
    return correction


def decide_correction(
    db: Session,
    merchant_id: int,
    correction_id: int,
    *,
    approve: bool,
    decided_by: str,
    now_utc: datetime | None = None,
) -> ShiftCorrection:
    current = _normalize_ts(now_utc) or _utcnow()
    correction = db.scalar(
        select(ShiftCorrection).where(
            ShiftCorrection.id == correction_id,
            ShiftCorrection.merchant_id == merchant_id,
        )
    )
    if correction is None:
        raise NotFoundError("Correction")
    if correction.status != CorrectionStatus.PENDING:
        raise InvalidStateError(f"Correction is already {correction.status.value}.")

    shift = repository.get_shift(db, merchant_id, correction.shift_id)
    if approve:
        _apply_correction(
            db,
            shift,
            correction,
            status_after=ValidationStatus.MANUALLY_APPROVED,
            decided_by=decided_by,
            now_utc=current,
        )
        correction.status = CorrectionStatus.APPROVED
    else:
        correction.status = CorrectionStatus.REJECTED
    correction.decided_at = current
    correction.decided_by = decided_by
    db.commit()
    db.refresh(correction)
    return correction


def list_corrections(
    db: Session,
    merchant_id: int,
    *,
    status: CorrectionStatus | None = None,
    employee_id: int | None = None,
) -> list[ShiftCorrection]:
    stmt = (
        select(ShiftCorrection)
        .where(ShiftCorrection.merchant_id == merchant_id)
        .order_by(ShiftCorrection.submitted_at.desc(), ShiftCorrection.id.desc())
    )
    if status is not None:
        stmt = stmt.where(ShiftCorrection.status == status)
    if employee_id is not None:
        stmt = stmt.where(ShiftCorrection.employee_id == employee_id)
    return list(db.scalars(stmt).all())


def _get_overtime(db: Session, merchant_id: int, record_id: int) -> OvertimeRecord:
    record = db.scalar(
        select(OvertimeRecord).where(OvertimeRecord.id == record_id, OvertimeRecord.merchant_id == merchant_id)
    )
    if record is None:
        raise NotFoundError("Overtime record")
    return record


def classify_overtime(
    db: Session,
    merchant_id: int,
    record_id: int,
    *,
    employee_id: int,
    overtime_type: OvertimeType,
    notes: str | None = None,
) -> OvertimeRecord:
    if overtime_type == OvertimeType.PENDING:
        raise ApiError(422, "VALIDATION_ERROR", "Overtime must be classified as a concrete type.")
    record = _get_overtime(db, merchant_id, record_id)
    if record.employee_id != employee_id:
        raise NotFoundError("Overtime record")
    if record.is_approved and record.approved_by != "system":
        raise InvalidStateError("Overtime already approved by the merchant.")

    record.overtime_type = overtime_type
    record.employee_notes = notes
    db.commit()
    db.refresh(record)
    return record


def approve_overtime(
    db: Session,
    merchant_id: int,
    record_id: int,
    *,
    approved_by: str,
    overtime_type: OvertimeType | None = None,
    now_utc: datetime | None = None,
) -> OvertimeRecord:
    current = _normalize_ts(now_utc) or _utcnow()
    record = _get_overtime(db, merchant_id, record_id)
    if overtime_type is not None:
        record.overtime_type = overtime_type
    record.is_approved = True
    record.is_auto_detected = False
    record.approved_by = approved_by
    record.approved_at = current
    db.commit()
    db.refresh(record)
    return record


def list_overtime(
    db: Session,
    merchant_id: int,
    *,
    employee_id: int | None = None,
    only_unapproved: bool = False,
) -> list[OvertimeRecord]:
    stmt = (
        select(OvertimeRecord)
        .where(OvertimeRecord.merchant_id == merchant_id)
        .order_by(OvertimeRecord.overtime_date.desc(), OvertimeRecord.id.desc())
    )
    if employee_id is not None:
        stmt = stmt.where(OvertimeRecord.employee_id == employee_id)
    if only_unapproved:
        stmt = stmt.where(OvertimeRecord.is_approved.is_(False))
    return list(db.scalars(stmt).all())


def _get_anomaly(db: Session, merchant_id: int, anomaly_id: int) -> ShiftAnomaly:
    anomaly = db.scalar(
        select(ShiftAnomaly).where(ShiftAnomaly.id == anomaly_id, ShiftAnomaly.merchant_id == merchant_id)
    )
    if anomaly is None:
        raise NotFoundError("Anomaly")
    return anomaly


def resolve_anomaly(
    db: Session,
    merchant_id: int,
    anomaly_id: int,
    *,
    employee_id: int,
    reason: AnomalyReason,
    notes: str | None = None,
    now_utc: datetime | None = None,
) -> ShiftAnomaly:
    """Employee justification. Some reasons close the anomaly without merchant review."""
    current = _normalize_ts(now_utc) or _utcnow()
    anomaly = _get_anomaly(db, merchant_id, anomaly_id)
    shift = repository.get_shift(db, merchant_id, anomaly.shift_id)
    if shift.employee_id != employee_id:
        raise NotFoundError("Anomaly")
    if anomaly.is_resolved:
        raise InvalidStateError("Anomaly is already resolved.")

    anomaly.employee_reason = reason
    anomaly.employee_notes = notes
    if reason in SELF_JUSTIFYING_REASONS:
        anomaly.requires_merchant_review = False
        anomaly.is_resolved = True
        anomaly.resolved_at = current
    db.commit()
    db.refresh(anomaly)
    return anomaly


def review_anomaly(
    db: Session,
    merchant_id: int,
    anomaly_id: int,
    *,
    now_utc: datetime | None = None,
) -> ShiftAnomaly:
    current = _normalize_ts(now_utc) or _utcnow()
    anomaly = _get_anomaly(db, merchant_id, anomaly_id)
    if anomaly.is_resolved:
        raise InvalidStateError("Anomaly is already resolved.")
    anomaly.requires_merchant_review = False
    anomaly.is_resolved = True
    anomaly.resolved_at = current
    db.commit()
    db.refresh(anomaly)
    return anomaly


def list_anomalies(
    db: Session,
    merchant_id: int,
    *,
    shift_id: int | None = None,
    unresolved_only: bool = False,
) -> list[ShiftAnomaly]:
    stmt = (
        select(ShiftAnomaly)
        .where(ShiftAnomaly.merchant_id == merchant_id)
        .order_by(ShiftAnomaly.detected_at.desc(), ShiftAnomaly.id.desc())
    )
    if shift_id is not None:
        stmt = stmt.where(ShiftAnomaly.shift_id == shift_id)
    if unresolved_only:
        stmt = stmt.where(ShiftAnomaly.is_resolved.is_(False))
    return list(db.scalars(stmt).all())
