from __future__ import annotations

from datetime import date, timedelta, time
import unittest

from sqlalchemy import select
from sqlite_support import SqliteDatabase, add_employee, add_merchant, add_shift

from agenda.errors import ApiError, InvalidStateError, NotFoundError
from agenda.models import (
    AnomalyReason,
    AnomalyType,
    CorrectionField,
    CorrectionStatus,
    OvertimeRecord,
    OvertimeType,
    ShiftAnomaly,
    ValidationStatus,
)
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
    scheduled_shift,
    submit_correction,
)

MONDAY = date(2026, 3, 2)


class TimekeepingServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.database = SqliteDatabase()
        self.db = self.database.session()
        self.merchant = add_merchant(self.db)
        self.employee = add_employee(self.db, self.merchant.id)
        self.shift = add_shift(self.db, self.employee, MONDAY, time(9, 0), time(17, 0), break_minutes=30)
        scheduled = scheduled_shift(self.shift)
        self.start = scheduled.start_utc
        self.end = scheduled.end_utc

    def tearDown(self) -> None:
        self.db.close()
        self.database.close()

    def _work(self, check_in_offset: int = 0, check_out_offset: int = 0):  # type: ignore[no-untyped-def]
        record_check_in(
            self.db,
            self.merchant.id,
            self.shift.id,
            employee_id=self.employee.id,
            now_utc=self.start + timedelta(minutes=check_in_offset),
        )
        return record_check_out(
            self.db,
            self.merchant.id,
            self.shift.id,
            employee_id=self.employee.id,
            now_utc=self.end + timedelta(minutes=check_out_offset),
        )

    def _anomaly_types(self) -> list[AnomalyType]:
        return [
            item.anomaly_type
            for item in self.db.scalars(select(ShiftAnomaly).where(ShiftAnomaly.shift_id == self.shift.id)).all()
        ]

    def test_on_time_shift_is_auto_approved(self) -> None:
        shift, classification = self._work()
        self.assertEqual(shift.validation_status, ValidationStatus.AUTO_APPROVED)
        self.assertEqual(classification.worked_minutes, 450)
        self.assertEqual(self._anomaly_types(), [])
        self.assertEqual(list_overtime(self.db, self.merchant.id), [])

    def test_small_overtime_is_approved_by_system(self) -> None:
        shift, _ = self._work(check_out_offset=10)
        record = self.db.scalar(select(OvertimeRecord).where(OvertimeRecord.shift_id == shift.id))
        self.assertEqual(record.duration_minutes, 10)
        self.assertTrue(record.is_approved)
        self.assertEqual(record.approved_by, "system")
        self.assertEqual(shift.validation_status, ValidationStatus.AUTO_APPROVED)

    def test_long_overtime_waits_for_merchant(self) -> None:
        shift, _ = self._work(check_out_offset=45)
        self.assertEqual(shift.validation_status, ValidationStatus.REQUIRES_REVIEW)
        self.assertIn(AnomalyType.LATE_CHECK_OUT, self._anomaly_types())

        pending = list_overtime(self.db, self.merchant.id, only_unapproved=True)
        self.assertEqual([item.duration_minutes for item in pending], [45])

        classified = classify_overtime(
            self.db,
            self.merchant.id,
            pending[0].id,
            employee_id=self.employee.id,
            overtime_type=OvertimeType.BANKED_HOURS,
            notes="Inventory",
        )
        self.assertEqual(classified.overtime_type, OvertimeType.BANKED_HOURS)

        approved = approve_overtime(self.db, self.merchant.id, pending[0].id, approved_by="merchant:1")
        self.assertTrue(approved.is_approved)
        self.assertFalse(approved.is_auto_detected)
        with self.assertRaises(InvalidStateError):
            classify_overtime(
                self.db,
                self.merchant.id,
                pending[0].id,
                employee_id=self.employee.id,
                overtime_type=OvertimeType.PAID,
            )

    def test_overtime_must_be_classified_concretely(self) -> None:
        self._work(check_out_offset=45)
        record = list_overtime(self.db, self.merchant.id)[0]
        with self.assertRaises(ApiError) as ctx:
            classify_overtime(
                self.db,
                self.merchant.id,
                record.id,
                employee_id=self.employee.id,
                overtime_type=OvertimeType.PENDING,
            )
        self.assertEqual(ctx.exception.status_code, 422)

    def test_check_out_requires_check_in(self) -> None:
        with self.assertRaises(InvalidStateError):
            record_check_out(self.db, self.merchant.id, self.shift.id, now_utc=self.end)

    def test_double_check_in_is_rejected(self) -> None:
        record_check_in(self.db, self.merchant.id, self.shift.id, now_utc=self.start)
        with self.assertRaises(InvalidStateError):
            record_check_in(self.db, self.merchant.id, self.shift.id, now_utc=self.start)

    def test_other_employee_cannot_punch(self) -> None:
        colleague = add_employee(self.db, self.merchant.id, "Luca Bianchi")
        with self.assertRaises(NotFoundError):
            record_check_in(self.db, self.merchant.id, self.shift.id, employee_id=colleague.id, now_utc=self.start)

    def test_correction_within_window_applies_immediately(self) -> None:
        shift, _ = self._work(check_in_offset=20)
        self.assertEqual(self._anomaly_types(), [AnomalyType.LATE_CHECK_IN])

        correction = submit_correction(
            self.db,
            self.merchant.id,
            shift.id,
            employee_id=self.employee.id,
            field=CorrectionField.CHECK_IN,
            new_value=self.start.isoformat(),
            reason="Badge reader was down",
            now_utc=self.end + timedelta(hours=1),
        )
        self.assertEqual(correction.status, CorrectionStatus.AUTO_APPROVED)
        self.assertTrue(correction.is_within_window)
        self.db.refresh(shift)
        self.assertEqual(shift.validation_status, ValidationStatus.SELF_CORRECTED)
        self.assertEqual(self._anomaly_types(), [])

    def test_late_correction_needs_merchant_decision(self) -> None:
        shift, _ = self._work(check_in_offset=20)
        correction = submit_correction(
            self.db,
            self.merchant.id,
            shift.id,
            employee_id=self.employee.id,
            field=CorrectionField.CHECK_IN,
            new_value=self.start.isoformat(),
            now_utc=self.start + timedelta(hours=25),
        )
        self.assertEqual(correction.status, CorrectionStatus.PENDING)
        self.db.refresh(shift)
        self.assertEqual(shift.validation_status, ValidationStatus.REQUIRES_REVIEW)
        self.assertEqual(
            [item.id for item in list_corrections(self.db, self.merchant.id, status=CorrectionStatus.PENDING)],
            [correction.id],
        )

        decided = decide_correction(
            self.db,
            self.merchant.id,
            correction.id,
            approve=True,
            decided_by="merchant:1",
            now_utc=self.start + timedelta(hours=26),
        )
        self.assertEqual(decided.status, CorrectionStatus.APPROVED)
        self.db.refresh(shift)
        self.assertEqual(shift.validation_status, ValidationStatus.MANUALLY_APPROVED)
        with self.assertRaises(InvalidStateError):
            decide_correction(self.db, self.merchant.id, correction.id, approve=False, decided_by="merchant:1")

    def test_malformed_correction_value_is_rejected(self) -> None:
        self._work()
        with self.assertRaises(ApiError):
            submit_correction(
                self.db,
                self.merchant.id,
                self.shift.id,
                employee_id=self.employee.id,
                field=CorrectionField.BREAK_MINUTES,
                new_value="half an hour",
                now_utc=self.end,
            )

    def test_rejected_correction_leaves_shift_untouched(self) -> None:
        shift, _ = self._work()
        with self.assertRaises(ApiError):
            submit_correction(
                self.db,
                self.merchant.id,
                shift.id,
                employee_id=self.employee.id,
                field=CorrectionField.CHECK_OUT,
                new_value=(self.start - timedelta(hours=1)).isoformat(),
                now_utc=self.end + timedelta(hours=1),
            )
        self.db.commit()
        self.db.expire_all()

        self.assertEqual(list_corrections(self.db, self.merchant.id), [])
        self.db.refresh(shift)
        self.assertEqual(shift.check_out_ts.replace(tzinfo=None), self.end.replace(tzinfo=None))
        self.assertEqual(shift.validation_status, ValidationStatus.AUTO_APPROVED)

    def test_out_of_order_late_correction_is_not_queued(self) -> None:
        shift, _ = self._work()
        with self.assertRaises(ApiError):
            submit_correction(
                self.db,
                self.merchant.id,
                shift.id,
                employee_id=self.employee.id,
                field=CorrectionField.CHECK_IN,
                new_value=(self.end + timedelta(minutes=5)).isoformat(),
                now_utc=self.start + timedelta(hours=30),
            )
        self.db.commit()
        self.assertEqual(list_corrections(self.db, self.merchant.id, status=CorrectionStatus.PENDING), [])

    def test_missing_punches_flagged_once_after_grace(self) -> None:
        self.assertEqual(
            flag_missing_punches(self.db, self.merchant.id, MONDAY, now_utc=self.end + timedelta(minutes=30)),
            [],
        )
        created = flag_missing_punches(self.db, self.merchant.id, MONDAY, now_utc=self.end + timedelta(minutes=61))
        self.assertEqual(
            sorted(item.anomaly_type for item in created),
            [AnomalyType.MISSING_CHECK_IN, AnomalyType.MISSING_CHECK_OUT],
        )
        again = flag_missing_punches(self.db, self.merchant.id, MONDAY, now_utc=self.end + timedelta(hours=3))
        self.assertEqual(again, [])
        self.db.refresh(self.shift)
        self.assertEqual(self.shift.validation_status, ValidationStatus.REQUIRES_REVIEW)

    def test_self_justifying_reason_resolves_anomaly(self) -> None:
        self._work(check_in_offset=45)
        anomaly = list_anomalies(self.db, self.merchant.id, shift_id=self.shift.id)[0]
        self.assertTrue(anomaly.requires_merchant_review)

        resolved = resolve_anomaly(
            self.db,
            self.merchant.id,
            anomaly.id,
            employee_id=self.employee.id,
            reason=AnomalyReason.TRAFFIC,
            now_utc=self.end,
        )
        self.assertTrue(resolved.is_resolved)
        self.assertFalse(resolved.requires_merchant_review)
        self.assertEqual(list_anomalies(self.db, self.merchant.id, unresolved_only=True), [])

    def test_other_reasons_stay_open_for_review(self) -> None:
        self._work(check_in_offset=45)
        anomaly = list_anomalies(self.db, self.merchant.id, shift_id=self.shift.id)[0]
        justified = resolve_anomaly(
            self.db,
            self.merchant.id,
            anomaly.id,
            employee_id=self.employee.id,
            reason=AnomalyReason.PERSONAL_EMERGENCY,
            notes="Child was sick",
            now_utc=self.end,
        )
        self.assertFalse(justified.is_resolved)
        self.assertEqual(justified.employee_reason, AnomalyReason.PERSONAL_EMERGENCY)

        reviewed = review_anomaly(self.db, self.merchant.id, anomaly.id, now_utc=self.end)
        self.assertTrue(reviewed.is_resolved)
        with self.assertRaises(InvalidStateError):
            review_anomaly(self.db, self.merchant.id, anomaly.id, now_utc=self.end)


if __name__ == "__main__":
    unittest.main()
