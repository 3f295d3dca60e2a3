from __future__ import annotations

from datetime import datetime, timedelta, timezone
import unittest

from agenda.models import AnomalyType
from agenda.services.timekeeping_calc import (
    AnomalyPolicy,
    ScheduledShift,
    classify,
    evaluate_correction,
)

POLICY = AnomalyPolicy(
    check_in_tolerance_minutes=15,
    check_out_tolerance_minutes=30,
    break_tolerance_minutes=10,
    missing_punch_grace_minutes=60,
    overtime_auto_approve_minutes=15,
)
START = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)
END = datetime(2026, 3, 2, 16, 0, tzinfo=timezone.utc)
SHIFT = ScheduledShift(start_utc=START, end_utc=END, break_minutes=30)


def _types(classification) -> list[AnomalyType]:  # type: ignore[no-untyped-def]
    return [item.anomaly_type for item in classification.anomalies]


class ClassifyTests(unittest.TestCase):
    def test_on_time_shift_is_clean(self) -> None:
        result = classify(SHIFT, START, END, now_utc=END, policy=POLICY)
        self.assertEqual(result.anomalies, ())
        self.assertEqual(result.overtime_minutes, 0)
        self.assertEqual(result.worked_minutes, 450)
        self.assertFalse(result.requires_review)

    def test_late_check_in_within_tolerance_is_ignored(self) -> None:
        result = classify(SHIFT, START + timedelta(minutes=15), END, now_utc=END, policy=POLICY)
        self.assertEqual(result.anomalies, ())

    def test_late_check_in_severity_rises_after_thirty_minutes(self) -> None:
        mild = classify(SHIFT, START + timedelta(minutes=20), END, now_utc=END, policy=POLICY)
        severe = classify(SHIFT, START + timedelta(minutes=45), END, now_utc=END, policy=POLICY)
        self.assertEqual(_types(mild), [AnomalyType.LATE_CHECK_IN])
        self.assertEqual(mild.anomalies[0].severity, 2)
        self.assertEqual(mild.anomalies[0].deviation_minutes, 20)
        self.assertFalse(mild.requires_review)
        self.assertEqual(severe.anomalies[0].severity, 3)
        self.assertTrue(severe.requires_review)

    def test_early_check_in_is_low_severity(self) -> None:
        result = classify(SHIFT, START - timedelta(minutes=40), END, now_utc=END, policy=POLICY)
        self.assertIn(AnomalyType.EARLY_CHECK_IN, _types(result))
        self.assertEqual(result.anomalies[0].severity, 1)

    def test_early_check_out(self) -> None:
        result = classify(SHIFT, START, END - timedelta(minutes=45), now_utc=END, policy=POLICY)
        self.assertEqual(_types(result), [AnomalyType.EARLY_CHECK_OUT])

    def test_small_overtime_is_auto_approved(self) -> None:
        result = classify(SHIFT, START, END + timedelta(minutes=10), now_utc=END, policy=POLICY)
        self.assertEqual(result.overtime_minutes, 10)
        self.assertTrue(result.overtime_auto_approved)
        self.assertFalse(result.requires_review)

    def test_large_overtime_needs_review(self) -> None:
        result = classify(SHIFT, START, END + timedelta(minutes=45), now_utc=END, policy=POLICY)
        self.assertEqual(result.overtime_minutes, 45)
        self.assertFalse(result.overtime_auto_approved)
        self.assertIn(AnomalyType.LATE_CHECK_OUT, _types(result))
        self.assertTrue(result.requires_review)

    def test_extended_break_reduces_worked_time(self) -> None:
        result = classify(SHIFT, START, END, actual_break_minutes=60, now_utc=END, policy=POLICY)
        self.assertEqual(_types(result), [AnomalyType.EXTENDED_BREAK])
        self.assertEqual(result.anomalies[0].deviation_minutes, 30)
        self.assertEqual(result.worked_minutes, 420)
        self.assertEqual(result.overtime_minutes, 0)

    def test_missing_punches_only_after_grace(self) -> None:
        before = classify(SHIFT, None, None, now_utc=END + timedelta(minutes=30), policy=POLICY)
        after = classify(SHIFT, None, None, now_utc=END + timedelta(minutes=61), policy=POLICY)
        self.assertEqual(before.anomalies, ())
        self.assertEqual(_types(after), [AnomalyType.MISSING_CHECK_IN, AnomalyType.MISSING_CHECK_OUT])
        self.assertTrue(all(item.severity == 4 for item in after.anomalies))
        self.assertTrue(after.requires_review)


class CorrectionWindowTests(unittest.TestCase):
    def test_just_inside_window_is_auto_approved(self) -> None:
        self.assertTrue(evaluate_correction(START, START + timedelta(hours=23, minutes=59, seconds=59)))

    def test_exactly_twenty_four_hours_is_auto_approved(self) -> None:
        self.assertTrue(evaluate_correction(START, START + timedelta(hours=24)))

    def test_past_window_needs_review(self) -> None:
        self.assertFalse(evaluate_correction(START, START + timedelta(hours=24, seconds=1)))


if __name__ == "__main__":
    unittest.main()
