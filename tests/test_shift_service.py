from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, time, timedelta, timezone
import threading
import unittest

from pydantic import ValidationError
from sqlite_support import SqliteDatabase, add_employee, add_merchant, add_shift

from agenda.errors import ApiError, InvalidStateError, NotFoundError, ShiftConflictError
from agenda.models import LeaveStatus, LeaveType, SwapStatus
from agenda.schemas import LeaveCreateRequest, ShiftTemplateUpsert, WorkingHoursLimitUpsert
from agenda.services.leaves import create_leave, list_leaves, update_leave_status
from agenda.services.shift_calc import ProposedShift
from agenda.services.shift_conflicts import validate_assignment
from agenda.services.shift_swaps import (
    cancel_swap_request,
    create_swap_request,
    list_swap_requests,
    respond_to_swap,
)
from agenda.services.shift_templates import (
    MAX_TEMPLATE_RANGE_DAYS,
    create_shifts_from_template,
    create_template,
    deactivate_template,
    get_template,
    list_templates,
    update_template,
)
from agenda.services.shifts import create_shift, deactivate_shift, employee_hour_stats, list_shifts, update_shift
from agenda.services.working_hours import active_limit_for, create_limit, deactivate_limit

MONDAY = date(2026, 3, 2)
NOW = datetime(2026, 2, 20, 9, 0, tzinfo=timezone.utc)


class ShiftServiceTestBase(unittest.TestCase):
    def setUp(self) -> None:
        self.database = SqliteDatabase()
        self.db = self.database.session()
        self.merchant = add_merchant(self.db)
        self.anna = add_employee(self.db, self.merchant.id, "Anna Rossi")
        self.luca = add_employee(self.db, self.merchant.id, "Luca Bianchi")

    def tearDown(self) -> None:
        self.db.close()
        self.database.close()

    def _limit(self, employee_id: int, **values):  # type: ignore[no-untyped-def]
        payload = {"employee_id": employee_id, "valid_from": date(2026, 1, 1)}
        payload.update(values)
        return create_limit(self.db, self.merchant.id, WorkingHoursLimitUpsert(**payload), now_utc=NOW)

    def _leave(self, employee_id: int, start: date, end: date, status: LeaveStatus):  # type: ignore[no-untyped-def]
        return create_leave(
            self.db,
            self.merchant.id,
            LeaveCreateRequest(
                employee_id=employee_id,
                start_date=start,
                end_date=end,
                leave_type=LeaveType.ANNUAL,
                status=status,
            ),
            now_utc=NOW,
        )


class ValidateAssignmentTests(ShiftServiceTestBase):
    def test_overlapping_shift_yields_single_overlap(self) -> None:
        existing = add_shift(self.db, self.anna, MONDAY, time(9, 0), time(13, 0))
        result = validate_assignment(
            self.db,
            self.merchant.id,
            self.anna.id,
            ProposedShift(shift_date=MONDAY, start_time=time(12, 0), end_time=time(16, 0)),
        )
        self.assertFalse(result.ok)
        self.assertEqual([item.kind for item in result.conflicts], ["OVERLAP"])
        self.assertEqual(result.conflicts[0].details["shift_id"], existing.id)

    def test_weekly_limit_counts_existing_and_proposed(self) -> None:
        self._limit(self.anna.id, max_minutes_per_week=2400, allow_overtime=False)
        for offset in range(4):
            add_shift(self.db, self.anna, date(2026, 3, 2 + offset), time(9, 0), time(17, 0))
        add_shift(self.db, self.anna, date(2026, 3, 6), time(9, 0), time(15, 0))

        result = validate_assignment(
            self.db,
            self.merchant.id,
            self.anna.id,
            ProposedShift(shift_date=date(2026, 3, 7), start_time=time(9, 0), end_time=time(13, 0)),
        )
        self.assertFalse(result.ok)
        self.assertEqual(len(result.hard_conflicts), 1)
        conflict = result.hard_conflicts[0]
        self.assertEqual(conflict.kind, "LIMIT_EXCEEDED")
        self.assertEqual(conflict.details["period"], "WEEK")
        self.assertEqual(conflict.details["total_minutes"], 2520)
        self.assertEqual(conflict.details["max_minutes"], 2400)

    def test_all_conflicts_are_reported_together(self) -> None:
        self._limit(self.anna.id, max_minutes_per_day=300)
        add_shift(self.db, self.anna, MONDAY, time(9, 0), time(13, 0))
        self._leave(self.anna.id, MONDAY, MONDAY, LeaveStatus.APPROVED)

        result = validate_assignment(
            self.db,
            self.merchant.id,
            self.anna.id,
            ProposedShift(shift_date=MONDAY, start_time=time(12, 0), end_time=time(16, 0)),
        )
        self.assertEqual(sorted(item.kind for item in result.conflicts), ["LEAVE", "LIMIT_EXCEEDED", "OVERLAP"])

    def test_pending_leave_is_only_a_warning(self) -> None:
        self._leave(self.anna.id, MONDAY, MONDAY, LeaveStatus.PENDING)
        result = validate_assignment(
            self.db,
            self.merchant.id,
            self.anna.id,
            ProposedShift(shift_date=MONDAY, start_time=time(9, 0), end_time=time(17, 0)),
        )
        self.assertTrue(result.ok)
        self.assertEqual([item.kind for item in result.warnings], ["LEAVE"])

    def test_inactive_shift_is_ignored(self) -> None:
        shift = add_shift(self.db, self.anna, MONDAY, time(9, 0), time(13, 0))
        deactivate_shift(self.db, self.merchant.id, shift.id)
        result = validate_assignment(
            self.db,
            self.merchant.id,
            self.anna.id,
            ProposedShift(shift_date=MONDAY, start_time=time(9, 0), end_time=time(13, 0)),
        )
        self.assertTrue(result.ok)

    def test_employee_of_other_merchant_is_not_found(self) -> None:
        other = add_merchant(self.db, name="Other")
        with self.assertRaises(NotFoundError):
            validate_assignment(
                self.db,
                other.id,
                self.anna.id,
                ProposedShift(shift_date=MONDAY, start_time=time(9, 0), end_time=time(13, 0)),
            )


class ShiftWriteTests(ShiftServiceTestBase):
    def test_create_shift_rejects_hard_conflicts(self) -> None:
        add_shift(self.db, self.anna, MONDAY, time(9, 0), time(13, 0))
        with self.assertRaises(ShiftConflictError) as ctx:
            create_shift(
                self.db,
                merchant_id=self.merchant.id,
                employee_id=self.anna.id,
                shift_date=MONDAY,
                start_time=time(12, 0),
                end_time=time(16, 0),
            )
        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual([item["kind"] for item in ctx.exception.details["conflicts"]], ["OVERLAP"])
        self.assertEqual(len(list_shifts(self.db, self.merchant.id, employee_id=self.anna.id)), 1)

    def test_create_shift_keeps_warnings_unless_blocking(self) -> None:
        self._limit(self.anna.id, max_minutes_per_day=480, allow_overtime=True)
        shift, result = create_shift(
            self.db,
            merchant_id=self.merchant.id,
            employee_id=self.anna.id,
            shift_date=MONDAY,
            start_time=time(8, 0),
            end_time=time(18, 0),
        )
        self.assertIsNotNone(shift.id)
        self.assertEqual([item.kind for item in result.warnings], ["OVERTIME"])

        with self.assertRaises(ShiftConflictError):
            create_shift(
                self.db,
                merchant_id=self.merchant.id,
                employee_id=self.anna.id,
                shift_date=date(2026, 3, 3),
                start_time=time(8, 0),
                end_time=time(18, 0),
                block_on_warnings=True,
            )
        forced, _ = create_shift(
            self.db,
            merchant_id=self.merchant.id,
            employee_id=self.anna.id,
            shift_date=date(2026, 3, 3),
            start_time=time(8, 0),
            end_time=time(18, 0),
            block_on_warnings=True,
            force=True,
        )
        self.assertIsNotNone(forced.id)

    def test_back_to_back_shifts_are_accepted(self) -> None:
        add_shift(self.db, self.anna, MONDAY, time(6, 0), time(14, 0))
        shift, result = create_shift(
            self.db,
            merchant_id=self.merchant.id,
            employee_id=self.anna.id,
            shift_date=MONDAY,
            start_time=time(14, 0),
            end_time=time(22, 0),
        )
        self.assertTrue(result.ok)
        self.assertEqual(shift.start_time, time(14, 0))

    def test_inactive_employee_cannot_be_scheduled(self) -> None:
        inactive = add_employee(self.db, self.merchant.id, "Ex Employee", is_active=False)
        with self.assertRaises(InvalidStateError):
            create_shift(
                self.db,
                merchant_id=self.merchant.id,
                employee_id=inactive.id,
                shift_date=MONDAY,
                start_time=time(9, 0),
                end_time=time(13, 0),
            )

    def test_update_shift_ignores_its_own_slot(self) -> None:
        shift = add_shift(self.db, self.anna, MONDAY, time(9, 0), time(13, 0))
        updated, result = update_shift(
            self.db,
            merchant_id=self.merchant.id,
            shift_id=shift.id,
            start_time=time(10, 0),
            end_time=time(14, 0),
        )
        self.assertTrue(result.ok)
        self.assertEqual((updated.start_time, updated.end_time), (time(10, 0), time(14, 0)))

    def test_update_shift_into_another_shift_is_rejected(self) -> None:
        add_shift(self.db, self.anna, MONDAY, time(14, 0), time(18, 0))
        shift = add_shift(self.db, self.anna, MONDAY, time(9, 0), time(13, 0))
        with self.assertRaises(ShiftConflictError):
            update_shift(self.db, merchant_id=self.merchant.id, shift_id=shift.id, end_time=time(15, 0))
        self.db.expire_all()
        self.assertEqual(list_shifts(self.db, self.merchant.id, employee_id=self.anna.id)[0].end_time, time(13, 0))


class WorkingHoursLimitTests(ShiftServiceTestBase):
    def test_latest_created_limit_wins_ties_by_id(self) -> None:
        self._limit(self.anna.id, max_minutes_per_week=2400)
        newest = self._limit(self.anna.id, max_minutes_per_week=1800)
        self.assertEqual(active_limit_for(self.db, self.merchant.id, self.anna.id, MONDAY).id, newest.id)

    def test_valid_to_is_exclusive(self) -> None:
        limit = self._limit(self.anna.id, max_minutes_per_week=2400, valid_to=MONDAY)
        self.assertEqual(active_limit_for(self.db, self.merchant.id, self.anna.id, date(2026, 3, 1)).id, limit.id)
        with self.assertRaises(NotFoundError):
            active_limit_for(self.db, self.merchant.id, self.anna.id, MONDAY)

    def test_deactivated_limit_no_longer_applies(self) -> None:
        limit = self._limit(self.anna.id, max_minutes_per_day=60)
        deactivate_limit(self.db, self.merchant.id, limit.id)
        result = validate_assignment(
            self.db,
            self.merchant.id,
            self.anna.id,
            ProposedShift(shift_date=MONDAY, start_time=time(9, 0), end_time=time(17, 0)),
        )
        self.assertTrue(result.ok)


class LeaveTests(ShiftServiceTestBase):
    def test_leave_transitions_and_month_filter(self) -> None:
        leave = self._leave(self.anna.id, date(2026, 2, 27), date(2026, 3, 3), LeaveStatus.PENDING)
        approved = update_leave_status(self.db, self.merchant.id, leave.id, LeaveStatus.APPROVED, now_utc=NOW)
        self.assertEqual(approved.status, LeaveStatus.APPROVED)
        with self.assertRaises(InvalidStateError):
            update_leave_status(self.db, self.merchant.id, leave.id, LeaveStatus.PENDING, now_utc=NOW)

        self.assertEqual(len(list_leaves(self.db, self.merchant.id, year=2026, month=3)), 1)
        self.assertEqual(len(list_leaves(self.db, self.merchant.id, year=2026, month=4)), 0)
        with self.assertRaises(ApiError):
            list_leaves(self.db, self.merchant.id, year=2026)


class ShiftSwapTests(ShiftServiceTestBase):
    def test_approved_swap_moves_shift(self) -> None:
        shift = add_shift(self.db, self.anna, MONDAY, time(9, 0), time(13, 0))
        swap = create_swap_request(
            self.db,
            self.merchant.id,
            requesting_employee_id=self.anna.id,
            shift_id=shift.id,
            target_employee_id=self.luca.id,
        )
        approved = respond_to_swap(self.db, self.merchant.id, swap.id, approve=True)
        self.assertEqual(approved.status, SwapStatus.APPROVED)
        self.db.expire_all()
        self.assertEqual(list_shifts(self.db, self.merchant.id, employee_id=self.luca.id)[0].id, shift.id)

    def test_exchange_swap_trades_both_shifts(self) -> None:
        anna_shift = add_shift(self.db, self.anna, MONDAY, time(9, 0), time(13, 0))
        luca_shift = add_shift(self.db, self.luca, MONDAY, time(9, 0), time(13, 0))
        swap = create_swap_request(
            self.db,
            self.merchant.id,
            requesting_employee_id=self.anna.id,
            shift_id=anna_shift.id,
            target_employee_id=self.luca.id,
            offered_shift_id=luca_shift.id,
        )
        # Same hours on both sides: excluding the traded shifts keeps this clean.
        respond_to_swap(self.db, self.merchant.id, swap.id, approve=True)
        self.db.expire_all()
        self.assertEqual(list_shifts(self.db, self.merchant.id, employee_id=self.anna.id)[0].id, luca_shift.id)
        self.assertEqual(list_shifts(self.db, self.merchant.id, employee_id=self.luca.id)[0].id, anna_shift.id)

    def test_conflicting_swap_is_rejected_without_changes(self) -> None:
        shift = add_shift(self.db, self.anna, MONDAY, time(9, 0), time(13, 0))
        add_shift(self.db, self.luca, MONDAY, time(12, 0), time(16, 0))
        swap = create_swap_request(
            self.db,
            self.merchant.id,
            requesting_employee_id=self.anna.id,
            shift_id=shift.id,
            target_employee_id=self.luca.id,
        )
        with self.assertRaises(ShiftConflictError) as ctx:
            respond_to_swap(self.db, self.merchant.id, swap.id, approve=True)
        conflict = ctx.exception.details["conflicts"][0]
        self.assertEqual((conflict["kind"], conflict["employee_id"]), ("OVERLAP", self.luca.id))

        self.db.expire_all()
        self.assertEqual(list_shifts(self.db, self.merchant.id, employee_id=self.anna.id)[0].id, shift.id)
        self.assertEqual(list_swap_requests(self.db, self.merchant.id, status=SwapStatus.PENDING)[0].id, swap.id)

    def test_duplicate_and_cancelled_requests(self) -> None:
        shift = add_shift(self.db, self.anna, MONDAY, time(9, 0), time(13, 0))
        swap = create_swap_request(
            self.db, self.merchant.id, requesting_employee_id=self.anna.id, shift_id=shift.id
        )
        with self.assertRaises(InvalidStateError):
            create_swap_request(self.db, self.merchant.id, requesting_employee_id=self.anna.id, shift_id=shift.id)

        with self.assertRaises(NotFoundError):
            cancel_swap_request(self.db, self.merchant.id, swap.id, requesting_employee_id=self.luca.id)
        cancelled = cancel_swap_request(self.db, self.merchant.id, swap.id, requesting_employee_id=self.anna.id)
        self.assertEqual(cancelled.status, SwapStatus.CANCELLED)

    def test_open_swap_needs_target_on_approval(self) -> None:
        shift = add_shift(self.db, self.anna, MONDAY, time(9, 0), time(13, 0))
        swap = create_swap_request(
            self.db, self.merchant.id, requesting_employee_id=self.anna.id, shift_id=shift.id
        )
        with self.assertRaises(ApiError) as ctx:
            respond_to_swap(self.db, self.merchant.id, swap.id, approve=True)
        self.assertEqual(ctx.exception.status_code, 422)
        approved = respond_to_swap(
            self.db, self.merchant.id, swap.id, approve=True, target_employee_id=self.luca.id
        )
        self.assertEqual(approved.target_employee_id, self.luca.id)

    def test_only_owner_can_offer_shift(self) -> None:
        shift = add_shift(self.db, self.anna, MONDAY, time(9, 0), time(13, 0))
        with self.assertRaises(NotFoundError):
            create_swap_request(
                self.db, self.merchant.id, requesting_employee_id=self.luca.id, shift_id=shift.id
            )


class ShiftTemplateTests(ShiftServiceTestBase):
    def _template(self, **values):  # type: ignore[no-untyped-def]
        payload = {"name": "Day", "start_time": time(9, 0), "end_time": time(17, 0)}
        payload.update(values)
        return create_template(self.db, self.merchant.id, ShiftTemplateUpsert(**payload))

    def _apply(self, template_id: int, employee_ids: list[int], **values):  # type: ignore[no-untyped-def]
        options = {"start_date": MONDAY, "end_date": date(2026, 3, 6)}
        options.update(values)
        return create_shifts_from_template(
            self.db,
            merchant_id=self.merchant.id,
            template_id=template_id,
            employee_ids=employee_ids,
            **options,
        )

    def test_template_crud_is_tenant_scoped(self) -> None:
        template = self._template(days_of_week=[4, 0, 0, 2])
        self.assertEqual(template.days_of_week, [0, 2, 4])

        updated = update_template(
            self.db,
            self.merchant.id,
            template.id,
            ShiftTemplateUpsert(name="Late", start_time=time(14, 0), end_time=time(22, 0)),
            now_utc=NOW,
        )
        self.assertEqual(updated.name, "Late")
        self.assertEqual(updated.days_of_week, [])

        other = add_merchant(self.db, name="Other")
        with self.assertRaises(NotFoundError):
            get_template(self.db, other.id, template.id)
        self.assertEqual(list_templates(self.db, other.id), [])

        deactivate_template(self.db, self.merchant.id, template.id)
        self.assertEqual(list_templates(self.db, self.merchant.id), [])
        self.assertEqual(len(list_templates(self.db, self.merchant.id, include_inactive=True)), 1)

    def test_template_payload_rejects_bad_days_and_breaks(self) -> None:
        with self.assertRaises(ValidationError):
            ShiftTemplateUpsert(name="Day", start_time=time(9, 0), end_time=time(17, 0), days_of_week=[7])
        with self.assertRaises(ValidationError):
            ShiftTemplateUpsert(name="Day", start_time=time(9, 0), end_time=time(10, 0), break_minutes=60)
        overnight = ShiftTemplateUpsert(name="Night", start_time=time(22, 0), end_time=time(6, 0), break_minutes=30)
        self.assertEqual(overnight.break_minutes, 30)

    def test_apply_creates_one_shift_per_matching_date(self) -> None:
        template = self._template()
        run = self._apply(template.id, [self.anna.id, self.luca.id])

        self.assertEqual(len(run.created), 10)
        self.assertEqual(run.skipped, [])
        self.assertTrue(all(shift.shift_template_id == template.id for shift in run.created))
        anna_dates = [shift.shift_date for shift in list_shifts(self.db, self.merchant.id, employee_id=self.anna.id)]
        self.assertEqual(anna_dates, [date(2026, 3, 2 + offset) for offset in range(5)])

    def test_weekdays_come_from_request_then_template(self) -> None:
        template = self._template(days_of_week=[0, 2, 4])
        run = self._apply(template.id, [self.anna.id])
        self.assertEqual([shift.shift_date for shift in run.created], [MONDAY, date(2026, 3, 4), date(2026, 3, 6)])

        run = self._apply(template.id, [self.luca.id], days_of_week=[1])
        self.assertEqual([shift.shift_date for shift in run.created], [date(2026, 3, 3)])

    def test_conflicting_date_rejects_whole_run(self) -> None:
        add_shift(self.db, self.anna, date(2026, 3, 4), time(10, 0), time(12, 0))
        template = self._template()

        with self.assertRaises(ShiftConflictError) as ctx:
            self._apply(template.id, [self.anna.id, self.luca.id])

        conflicts = ctx.exception.details["conflicts"]
        self.assertEqual(len(conflicts), 1)
        self.assertEqual(conflicts[0]["kind"], "OVERLAP")
        self.assertEqual(conflicts[0]["shift_date"], "2026-03-04")
        self.assertEqual(conflicts[0]["employee_id"], self.anna.id)
        self.assertEqual(len(list_shifts(self.db, self.merchant.id)), 1)

    def test_skip_conflicts_creates_the_rest(self) -> None:
        add_shift(self.db, self.anna, date(2026, 3, 4), time(10, 0), time(12, 0))
        template = self._template()

        run = self._apply(template.id, [self.anna.id], skip_conflicts=True)

        self.assertEqual(len(run.created), 4)
        self.assertEqual([(item.employee_id, item.shift_date) for item in run.skipped], [(self.anna.id, date(2026, 3, 4))])
        self.assertEqual(len(list_shifts(self.db, self.merchant.id, employee_id=self.anna.id)), 5)

    def test_approved_leave_blocks_its_dates(self) -> None:
        self._leave(self.anna.id, date(2026, 3, 5), date(2026, 3, 6), LeaveStatus.APPROVED)
        template = self._template()

        run = self._apply(template.id, [self.anna.id], skip_conflicts=True)

        self.assertEqual([item.shift_date for item in run.skipped], [date(2026, 3, 5), date(2026, 3, 6)])
        self.assertEqual({item.conflicts[0].kind for item in run.skipped}, {"LEAVE"})

    def test_shifts_generated_earlier_in_the_run_count_toward_limits(self) -> None:
        self._limit(self.anna.id, max_minutes_per_week=1920, allow_overtime=False)
        template = self._template()

        with self.assertRaises(ShiftConflictError) as ctx:
            self._apply(template.id, [self.anna.id])

        conflicts = ctx.exception.details["conflicts"]
        self.assertEqual([(item["kind"], item["shift_date"]) for item in conflicts], [("LIMIT_EXCEEDED", "2026-03-06")])
        self.assertEqual(conflicts[0]["details"]["total_minutes"], 2400)
        self.assertEqual(list_shifts(self.db, self.merchant.id), [])

    def test_range_and_state_checks(self) -> None:
        template = self._template()
        with self.assertRaises(ApiError) as ctx:
            self._apply(template.id, [self.anna.id], start_date=MONDAY, end_date=date(2026, 3, 1))
        self.assertEqual(ctx.exception.status_code, 422)
        with self.assertRaises(ApiError) as ctx:
            self._apply(template.id, [self.anna.id], end_date=MONDAY + timedelta(days=MAX_TEMPLATE_RANGE_DAYS))
        self.assertEqual(ctx.exception.status_code, 422)

        inactive = add_employee(self.db, self.merchant.id, "Marco Verdi", is_active=False)
        with self.assertRaises(InvalidStateError):
            self._apply(template.id, [self.anna.id, inactive.id])

        deactivate_template(self.db, self.merchant.id, template.id)
        with self.assertRaises(InvalidStateError):
            self._apply(template.id, [self.anna.id])
        self.assertEqual(list_shifts(self.db, self.merchant.id), [])


class EmployeeHourStatsTests(ShiftServiceTestBase):
    def test_totals_and_remaining_minutes_against_active_limit(self) -> None:
        self._limit(self.anna.id, max_minutes_per_week=600, max_minutes_per_month=2400)
        add_shift(self.db, self.anna, date(2026, 2, 27), time(9, 0), time(17, 0))
        add_shift(self.db, self.anna, MONDAY, time(9, 0), time(17, 0), break_minutes=30)
        add_shift(self.db, self.anna, date(2026, 3, 3), time(9, 0), time(13, 0))
        add_shift(self.db, self.anna, date(2026, 3, 16), time(9, 0), time(13, 0))

        stats = employee_hour_stats(self.db, self.merchant.id, self.anna.id, today=date(2026, 3, 4))

        self.assertEqual((stats.week_start, stats.week_end), (MONDAY, date(2026, 3, 8)))
        self.assertEqual((stats.month_start, stats.month_end), (date(2026, 3, 1), date(2026, 3, 31)))
        self.assertEqual(stats.scheduled_minutes_week, 690)
        self.assertEqual(stats.scheduled_minutes_month, 930)
        self.assertEqual(stats.scheduled_minutes_last_month, 480)
        self.assertEqual((stats.shift_count_week, stats.shift_count_month), (2, 3))
        self.assertEqual(stats.average_minutes_per_shift, 310)
        self.assertEqual(stats.remaining_minutes_week, 0)
        self.assertEqual(stats.remaining_minutes_month, 1470)
        self.assertTrue(stats.is_over_limit)

    def test_without_limit_remaining_is_unknown(self) -> None:
        stats = employee_hour_stats(self.db, self.merchant.id, self.luca.id, today=date(2026, 3, 4))
        self.assertEqual(stats.scheduled_minutes_week, 0)
        self.assertEqual(stats.average_minutes_per_shift, 0)
        self.assertIsNone(stats.max_minutes_per_week)
        self.assertIsNone(stats.remaining_minutes_month)
        self.assertFalse(stats.is_over_limit)

    def test_other_merchant_cannot_read_stats(self) -> None:
        other = add_merchant(self.db, name="Other")
        with self.assertRaises(NotFoundError):
            employee_hour_stats(self.db, other.id, self.anna.id, today=date(2026, 3, 4))


class ConcurrentShiftTests(unittest.TestCase):
    def setUp(self) -> None:
        self.database = SqliteDatabase()
        setup = self.database.session()
        merchant = add_merchant(setup)
        employee = add_employee(setup, merchant.id)
        self.merchant_id = merchant.id
        self.employee_id = employee.id
        setup.close()

    def tearDown(self) -> None:
        self.database.close()

    def test_parallel_overlapping_assignments_admit_one(self) -> None:
        attempts = 8
        barrier = threading.Barrier(attempts)

        def attempt(index: int) -> str:
            db = self.database.session()
            try:
                barrier.wait()
                create_shift(
                    db,
                    merchant_id=self.merchant_id,
                    employee_id=self.employee_id,
                    shift_date=MONDAY,
                    start_time=time(9, index * 5),
                    end_time=time(13, index * 5),
                )
                return "admitted"
            except ShiftConflictError:
                return "rejected"
            finally:
                db.close()

        with ThreadPoolExecutor(max_workers=attempts) as pool:
            outcomes = list(pool.map(attempt, range(attempts)))

        self.assertEqual(outcomes.count("admitted"), 1)
        self.assertEqual(outcomes.count("rejected"), attempts - 1)

        check = self.database.session()
        try:
            stored = list_shifts(check, self.merchant_id, employee_id=self.employee_id)
        finally:
            check.close()
        self.assertEqual(len(stored), 1)


if __name__ == "__main__":
    unittest.main()
