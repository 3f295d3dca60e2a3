from __future__ import annotations

from datetime import date, time
import unittest

from sqlite_support import SqliteDatabase, add_hours, add_merchant, add_service

from agenda.errors import ConfigurationError, NotFoundError
from agenda.models import (
    Booking,
    BookingMode,
    BookingStatus,
    BusinessHoursException,
    BusinessHoursExceptionWindow,
    ClosurePeriod,
    SlotCapacityOverride,
)
from agenda.services.availability import (
    evaluate_request,
    is_available,
    resolve_day,
    resolve_slots,
    slot_capacities,
    window_capacities,
)

MONDAY = date(2026, 3, 2)
CHRISTMAS = date(2026, 12, 25)  # Friday


class AvailabilityServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.database = SqliteDatabase()
        self.db = self.database.session()
        self.merchant = add_merchant(self.db)
        self.service = add_service(self.db, self.merchant.id, slot_duration_minutes=60)

    def tearDown(self) -> None:
        self.db.close()
        self.database.close()

    def _book(self, day: date, start: time | None, end: time | None, party_size: int,
              status: BookingStatus = BookingStatus.CONFIRMED, service_id: int | None = None) -> None:
        self.db.add(
            Booking(
                merchant_id=self.merchant.id,
                service_id=service_id or self.service.id,
                customer_ref="guest",
                booking_date=day,
                start_time=start,
                end_time=end,
                party_size=party_size,
                status=status,
            )
        )
        self.db.commit()

    def test_slot_capacity_admits_until_full(self) -> None:
        add_hours(self.db, self.service, 0, time(9, 0), time(12, 0), max_capacity=5)
        for _ in range(3):
            self._book(MONDAY, time(10, 0), time(11, 0), 1)

        self.assertTrue(is_available(self.db, self.merchant.id, self.service.id, MONDAY, time(10, 0), time(10, 30), 2))
        self.assertFalse(is_available(self.db, self.merchant.id, self.service.id, MONDAY, time(10, 0), time(10, 30), 3))

    def test_cancelled_and_completed_bookings_free_capacity(self) -> None:
        add_hours(self.db, self.service, 0, time(9, 0), time(12, 0), max_capacity=2)
        self._book(MONDAY, time(9, 0), time(10, 0), 2, status=BookingStatus.CANCELLED)
        self._book(MONDAY, time(9, 0), time(10, 0), 2, status=BookingStatus.COMPLETED)
        self.assertTrue(is_available(self.db, self.merchant.id, self.service.id, MONDAY, time(9, 0), None, 2))

    def test_closure_overrides_weekly_hours(self) -> None:
        add_hours(self.db, self.service, CHRISTMAS.weekday(), time(9, 0), time(18, 0))
        self.db.add(
            ClosurePeriod(
                merchant_id=self.merchant.id,
                start_date=date(2026, 12, 24),
                end_date=date(2026, 12, 26),
                reason="Christmas",
            )
        )
        self.db.commit()

        resolved = resolve_day(self.db, self.merchant.id, self.service.id, CHRISTMAS)
        self.assertTrue(resolved.is_closed)
        self.assertEqual(resolved.source, "CLOSURE")
        self.assertEqual(resolve_slots(self.db, self.merchant.id, self.service.id, CHRISTMAS), [])

    def test_inactive_closure_is_ignored(self) -> None:
        add_hours(self.db, self.service, CHRISTMAS.weekday(), time(9, 0), time(18, 0))
        self.db.add(
            ClosurePeriod(
                merchant_id=self.merchant.id,
                start_date=CHRISTMAS,
                end_date=CHRISTMAS,
                is_active=False,
            )
        )
        self.db.commit()
        self.assertFalse(resolve_day(self.db, self.merchant.id, self.service.id, CHRISTMAS).is_closed)

    def test_exception_windows_replace_weekly_slots(self) -> None:
        add_hours(self.db, self.service, 0, time(9, 0), time(18, 0))
        exception = BusinessHoursException(
            merchant_id=self.merchant.id,
            service_id=self.service.id,
            exception_date=MONDAY,
            is_closed=False,
            max_capacity=3,
        )
        exception.windows.append(BusinessHoursExceptionWindow(open_time=time(10, 0), close_time=time(12, 0)))
        self.db.add(exception)
        self.db.commit()

        slots = resolve_slots(self.db, self.merchant.id, self.service.id, MONDAY)
        self.assertEqual([slot.start_time for slot in slots], [time(10, 0), time(11, 0)])
        capacities = slot_capacities(self.db, self.merchant.id, self.service.id, MONDAY)
        self.assertEqual([capacity.remaining for _, capacity in capacities], [3, 3])

    def test_slot_override_tightens_single_slot(self) -> None:
        add_hours(self.db, self.service, 0, time(9, 0), time(11, 0), max_capacity=6)
        self.db.add(
            SlotCapacityOverride(
                merchant_id=self.merchant.id,
                service_id=self.service.id,
                slot_time=time(10, 0),
                max_capacity=1,
            )
        )
        self.db.commit()

        capacities = slot_capacities(self.db, self.merchant.id, self.service.id, MONDAY)
        self.assertEqual([capacity.remaining for _, capacity in capacities], [6, 1])

    def test_unbounded_when_no_capacity_configured(self) -> None:
        add_hours(self.db, self.service, 0, time(9, 0), time(10, 0))
        self._book(MONDAY, time(9, 0), time(10, 0), 40)
        decision = evaluate_request(self.db, self.merchant.id, self.service.id, MONDAY, time(9, 0), None, 100)
        self.assertTrue(decision.available)
        self.assertTrue(decision.remaining.is_unbounded)

    def test_zero_capacity_is_not_unbounded(self) -> None:
        add_hours(self.db, self.service, 0, time(9, 0), time(10, 0), max_capacity=0)
        decision = evaluate_request(self.db, self.merchant.id, self.service.id, MONDAY, time(9, 0), None, 1)
        self.assertFalse(decision.available)
        self.assertEqual(decision.reason, "CAPACITY")
        self.assertEqual(decision.remaining.remaining, 0)

    def test_missing_slot_duration_is_configuration_error(self) -> None:
        service = add_service(self.db, self.merchant.id, slot_duration_minutes=None, name="No duration")
        add_hours(self.db, service, 0, time(9, 0), time(10, 0))
        with self.assertRaises(ConfigurationError):
            resolve_slots(self.db, self.merchant.id, service.id, MONDAY)

    def test_slots_on_non_slot_service_is_configuration_error(self) -> None:
        service = add_service(self.db, self.merchant.id, booking_mode=BookingMode.DAY_ONLY, name="Day pass")
        add_hours(self.db, service, 0, time(9, 0), time(10, 0))
        with self.assertRaises(ConfigurationError):
            resolve_slots(self.db, self.merchant.id, service.id, MONDAY)

    def test_day_only_service_uses_day_capacity(self) -> None:
        service = add_service(self.db, self.merchant.id, booking_mode=BookingMode.DAY_ONLY, name="Day pass")
        add_hours(self.db, service, 0, time(9, 0), time(18, 0), max_capacity=4)
        self._book(MONDAY, None, None, 3, service_id=service.id)

        self.assertTrue(is_available(self.db, self.merchant.id, service.id, MONDAY, None, None, 1))
        self.assertFalse(is_available(self.db, self.merchant.id, service.id, MONDAY, None, None, 2))
        self.assertFalse(is_available(self.db, self.merchant.id, service.id, MONDAY + date.resolution, None, None, 1))

    def test_time_range_service_checks_containment_and_capacity(self) -> None:
        service = add_service(
            self.db,
            self.merchant.id,
            booking_mode=BookingMode.TIME_RANGE,
            slot_duration_minutes=None,
            name="Meeting room",
        )
        add_hours(self.db, service, 0, time(9, 0), time(12, 0), max_capacity=1)
        add_hours(self.db, service, 0, time(12, 0), time(14, 0), max_capacity=1)
        self._book(MONDAY, time(13, 0), time(14, 0), 1, service_id=service.id)

        ok = evaluate_request(self.db, self.merchant.id, service.id, MONDAY, time(10, 0), time(13, 0), 1)
        clash = evaluate_request(self.db, self.merchant.id, service.id, MONDAY, time(11, 0), time(13, 30), 1)
        outside = evaluate_request(self.db, self.merchant.id, service.id, MONDAY, time(13, 0), time(15, 0), 1)
        self.assertTrue(ok.available)
        self.assertEqual(clash.reason, "CAPACITY")
        self.assertEqual(outside.reason, "OUTSIDE_HOURS")

        _, windows = window_capacities(self.db, self.merchant.id, service.id, MONDAY)
        self.assertEqual([capacity.remaining for _, capacity in windows], [1, 0])

    def test_other_merchant_service_looks_missing(self) -> None:
        other = add_merchant(self.db, name="Other")
        with self.assertRaises(NotFoundError):
            resolve_day(self.db, other.id, self.service.id, MONDAY)


if __name__ == "__main__":
    unittest.main()
