#!/usr/bin/env python
from __future__ import annotations

import json
import sys
from datetime import date, time
from pathlib import Path

from sqlalchemy import select

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from agenda.db import SessionLocal
from agenda.models import (
    BookingMode,
    BusinessHours,
    Employee,
    Merchant,
    Service,
    WorkingHoursLimit,
)
from agenda.security import create_access_token
from agenda.settings import get_settings

DEMO_MERCHANT = "Demo Bistro"
WEEKDAY_WINDOWS = ((time(9, 0), time(13, 0), "morning"), (time(14, 0), time(18, 0), "afternoon"))


def seed() -> dict:
    db = SessionLocal()
    try:
        merchant = db.scalar(select(Merchant).where(Merchant.name == DEMO_MERCHANT))
        if merchant is None:
            merchant = Merchant(name=DEMO_MERCHANT)
            db.add(merchant)
            db.flush()

        service = db.scalar(
            select(Service).where(Service.merchant_id == merchant.id, Service.name == "Table")
        )
        if service is None:
            service = Service(
                merchant_id=merchant.id,
                name="Table",
                booking_mode=BookingMode.TIME_SLOT,
                slot_duration_minutes=60,
                max_capacity_per_slot=8,
            )
            db.add(service)
            db.flush()
            for day_of_week in range(5):
                for sort_order, (open_time, close_time, label) in enumerate(WEEKDAY_WINDOWS):
                    db.add(
                        BusinessHours(
                            merchant_id=merchant.id,
                            service_id=service.id,
                            day_of_week=day_of_week,
                            open_time=open_time,
                            close_time=close_time,
                            max_capacity=6,
                            label=label,
                            sort_order=sort_order,
                        )
                    )
            for day_of_week in (5, 6):
                db.add(
                    BusinessHours(
                        merchant_id=merchant.id,
                        service_id=service.id,
                        day_of_week=day_of_week,
                        is_closed=True,
                    )
                )

        employee_ids: list[int] = []
        for full_name in ("Giulia Neri", "Marco Bassi"):
            employee = db.scalar(
                select(Employee).where(Employee.merchant_id == merchant.id, Employee.full_name == full_name)
            )
            if employee is None:
                employee = Employee(merchant_id=merchant.id, full_name=full_name)
                db.add(employee)
                db.flush()
                db.add(
                    WorkingHoursLimit(
                        merchant_id=merchant.id,
                        employee_id=employee.id,
                        max_minutes_per_day=480,
                        max_minutes_per_week=2400,
                        allow_overtime=True,
                        max_overtime_minutes_per_week=240,
                        valid_from=date(2026, 1, 1),
                    )
                )
            employee_ids.append(employee.id)

        db.commit()

        result: dict = {
            "merchant_id": merchant.id,
            "service_id": service.id,
            "employee_ids": employee_ids,
        }
        if get_settings().jwt_secret:
            token, expires_in, _ = create_access_token(sub="demo-owner", merchant_id=merchant.id)
            result["merchant_token"] = token
            result["expires_in"] = expires_in
        return result
    finally:
        db.close()


if __name__ == "__main__":
    print(json.dumps(seed(), ensure_ascii=False, indent=2))
