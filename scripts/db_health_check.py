#!/usr/bin/env python
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import create_engine, text


EXPECTED_HEAD = "0003_shift_templates"


def load_env_if_exists() -> None:
    env_file = Path(".env")
    if not env_file.exists():
        return
    for raw_line in env_file.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


def run() -> dict:
    load_env_if_exists()
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL not found (.env or env vars).")

    engine = create_engine(database_url)
    report: dict = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "checks": [],
    }

    def add(name: str, status: str, details: dict) -> None:
        report["checks"].append(
            {
                "name": name,
                "status": status,
                "details": details,
            }
        )

    with engine.connect() as conn:
        tables = set(
            conn.execute(
                text(
                    """
                    select table_name
                    from information_schema.tables
                    where table_schema='public'
                    """
                )
            ).scalars()
        )

        current_versions: list[str] = []
        if "alembic_version" in tables:
            current_versions = [
                row[0]
                for row in conn.execute(text("select version_num from alembic_version")).fetchall()
            ]
        add("alembic_version", "ok" if current_versions else "fail", {"current": current_versions})
        add(
            "migration_up_to_date",
            "ok" if EXPECTED_HEAD in current_versions else "warn",
            {"expected_head": EXPECTED_HEAD, "current": current_versions},
        )

        if "business_hours_exception_windows" in tables:
            inverted_windows = conn.execute(
                text(
                    """
                    select id
                    from business_hours_exception_windows
                    where close_time <= open_time
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "exception_window_inverted",
                "fail" if inverted_windows else "ok",
                {"sample_ids": [row[0] for row in inverted_windows]},
            )

        if "bookings" in tables:
            cross_tenant_bookings = conn.execute(
                text(
                    """
                    select b.id
                    from bookings b
                    join services s on s.id = b.service_id
                    where s.merchant_id <> b.merchant_id
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "booking_service_tenant_mismatch",
                "fail" if cross_tenant_bookings else "ok",
                {"sample_ids": [row[0] for row in cross_tenant_bookings]},
            )

        if "shifts" in tables:
            # Same-day pairs only; cross-midnight overlaps are caught at write time.
            overlapping_shifts = conn.execute(
                text(
                    """
                    select a.id, b.id
                    from shifts a
                    join shifts b
                      on a.employee_id = b.employee_id
                     and a.shift_date = b.shift_date
                     and a.id < b.id
                    where a.is_active = true
                      and b.is_active = true
                      and a.start_time < a.end_time
                      and b.start_time < b.end_time
                      and a.start_time < b.end_time
                      and b.start_time < a.end_time
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "overlapping_active_shifts",
                "fail" if overlapping_shifts else "ok",
                {"pairs": [list(row) for row in overlapping_shifts]},
            )

    return report


if __name__ == "__main__":
    print(json.dumps(run(), ensure_ascii=False, indent=2))
