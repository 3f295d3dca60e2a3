from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from agenda.db import Base
from agenda.models import BookingStatus, LeaveStatus

EXPECTED_ALEMBIC_HEAD = "0003_shift_templates"

# Tables the resolver and the conflict checker read on every request.
GUARDED_TABLES = (
    "services",
    "business_hours",
    "business_hours_exceptions",
    "business_hours_exception_windows",
    "closure_periods",
    "slot_capacity_overrides",
    "bookings",
    "employees",
    "shift_templates",
    "shifts",
    "leave_requests",
    "working_hours_limits",
)

GUARDED_ENUMS: dict[str, type[enum.Enum]] = {
    "booking_status": BookingStatus,
    "leave_status": LeaveStatus,
}


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    alembic_version: str | None = None
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "alembic_version": self.alembic_version,
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "issue_count": len(self.issues),
            "warning_count": len(self.warnings),
        }


def _model_columns(table_names: tuple[str, ...]) -> dict[str, set[str]]:
    tables = Base.metadata.tables
    return {name: {column.name for column in tables[name].columns} for name in table_names}


REQUIRED_TABLE_COLUMNS: dict[str, set[str]] = {
    **_model_columns(GUARDED_TABLES),
    "alembic_version": {"version_num"},
}

REQUIRED_ENUM_VALUES: dict[str, set[str]] = {
    name: {member.value for member in enum_cls} for name, enum_cls in GUARDED_ENUMS.items()
}


def _column_issues(inspector: Any) -> list[str]:
    issues: list[str] = []
    for table_name, required_columns in REQUIRED_TABLE_COLUMNS.items():
        try:
            present = {str(item.get("name")) for item in inspector.get_columns(table_name)}
        except SQLAlchemyError as exc:  # pragma: no cover
            issues.append(f"TABLE_UNREADABLE:{table_name}:{exc.__class__.__name__}")
            continue
        missing = sorted(required_columns - present)
        if missing:
            issues.append(f"MISSING_COLUMNS:{table_name}:{','.join(missing)}")
    return issues


def _enum_findings(inspector: Any) -> tuple[list[str], list[str]]:
    issues: list[str] = []
    warnings: list[str] = []
    try:
        reported = inspector.get_enums() or []
    except (NotImplementedError, AttributeError, SQLAlchemyError) as exc:
        # Only PostgreSQL reports named enums.
        return issues, [f"ENUM_INSPECTION_FAILED:{exc.__class__.__name__}"]

    labels_by_name = {
        str(item.get("name")): {str(label) for label in item.get("labels") or []}
        for item in reported
        if item.get("name")
    }
    for enum_name, required_values in REQUIRED_ENUM_VALUES.items():
        if enum_name not in labels_by_name:
            warnings.append(f"ENUM_NOT_FOUND:{enum_name}")
            continue
        missing = sorted(required_values - labels_by_name[enum_name])
        if missing:
            issues.append(f"MISSING_ENUM_VALUES:{enum_name}:{','.join(missing)}")
    return issues, warnings


def verify_runtime_schema(engine: Engine) -> SchemaGuardResult:
    """Compare the live database with the ORM models before serving traffic.

    Missing columns, missing enum labels and an empty ``alembic_version`` are
    issues; a database behind the expected migration head is a warning.
    """
    checked_at_utc = datetime.now(timezone.utc)
    inspector = inspect(engine)

    issues = _column_issues(inspector)
    enum_issues, warnings = _enum_findings(inspector)
    issues.extend(enum_issues)

    version: str | None = None
    try:
        with engine.connect() as connection:
            row = connection.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).scalar()
        version = str(row).strip() if row is not None else ""
    except SQLAlchemyError as exc:  # pragma: no cover
        issues.append(f"ALEMBIC_VERSION_CHECK_FAILED:{exc.__class__.__name__}")

    if version == "":
        issues.append("ALEMBIC_VERSION_EMPTY")
    elif version is not None and version != EXPECTED_ALEMBIC_HEAD:
        warnings.append(f"ALEMBIC_HEAD_MISMATCH:{version}:{EXPECTED_ALEMBIC_HEAD}")

    return SchemaGuardResult(
        ok=not issues,
        checked_at_utc=checked_at_utc,
        alembic_version=version or None,
        issues=issues,
        warnings=warnings,
    )
