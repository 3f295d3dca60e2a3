from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.models import AuditActorType, AuditLog
from agenda.security import Principal

logger = logging.getLogger("agenda.audit")

SYSTEM_ACTOR_ID = "system"


def actor_for(principal: Principal | None) -> tuple[AuditActorType, str]:
    if principal is None:
        return AuditActorType.SYSTEM, SYSTEM_ACTOR_ID
    if principal.role == "employee":
        return AuditActorType.EMPLOYEE, principal.actor_id
    return AuditActorType.MERCHANT, principal.actor_id


def _entry_fields(entry: AuditLog, request_id: str | None) -> dict[str, Any]:
    return {
        "request_id": request_id,
        "merchant_id": entry.merchant_id,
        "action": entry.action,
        "actor_type": entry.actor_type.value,
        "actor_id": entry.actor_id,
        "entity_type": entry.entity_type,
        "entity_id": entry.entity_id,
    }


def log_audit(
    db: Session,
    *,
    merchant_id: int | None,
    principal: Principal | None,
    action: str,
    entity_type: str | None = None,
    entity_id: int | str | None = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
    request_id: str | None = None,
    now_utc: datetime | None = None,
) -> AuditLog | None:
    """Persist one audit row in its own commit.

    A failed audit write is logged and rolled back; the business write that
    preceded it has already been committed and stays.
    """
    actor_type, actor_id = actor_for(principal)
    entry = AuditLog(
        ts_utc=now_utc or datetime.now(timezone.utc),
        merchant_id=merchant_id,
        actor_type=actor_type,
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        success=success,
        details=details or {},
    )
    db.add(entry)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("audit_log_write_failed", extra=_entry_fields(entry, request_id))
        return None

    logger.info(
        "audit_event",
        extra={**_entry_fields(entry, request_id), "success": success, "details": entry.details},
    )
    return entry


def list_audit_entries(
    db: Session,
    merchant_id: int,
    *,
    action: str | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    actor_type: AuditActorType | None = None,
    limit: int = 100,
) -> list[AuditLog]:
    stmt = select(AuditLog).where(AuditLog.merchant_id == merchant_id)
    if action:
        stmt = stmt.where(AuditLog.action == action)
    if entity_type:
        stmt = stmt.where(AuditLog.entity_type == entity_type)
    if entity_id:
        stmt = stmt.where(AuditLog.entity_id == entity_id)
    if actor_type is not None:
        stmt = stmt.where(AuditLog.actor_type == actor_type)
    return list(db.scalars(stmt.order_by(AuditLog.id.desc()).limit(limit)).all())
