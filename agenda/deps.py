from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from sqlalchemy.orm import Session

from agenda.audit import log_audit
from agenda.security import Principal


def get_now_utc() -> datetime:
    """Request clock. Tests override this dependency to pin time."""
    return datetime.now(timezone.utc)


def audit_write(
    db: Session,
    request: Request,
    principal: Principal,
    *,
    action: str,
    entity_type: str,
    entity_id: int | str,
    details: dict[str, Any] | None = None,
    now_utc: datetime | None = None,
) -> None:
    log_audit(
        db,
        merchant_id=principal.merchant_id,
        principal=principal,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        request_id=getattr(request.state, "request_id", None),
        now_utc=now_utc,
    )
