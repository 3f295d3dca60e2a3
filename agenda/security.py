from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Literal
from uuid import uuid4

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from agenda.errors import ApiError
from agenda.settings import get_settings

bearer_scheme = HTTPBearer(auto_error=False)

PrincipalRole = Literal["merchant", "employee"]
_ROLES: frozenset[str] = frozenset({"merchant", "employee"})


@dataclass(frozen=True)
class Principal:
    """Caller identity taken from the bearer token. Every query is scoped by merchant_id."""

    merchant_id: int
    role: PrincipalRole
    subject: str
    employee_id: int | None = None

    @property
    def actor_id(self) -> str:
        if self.role == "employee" and self.employee_id is not None:
            return f"employee:{self.employee_id}"
        return self.subject


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_access_token(
    *,
    sub: str,
    merchant_id: int,
    role: PrincipalRole = "merchant",
    employee_id: int | None = None,
    expires_minutes: int | None = None,
) -> tuple[str, int, dict[str, Any]]:
    """Issue a token for a tenant principal. Login flows live outside this service."""
    settings = get_settings()
    lifetime = settings.access_token_minutes if expires_minutes is None else expires_minutes
    now = _utcnow()
    claims: dict[str, Any] = {
        "sub": sub,
        "merchant_id": merchant_id,
        "role": role,
        "employee_id": employee_id,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=lifetime)).timestamp()),
        "jti": str(uuid4()),
        "typ": "access",
    }
    token = jwt.encode(claims, settings.jwt_secret, algorithm="HS256")
    return token, lifetime * 60, claims


def decode_token(token: str) -> Principal:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require_sub": True, "require_iat": True, "require_exp": True},
        )
    except JWTError as exc:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token is invalid.") from exc

    if payload.get("typ") != "access":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token type is invalid.")

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token subject is invalid.")

    merchant_id = payload.get("merchant_id")
    if not isinstance(merchant_id, int) or merchant_id <= 0:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token tenant is invalid.")

    role = payload.get("role")
    if role not in _ROLES:
        raise ApiError(status_code=403, code="FORBIDDEN", message="Insufficient permissions.")

    employee_id = payload.get("employee_id")
    if role == "employee" and (not isinstance(employee_id, int) or employee_id <= 0):
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token employee is invalid.")

    return Principal(
        merchant_id=merchant_id,
        role=role,
        subject=subject,
        employee_id=employee_id if isinstance(employee_id, int) else None,
    )


def require_principal(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Missing bearer token.")

    principal = decode_token(credentials.credentials)
    request.state.role = principal.role
    request.state.actor_id = principal.actor_id
    request.state.merchant_id = principal.merchant_id
    return principal


def require_merchant(principal: Principal = Depends(require_principal)) -> Principal:
    if principal.role != "merchant":
        raise ApiError(status_code=403, code="FORBIDDEN", message="Merchant access required.")
    return principal


def require_employee(principal: Principal = Depends(require_principal)) -> Principal:
    if principal.role != "employee" or principal.employee_id is None:
        raise ApiError(status_code=403, code="FORBIDDEN", message="Employee access required.")
    return principal
