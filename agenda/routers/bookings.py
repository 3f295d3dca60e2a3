from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from agenda.db import get_db
from agenda.deps import audit_write, get_now_utc
from agenda.models import BookingStatus
from agenda.schemas import BookingCreateRequest, BookingRead, BookingStatusUpdateRequest
from agenda.security import Principal, require_merchant, require_principal
from agenda.services.bookings import create_booking, list_bookings, transition_booking

router = APIRouter(tags=["bookings"])


@router.post("/api/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
def create_booking_endpoint(
    payload: BookingCreateRequest,
    request: Request,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
    now_utc: datetime = Depends(get_now_utc),
) -> BookingRead:
    booking = create_booking(
        db,
        merchant_id=principal.merchant_id,
        service_id=payload.service_id,
        customer_ref=payload.customer_ref,
        booking_date=payload.booking_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        party_size=payload.party_size,
        notes=payload.notes,
        now_utc=now_utc,
    )
    audit_write(
        db,
        request,
        principal,
        action="BOOKING_CREATED",
        entity_type="booking",
        entity_id=booking.id,
        details={"service_id": booking.service_id, "party_size": booking.party_size},
        now_utc=now_utc,
    )
    return booking


@router.get("/api/bookings", response_model=list[BookingRead])
def list_bookings_endpoint(
    service_id: int | None = Query(default=None, ge=1),
    booking_date: date | None = Query(default=None),
    booking_status: BookingStatus | None = Query(default=None, alias="status"),
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
) -> list[BookingRead]:
    return list_bookings(
        db,
        principal.merchant_id,
        service_id=service_id,
        booking_date=booking_date,
        status=booking_status,
    )


@router.post("/api/bookings/{booking_id}/status", response_model=BookingRead)
def update_booking_status_endpoint(
    booking_id: int,
    payload: BookingStatusUpdateRequest,
    request: Request,
    principal: Principal = Depends(require_merchant),
    db: Session = Depends(get_db),
    now_utc: datetime = Depends(get_now_utc),
) -> BookingRead:
    booking = transition_booking(
        db,
        principal.merchant_id,
        booking_id,
        BookingStatus(payload.status),
        now_utc=now_utc,
    )
    audit_write(
        db,
        request,
        principal,
        action=f"BOOKING_{payload.status}",
        entity_type="booking",
        entity_id=booking.id,
        now_utc=now_utc,
    )
    return booking
