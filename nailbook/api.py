from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status
from sqlalchemy.orm import Session

from .auth_api import admin_identity, current_identity
from .authn import AuthIdentity
from .db import get_db
from .models import Booking
from .schemas import (
    DATE_PATTERN,
    BookingCreate,
    BookingNotesUpdate,
    BookingOut,
    BookingStatusUpdate,
    DashboardStatsOut,
    SlotOut,
    SpecialDayIn,
    SpecialDayOut,
    WorkingHourIn,
    WorkingHourOut,
)
from .services import (
    cancel_booking,
    create_booking,
    create_special_day,
    create_working_hour,
    dashboard_stats,
    delete_special_day,
    delete_working_hour,
    get_booking,
    get_day_availability,
    get_service,
    list_bookings,
    list_special_days,
    list_working_hours,
    update_booking_notes,
    update_booking_status,
    update_special_day,
    update_working_hour,
)

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


def _to_booking_out(b: Booking) -> BookingOut:
    client = b.client
    service = b.service
    return BookingOut(
        id=b.id,
        client_id=b.client_id,
        service_id=b.service_id,
        date=b.date,
        time=b.time,
        status=b.status,
        notes=b.notes,
        created_by=b.created_by,
        created_at=b.created_at,
        client_name=client.name if client else "",
        client_phone=client.phone if client else "",
        client_email=client.email if client else "",
        service_name=service.name if service else "",
        service_price=float(service.price) if service else 0.0,
        service_duration=int(service.duration) if service else 0,
    )


def _parse_day(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid date")


@router.get("/availability/{day}", response_model=List[SlotOut])
def availability(
    day: str = Path(..., pattern=DATE_PATTERN),
    service_id: Optional[str] = Query(default=None, alias="serviceId"),
    db: Session = Depends(get_db),
):
    return get_day_availability(db, _parse_day(day), service_id=service_id)


@router.get("/special-days", response_model=List[SpecialDayOut])
def get_special_days(db: Session = Depends(get_db), _: AuthIdentity = Depends(admin_identity)):
    return list_special_days(db)


@router.post("/special-days", response_model=SpecialDayOut, status_code=status.HTTP_201_CREATED)
def add_special_day(
    payload: SpecialDayIn,
    db: Session = Depends(get_db),
    _: AuthIdentity = Depends(admin_identity),
):
    try:
        return create_special_day(db, payload.date, payload.start_time, payload.end_time)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.put("/special-days/{special_day_id}", response_model=SpecialDayOut)
def put_special_day(
    special_day_id: int,
    payload: SpecialDayIn,
    db: Session = Depends(get_db),
    _: AuthIdentity = Depends(admin_identity),
):
    try:
        row = update_special_day(db, special_day_id, payload.date, payload.start_time, payload.end_time)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Special day not found")
    return row


@router.delete("/special-days/{special_day_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_special_day(
    special_day_id: int,
    db: Session = Depends(get_db),
    _: AuthIdentity = Depends(admin_identity),
):
    if not delete_special_day(db, special_day_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Special day not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/working-hours", response_model=List[WorkingHourOut])
def get_working_hours(db: Session = Depends(get_db), _: AuthIdentity = Depends(admin_identity)):
    return list_working_hours(db)


@router.post("/working-hours", response_model=WorkingHourOut, status_code=status.HTTP_201_CREATED)
def add_working_hour(
    payload: WorkingHourIn,
    db: Session = Depends(get_db),
    _: AuthIdentity = Depends(admin_identity),
):
    try:
        return create_working_hour(db, payload.weekday, payload.start_time, payload.end_time)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.put("/working-hours/{hour_id}", response_model=WorkingHourOut)
def put_working_hour(
    hour_id: int,
    payload: WorkingHourIn,
    db: Session = Depends(get_db),
    _: AuthIdentity = Depends(admin_identity),
):
    try:
        row = update_working_hour(db, hour_id, payload.weekday, payload.start_time, payload.end_time)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Working hour not found")
    return row


@router.delete("/working-hours/{hour_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_working_hour(
    hour_id: int,
    db: Session = Depends(get_db),
    _: AuthIdentity = Depends(admin_identity),
):
    if not delete_working_hour(db, hour_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Working hour not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/stats/dashboard", response_model=DashboardStatsOut)
def get_dashboard_stats(db: Session = Depends(get_db), _: AuthIdentity = Depends(admin_identity)):
    return DashboardStatsOut(**dashboard_stats(db))


@router.get("", response_model=List[BookingOut])
def get_bookings(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    day: Optional[str] = Query(default=None, alias="date"),
    client_id: Optional[str] = Query(default=None, alias="clientId"),
    service_id: Optional[str] = Query(default=None, alias="serviceId"),
    db: Session = Depends(get_db),
    identity: AuthIdentity = Depends(current_identity),
):
    rows = list_bookings(
        db=db,
        identity=identity,
        status=status_filter,
        day=day,
        client_id=client_id,
        service_id=service_id,
    )
    return [_to_booking_out(b) for b in rows]


@router.post("", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
def add_booking(
    payload: BookingCreate,
    db: Session = Depends(get_db),
    identity: AuthIdentity = Depends(current_identity),
):
    service = get_service(db, payload.service_id)
    if not service:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    try:
        booking = create_booking(
            db=db,
            identity=identity,
            service=service,
            day=payload.date,
            time_str=payload.time,
            notes=payload.notes,
            status=payload.status,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return _to_booking_out(booking)


@router.get("/{booking_id}", response_model=BookingOut)
def get_booking_detail(
    booking_id: str,
    db: Session = Depends(get_db),
    identity: AuthIdentity = Depends(current_identity),
):
    booking = get_booking(db, booking_id)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    if not identity.is_admin and booking.client_id != identity.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return _to_booking_out(booking)


@router.patch("/{booking_id}/status", response_model=BookingOut)
def patch_booking_status(
    booking_id: str,
    payload: BookingStatusUpdate,
    db: Session = Depends(get_db),
    _: AuthIdentity = Depends(admin_identity),
):
    try:
        booking = update_booking_status(db, booking_id, payload.status)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return _to_booking_out(booking)


@router.patch("/{booking_id}/notes", response_model=BookingOut)
def patch_booking_notes(
    booking_id: str,
    payload: BookingNotesUpdate,
    db: Session = Depends(get_db),
    _: AuthIdentity = Depends(admin_identity),
):
    booking = update_booking_notes(db, booking_id, payload.notes)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return _to_booking_out(booking)


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_booking(
    booking_id: str,
    db: Session = Depends(get_db),
    identity: AuthIdentity = Depends(current_identity),
):
    booking = get_booking(db, booking_id)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    if not identity.is_admin and booking.client_id != identity.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    try:
        cancel_booking(db, booking)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
