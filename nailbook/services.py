from datetime import date, timedelta
from functools import partial

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from .authn import AuthIdentity, hash_password, validate_password_policy, verify_password
from .availability import (
    BookingInterval,
    Slot,
    TimeWindow,
    availability_for_date,
    parse_hhmm,
)
from .config import settings
from .models import (
    ACTIVE_BOOKING_STATUSES,
    ROLE_ADMIN,
    ROLE_CLIENT,
    Booking,
    Service,
    SpecialDay,
    User,
    WorkingHour,
)

logger = structlog.get_logger("nailbook.services")

SERVICE_FIELDS = ("name", "description", "price", "duration", "category", "is_active")


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _validate_window(start_time: str, end_time: str) -> None:
    if parse_hhmm(start_time) >= parse_hhmm(end_time):
        raise ValueError("start time must be before end time")


# Users


def get_user(db: Session, user_id: str) -> User | None:
    return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(
        select(User).where(User.email == _normalize_email(email))
    ).scalar_one_or_none()


def create_user(
    db: Session,
    name: str,
    email: str,
    phone: str,
    password: str,
    role: str = ROLE_CLIENT,
) -> User:
    normalized_email = _normalize_email(email)
    if not normalized_email:
        raise ValueError("email is required")
    validate_password_policy(password)
    if get_user_by_email(db, normalized_email):
        raise ValueError("Email already registered")

    user = User(
        name=name.strip(),
        email=normalized_email,
        phone=phone.strip(),
        password_hash=hash_password(password),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user_registered", user_id=user.id, role=user.role)
    return user


def authenticate_user(db: Session, email: str, password: str) -> User | None:
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


def list_users(
    db: Session,
    role: str | None = None,
    search: str | None = None,
) -> list[tuple[User, int]]:
    bookings_count = func.count(Booking.id)
    q = (
        db.query(User, bookings_count)
        .outerjoin(Booking, Booking.client_id == User.id)
        .group_by(User.id)
    )
    if role:
        q = q.filter(User.role == role.strip().upper())
    term = (search or "").strip()
    if term:
        pattern = f"%{term}%"
        q = q.filter(
            or_(
                User.name.ilike(pattern),
                User.email.ilike(pattern),
                User.phone.like(pattern),
            )
        )
    return [(user, int(count)) for user, count in q.order_by(User.name.asc()).all()]


def list_user_bookings(db: Session, user_id: str) -> list[Booking]:
    return (
        db.query(Booking)
        .filter(Booking.client_id == user_id)
        .order_by(Booking.date.desc(), Booking.time.desc())
        .all()
    )


def update_user(
    db: Session,
    user_id: str,
    name: str | None = None,
    email: str | None = None,
    phone: str | None = None,
) -> User | None:
    user = get_user(db, user_id)
    if not user:
        return None
    if email is not None:
        normalized_email = _normalize_email(email)
        taken = db.execute(
            select(User).where(User.email == normalized_email, User.id != user_id)
        ).scalar_one_or_none()
        if taken:
            raise ValueError("Email already in use")
        user.email = normalized_email
    if name is not None:
        user.name = name.strip()
    if phone is not None:
        user.phone = phone.strip()
    db.commit()
    db.refresh(user)
    return user


def change_user_password(
    db: Session,
    user_id: str,
    current_password: str,
    new_password: str,
) -> User | None:
    user = get_user(db, user_id)
    if not user:
        return None
    if not verify_password(current_password, user.password_hash):
        raise ValueError("Current password is incorrect")
    validate_password_policy(new_password)
    user.password_hash = hash_password(new_password)
    db.commit()
    db.refresh(user)
    logger.info("password_changed", user_id=user.id)
    return user


def delete_user(db: Session, user_id: str) -> bool:
    user = get_user(db, user_id)
    if not user:
        return False
    has_bookings = db.query(Booking.id).filter(Booking.client_id == user_id).first()
    if has_bookings:
        raise ValueError("Cannot delete a user who has bookings")
    db.delete(user)
    db.commit()
    logger.info("user_deleted", user_id=user_id)
    return True


def _completed_revenue(db: Session) -> float:
    total = (
        db.query(func.coalesce(func.sum(Service.price), 0))
        .select_from(Booking)
        .join(Service, Booking.service_id == Service.id)
        .filter(Booking.status == "COMPLETED")
        .scalar()
    )
    return float(total or 0)


def user_stats(db: Session, today: date | None = None) -> dict:
    today = today or date.today()
    cutoff = (today - timedelta(days=30)).isoformat()
    active_clients = (
        db.query(func.count(func.distinct(User.id)))
        .join(Booking, Booking.client_id == User.id)
        .filter(User.role == ROLE_CLIENT, Booking.date >= cutoff)
        .scalar()
    )
    return {
        "total_users": db.query(func.count(User.id)).scalar() or 0,
        "total_clients": db.query(func.count(User.id)).filter(User.role == ROLE_CLIENT).scalar() or 0,
        "total_admins": db.query(func.count(User.id)).filter(User.role == ROLE_ADMIN).scalar() or 0,
        "active_clients": int(active_clients or 0),
        "total_revenue": _completed_revenue(db),
    }


# Services catalogue


def list_services(
    db: Session,
    category: str | None = None,
    is_active: bool | None = None,
) -> list[Service]:
    q = db.query(Service)
    if category:
        q = q.filter(Service.category == category.strip().upper())
    if is_active is not None:
        q = q.filter(Service.is_active.is_(bool(is_active)))
    return q.order_by(Service.name.asc()).all()


def get_service(db: Session, service_id: str) -> Service | None:
    return db.get(Service, service_id)


def create_service(db: Session, **fields) -> Service:
    service = Service(**{k: v for k, v in fields.items() if k in SERVICE_FIELDS})
    db.add(service)
    db.commit()
    db.refresh(service)
    logger.info("service_created", service_id=service.id, duration=service.duration)
    return service


def update_service(db: Session, service_id: str, fields: dict) -> Service | None:
    service = get_service(db, service_id)
    if not service:
        return None
    for key, value in fields.items():
        if key in SERVICE_FIELDS and value is not None:
            setattr(service, key, value)
    db.commit()
    db.refresh(service)
    return service


def delete_service(db: Session, service_id: str) -> bool:
    service = get_service(db, service_id)
    if not service:
        return False
    # Bookings outlive the service they were made for.
    db.query(Booking).filter(Booking.service_id == service_id).update(
        {Booking.service_id: None}, synchronize_session=False
    )
    db.delete(service)
    db.commit()
    logger.info("service_deleted", service_id=service_id)
    return True


def service_stats(db: Session) -> dict:
    by_category = (
        db.query(Service.category, func.count(Service.id))
        .group_by(Service.category)
        .order_by(Service.category.asc())
        .all()
    )
    return {
        "total_services": db.query(func.count(Service.id)).scalar() or 0,
        "active_services": db.query(func.count(Service.id)).filter(Service.is_active.is_(True)).scalar() or 0,
        "services_by_category": [
            {"category": category, "count": int(count)} for category, count in by_category
        ],
        "total_revenue": _completed_revenue(db),
    }


# Working hours and special days


def list_working_hours(db: Session) -> list[WorkingHour]:
    return db.query(WorkingHour).order_by(WorkingHour.weekday.asc(), WorkingHour.start_time.asc()).all()


def create_working_hour(db: Session, weekday: int, start_time: str, end_time: str) -> WorkingHour:
    _validate_window(start_time, end_time)
    row = WorkingHour(weekday=int(weekday), start_time=start_time, end_time=end_time)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def update_working_hour(
    db: Session, hour_id: int, weekday: int, start_time: str, end_time: str
) -> WorkingHour | None:
    row = db.get(WorkingHour, hour_id)
    if not row:
        return None
    _validate_window(start_time, end_time)
    row.weekday = int(weekday)
    row.start_time = start_time
    row.end_time = end_time
    db.commit()
    db.refresh(row)
    return row


def delete_working_hour(db: Session, hour_id: int) -> bool:
    row = db.get(WorkingHour, hour_id)
    if not row:
        return False
    db.delete(row)
    db.commit()
    return True


def list_special_days(db: Session) -> list[SpecialDay]:
    return db.query(SpecialDay).order_by(SpecialDay.date.asc(), SpecialDay.start_time.asc()).all()


def create_special_day(db: Session, day: str, start_time: str, end_time: str) -> SpecialDay:
    _validate_window(start_time, end_time)
    row = SpecialDay(date=day, start_time=start_time, end_time=end_time)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def update_special_day(
    db: Session, special_day_id: int, day: str, start_time: str, end_time: str
) -> SpecialDay | None:
    row = db.get(SpecialDay, special_day_id)
    if not row:
        return None
    _validate_window(start_time, end_time)
    row.date = day
    row.start_time = start_time
    row.end_time = end_time
    db.commit()
    db.refresh(row)
    return row


def delete_special_day(db: Session, special_day_id: int) -> bool:
    row = db.get(SpecialDay, special_day_id)
    if not row:
        return False
    db.delete(row)
    db.commit()
    return True


# Availability inputs


def list_working_windows(db: Session, weekday: int) -> list[TimeWindow]:
    rows = (
        db.query(WorkingHour)
        .filter(WorkingHour.weekday == int(weekday))
        .order_by(WorkingHour.start_time.asc())
        .all()
    )
    return [TimeWindow(parse_hhmm(r.start_time), parse_hhmm(r.end_time)) for r in rows]


def list_special_day_windows(db: Session, day: date) -> list[TimeWindow]:
    rows = (
        db.query(SpecialDay)
        .filter(SpecialDay.date == day.isoformat())
        .order_by(SpecialDay.start_time.asc())
        .all()
    )
    return [TimeWindow(parse_hhmm(r.start_time), parse_hhmm(r.end_time)) for r in rows]


def list_active_bookings(db: Session, day: date) -> list[BookingInterval]:
    rows = (
        db.query(Booking.time, Service.duration)
        .outerjoin(Service, Booking.service_id == Service.id)
        .filter(
            Booking.date == day.isoformat(),
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
        .all()
    )
    return [BookingInterval(start=parse_hhmm(t), duration=duration) for t, duration in rows]


def compute_day_slots(db: Session, day: date, duration: int | None = None) -> list[Slot]:
    return availability_for_date(
        day,
        duration,
        list_working_windows=partial(list_working_windows, db),
        list_special_day_windows=partial(list_special_day_windows, db),
        list_active_bookings=partial(list_active_bookings, db),
        step=settings.SLOT_STEP_MINUTES,
    )


def get_day_availability(db: Session, day: date, service_id: str | None = None) -> list[dict]:
    duration = None
    if service_id:
        service = get_service(db, service_id)
        duration = int(service.duration) if service and service.duration else None
    slots = compute_day_slots(db, day, duration)
    logger.debug(
        "availability_computed",
        day=day.isoformat(),
        duration=duration,
        slots=len(slots),
        available=sum(1 for s in slots if s.available),
    )
    return [s.as_dict() for s in slots]


# Bookings


def list_bookings(
    db: Session,
    identity: AuthIdentity,
    status: str | None = None,
    day: str | None = None,
    client_id: str | None = None,
    service_id: str | None = None,
) -> list[Booking]:
    q = db.query(Booking)
    if not identity.is_admin:
        q = q.filter(Booking.client_id == identity.user_id)
    elif client_id:
        q = q.filter(Booking.client_id == client_id)
    if status:
        q = q.filter(Booking.status == status.strip().upper())
    if day:
        q = q.filter(Booking.date == day)
    if service_id:
        q = q.filter(Booking.service_id == service_id)
    return q.order_by(Booking.date.asc(), Booking.time.asc()).all()


def get_booking(db: Session, booking_id: str) -> Booking | None:
    return db.get(Booking, booking_id)


def _slot_taken(db: Session, day: str, time_str: str, exclude_id: str | None = None) -> bool:
    q = db.query(Booking.id).filter(
        Booking.date == day,
        Booking.time == time_str,
        Booking.status.in_(ACTIVE_BOOKING_STATUSES),
    )
    if exclude_id:
        q = q.filter(Booking.id != exclude_id)
    return q.first() is not None


def create_booking(
    db: Session,
    identity: AuthIdentity,
    service: Service,
    day: str,
    time_str: str,
    notes: str | None = None,
    status: str | None = None,
) -> Booking:
    if not service.is_active:
        raise ValueError("Service is not available")
    start = parse_hhmm(time_str)

    if _slot_taken(db, day, time_str):
        raise ValueError("Time slot already taken")

    # Admins may book outside the published schedule; clients may not.
    if not identity.is_admin:
        slots = compute_day_slots(db, date.fromisoformat(day), int(service.duration or 0) or None)
        slot = next((s for s in slots if s.time == start), None)
        if slot is None or not slot.available:
            raise ValueError("Time slot unavailable")

    created_by = ROLE_ADMIN if identity.is_admin else ROLE_CLIENT
    if identity.is_admin:
        resolved_status = status or "CONFIRMED"
    else:
        resolved_status = "PENDING"

    booking = Booking(
        client_id=identity.user_id,
        service_id=service.id,
        date=day,
        time=time_str,
        notes=notes,
        status=resolved_status,
        created_by=created_by,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    logger.info(
        "booking_created",
        booking_id=booking.id,
        day=day,
        time=time_str,
        status=resolved_status,
        created_by=created_by,
    )
    return booking


def update_booking_status(db: Session, booking_id: str, status: str) -> Booking | None:
    booking = get_booking(db, booking_id)
    if not booking:
        return None
    previous = booking.status
    reactivating = status in ACTIVE_BOOKING_STATUSES and previous not in ACTIVE_BOOKING_STATUSES
    if reactivating and _slot_taken(db, booking.date, booking.time, exclude_id=booking.id):
        raise ValueError("Time slot already taken")
    booking.status = status
    db.commit()
    db.refresh(booking)
    logger.info("booking_status_changed", booking_id=booking.id, from_status=previous, to_status=status)
    return booking


def update_booking_notes(db: Session, booking_id: str, notes: str) -> Booking | None:
    booking = get_booking(db, booking_id)
    if not booking:
        return None
    booking.notes = notes
    db.commit()
    db.refresh(booking)
    return booking


def cancel_booking(db: Session, booking: Booking) -> Booking:
    if booking.status not in ACTIVE_BOOKING_STATUSES:
        raise ValueError("This booking cannot be cancelled")
    booking.status = "CANCELLED"
    db.commit()
    db.refresh(booking)
    logger.info("booking_cancelled", booking_id=booking.id)
    return booking


def dashboard_stats(db: Session, today: date | None = None) -> dict:
    today_str = (today or date.today()).isoformat()
    return {
        "total_bookings": db.query(func.count(Booking.id)).scalar() or 0,
        "pending_bookings": db.query(func.count(Booking.id)).filter(Booking.status == "PENDING").scalar() or 0,
        "completed_bookings": db.query(func.count(Booking.id)).filter(Booking.status == "COMPLETED").scalar() or 0,
        "today_bookings": db.query(func.count(Booking.id)).filter(Booking.date == today_str).scalar() or 0,
        "total_revenue": _completed_revenue(db),
    }
