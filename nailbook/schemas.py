from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^\d{2}:\d{2}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

ServiceCategory = Literal["MANICURE", "PEDICURE", "ESMALTACAO", "DECORACAO"]
BookingStatus = Literal["PENDING", "CONFIRMED", "COMPLETED", "CANCELLED"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _check_calendar_date(value: str) -> str:
    date.fromisoformat(value)
    return value


class RegisterIn(CamelModel):
    name: str = Field(min_length=1, max_length=120)
    email: str = Field(min_length=3, max_length=160, pattern=EMAIL_PATTERN)
    phone: str = Field(min_length=1, max_length=40)
    password: str = Field(min_length=1, max_length=200)


class LoginIn(CamelModel):
    email: str = Field(min_length=1, max_length=160)
    password: str = Field(min_length=1, max_length=200)


class UserOut(CamelModel):
    id: str
    name: str
    email: str
    phone: str
    role: str
    created_at: datetime


class AuthOut(CamelModel):
    user: UserOut
    token: str


class MeOut(CamelModel):
    user: UserOut


class UserListItemOut(UserOut):
    bookings_count: int = 0


class UserBookingOut(CamelModel):
    id: str
    date: str
    time: str
    status: str
    service_name: str = ""
    service_price: float = 0.0


class UserDetailOut(UserOut):
    bookings: list[UserBookingOut] = []


class UserUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    email: str | None = Field(default=None, min_length=3, max_length=160, pattern=EMAIL_PATTERN)
    phone: str | None = Field(default=None, min_length=1, max_length=40)


class PasswordChangeIn(CamelModel):
    current_password: str = Field(min_length=1, max_length=200)
    new_password: str = Field(min_length=1, max_length=200)


class MessageOut(CamelModel):
    message: str


class UserStatsOut(CamelModel):
    total_users: int
    total_clients: int
    total_admins: int
    active_clients: int
    total_revenue: float


class ServiceCreate(CamelModel):
    name: str = Field(min_length=1, max_length=120)
    description: str = Field(min_length=1)
    price: float = Field(ge=0)
    duration: int = Field(ge=1, le=24 * 60)
    category: ServiceCategory
    is_active: bool = True


class ServiceUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    description: str | None = Field(default=None, min_length=1)
    price: float | None = Field(default=None, ge=0)
    duration: int | None = Field(default=None, ge=1, le=24 * 60)
    category: ServiceCategory | None = None
    is_active: bool | None = None


class ServiceOut(CamelModel):
    id: str
    name: str
    description: str
    price: float
    duration: int
    category: str
    is_active: bool
    created_at: datetime


class CategoryCountOut(CamelModel):
    category: str
    count: int


class ServiceStatsOut(CamelModel):
    total_services: int
    active_services: int
    services_by_category: list[CategoryCountOut]
    total_revenue: float


class BookingCreate(CamelModel):
    service_id: str = Field(min_length=1)
    date: str = Field(pattern=DATE_PATTERN)
    time: str = Field(pattern=TIME_PATTERN)
    notes: str | None = Field(default=None, max_length=1000)
    status: BookingStatus | None = None

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: str) -> str:
        return _check_calendar_date(value)


class BookingStatusUpdate(CamelModel):
    status: BookingStatus


class BookingNotesUpdate(CamelModel):
    notes: str = Field(max_length=1000)


class BookingOut(CamelModel):
    id: str
    client_id: str
    service_id: str | None = None
    date: str
    time: str
    status: str
    notes: str | None = None
    created_by: str
    created_at: datetime
    client_name: str = ""
    client_phone: str = ""
    client_email: str = ""
    service_name: str = ""
    service_price: float = 0.0
    service_duration: int = 0


class SlotOut(CamelModel):
    time: str
    available: bool


class DashboardStatsOut(CamelModel):
    total_bookings: int
    pending_bookings: int
    completed_bookings: int
    today_bookings: int
    total_revenue: float


class WorkingHourIn(CamelModel):
    weekday: int = Field(ge=0, le=6)
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)


class WorkingHourOut(CamelModel):
    id: int
    weekday: int
    start_time: str
    end_time: str


class SpecialDayIn(CamelModel):
    date: str = Field(pattern=DATE_PATTERN)
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: str) -> str:
        return _check_calendar_date(value)


class SpecialDayOut(CamelModel):
    id: int
    date: str
    start_time: str
    end_time: str
