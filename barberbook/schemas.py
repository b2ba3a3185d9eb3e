# barberbook/schemas.py

from datetime import date, time
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .hours import validate_opening_hours


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserRole(str, Enum):
    admin = "admin"
    barber = "barber"
    client = "client"


class AppointmentStatus(str, Enum):
    scheduled = "scheduled"
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"


class RecurrenceType(str, Enum):
    none = "none"
    weekly = "weekly"


class UserPublic(BaseModel):
    id: int
    email: str
    role: UserRole
    barbershop_id: Optional[int] = None


class UserCreate(BaseModel):
    email: str
    password: str = Field(min_length=8, max_length=72)
    role: UserRole
    full_name: str = ""
    barbershop_id: Optional[int] = None


class BarbershopCreate(BaseModel):
    name: str
    timezone: Optional[str] = None

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value):
        if value is not None:
            try:
                ZoneInfo(value)
            except (ZoneInfoNotFoundError, ValueError):
                raise ValueError(f"Unknown timezone: {value}")
        return value


class DayHours(BaseModel):
    open: str
    close: str


class OpeningHoursPayload(BaseModel):
    opening_hours: Dict[str, Optional[DayHours]]

    @field_validator("opening_hours")
    @classmethod
    def check_hours(cls, value):
        raw = {k: (v.model_dump() if v is not None else None) for k, v in value.items()}
        return validate_opening_hours(raw)


class ServiceCreate(BaseModel):
    name: str
    duration_minutes: int = Field(gt=0)
    price: float = Field(ge=0)


class ServicePublic(BaseModel):
    id: int
    name: str
    duration_minutes: int
    price: float


# Rows read for an availability snapshot. Validated here, once, instead of
# trusted ad hoc by the engine.
class AppointmentRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    barber_id: int
    appointment_date: date
    start_time: time
    end_time: time
    status: AppointmentStatus


class BlockRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    barber_id: Optional[int] = None
    block_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_full_day: bool = False
    recurrence_type: RecurrenceType = RecurrenceType.none
    days_of_week: List[int] = Field(default_factory=list)  # 0=Sunday
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: str = "active"


class AppointmentCreate(BaseModel):
    barber_id: int
    service_id: int
    appointment_date: date
    start_time: time
    client_id: Optional[int] = None
    notes: Optional[str] = None
    booking_source: str = "app"


class AppointmentReschedule(BaseModel):
    appointment_date: Optional[date] = None
    start_time: Optional[time] = None
    barber_id: Optional[int] = None
    service_id: Optional[int] = None
    notes: Optional[str] = None


class AppointmentPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    barbershop_id: int
    client_id: int
    barber_id: int
    service_id: int
    appointment_date: date
    start_time: time
    end_time: time
    total_price: float
    status: AppointmentStatus
    notes: Optional[str] = None
    booking_source: Optional[str] = None


class BlockCreate(BaseModel):
    title: str
    description: Optional[str] = None
    block_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_full_day: bool = False
    recurrence_type: RecurrenceType = RecurrenceType.none
    days_of_week: List[int] = Field(default_factory=list)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    shop_wide: bool = False


class AvailabilityResponse(BaseModel):
    barber_id: Optional[int] = None  # None = any barber offering the service
    date: date
    service_id: int
    available_starts: List[str]
