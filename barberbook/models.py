# barberbook/models.py

from typing import Optional, List
from datetime import datetime, date as Date, time, timezone

from sqlalchemy import Index, text
from sqlalchemy.types import JSON
from sqlmodel import SQLModel, Field, Column

from .config import settings

ACTIVE_ONLY = text("status IN ('scheduled', 'confirmed')")


class Barbershop(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    timezone: str = Field(default_factory=lambda: settings.BUSINESS_TIMEZONE)
    # None until an admin saves opening hours
    opening_hours: Optional[dict] = Field(default=None, sa_column=Column(JSON, nullable=True))


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    role: str  # admin, barber or client
    full_name: str = ""
    barbershop_id: Optional[int] = Field(default=None, foreign_key="barbershop.id", index=True)
    is_active: bool = True


class Service(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    barbershop_id: int = Field(foreign_key="barbershop.id", index=True)
    name: str
    duration_minutes: int
    price: float = 0.0
    is_active: bool = True


class Appointment(SQLModel, table=True):
    __table_args__ = (
        # one active booking per barber and start time; cancelled/completed rows don't count
        Index(
            "uq_active_barber_start",
            "barber_id",
            "appointment_date",
            "start_time",
            unique=True,
            sqlite_where=ACTIVE_ONLY,
            postgresql_where=ACTIVE_ONLY,
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)

    barbershop_id: int = Field(foreign_key="barbershop.id", index=True)
    client_id: int = Field(foreign_key="user.id", index=True)
    barber_id: int = Field(foreign_key="user.id", index=True)
    service_id: int = Field(foreign_key="service.id")

    appointment_date: Date = Field(index=True)
    start_time: time
    end_time: time
    total_price: float = 0.0
    status: str = "scheduled"
    notes: Optional[str] = None
    booking_source: Optional[str] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ScheduleBlock(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    barbershop_id: int = Field(foreign_key="barbershop.id", index=True)
    barber_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)  # None = whole shop
    title: str
    description: Optional[str] = None
    block_date: Optional[Date] = Field(default=None, index=True)
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_full_day: bool = False
    recurrence_type: str = "none"  # "none" or "weekly"
    days_of_week: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    start_date: Optional[Date] = None
    end_date: Optional[Date] = None
    status: str = "active"  # "active" or "inactive"


class BarberService(SQLModel, table=True):
    __table_args__ = (Index("uq_barber_service", "barber_id", "service_id", unique=True),)

    id: Optional[int] = Field(default=None, primary_key=True)
    barber_id: int = Field(foreign_key="user.id", index=True)
    service_id: int = Field(foreign_key="service.id", index=True)
    is_active: bool = True
