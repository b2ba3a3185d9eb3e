# barberbook/booking.py

import logging
from datetime import date, datetime, time, timezone
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from .availability import AvailabilityEngine
from .cache import KeyedLocks
from .conflicts import blocked_by, has_conflict
from .core import add_minutes
from .data import ACTIVE_STATUSES, STATUS_TRANSITIONS
from .errors import (
    ClosedDay,
    InvalidTransition,
    PersistenceError,
    SlotTaken,
    SlotUnavailable,
    UnknownService,
)
from .feed import ChangeEvent, ChangeFeed
from .models import Appointment, Barbershop, BarberService, ScheduleBlock, Service, User
from .schemas import AppointmentCreate, AppointmentRecord, AppointmentReschedule, BlockRecord

logger = logging.getLogger(__name__)

UNAVAILABLE_REASONS = {
    "no_opening_hours": "Opening hours are not configured yet",
    "before_open": "Appointment must start within opening hours",
    "off_grid": "Start time is not on the booking grid",
    "after_close": "Service cannot finish before closing time",
    "past": "This time has already passed",
}


def fetch_active_appointments(
    session: Session, barbershop_id: int, barber_id: int, day: date
) -> list[AppointmentRecord]:
    rows = session.exec(
        select(Appointment)
        .where(Appointment.barbershop_id == barbershop_id)
        .where(Appointment.barber_id == barber_id)
        .where(Appointment.appointment_date == day)
        .where(Appointment.status.in_(ACTIVE_STATUSES))
        .order_by(Appointment.start_time)
    ).all()
    return [AppointmentRecord.model_validate(r) for r in rows]


def fetch_active_blocks(session: Session, barbershop_id: int) -> list[BlockRecord]:
    rows = session.exec(
        select(ScheduleBlock)
        .where(ScheduleBlock.barbershop_id == barbershop_id)
        .where(ScheduleBlock.status == "active")
    ).all()
    return [BlockRecord.model_validate(r) for r in rows]


def fetch_barbers_for_service(session: Session, barbershop_id: int, service_id: int) -> list[int]:
    """Active barbers of the shop with an active assignment to the service."""
    rows = session.exec(
        select(User.id)
        .join(BarberService, BarberService.barber_id == User.id)
        .where(BarberService.service_id == service_id)
        .where(BarberService.is_active == True)  # noqa: E712
        .where(User.barbershop_id == barbershop_id)
        .where(User.role == "barber")
        .where(User.is_active == True)  # noqa: E712
        .order_by(User.id)
    ).all()
    return list(rows)


def engine_for(shop: Barbershop, clock: Optional[Callable[[], datetime]] = None) -> AvailabilityEngine:
    return AvailabilityEngine(shop.opening_hours, tz=shop.timezone, clock=clock)


class AppointmentWriter:
    """
    Creates appointments and moves them through their lifecycle.

    Availability is re-checked against the database right before each write,
    under a per (barber, date) lock. The partial unique index on active
    (barber, date, start) rows is the last line against double booking when
    several processes write at once.
    """

    def __init__(
        self,
        session: Session,
        *,
        locks: KeyedLocks,
        feed: Optional[ChangeFeed] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.session = session
        self.locks = locks
        self.feed = feed
        self.clock = clock

    def _publish(self, kind: str, appointment: Appointment, previous: Optional[AppointmentRecord] = None) -> None:
        if self.feed is None:
            return
        self.feed.publish(
            ChangeEvent(
                kind=kind,
                barbershop_id=appointment.barbershop_id,
                record=AppointmentRecord.model_validate(appointment),
                previous=previous,
            )
        )

    def _commit(self, on_integrity_error: type = PersistenceError) -> None:
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise on_integrity_error() from e
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("Appointment write failed", extra={"reason": str(e)})
            raise PersistenceError() from e

    def _active_barber(self, barbershop_id: int, barber_id: int) -> User:
        barber = self.session.get(User, barber_id)
        if barber is None or barber.role != "barber" or barber.barbershop_id != barbershop_id or not barber.is_active:
            raise LookupError("Barber not found")
        return barber

    def _check_slot(
        self,
        shop: Barbershop,
        barber_id: int,
        service_id: int,
        day: date,
        start_time: time,
    ) -> Service:
        engine = engine_for(shop, self.clock)

        # 1) Barbershop open that day
        if not engine.is_open(day):
            raise ClosedDay()

        # 2) Service exists and belongs to this barbershop
        service = self.session.get(Service, service_id)
        if service is None or not service.is_active or service.barbershop_id != shop.id:
            raise UnknownService()
        duration = service.duration_minutes

        # 3) Basic rules: hours loaded, on the grid, not past, fits before closing, not blocked
        reason = engine.check_basic(day, start_time, duration)
        if reason == "closed":
            raise ClosedDay()
        if reason is not None:
            raise SlotUnavailable(UNAVAILABLE_REASONS.get(reason))
        blocks = fetch_active_blocks(self.session, shop.id)
        if blocked_by(blocks, day, start_time, duration, barber_id) is not None:
            raise SlotUnavailable("Barber is not available at this time")

        return service

    def _recheck(
        self,
        barbershop_id: int,
        barber_id: int,
        day: date,
        start_time: time,
        duration: int,
        ignore_id: Optional[int] = None,
    ) -> None:
        # Live re-check against the database, never a cached snapshot.
        # Callers hold the (barber, date) lock.
        current = fetch_active_appointments(self.session, barbershop_id, barber_id, day)
        if ignore_id is not None:
            current = [a for a in current if a.id != ignore_id]
        if has_conflict(current, start_time, duration):
            logger.info(
                "Slot taken before write",
                extra={
                    "barber_id": barber_id,
                    "date": day.isoformat(),
                    "start_time": start_time.strftime("%H:%M"),
                },
            )
            raise SlotTaken()

    def create_appointment(self, barbershop_id: int, client_id: int, request: AppointmentCreate) -> Appointment:
        shop = self.session.get(Barbershop, barbershop_id)
        if shop is None:
            raise LookupError("Barbershop not found")
        self._active_barber(barbershop_id, request.barber_id)

        day = request.appointment_date
        start_time = request.start_time.replace(second=0, microsecond=0)

        # 1) - 3)
        service = self._check_slot(shop, request.barber_id, request.service_id, day, start_time)
        end_time = add_minutes(start_time, service.duration_minutes)

        with self.locks.hold((request.barber_id, day)):
            # 4) Re-check
            self._recheck(barbershop_id, request.barber_id, day, start_time, service.duration_minutes)

            # 5) Insert
            appointment = Appointment(
                barbershop_id=barbershop_id,
                client_id=client_id,
                barber_id=request.barber_id,
                service_id=service.id,
                appointment_date=day,
                start_time=start_time,
                end_time=end_time,
                total_price=service.price,
                status="scheduled",
                notes=request.notes,
                booking_source=request.booking_source,
            )
            self.session.add(appointment)
            # unique index hit: another writer won the race
            self._commit(on_integrity_error=SlotTaken)
            self.session.refresh(appointment)

        logger.info(
            "Appointment created",
            extra={
                "appointment_id": appointment.id,
                "barber_id": appointment.barber_id,
                "date": day.isoformat(),
                "start_time": appointment.start_time.strftime("%H:%M"),
            },
        )
        self._publish("insert", appointment)
        return appointment

    def reschedule(self, appointment_id: int, changes: AppointmentReschedule) -> Appointment:
        """Move an active appointment to another date, time, barber or service."""
        appointment = self.session.get(Appointment, appointment_id)
        if appointment is None:
            raise LookupError("Appointment not found")
        if appointment.status not in ACTIVE_STATUSES:
            raise InvalidTransition(f"Cannot reschedule a {appointment.status} appointment")

        shop = self.session.get(Barbershop, appointment.barbershop_id)
        barber_id = changes.barber_id if changes.barber_id is not None else appointment.barber_id
        service_id = changes.service_id if changes.service_id is not None else appointment.service_id
        day = changes.appointment_date or appointment.appointment_date
        start_time = (changes.start_time or appointment.start_time).replace(second=0, microsecond=0)
        if barber_id != appointment.barber_id:
            self._active_barber(shop.id, barber_id)

        # 1) - 3) same gates as a new booking
        service = self._check_slot(shop, barber_id, service_id, day, start_time)
        end_time = add_minutes(start_time, service.duration_minutes)

        previous = AppointmentRecord.model_validate(appointment)
        with self.locks.hold((barber_id, day)):
            # 4) Re-check, the appointment never conflicts with itself
            self._recheck(shop.id, barber_id, day, start_time, service.duration_minutes, ignore_id=appointment.id)

            # 5) Update in place
            appointment.barber_id = barber_id
            appointment.service_id = service.id
            appointment.appointment_date = day
            appointment.start_time = start_time
            appointment.end_time = end_time
            appointment.total_price = service.price
            if changes.notes is not None:
                appointment.notes = changes.notes
            appointment.updated_at = datetime.now(timezone.utc)
            self.session.add(appointment)
            self._commit(on_integrity_error=SlotTaken)
            self.session.refresh(appointment)

        logger.info(
            "Appointment rescheduled",
            extra={
                "appointment_id": appointment.id,
                "barber_id": barber_id,
                "date": day.isoformat(),
                "start_time": start_time.strftime("%H:%M"),
            },
        )
        self._publish("update", appointment, previous=previous)
        return appointment

    def transition(self, appointment_id: int, new_status: str) -> Appointment:
        appointment = self.session.get(Appointment, appointment_id)
        if appointment is None:
            raise LookupError("Appointment not found")

        allowed = STATUS_TRANSITIONS.get(appointment.status, set())
        if new_status not in allowed:
            raise InvalidTransition(f"Cannot change appointment from {appointment.status} to {new_status}")

        appointment.status = new_status
        appointment.updated_at = datetime.now(timezone.utc)
        self.session.add(appointment)
        self._commit()
        self.session.refresh(appointment)

        logger.info(
            "Appointment status changed",
            extra={"appointment_id": appointment.id, "reason": new_status},
        )
        self._publish("update", appointment)
        return appointment

    def delete(self, appointment_id: int) -> None:
        appointment = self.session.get(Appointment, appointment_id)
        if appointment is None:
            raise LookupError("Appointment not found")

        record_event = AppointmentRecord.model_validate(appointment)
        barbershop_id = appointment.barbershop_id
        self.session.delete(appointment)
        self._commit()

        logger.info("Appointment deleted", extra={"appointment_id": appointment_id})
        if self.feed is not None:
            self.feed.publish(ChangeEvent(kind="delete", barbershop_id=barbershop_id, record=record_event))
