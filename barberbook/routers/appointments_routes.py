# barberbook/routers/appointments_routes.py

from datetime import date, datetime
from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlmodel import Session, select

from barberbook.auth import get_current_user
from barberbook.booking import AppointmentWriter
from barberbook.cache import KeyedLocks, SnapshotStore
from barberbook.data import ACTIVE_STATUSES
from barberbook.db import get_session
from barberbook.deps import booking_http_error, get_clock, get_feed, get_locks, get_snapshot_store, require_role
from barberbook.errors import BookingError
from barberbook.feed import ChangeFeed
from barberbook.models import Appointment, User
from barberbook.schemas import AppointmentCreate, AppointmentPublic, AppointmentReschedule, AppointmentStatus

router = APIRouter(
    tags=["appointments"],
)

STATUS_FILTERS = {"active", "all"} | {s.value for s in AppointmentStatus}


def get_writer(
    session: Session = Depends(get_session),
    locks: KeyedLocks = Depends(get_locks),
    feed: ChangeFeed = Depends(get_feed),
    store: SnapshotStore = Depends(get_snapshot_store),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    try:
        yield AppointmentWriter(session, locks=locks, feed=feed, clock=clock)
    finally:
        # keep the feed short even when nobody asks for availability
        store.drain(feed)


def _status_filter(stmt, status: str):
    if status not in STATUS_FILTERS:
        raise HTTPException(status_code=422, detail=f"status must be one of: {', '.join(sorted(STATUS_FILTERS))}")
    if status == "active":
        return stmt.where(Appointment.status.in_(ACTIVE_STATUSES))
    if status != "all":
        return stmt.where(Appointment.status == status)
    return stmt


@router.post("/appointments", response_model=AppointmentPublic, status_code=201)
def create_appointment(
    appt: AppointmentCreate,
    session: Session = Depends(get_session),
    writer: AppointmentWriter = Depends(get_writer),
    current_user: dict = Depends(get_current_user),
):
    # 1) Who is the client
    if current_user["role"] == "client":
        client_id = current_user["id"]
    else:
        if appt.client_id is None:
            raise HTTPException(status_code=422, detail="client_id is required when booking for a client")
        client_id = appt.client_id
        client = session.get(User, client_id)
        if client is None or client.role != "client":
            raise HTTPException(status_code=404, detail="Client Not Found")

    # 2) Barbershop comes from the barber being booked
    barber = session.get(User, appt.barber_id)
    if barber is None or barber.role != "barber" or barber.barbershop_id is None:
        raise HTTPException(status_code=404, detail="Barber Not Found")

    try:
        return writer.create_appointment(barber.barbershop_id, client_id, appt)
    except BookingError as e:
        raise booking_http_error(e)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))


def _change_status(appt_id: int, new_status: str, writer: AppointmentWriter, current_user: dict):
    target = writer.session.get(Appointment, appt_id)
    if target is None:
        raise HTTPException(status_code=404, detail="Appointment not found")

    user_id = current_user["id"]
    is_staff = current_user["role"] == "admin" or user_id == target.barber_id
    if new_status == "cancelled":
        allowed = is_staff or user_id == target.client_id
    else:
        allowed = is_staff
    if not allowed:
        raise HTTPException(status_code=403, detail="Forbidden")

    try:
        return writer.transition(appt_id, new_status)
    except BookingError as e:
        raise booking_http_error(e)


@router.patch("/appointments/{appt_id}/confirm", response_model=AppointmentPublic)
def confirm_appointment(
    appt_id: int,
    writer: AppointmentWriter = Depends(get_writer),
    current_user: dict = Depends(get_current_user),
):
    return _change_status(appt_id, "confirmed", writer, current_user)


@router.patch("/appointments/{appt_id}/complete", response_model=AppointmentPublic)
def complete_appointment(
    appt_id: int,
    writer: AppointmentWriter = Depends(get_writer),
    current_user: dict = Depends(get_current_user),
):
    return _change_status(appt_id, "completed", writer, current_user)


@router.patch("/appointments/{appt_id}/cancel", response_model=AppointmentPublic)
def cancel_appointment(
    appt_id: int,
    writer: AppointmentWriter = Depends(get_writer),
    current_user: dict = Depends(get_current_user),
):
    return _change_status(appt_id, "cancelled", writer, current_user)


@router.patch("/appointments/{appt_id}", response_model=AppointmentPublic)
def reschedule_appointment(
    appt_id: int,
    changes: AppointmentReschedule,
    writer: AppointmentWriter = Depends(get_writer),
    current_user: dict = Depends(get_current_user),
):
    target = writer.session.get(Appointment, appt_id)
    if target is None:
        raise HTTPException(status_code=404, detail="Appointment not found")

    # 1) Staff of the shop, or the client who booked it
    user_id = current_user["id"]
    is_staff = (
        current_user["role"] == "admin" and current_user["barbershop_id"] == target.barbershop_id
    ) or user_id == target.barber_id
    if not (is_staff or user_id == target.client_id):
        raise HTTPException(status_code=403, detail="Forbidden")

    # 2) Same checks as a new booking
    try:
        return writer.reschedule(appt_id, changes)
    except BookingError as e:
        raise booking_http_error(e)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/appointments/{appt_id}", status_code=204)
def delete_appointment(
    appt_id: int,
    writer: AppointmentWriter = Depends(get_writer),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    target = writer.session.get(Appointment, appt_id)
    if target is None or target.barbershop_id != current_user["barbershop_id"]:
        raise HTTPException(status_code=404, detail="Appointment not found")

    try:
        writer.delete(appt_id)
    except BookingError as e:
        raise booking_http_error(e)
    return Response(status_code=204)


@router.get("/barbers/me/appointments", response_model=List[AppointmentPublic])
def list_barber_appointments(
    status: str = "active",
    on_date: Optional[date] = None,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "barber")

    stmt = select(Appointment).where(Appointment.barber_id == current_user["id"])
    if on_date is not None:
        stmt = stmt.where(Appointment.appointment_date == on_date)
    stmt = _status_filter(stmt, status)
    stmt = stmt.order_by(Appointment.appointment_date, Appointment.start_time)

    return session.exec(stmt).all()


@router.get("/clients/me/appointments", response_model=List[AppointmentPublic])
def list_my_appointments(
    status: str = "all",
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "client")

    stmt = select(Appointment).where(Appointment.client_id == current_user["id"])
    stmt = _status_filter(stmt, status)
    stmt = stmt.order_by(Appointment.appointment_date.desc(), Appointment.start_time)

    return session.exec(stmt).all()
