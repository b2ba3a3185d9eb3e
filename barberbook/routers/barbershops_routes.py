# barberbook/routers/barbershops_routes.py

from datetime import date, datetime
from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlmodel import Session, select

from barberbook.auth import get_current_user
from barberbook.booking import engine_for, fetch_active_appointments, fetch_active_blocks, fetch_barbers_for_service
from barberbook.cache import SnapshotStore, snapshot_key
from barberbook.db import get_session
from barberbook.deps import get_clock, get_feed, get_snapshot_store, require_barbershop, require_role
from barberbook.feed import ChangeFeed
from barberbook.models import Barbershop, BarberService, Service, User
from barberbook.schemas import (
    AvailabilityResponse,
    BarbershopCreate,
    OpeningHoursPayload,
    ServiceCreate,
    ServicePublic,
)

router = APIRouter(
    prefix="/barbershops",
    tags=["barbershops"],
)


@router.post("", status_code=201)
def create_barbershop(
    shop: BarbershopCreate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    if current_user["barbershop_id"] is not None:
        raise HTTPException(status_code=409, detail="Admin already manages a barbershop")

    db_shop = Barbershop(name=shop.name)
    if shop.timezone:
        db_shop.timezone = shop.timezone
    session.add(db_shop)
    session.commit()
    session.refresh(db_shop)

    admin = session.get(User, current_user["id"])
    admin.barbershop_id = db_shop.id
    session.add(admin)
    session.commit()

    return {"id": db_shop.id, "name": db_shop.name, "timezone": db_shop.timezone}


@router.get("/me/opening-hours")
def get_opening_hours(
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    shop = session.get(Barbershop, require_barbershop(current_user))
    if shop.opening_hours is None:
        raise HTTPException(status_code=404, detail="Opening hours not set")
    return {"opening_hours": shop.opening_hours}


@router.put("/me/opening-hours")
def set_opening_hours(
    payload: OpeningHoursPayload,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    shop = session.get(Barbershop, require_barbershop(current_user))

    # replace the whole map so the JSON column is flagged dirty
    shop.opening_hours = dict(payload.opening_hours)
    session.add(shop)
    session.commit()
    session.refresh(shop)

    return {"opening_hours": shop.opening_hours}


@router.post("/me/services", response_model=ServicePublic, status_code=201)
def create_service(
    service: ServiceCreate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    db_service = Service(
        barbershop_id=require_barbershop(current_user),
        name=service.name,
        duration_minutes=service.duration_minutes,
        price=service.price,
    )
    session.add(db_service)
    session.commit()
    session.refresh(db_service)
    return db_service


@router.get("/{barbershop_id}/services", response_model=List[ServicePublic])
def list_services(
    barbershop_id: int,
    session: Session = Depends(get_session),
):
    return session.exec(
        select(Service)
        .where(Service.barbershop_id == barbershop_id)
        .where(Service.is_active == True)  # noqa: E712
        .order_by(Service.name)
    ).all()


@router.put("/me/services/{service_id}/barbers/{barber_id}", status_code=204)
def assign_barber_to_service(
    service_id: int,
    barber_id: int,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    barbershop_id = require_barbershop(current_user)

    service = session.get(Service, service_id)
    if service is None or service.barbershop_id != barbershop_id:
        raise HTTPException(status_code=404, detail="Service not available")
    barber = session.get(User, barber_id)
    if barber is None or barber.role != "barber" or barber.barbershop_id != barbershop_id:
        raise HTTPException(status_code=404, detail="Barber Not Found")

    link = session.exec(
        select(BarberService)
        .where(BarberService.barber_id == barber_id)
        .where(BarberService.service_id == service_id)
    ).first()
    if link is None:
        link = BarberService(barber_id=barber_id, service_id=service_id)
    link.is_active = True
    session.add(link)
    session.commit()
    return Response(status_code=204)


@router.delete("/me/services/{service_id}/barbers/{barber_id}", status_code=204)
def unassign_barber_from_service(
    service_id: int,
    barber_id: int,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "admin")
    barbershop_id = require_barbershop(current_user)

    link = session.exec(
        select(BarberService)
        .where(BarberService.barber_id == barber_id)
        .where(BarberService.service_id == service_id)
    ).first()
    service = session.get(Service, service_id)
    if link is None or service is None or service.barbershop_id != barbershop_id:
        raise HTTPException(status_code=404, detail="Assignment not found")

    link.is_active = False
    session.add(link)
    session.commit()
    return Response(status_code=204)


def _snapshot(session: Session, store: SnapshotStore, barbershop_id: int, barber_id: int, day: date):
    key = snapshot_key(barbershop_id, barber_id, day)
    appointments = store.get(key)
    if appointments is None:
        token = store.begin_fetch(key)
        appointments = fetch_active_appointments(session, barbershop_id, barber_id, day)
        store.complete_fetch(key, token, appointments)
    return appointments


@router.get("/{barbershop_id}/availability", response_model=AvailabilityResponse)
def barbershop_availability(
    barbershop_id: int,
    date: date,
    service_id: int,
    barber_id: Optional[int] = None,
    session: Session = Depends(get_session),
    store: SnapshotStore = Depends(get_snapshot_store),
    feed: ChangeFeed = Depends(get_feed),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    # 1) Lookup barbershop, service, barber(s)
    shop = session.get(Barbershop, barbershop_id)
    if shop is None:
        raise HTTPException(status_code=404, detail="Barbershop Not Found")

    service = session.get(Service, service_id)
    if service is None or not service.is_active or service.barbershop_id != barbershop_id:
        raise HTTPException(status_code=404, detail="Service not available")

    if barber_id is not None:
        barber = session.get(User, barber_id)
        if barber is None or barber.role != "barber" or barber.barbershop_id != barbershop_id or not barber.is_active:
            raise HTTPException(status_code=404, detail="Barber Not Found")
        barber_ids = [barber_id]
    else:
        # any barber offering the service
        barber_ids = fetch_barbers_for_service(session, barbershop_id, service_id)

    # 2) Snapshots of active appointments, reconciled with pending changes first
    engine = engine_for(shop, clock)
    store.drain(feed)
    store.prune(engine.now().date())
    appointments = []
    for bid in barber_ids:
        appointments.extend(_snapshot(session, store, barbershop_id, bid, date))

    # 3) Blocks are read fresh, the engine does the rest
    blocks = fetch_active_blocks(session, barbershop_id)
    available = engine.list_available_slots_any(
        barber_ids, date, service.duration_minutes, appointments, blocks
    )

    return {
        "barber_id": barber_id,
        "date": date,
        "service_id": service_id,
        "available_starts": available,
    }
