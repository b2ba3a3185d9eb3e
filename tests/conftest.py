from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from barberbook.auth import create_access_token
from barberbook.cache import KeyedLocks, SnapshotStore
from barberbook.db import get_session, init_db, make_engine
from barberbook.deps import get_clock, get_feed, get_locks, get_snapshot_store
from barberbook.feed import ChangeFeed
from barberbook.main import app
from barberbook.models import Barbershop, BarberService, Service, User

TZ = ZoneInfo("America/Sao_Paulo")
MONDAY = date(2030, 1, 7)
SUNDAY = date(2030, 1, 6)
BEFORE_OPENING = datetime(2030, 1, 7, 8, 0, tzinfo=TZ)

OPENING_HOURS = {
    "monday": {"open": "09:00", "close": "10:00"},
    "tuesday": {"open": "09:00", "close": "18:00"},
}


@dataclass
class Seed:
    shop_id: int
    admin_id: int
    barber_id: int
    other_barber_id: int
    client_id: int
    haircut_id: int
    beard_id: int


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def seed(session) -> Seed:
    shop = Barbershop(name="Navalha", timezone="America/Sao_Paulo", opening_hours=OPENING_HOURS)
    session.add(shop)
    session.commit()
    session.refresh(shop)

    def user(email, role):
        u = User(email=email, password_hash="x", role=role, full_name=email.split("@")[0], barbershop_id=shop.id)
        session.add(u)
        session.commit()
        session.refresh(u)
        return u

    admin = user("admin@navalha.com", "admin")
    barber = user("joao@navalha.com", "barber")
    other = user("pedro@navalha.com", "barber")
    client = user("ana@example.com", "client")

    haircut = Service(barbershop_id=shop.id, name="Haircut", duration_minutes=30, price=50.0)
    beard = Service(barbershop_id=shop.id, name="Beard", duration_minutes=15, price=25.0)
    session.add(haircut)
    session.add(beard)
    session.commit()

    # joao does both services, pedro only cuts hair
    session.add(BarberService(barber_id=barber.id, service_id=haircut.id))
    session.add(BarberService(barber_id=barber.id, service_id=beard.id))
    session.add(BarberService(barber_id=other.id, service_id=haircut.id))
    session.commit()

    return Seed(shop.id, admin.id, barber.id, other.id, client.id, haircut.id, beard.id)


@pytest.fixture
def services():
    return {
        "locks": KeyedLocks(),
        "feed": ChangeFeed(),
        "store": SnapshotStore(ttl_seconds=60),
        "now": BEFORE_OPENING,
    }


@pytest.fixture
def client(engine, services):
    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_locks] = lambda: services["locks"]
    app.dependency_overrides[get_feed] = lambda: services["feed"]
    app.dependency_overrides[get_snapshot_store] = lambda: services["store"]
    app.dependency_overrides[get_clock] = lambda: (lambda: services["now"])
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_header(email: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': email})}"}
