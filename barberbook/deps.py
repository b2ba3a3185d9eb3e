# barberbook/deps.py

from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable

from fastapi import HTTPException

from .cache import KeyedLocks, SnapshotStore
from .errors import (
    BookingError,
    ClosedDay,
    InvalidTransition,
    PersistenceError,
    SlotTaken,
    SlotUnavailable,
    UnknownService,
)
from .feed import ChangeFeed


def require_role(user: dict, *roles: str):
    if user["role"] not in roles:
        raise HTTPException(status_code=403, detail="Forbidden")


def require_barbershop(user: dict) -> int:
    if user.get("barbershop_id") is None:
        raise HTTPException(status_code=409, detail="User is not attached to a barbershop")
    return user["barbershop_id"]


# Process-wide services, built once and injected with Depends so tests can
# override them through app.dependency_overrides.
@lru_cache
def get_locks() -> KeyedLocks:
    return KeyedLocks()


@lru_cache
def get_feed() -> ChangeFeed:
    return ChangeFeed()


@lru_cache
def get_snapshot_store() -> SnapshotStore:
    return SnapshotStore()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_clock() -> Callable[[], datetime]:
    return utc_now


BOOKING_ERROR_STATUS = {
    ClosedDay: 422,
    UnknownService: 404,
    SlotUnavailable: 422,
    SlotTaken: 409,
    InvalidTransition: 409,
    PersistenceError: 503,
}


def booking_http_error(error: BookingError) -> HTTPException:
    return HTTPException(status_code=BOOKING_ERROR_STATUS.get(type(error), 400), detail=error.detail)
