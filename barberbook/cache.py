# barberbook/cache.py

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Hashable, Iterable, Iterator, Optional

from .config import settings
from .data import ACTIVE_STATUSES
from .feed import ChangeEvent, ChangeFeed
from .schemas import AppointmentRecord

logger = logging.getLogger(__name__)

SnapshotKey = tuple[int, int, date]


def snapshot_key(barbershop_id: int, barber_id: int, day: date) -> SnapshotKey:
    return (barbershop_id, barber_id, day)


class KeyedLocks:
    """One lock per key, e.g. ``(barber_id, date)``, released when unused."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}
        self._users: dict[Hashable, int] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._users[key] = self._users.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]


@dataclass
class _Snapshot:
    records: dict[int, AppointmentRecord]
    loaded_at: float


@dataclass
class SnapshotStore:
    """
    Active appointments per (barbershop, barber, date), kept fresh by TTL and
    by change-feed reconciliation. A fetch whose key was touched between
    ``begin_fetch`` and ``complete_fetch`` is discarded, never merged.
    """

    ttl_seconds: float = field(default_factory=lambda: settings.SNAPSHOT_TTL_SECONDS)
    clock: Callable[[], float] = time.monotonic

    def __post_init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[SnapshotKey, _Snapshot] = {}
        self._generations: dict[SnapshotKey, int] = {}

    def _bump(self, key: SnapshotKey) -> int:
        self._generations[key] = self._generations.get(key, 0) + 1
        return self._generations[key]

    def _touch(self, key: SnapshotKey) -> None:
        # only keys with a snapshot or a fetch in flight need a new generation
        if key in self._generations:
            self._bump(key)

    def begin_fetch(self, key: SnapshotKey) -> int:
        with self._lock:
            return self._bump(key)

    def complete_fetch(self, key: SnapshotKey, token: int, records: Iterable[AppointmentRecord]) -> bool:
        with self._lock:
            if self._generations.get(key) != token:
                logger.debug("Discarding superseded snapshot fetch", extra={"reason": "stale"})
                return False
            self._entries[key] = _Snapshot(
                records={r.id: r for r in records if r.status in ACTIVE_STATUSES},
                loaded_at=self.clock(),
            )
            return True

    def get(self, key: SnapshotKey) -> Optional[list[AppointmentRecord]]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self.clock() - entry.loaded_at > self.ttl_seconds:
                del self._entries[key]
                return None
            return sorted(entry.records.values(), key=lambda r: (r.start_time, r.id))

    def invalidate(self, key: SnapshotKey) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._touch(key)

    def apply(self, event: ChangeEvent) -> None:
        record = event.record
        key = snapshot_key(event.barbershop_id, record.barber_id, record.appointment_date)
        with self._lock:
            if event.previous is not None:
                old_key = snapshot_key(event.barbershop_id, event.previous.barber_id, event.previous.appointment_date)
                if old_key != key:
                    self._touch(old_key)
                    old_entry = self._entries.get(old_key)
                    if old_entry is not None:
                        old_entry.records.pop(record.id, None)

            self._touch(key)
            entry = self._entries.get(key)
            if entry is None:
                return
            if event.kind == "delete" or record.status not in ACTIVE_STATUSES:
                entry.records.pop(record.id, None)
            else:
                entry.records[record.id] = record

    def drain(self, feed: ChangeFeed) -> int:
        events = feed.drain()
        for event in events:
            self.apply(event)
        return len(events)

    def prune(self, today: date) -> int:
        """Forget snapshots and generations for dates before ``today``."""
        with self._lock:
            # every cached entry has a generation, so this covers both maps
            stale = [key for key in self._generations if key[2] < today]
            for key in stale:
                self._generations.pop(key, None)
                self._entries.pop(key, None)
            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generations.clear()
