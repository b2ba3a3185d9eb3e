# barberbook/availability.py

import logging
from datetime import date, datetime
from typing import Callable, Iterable, Optional, Sequence
from zoneinfo import ZoneInfo

from .config import settings
from .conflicts import blocked_by, has_conflict
from .core import TimeLike, format_minutes, local_now, minutes_of_day, resolve_tz
from .hours import OpeningHours, is_open_on_date, window_for
from .schemas import AppointmentRecord, BlockRecord
from .slots import generate, is_past

logger = logging.getLogger(__name__)


class AvailabilityEngine:
    """
    Bookable start times for one barbershop's opening hours.

    The engine never fetches anything: callers pass the snapshot of existing
    appointments (and schedule blocks) for the barber and date being queried.
    It never mutates that snapshot either.
    """

    def __init__(
        self,
        opening_hours: Optional[OpeningHours],
        *,
        interval_minutes: Optional[int] = None,
        safety_margin_minutes: Optional[int] = None,
        fail_open: Optional[bool] = None,
        tz: ZoneInfo | str | None = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.opening_hours = opening_hours
        self.interval_minutes = interval_minutes or settings.SLOT_INTERVAL_MINUTES
        self.safety_margin_minutes = (
            settings.SAFETY_MARGIN_MINUTES if safety_margin_minutes is None else safety_margin_minutes
        )
        self.fail_open = settings.FAIL_OPEN_ON_UNLOADED_CONFIG if fail_open is None else fail_open
        self.tz = resolve_tz(tz)
        self._clock = clock

    @property
    def hours_loaded(self) -> bool:
        return self.opening_hours is not None

    def now(self, now: Optional[datetime] = None) -> datetime:
        if now is None and self._clock is not None:
            now = self._clock()
        return local_now(now, self.tz)

    def is_open(self, day: date) -> bool:
        return is_open_on_date(self.opening_hours, day, fail_open=self.fail_open)

    def _snapshot_for(
        self,
        appointments: Iterable[AppointmentRecord],
        barber_id: int,
        day: date,
    ) -> list[AppointmentRecord]:
        return [a for a in appointments if a.barber_id == barber_id and a.appointment_date == day]

    def list_available_slots(
        self,
        barber_id: int,
        day: date,
        service_duration_minutes: int,
        appointments: Iterable[AppointmentRecord] = (),
        blocks: Sequence[BlockRecord] = (),
        now: Optional[datetime] = None,
    ) -> list[str]:
        if not self.is_open(day):
            return []
        window = window_for(self.opening_hours, day)
        if window is None:
            return []

        current = self.now(now)
        existing = self._snapshot_for(appointments, barber_id, day)

        available = []
        for slot in generate(window, self.interval_minutes, service_duration_minutes):
            if is_past(day, slot, current, self.safety_margin_minutes, self.tz):
                continue
            if has_conflict(existing, slot, service_duration_minutes):
                continue
            if blocked_by(blocks, day, slot, service_duration_minutes, barber_id) is not None:
                continue
            available.append(slot)
        return available

    def list_available_slots_any(
        self,
        barber_ids: Iterable[int],
        day: date,
        service_duration_minutes: int,
        appointments: Iterable[AppointmentRecord] = (),
        blocks: Sequence[BlockRecord] = (),
        now: Optional[datetime] = None,
    ) -> list[str]:
        """Start times at which at least one of the given barbers is free."""
        appointments = list(appointments)
        current = self.now(now)
        starts = set()
        for barber_id in barber_ids:
            starts.update(
                self.list_available_slots(barber_id, day, service_duration_minutes, appointments, blocks, current)
            )
        return sorted(starts)

    def check_basic(
        self,
        day: date,
        start_time: TimeLike,
        service_duration_minutes: int,
        now: Optional[datetime] = None,
    ) -> Optional[str]:
        """Return the reason a start time fails open/past/fit checks, or None if it passes."""
        if not self.is_open(day):
            return "closed"
        window = window_for(self.opening_hours, day)
        if window is None:
            return "no_opening_hours"

        start = minutes_of_day(start_time)
        if start < window.open:
            return "before_open"
        if (start - window.open) % self.interval_minutes != 0:
            return "off_grid"
        if start + service_duration_minutes > window.close:
            return "after_close"
        if is_past(day, start_time, self.now(now), self.safety_margin_minutes, self.tz):
            return "past"
        return None

    def is_slot_available(
        self,
        barber_id: int,
        day: date,
        start_time: TimeLike,
        service_duration_minutes: int,
        appointments: Iterable[AppointmentRecord] = (),
        blocks: Sequence[BlockRecord] = (),
        now: Optional[datetime] = None,
    ) -> bool:
        reason = self.check_basic(day, start_time, service_duration_minutes, now)
        if reason is None:
            existing = self._snapshot_for(appointments, barber_id, day)
            if has_conflict(existing, start_time, service_duration_minutes):
                reason = "conflict"
            elif blocked_by(blocks, day, start_time, service_duration_minutes, barber_id) is not None:
                reason = "blocked"

        if reason is not None:
            logger.debug(
                "Slot unavailable",
                extra={
                    "barber_id": barber_id,
                    "date": day.isoformat(),
                    "start_time": format_minutes(minutes_of_day(start_time)),
                    "reason": reason,
                },
            )
            return False
        return True
