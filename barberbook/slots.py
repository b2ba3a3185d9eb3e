# barberbook/slots.py

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from .core import TimeLike, format_minutes, local_datetime, local_now
from .hours import OpeningWindow


def generate(window: OpeningWindow, interval_minutes: int, service_duration_minutes: int) -> list[str]:
    if interval_minutes <= 0:
        raise ValueError("interval_minutes must be positive")
    if service_duration_minutes <= 0:
        raise ValueError("service_duration_minutes must be positive")

    slots = []
    start = window.open
    while start + service_duration_minutes <= window.close:
        slots.append(format_minutes(start))
        start += interval_minutes
    return slots


def is_past(
    day: date,
    time_of_day: TimeLike,
    now: datetime | None = None,
    safety_margin_minutes: int = 1,
    tz: ZoneInfo | str | None = None,
) -> bool:
    candidate = local_datetime(day, time_of_day, tz)
    cutoff = local_now(now, candidate.tzinfo) + timedelta(minutes=safety_margin_minutes)
    return candidate <= cutoff
