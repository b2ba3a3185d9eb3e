# barberbook/core.py

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from .config import settings

TimeLike = time | str


def resolve_tz(tz: ZoneInfo | str | None = None) -> ZoneInfo:
    if tz is None:
        return ZoneInfo(settings.BUSINESS_TIMEZONE)
    if isinstance(tz, str):
        return ZoneInfo(tz)
    return tz


def to_time(value: TimeLike) -> time:
    """Accept a ``time`` or an ``HH:MM`` / ``HH:MM:SS`` string."""
    if isinstance(value, time):
        return value
    parts = value.strip().split(":") if isinstance(value, str) else []
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid time of day: {value!r}")
    return time(*(int(p) for p in parts))


def minutes_of_day(value: TimeLike) -> int:
    t = to_time(value)
    return t.hour * 60 + t.minute


def format_minutes(total_minutes: int) -> str:
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


# the one place a calendar day and a time of day become a datetime
def local_datetime(day: date, time_of_day: TimeLike, tz: ZoneInfo | str | None = None) -> datetime:
    t = to_time(time_of_day)
    return datetime(day.year, day.month, day.day, t.hour, t.minute, tzinfo=resolve_tz(tz))


def local_now(now: datetime | None = None, tz: ZoneInfo | str | None = None) -> datetime:
    # naive values are wall-clock time in the shop's zone
    zone = resolve_tz(tz)
    if now is None:
        return datetime.now(zone)
    if now.tzinfo is None:
        return now.replace(tzinfo=zone)
    return now.astimezone(zone)


def add_minutes(time_of_day: TimeLike, minutes: int) -> time:
    total = minutes_of_day(time_of_day) + minutes
    if not 0 <= total < 24 * 60:
        raise ValueError("Resulting time falls outside the calendar day")
    return (datetime.combine(date.min, time()) + timedelta(minutes=total)).time()


def overlaps(start_a, end_a, start_b, end_b) -> bool:
    # half-open intervals: touching endpoints never overlap
    return start_a < end_b and start_b < end_a
