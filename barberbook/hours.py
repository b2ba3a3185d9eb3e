# barberbook/hours.py

from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping, Optional

from .config import settings
from .core import format_minutes, minutes_of_day
from .data import WEEKDAY_KEYS

OpeningHours = Mapping[str, Optional[Mapping[str, Any]]]


@dataclass(frozen=True)
class OpeningWindow:
    open: int  # minutes since midnight
    close: int

    def as_strings(self) -> dict[str, str]:
        return {"open": format_minutes(self.open), "close": format_minutes(self.close)}


def weekday_key(day: date) -> str:
    # date.weekday() is 0=Monday; keys start at Sunday
    return WEEKDAY_KEYS[(day.weekday() + 1) % 7]


def _day_entry(hours: OpeningHours, day: date) -> Optional[Mapping[str, Any]]:
    entry = hours.get(weekday_key(day))
    if not entry or not entry.get("open") or not entry.get("close"):
        return None
    return entry


def is_open_on_date(
    hours: Optional[OpeningHours],
    day: date,
    fail_open: Optional[bool] = None,
) -> bool:
    if hours is None:
        return settings.FAIL_OPEN_ON_UNLOADED_CONFIG if fail_open is None else fail_open
    return _day_entry(hours, day) is not None


def window_for(hours: Optional[OpeningHours], day: date) -> Optional[OpeningWindow]:
    if hours is None:
        return None
    entry = _day_entry(hours, day)
    if entry is None:
        return None
    window = OpeningWindow(minutes_of_day(entry["open"]), minutes_of_day(entry["close"]))
    if window.open >= window.close:
        return None
    return window


def validate_opening_hours(raw: Mapping[str, Any]) -> dict[str, Optional[dict[str, str]]]:
    """
    Normalize an admin-submitted opening-hours map.

    Every weekday key is present in the result; days without both ``open`` and
    ``close`` are stored as ``None`` (closed). Raises ``ValueError`` for unknown
    keys, malformed times, or ``open >= close``.
    """
    unknown = set(raw) - set(WEEKDAY_KEYS)
    if unknown:
        raise ValueError(f"Unknown weekday keys: {', '.join(sorted(unknown))}")

    cleaned: dict[str, Optional[dict[str, str]]] = {}
    for key in WEEKDAY_KEYS:
        entry = raw.get(key)
        if not entry or not entry.get("open") or not entry.get("close"):
            cleaned[key] = None
            continue
        open_m = minutes_of_day(entry["open"])
        close_m = minutes_of_day(entry["close"])
        if open_m >= close_m:
            raise ValueError(f"{key}: open must be before close")
        cleaned[key] = {"open": format_minutes(open_m), "close": format_minutes(close_m)}
    return cleaned
