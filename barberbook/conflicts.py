# barberbook/conflicts.py

import logging
from datetime import date
from typing import Iterable, Optional

from .core import TimeLike, minutes_of_day, overlaps
from .data import ACTIVE_STATUSES
from .errors import CorruptRecord
from .schemas import AppointmentRecord, BlockRecord, RecurrenceType

logger = logging.getLogger(__name__)


def _status_value(record: AppointmentRecord) -> str:
    return getattr(record.status, "value", record.status)


def check_record(record: AppointmentRecord) -> tuple[int, int]:
    start = minutes_of_day(record.start_time)
    end = minutes_of_day(record.end_time)
    if end <= start:
        raise CorruptRecord(f"appointment {record.id} ends at or before its start")
    return start, end


def active_intervals(appointments: Iterable[AppointmentRecord]) -> list[tuple[int, int]]:
    intervals = []
    for record in appointments:
        if _status_value(record) not in ACTIVE_STATUSES:
            continue
        try:
            intervals.append(check_record(record))
        except CorruptRecord as e:
            logger.warning(
                "Skipping corrupt appointment record",
                extra={
                    "appointment_id": record.id,
                    "barber_id": record.barber_id,
                    "start_time": str(record.start_time),
                    "reason": str(e),
                },
            )
    return intervals


def has_conflict(
    existing: Iterable[AppointmentRecord],
    candidate_start: TimeLike,
    duration_minutes: int,
) -> bool:
    start = minutes_of_day(candidate_start)
    end = start + duration_minutes
    return any(overlaps(start, end, s, e) for s, e in active_intervals(existing))


def _block_applies(block: BlockRecord, day: date, barber_id: Optional[int]) -> bool:
    if block.status != "active":
        return False
    if block.barber_id is not None and barber_id is not None and block.barber_id != barber_id:
        return False

    if block.recurrence_type == RecurrenceType.none:
        return block.block_date == day

    # weekly: days_of_week counts from Sunday=0
    if (day.weekday() + 1) % 7 not in block.days_of_week:
        return False
    if block.start_date is not None and day < block.start_date:
        return False
    if block.end_date is not None and day > block.end_date:
        return False
    return True


def blocked_by(
    blocks: Iterable[BlockRecord],
    day: date,
    candidate_start: TimeLike,
    duration_minutes: int,
    barber_id: Optional[int] = None,
) -> Optional[BlockRecord]:
    start = minutes_of_day(candidate_start)
    end = start + duration_minutes
    for block in blocks:
        if not _block_applies(block, day, barber_id):
            continue
        if block.is_full_day:
            return block
        if block.start_time is None or block.end_time is None:
            continue
        if overlaps(start, end, minutes_of_day(block.start_time), minutes_of_day(block.end_time)):
            return block
    return None
