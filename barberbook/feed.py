# barberbook/feed.py

import logging
import queue
from dataclasses import dataclass
from typing import Literal, Optional

from .schemas import AppointmentRecord

logger = logging.getLogger(__name__)

ChangeKind = Literal["insert", "update", "delete"]


@dataclass(frozen=True)
class ChangeEvent:
    kind: ChangeKind
    barbershop_id: int
    record: AppointmentRecord
    # row as it was before a reschedule moved it to another barber or date
    previous: Optional[AppointmentRecord] = None


class ChangeFeed:
    """Channel of appointment changes. Writers publish, snapshot stores drain."""

    def __init__(self) -> None:
        self._queue: "queue.Queue[ChangeEvent]" = queue.Queue()

    def publish(self, event: ChangeEvent) -> None:
        self._queue.put(event)
        logger.debug(
            "Appointment change published",
            extra={"appointment_id": event.record.id, "reason": event.kind},
        )

    def drain(self) -> list[ChangeEvent]:
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def __len__(self) -> int:
        return self._queue.qsize()
