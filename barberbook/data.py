# barberbook/data.py

WEEKDAY_KEYS = (
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
)

ACTIVE_STATUSES = ("scheduled", "confirmed")

# scheduled -> confirmed/cancelled, confirmed -> completed/cancelled
STATUS_TRANSITIONS = {
    "scheduled": {"confirmed", "cancelled"},
    "confirmed": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}
