"""When reminders fire and how their timing is phrased.

Everything here is a pure function of its arguments so that the generator can
be exercised against any ``now``. Datetimes are compared in UTC; clock times
written by clinic staff ("08:00 AM") are interpreted in the clinic timezone.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from ..models.medication import DoseSlot
from ..models.reminder import ReminderSeverity

_TWELVE_HOUR_RE = re.compile(r"(\d{1,2}):(\d{2})\s*([AaPp][Mm])")

SLOT_DEFAULT_TIMES = {
    DoseSlot.MORNING: (8, 0),
    DoseSlot.AFTERNOON: (14, 0),
    DoseSlot.EVENING: (19, 0),
}


class InvalidTimeFormat(ValueError):
    pass


@dataclass(frozen=True)
class DoseWindow:
    dose_date: date
    starts_at: datetime
    ends_at: datetime

    def contains(self, moment: datetime) -> bool:
        return self.starts_at <= moment < self.ends_at


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite drops tzinfo) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_medication_time(value: str) -> tuple[int, int]:
    """Parse ``"H:MM AM"``/``"HH:MM PM"`` into a 24-hour ``(hour, minute)``."""
    match = _TWELVE_HOUR_RE.fullmatch((value or "").strip())
    if not match:
        raise InvalidTimeFormat(f"Unrecognised medication time: {value!r}")
    hour = int(match.group(1))
    minute = int(match.group(2))
    period = match.group(3).upper()
    if not 1 <= hour <= 12 or minute > 59:
        raise InvalidTimeFormat(f"Medication time out of range: {value!r}")
    if period == "PM" and hour != 12:
        hour += 12
    if period == "AM" and hour == 12:
        hour = 0
    return hour, minute


def medication_clock_time(time_text: str | None, slot: DoseSlot | str | None) -> tuple[int, int]:
    """Clock time for a dose; the slot default applies only when no time was entered."""
    if time_text and time_text.strip():
        return parse_medication_time(time_text)
    if isinstance(slot, str):
        slot = DoseSlot(slot)
    return SLOT_DEFAULT_TIMES.get(slot, (9, 0))


def medication_dose_window(
    clock: tuple[int, int],
    now: datetime,
    tz: ZoneInfo,
    window_hours: int,
) -> DoseWindow | None:
    """The dose window ``[dose, dose + window_hours)`` containing ``now``, if any.

    Today's and yesterday's dose are both considered so that a late-evening
    dose still fires shortly after local midnight.
    """
    now_utc = ensure_utc(now)
    local_today = now_utc.astimezone(tz).date()
    hour, minute = clock
    for dose_date in (local_today, local_today - timedelta(days=1)):
        starts_at = datetime.combine(dose_date, time(hour, minute), tzinfo=tz).astimezone(
            timezone.utc
        )
        window = DoseWindow(
            dose_date=dose_date,
            starts_at=starts_at,
            ends_at=starts_at + timedelta(hours=window_hours),
        )
        if window.contains(now_utc):
            return window
    return None


def appointment_in_lookahead(appointment: datetime, now: datetime, lookahead_hours: int) -> bool:
    remaining = ensure_utc(appointment) - ensure_utc(now)
    return timedelta(0) <= remaining <= timedelta(hours=lookahead_hours)


def hours_until(moment: datetime, now: datetime) -> float:
    return (ensure_utc(moment) - ensure_utc(now)).total_seconds() / 3600


def appointment_severity(hours: float, urgent_threshold_hours: int) -> ReminderSeverity:
    if hours <= urgent_threshold_hours:
        return ReminderSeverity.URGENT
    return ReminderSeverity.NORMAL


def medication_severity(window: DoseWindow, now: datetime) -> ReminderSeverity:
    # More than an hour late on the dose
    if ensure_utc(now) - window.starts_at > timedelta(hours=1):
        return ReminderSeverity.URGENT
    return ReminderSeverity.NORMAL


def format_clock(moment: datetime) -> str:
    text = moment.strftime("%I:%M %p")
    return text[1:] if text.startswith("0") else text


def describe_time_until(
    appointment: datetime,
    now: datetime,
    tz: ZoneInfo,
    urgent_threshold_hours: int = 1,
) -> str:
    """Human phrasing: "in less than an hour", "today at 3:00 PM", "tomorrow at 9:00 AM"."""
    if hours_until(appointment, now) <= urgent_threshold_hours:
        return "in less than an hour"
    local_appt = ensure_utc(appointment).astimezone(tz)
    local_now = ensure_utc(now).astimezone(tz)
    day_gap = (local_appt.date() - local_now.date()).days
    if day_gap == 0:
        day = "today"
    elif day_gap == 1:
        day = "tomorrow"
    else:
        day = f"on {local_appt:%A %d %B}"
    return f"{day} at {format_clock(local_appt)}"


def symptom_checkin_due(
    last_check_in: datetime | None,
    enrolled_at: datetime | None,
    now: datetime,
    interval_days: int,
) -> datetime | None:
    """Reference moment of a stale check-in, or None when the patient checked in recently."""
    reference = last_check_in or enrolled_at
    if reference is None:
        return None
    reference = ensure_utc(reference)
    if ensure_utc(now) - reference >= timedelta(days=interval_days):
        return reference
    return None
