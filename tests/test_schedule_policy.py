from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from carebridge.models.medication import DoseSlot
from carebridge.models.reminder import ReminderSeverity
from carebridge.services.schedule_policy import (
    InvalidTimeFormat,
    appointment_in_lookahead,
    appointment_severity,
    describe_time_until,
    ensure_utc,
    medication_clock_time,
    medication_dose_window,
    medication_severity,
    symptom_checkin_due,
)

NAIROBI = ZoneInfo("Africa/Nairobi")


@pytest.mark.parametrize(
    "text,expected",
    [
        ("08:00 AM", (8, 0)),
        ("12:00 PM", (12, 0)),
        ("12:30 AM", (0, 30)),
        ("07:45 PM", (19, 45)),
        ("9:05 am", (9, 5)),
    ],
)
def test_parse_twelve_hour_times(text, expected):
    assert medication_clock_time(text, DoseSlot.MORNING) == expected


@pytest.mark.parametrize("text", ["noon", "13:00 PM", "08:75 AM", "8 AM", "20:00"])
def test_unparseable_times_raise(text):
    with pytest.raises(InvalidTimeFormat):
        medication_clock_time(text, DoseSlot.MORNING)


def test_missing_time_uses_slot_default():
    assert medication_clock_time(None, DoseSlot.MORNING) == (8, 0)
    assert medication_clock_time("", "evening") == (19, 0)


def _local(year, month, day, hour, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=NAIROBI)


def test_dose_window_contains_ninety_minutes_after():
    now = _local(2026, 3, 1, 9, 30)
    window = medication_dose_window((8, 0), now, NAIROBI, 2)
    assert window is not None
    assert window.starts_at == _local(2026, 3, 1, 8, 0).astimezone(timezone.utc)
    assert window.dose_date.isoformat() == "2026-03-01"


def test_dose_window_closed_after_two_hours():
    now = _local(2026, 3, 1, 10, 30)
    assert medication_dose_window((8, 0), now, NAIROBI, 2) is None


def test_dose_window_not_open_before_dose():
    now = _local(2026, 3, 1, 7, 59)
    assert medication_dose_window((8, 0), now, NAIROBI, 2) is None


def test_late_evening_dose_spans_midnight():
    now = _local(2026, 3, 2, 0, 30)
    window = medication_dose_window((23, 30), now, NAIROBI, 2)
    assert window is not None
    assert window.dose_date.isoformat() == "2026-03-01"


def test_medication_severity_turns_urgent_after_an_hour():
    window = medication_dose_window((8, 0), _local(2026, 3, 1, 8, 30), NAIROBI, 2)
    assert medication_severity(window, _local(2026, 3, 1, 8, 30)) == ReminderSeverity.NORMAL
    assert medication_severity(window, _local(2026, 3, 1, 9, 30)) == ReminderSeverity.URGENT


def test_appointment_lookahead_bounds():
    now = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
    assert appointment_in_lookahead(now + timedelta(hours=20), now, 24)
    assert appointment_in_lookahead(now + timedelta(hours=24), now, 24)
    assert not appointment_in_lookahead(now + timedelta(hours=25), now, 24)
    assert not appointment_in_lookahead(now - timedelta(minutes=5), now, 24)


def test_appointment_severity():
    assert appointment_severity(0.5, 1) == ReminderSeverity.URGENT
    assert appointment_severity(5, 1) == ReminderSeverity.NORMAL


def test_describe_time_until():
    now = _local(2026, 3, 1, 12, 0)
    assert describe_time_until(_local(2026, 3, 1, 12, 40), now, NAIROBI) == "in less than an hour"
    assert describe_time_until(_local(2026, 3, 1, 15, 0), now, NAIROBI) == "today at 3:00 PM"
    assert describe_time_until(_local(2026, 3, 2, 8, 0), now, NAIROBI) == "tomorrow at 8:00 AM"
    assert describe_time_until(_local(2026, 3, 4, 10, 0), now, NAIROBI) == "on Wednesday 04 March at 10:00 AM"


def test_naive_datetimes_are_treated_as_utc():
    naive = datetime(2026, 3, 1, 9, 0)
    assert ensure_utc(naive) == datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def test_symptom_checkin_due():
    now = datetime(2026, 3, 8, 9, 0, tzinfo=timezone.utc)
    last = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
    assert symptom_checkin_due(last, None, now, 7) == last
    assert symptom_checkin_due(now - timedelta(days=2), None, now, 7) is None
    assert symptom_checkin_due(None, last, now, 7) == last
    assert symptom_checkin_due(None, None, now, 7) is None
