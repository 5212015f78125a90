from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from carebridge.models.audit import AuditAction, AuditEvent
from carebridge.models.medication import DoseSlot, Medication
from carebridge.models.reminder import DeliveryChannel, Reminder, ReminderSeverity, ReminderType
from carebridge.services.reminder_generator import ReminderGenerator
from carebridge.services.schedule_policy import ensure_utc

NAIROBI = ZoneInfo("Africa/Nairobi")


def _at(hour, minute=0, day=1):
    return datetime(2026, 3, day, hour, minute, tzinfo=NAIROBI).astimezone(timezone.utc)


def _add_medication(db_session, patient, **fields):
    fields.setdefault("name", "Iron + Folic Acid")
    med = Medication(patient_id=patient.id, **fields)
    db_session.add(med)
    db_session.commit()
    return med


def test_medication_reminder_inside_window(db_session, facilities, make_patient):
    now = _at(9, 30)
    patient = make_patient(facilities[0], last_check_in=now)
    _add_medication(db_session, patient, dosage="60mg", time="08:00 AM")

    created = ReminderGenerator(db_session).generate_daily_reminders(now=now)

    assert len(created) == 1
    reminder = created[0]
    assert reminder.type == ReminderType.MEDICATION
    assert reminder.message == "Hello Amina. Please remember to take Iron + Folic Acid (60mg) as directed."
    assert reminder.channel == DeliveryChannel.BOTH
    assert reminder.phone == patient.phone
    assert reminder.sent is False
    assert ensure_utc(reminder.scheduled_for) == _at(8, 0)
    assert reminder.severity == ReminderSeverity.URGENT


def test_medication_reminder_outside_window(db_session, facilities, make_patient):
    now = _at(10, 30)
    patient = make_patient(facilities[0], last_check_in=now)
    _add_medication(db_session, patient, time="08:00 AM")

    assert ReminderGenerator(db_session).generate_daily_reminders(now=now) == []


def test_taken_medication_is_skipped(db_session, facilities, make_patient):
    now = _at(9, 30)
    patient = make_patient(facilities[0], last_check_in=now)
    _add_medication(db_session, patient, time="08:00 AM", taken=True)

    assert ReminderGenerator(db_session).generate_daily_reminders(now=now) == []


def test_missing_time_falls_back_to_slot(db_session, facilities, make_patient):
    now = _at(19, 15)
    patient = make_patient(facilities[0], last_check_in=now)
    _add_medication(db_session, patient, time=None, type=DoseSlot.EVENING)

    created = ReminderGenerator(db_session).generate_daily_reminders(now=now)
    assert [r.type for r in created] == [ReminderType.MEDICATION]
    assert created[0].severity == ReminderSeverity.NORMAL


def test_unparseable_time_skips_only_that_medication(db_session, facilities, make_patient):
    now = _at(9, 30)
    patient = make_patient(facilities[0], last_check_in=now)
    _add_medication(db_session, patient, name="Calcium", time="noon")
    _add_medication(db_session, patient, name="Aspirin", time="09:00 AM")

    created = ReminderGenerator(db_session).generate_daily_reminders(now=now)

    assert len(created) == 1
    assert "Aspirin" in created[0].message


def test_generation_is_idempotent(db_session, facilities, make_patient):
    now = _at(12, 0)
    patient = make_patient(
        facilities[0], last_check_in=now, next_appointment=_at(8, 0, day=2)
    )
    _add_medication(db_session, patient, time="11:00 AM")

    generator = ReminderGenerator(db_session)
    first = generator.generate_daily_reminders(now=now)
    second = generator.generate_daily_reminders(now=now)
    third = generator.generate_daily_reminders(now=now + timedelta(minutes=15))

    assert len(first) == 2
    assert second == []
    assert third == []
    assert db_session.query(Reminder).count() == 2


def test_appointment_reminder_phrasing(db_session, facilities, make_patient):
    now = _at(12, 0)
    make_patient(facilities[0], last_check_in=now, next_appointment=now + timedelta(hours=20))

    created = ReminderGenerator(db_session).generate_daily_reminders(now=now)

    assert len(created) == 1
    reminder = created[0]
    assert reminder.type == ReminderType.APPOINTMENT
    assert "tomorrow at 8:00 AM" in reminder.message
    assert reminder.severity == ReminderSeverity.NORMAL
    assert ensure_utc(reminder.scheduled_for) == now


def test_imminent_appointment_is_urgent(db_session, facilities, make_patient):
    now = _at(12, 0)
    make_patient(facilities[0], last_check_in=now, next_appointment=now + timedelta(minutes=40))

    created = ReminderGenerator(db_session).generate_daily_reminders(now=now)

    assert created[0].severity == ReminderSeverity.URGENT
    assert "in less than an hour" in created[0].message


def test_distant_appointment_not_reminded(db_session, facilities, make_patient):
    now = _at(12, 0)
    make_patient(facilities[0], last_check_in=now, next_appointment=now + timedelta(days=3))

    assert ReminderGenerator(db_session).generate_daily_reminders(now=now) == []


def test_moved_appointment_gets_a_new_reminder(db_session, facilities, make_patient):
    now = _at(12, 0)
    patient = make_patient(facilities[0], last_check_in=now, next_appointment=now + timedelta(hours=3))
    generator = ReminderGenerator(db_session)
    assert len(generator.generate_daily_reminders(now=now)) == 1

    patient.next_appointment = now + timedelta(hours=5)
    db_session.commit()

    assert len(generator.generate_daily_reminders(now=now)) == 1
    assert db_session.query(Reminder).count() == 2


def test_stale_check_in_creates_symptom_checkin(db_session, facilities, make_patient):
    now = _at(12, 0)
    make_patient(facilities[0], last_check_in=now - timedelta(days=8))

    generator = ReminderGenerator(db_session)
    created = generator.generate_daily_reminders(now=now)
    again = generator.generate_daily_reminders(now=now + timedelta(hours=6))

    assert [r.type for r in created] == [ReminderType.SYMPTOM_CHECKIN]
    assert created[0].message.startswith("Hello Amina.")
    assert "call your clinic" in created[0].message
    assert "reply" not in created[0].message.lower()
    assert again == []


def test_reminder_creation_is_audited(db_session, facilities, make_patient):
    now = _at(9, 30)
    patient = make_patient(facilities[0], last_check_in=now)
    _add_medication(db_session, patient, time="08:00 AM")

    created = ReminderGenerator(db_session).generate_daily_reminders(now=now)

    events = db_session.query(AuditEvent).filter(AuditEvent.action == AuditAction.REMINDER_CREATED).all()
    assert [e.entity_id for e in events] == [str(created[0].id)]
