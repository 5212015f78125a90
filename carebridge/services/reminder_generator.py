from __future__ import annotations

import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session, selectinload

from ..config import get_settings
from ..database import get_sessionmaker
from ..models.audit import AuditAction
from ..models.medication import Medication
from ..models.patient import Patient
from ..models.reminder import DeliveryChannel, Reminder, ReminderSeverity, ReminderType
from .audit_logger import record_event
from .reminder_store import ReminderStore
from .schedule_policy import (
    InvalidTimeFormat,
    appointment_in_lookahead,
    appointment_severity,
    describe_time_until,
    ensure_utc,
    hours_until,
    medication_clock_time,
    medication_dose_window,
    medication_severity,
    symptom_checkin_due,
)

logger = logging.getLogger(__name__)

APPOINTMENT_MESSAGE = (
    "Hello {first_name}. This is a reminder of your ANC visit {when}. "
    "Please come to the clinic as scheduled."
)
MEDICATION_MESSAGE = "Hello {first_name}. Please remember to take {medication} as directed."
SYMPTOM_CHECKIN_MESSAGE = (
    "Hello {first_name}. How are you feeling today? "
    "If you have any new symptoms, please call your clinic or visit them."
)


def appointment_key(patient: Patient) -> str:
    return f"appointment:{patient.id}:{ensure_utc(patient.next_appointment):%Y%m%dT%H%M}"


def medication_key(medication: Medication, dose_date) -> str:
    return f"medication:{medication.id}:{dose_date.isoformat()}"


def symptom_checkin_key(patient: Patient, reference: datetime) -> str:
    return f"symptom_checkin:{patient.id}:{reference:%Y%m%dT%H%M}"


class ReminderGenerator:
    """Materialises due reminders from patient state.

    Each candidate carries a dedupe key derived from its clinical trigger, and
    a candidate is written only if no reminder with that key exists yet, so
    repeated passes over unchanged state write nothing.
    """

    def __init__(self, db: Session | None = None):
        self._external_db = db
        settings = get_settings()
        self.lookahead_hours = settings.APPOINTMENT_LOOKAHEAD_HOURS
        self.window_hours = settings.MEDICATION_WINDOW_HOURS
        self.urgent_threshold_hours = settings.URGENT_THRESHOLD_HOURS
        self.checkin_interval_days = settings.SYMPTOM_CHECKIN_INTERVAL_DAYS
        self.tz = ZoneInfo(settings.CLINIC_TIMEZONE)
        self.default_channel = DeliveryChannel(settings.REMINDER_DEFAULT_CHANNEL)

    def _get_db(self) -> Session:
        if self._external_db is not None:
            return self._external_db
        SessionLocal = get_sessionmaker()
        return SessionLocal()

    def generate_daily_reminders(
        self,
        now: datetime | None = None,
        actor: str = "SYSTEM",
    ) -> list[Reminder]:
        now = ensure_utc(now or datetime.now(timezone.utc))
        db = self._get_db()
        store = ReminderStore(db)
        created: list[Reminder] = []
        try:
            patients = (
                db.query(Patient)
                .options(selectinload(Patient.medications))
                .order_by(Patient.created_at.asc())
                .all()
            )
            for patient in patients:
                try:
                    candidates = self.reminders_for_patient(patient, now)
                except ValueError as exc:
                    logger.warning("Skipping reminders for patient %s: %s", patient.id, exc)
                    continue
                for reminder in candidates:
                    if store.exists(reminder.dedupe_key):
                        continue
                    store.add(reminder)
                    created.append(reminder)
                    record_event(
                        db,
                        AuditAction.REMINDER_CREATED,
                        "Reminder",
                        str(reminder.id),
                        {"type": reminder.type.value, "dedupe_key": reminder.dedupe_key},
                        actor=actor,
                    )
            if created:
                db.commit()
            logger.info("Generated %s reminder(s) for %s patient(s)", len(created), len(patients))
            return created
        finally:
            if self._external_db is None:
                db.close()

    def reminders_for_patient(self, patient: Patient, now: datetime) -> list[Reminder]:
        reminders: list[Reminder] = []
        appointment = self._appointment_reminder(patient, now)
        if appointment is not None:
            reminders.append(appointment)
        for medication in patient.medications or []:
            try:
                reminder = self._medication_reminder(patient, medication, now)
            except InvalidTimeFormat as exc:
                logger.warning("Skipping medication %s: %s", medication.id, exc)
                continue
            if reminder is not None:
                reminders.append(reminder)
        checkin = self._symptom_checkin_reminder(patient, now)
        if checkin is not None:
            reminders.append(checkin)
        return reminders

    def _appointment_reminder(self, patient: Patient, now: datetime) -> Reminder | None:
        if not patient.next_appointment:
            return None
        if not appointment_in_lookahead(patient.next_appointment, now, self.lookahead_hours):
            return None
        hours = hours_until(patient.next_appointment, now)
        when = describe_time_until(
            patient.next_appointment, now, self.tz, self.urgent_threshold_hours
        )
        return self._build(
            patient,
            ReminderType.APPOINTMENT,
            APPOINTMENT_MESSAGE.format(first_name=patient.first_name, when=when),
            scheduled_for=now,
            severity=appointment_severity(hours, self.urgent_threshold_hours),
            dedupe_key=appointment_key(patient),
        )

    def _medication_reminder(
        self, patient: Patient, medication: Medication, now: datetime
    ) -> Reminder | None:
        if medication.taken:
            return None
        clock = medication_clock_time(medication.time, medication.type)
        window = medication_dose_window(clock, now, self.tz, self.window_hours)
        if window is None:
            return None
        label = medication.name
        if medication.dosage:
            label = f"{medication.name} ({medication.dosage})"
        return self._build(
            patient,
            ReminderType.MEDICATION,
            MEDICATION_MESSAGE.format(first_name=patient.first_name, medication=label),
            scheduled_for=window.starts_at,
            severity=medication_severity(window, now),
            dedupe_key=medication_key(medication, window.dose_date),
        )

    def _symptom_checkin_reminder(self, patient: Patient, now: datetime) -> Reminder | None:
        if self.checkin_interval_days <= 0:
            return None
        reference = symptom_checkin_due(
            patient.last_check_in, patient.created_at, now, self.checkin_interval_days
        )
        if reference is None:
            return None
        return self._build(
            patient,
            ReminderType.SYMPTOM_CHECKIN,
            SYMPTOM_CHECKIN_MESSAGE.format(first_name=patient.first_name),
            scheduled_for=now,
            severity=ReminderSeverity.NORMAL,
            dedupe_key=symptom_checkin_key(patient, reference),
        )

    def _build(
        self,
        patient: Patient,
        reminder_type: ReminderType,
        message: str,
        *,
        scheduled_for: datetime,
        severity: ReminderSeverity,
        dedupe_key: str,
    ) -> Reminder:
        return Reminder(
            patient_id=patient.id,
            patient_name=patient.name,
            phone=patient.phone,
            channel=self.default_channel,
            type=reminder_type,
            severity=severity,
            message=message,
            scheduled_for=scheduled_for,
            sent=False,
            dedupe_key=dedupe_key,
        )
