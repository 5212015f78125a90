from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from carebridge.models.patient import Patient
from carebridge.models.reminder import DeliveryChannel, ReminderType
from carebridge.models.transfer import PatientTransfer, TransferStatus
from carebridge.services.care_service import CareService
from carebridge.services.dispatcher import ReminderDispatcher
from carebridge.services.enrollment import EnrollmentOutcome, EnrollmentService, PatientDetails


def test_appointment_reminder_from_generation_to_delivery(
    db_session, facilities, make_patient, fake_transports
):
    now = datetime(2026, 3, 1, 12, 0, tzinfo=ZoneInfo("Africa/Nairobi")).astimezone(timezone.utc)
    patient = make_patient(
        facilities[0], name="Wanjiru Kamau", last_check_in=now, next_appointment=now + timedelta(hours=20)
    )
    service = CareService(db_session)

    created = service.generate_daily_reminders(now=now)
    assert [r.type for r in created] == [ReminderType.APPOINTMENT]
    assert "tomorrow at 8:00 AM" in created[0].message
    assert [r.id for r in service.get_pending_reminders(now=now)] == [created[0].id]

    fake_transports[DeliveryChannel.SMS].default = False
    dispatcher = ReminderDispatcher(db_session, fake_transports, send_delay=0, clock=lambda: now)
    summary = service.process_pending_reminders(dispatcher)

    reminder = created[0]
    db_session.refresh(reminder)
    assert summary.sent == 1
    assert reminder.sent is True
    assert reminder.sent_at is not None
    assert fake_transports[DeliveryChannel.WHATSAPP].calls == [(patient.phone, reminder.message)]
    assert service.get_pending_reminders(now=now) == []
    assert service.generate_daily_reminders(now=now) == []


def test_enrollment_at_second_facility_becomes_transfer(db_session, facilities, make_patient):
    clinic_a, clinic_b = facilities
    existing = make_patient(clinic_a, phone="+254712345678")
    service = CareService(db_session)

    lookup = service.find_patient_by_phone("0712345678")
    assert lookup.exists is True
    assert lookup.facility_id == clinic_a.id

    result = EnrollmentService(db_session).enroll(
        PatientDetails(name="Amina Otieno", phone="254 712 345 678"), clinic_b.id
    )

    assert result.outcome == EnrollmentOutcome.TRANSFER_REQUESTED
    transfers = service.get_transfers(clinic_b.id, status=TransferStatus.PENDING, direction="incoming")
    assert [t.id for t in transfers] == [result.transfer.id]
    assert transfers[0].from_facility_id == clinic_a.id
    assert transfers[0].to_facility_id == clinic_b.id
    assert db_session.query(Patient).count() == 1
    assert db_session.query(PatientTransfer).count() == 1
    db_session.refresh(existing)
    assert existing.facility_id == clinic_a.id
