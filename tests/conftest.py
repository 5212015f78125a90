import os
from datetime import datetime, timezone
from uuid import uuid4

import pytest

# Ensure critical env vars are set before carebridge imports
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("AUTH_MODE", "dev_stub")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("REMINDER_SEND_DELAY_SECONDS", "0")
os.environ.setdefault("CLINIC_TIMEZONE", "Africa/Nairobi")
os.environ.setdefault("LOG_JSON", "false")
os.environ["WHATSAPP_ACCESS_TOKEN"] = ""
os.environ["SMS_API_KEY"] = ""

from carebridge.adapters.base import SendResult  # noqa: E402


@pytest.fixture
def db_session(tmp_path, monkeypatch):
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")

    from carebridge.config import get_settings
    from carebridge.database import reset_engine, get_engine, get_sessionmaker
    from carebridge import models  # noqa: F401
    from carebridge.models.base import Base

    get_settings.cache_clear()
    reset_engine()
    engine = get_engine()
    Base.metadata.create_all(bind=engine)

    SessionLocal = get_sessionmaker()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        reset_engine()
        get_settings.cache_clear()


@pytest.fixture
def facilities(db_session):
    from carebridge.models.facility import Facility, FacilityKind

    clinic_a = Facility(name="Kisumu Maternal Clinic", kind=FacilityKind.CLINIC, location="Kisumu")
    clinic_b = Facility(name="Nakuru Maternal Clinic", kind=FacilityKind.CLINIC, location="Nakuru")
    db_session.add_all([clinic_a, clinic_b])
    db_session.commit()
    return clinic_a, clinic_b


@pytest.fixture
def staff(db_session, facilities):
    from carebridge.auth import hash_password
    from carebridge.models.user import User, UserRole

    clinic_a, clinic_b = facilities
    staff_a = User(
        username="nurse-a",
        role=UserRole.CLINIC.value,
        facility_id=clinic_a.id,
        password_hash=hash_password("secret-a"),
        force_password_change=False,
    )
    staff_b = User(
        username="nurse-b",
        role=UserRole.CLINIC.value,
        facility_id=clinic_b.id,
        password_hash=hash_password("secret-b"),
        force_password_change=False,
    )
    db_session.add_all([staff_a, staff_b])
    db_session.commit()
    return staff_a, staff_b


@pytest.fixture
def make_patient(db_session):
    from carebridge.models.patient import Patient

    def _make(facility, phone=None, name="Amina Otieno", **fields):
        fields.setdefault("last_check_in", datetime.now(timezone.utc))
        patient = Patient(
            id=uuid4(),
            name=name,
            phone=phone or f"07{uuid4().int % 10**8:08d}",
            facility_id=facility.id if facility is not None else None,
            **fields,
        )
        db_session.add(patient)
        db_session.commit()
        return patient

    return _make


class FakeTransport:
    """Records every send and answers from a scripted list of outcomes."""

    def __init__(self, channel_name, outcomes=None, default=True):
        self.channel_name = channel_name
        self.outcomes = list(outcomes or [])
        self.default = default
        self.calls = []

    def send(self, phone, message):
        self.calls.append((phone, message))
        outcome = self.outcomes.pop(0) if self.outcomes else self.default
        if isinstance(outcome, Exception):
            raise outcome
        if outcome:
            return SendResult(True, provider_message_id=f"{self.channel_name}-{len(self.calls)}")
        return SendResult(False, error="provider_error")


@pytest.fixture
def fake_transports():
    from carebridge.models.reminder import DeliveryChannel

    return {
        DeliveryChannel.WHATSAPP: FakeTransport("whatsapp"),
        DeliveryChannel.SMS: FakeTransport("sms"),
    }


@pytest.fixture
def transport_factory():
    return FakeTransport
