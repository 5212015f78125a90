from datetime import datetime, timedelta, timezone
import random
from faker import Faker
from sqlalchemy.orm import Session

from carebridge.auth import hash_password
from carebridge.config import get_settings
from carebridge.database import get_sessionmaker, init_db
from carebridge.models.facility import Facility, FacilityKind
from carebridge.models.medication import DoseSlot, Medication
from carebridge.models.patient import Patient, RiskLevel
from carebridge.models.reminder import DeliveryChannel
from carebridge.models.user import User, UserRole

fake = Faker()

MEDICATIONS = [
    ("Iron + Folic Acid", "60mg/400mcg", "08:00 AM", DoseSlot.MORNING),
    ("Calcium", "500mg", "01:00 PM", DoseSlot.AFTERNOON),
    ("Aspirin", "75mg", "08:00 PM", DoseSlot.EVENING),
    ("Paracetamol", "500mg", None, DoseSlot.MORNING),
]

TOWNS = ["Nairobi", "Kisumu", "Nakuru", "Eldoret", "Machakos", "Thika"]


def _demo_phone() -> str:
    return "07" + fake.numerify(text="########")


def generate_demo_facilities(db: Session) -> list[Facility]:
    facilities = [
        Facility(name=f"{town} Maternal Clinic", kind=FacilityKind.CLINIC, location=town)
        for town in random.sample(TOWNS, k=3)
    ]
    facilities.append(Facility(name="Central Pharmacy", kind=FacilityKind.PHARMACY, location="Nairobi"))
    db.add_all(facilities)
    db.flush()

    for facility in facilities:
        db.add(
            User(
                username=f"{facility.kind.value}-{facility.location.lower()}",
                role=facility.kind.value if facility.kind == FacilityKind.PHARMACY else UserRole.CLINIC.value,
                facility_id=facility.id,
                password_hash=hash_password("ChangeMe_123!"),
            )
        )
    return facilities


def generate_demo_patients(db: Session, facilities: list[Facility], count: int = 50) -> None:
    clinics = [f for f in facilities if f.kind == FacilityKind.CLINIC]
    now = datetime.now(timezone.utc)
    used_phones: set[str] = set()

    for _ in range(count):
        phone = _demo_phone()
        while phone in used_phones:
            phone = _demo_phone()
        used_phones.add(phone)

        clinic = random.choice(clinics)
        patient = Patient(
            name=fake.name_female(),
            age=random.randint(16, 42),
            gestational_weeks=random.randint(6, 40),
            location=clinic.location,
            phone=phone,
            facility_id=clinic.id,
            risk_status=random.choice(list(RiskLevel)),
            preferred_channel=random.choice([None, *DeliveryChannel]),
            last_check_in=now - timedelta(days=random.randint(0, 14)),
        )
        if random.random() < 0.6:
            patient.next_appointment = now + timedelta(hours=random.randint(1, 72))

        for name, dosage, time_text, slot in random.sample(MEDICATIONS, k=random.randint(1, 3)):
            patient.medications.append(
                Medication(
                    name=name,
                    dosage=dosage,
                    frequency="Once daily",
                    time=time_text,
                    type=slot,
                    adherence_rate=round(random.uniform(0.5, 1.0), 2),
                )
            )
        db.add(patient)

    db.commit()


if __name__ == "__main__":
    settings = get_settings()
    if settings.ENVIRONMENT != "dev":
        raise SystemExit("Demo data generation is only permitted with ENVIRONMENT=dev")

    init_db()
    db = get_sessionmaker()()
    try:
        facilities = generate_demo_facilities(db)
        generate_demo_patients(db, facilities, count=50)
    finally:
        db.close()

    print("Demo data generation complete")
