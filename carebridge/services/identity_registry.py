from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from ..models.facility import Facility
from ..models.patient import Patient
from .phone import normalize_phone

UNKNOWN_FACILITY = "Unknown Facility"


@dataclass(frozen=True)
class PatientLookup:
    exists: bool
    patient_id: UUID | None = None
    patient_name: str | None = None
    facility_id: UUID | None = None
    facility_name: str | None = None

    def bound_elsewhere(self, facility_id: UUID) -> bool:
        return self.exists and self.facility_id is not None and self.facility_id != facility_id


class IdentityRegistry:
    """Binding of a normalized phone number to the facility that owns the patient."""

    def __init__(self, db: Session):
        self.db = db

    def get_patient(self, phone: str) -> Patient | None:
        normalized = normalize_phone(phone)
        if not normalized:
            return None
        return self.db.query(Patient).filter(Patient.phone == normalized).first()

    def find_patient_by_phone(self, phone: str) -> PatientLookup:
        patient = self.get_patient(phone)
        if patient is None:
            return PatientLookup(exists=False)
        facility_name = UNKNOWN_FACILITY
        if patient.facility_id is not None:
            facility = self.db.get(Facility, patient.facility_id)
            if facility is not None:
                facility_name = facility.name
        return PatientLookup(
            exists=True,
            patient_id=patient.id,
            patient_name=patient.name,
            facility_id=patient.facility_id,
            facility_name=facility_name,
        )

    def rebind(self, patient: Patient, facility_id: UUID) -> Patient:
        """Move the binding; the caller owns the transaction."""
        patient.facility_id = facility_id
        self.db.add(patient)
        return patient
