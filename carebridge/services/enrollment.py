from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..adapters.base import MessageTransport
from ..auth import issue_initial_credentials
from ..config import get_settings
from ..models.audit import AuditAction
from ..models.facility import Facility
from ..models.medication import DoseSlot, Medication
from ..models.patient import Patient, RiskLevel
from ..models.reminder import DeliveryChannel
from ..models.transfer import PatientTransfer
from .audit_logger import record_event
from .dispatcher import default_transports
from .identity_registry import IdentityRegistry
from .transfer_workflow import TransferWorkflow

logger = logging.getLogger(__name__)

CREDENTIALS_MESSAGE = (
    "Hello {first_name}! Welcome to CareBridge.\n\n"
    "YOUR ACCOUNT:\nNumber: {phone}\nPIN: {pin}\n\n"
    "Sign in here: {portal_url}"
)


class EnrollmentOutcome(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    TRANSFER_REQUESTED = "transfer_requested"


@dataclass
class MedicationDetails:
    name: str
    dosage: str | None = None
    frequency: str | None = None
    time: str | None = None
    instructions: str | None = None
    type: DoseSlot = DoseSlot.MORNING
    adherence_rate: float | None = None
    taken: bool = False


@dataclass
class PatientDetails:
    name: str
    phone: str
    age: int | None = None
    gestational_weeks: int | None = None
    location: str | None = None
    risk_status: RiskLevel = RiskLevel.LOW
    next_appointment: datetime | None = None
    preferred_channel: DeliveryChannel | None = None
    medications: list[MedicationDetails] | None = None


@dataclass
class EnrollmentResult:
    outcome: EnrollmentOutcome
    patient: Patient
    transfer: PatientTransfer | None = None
    credentials_delivery: dict[str, bool] = field(default_factory=dict)


class EnrollmentService:
    """Creates or updates a patient at a facility without ever duplicating a phone binding."""

    def __init__(
        self,
        db: Session,
        transports: Mapping[DeliveryChannel, MessageTransport] | None = None,
    ):
        self.db = db
        self.registry = IdentityRegistry(db)
        self.transports = transports
        self.settings = get_settings()

    def enroll(
        self,
        details: PatientDetails,
        facility_id: UUID,
        *,
        actor: str = "SYSTEM",
        transfer_reason: str | None = None,
    ) -> EnrollmentResult:
        return self._enroll(details, facility_id, actor, transfer_reason, retry=True)

    def _enroll(
        self,
        details: PatientDetails,
        facility_id: UUID,
        actor: str,
        transfer_reason: str | None,
        *,
        retry: bool,
    ) -> EnrollmentResult:
        facility = self.db.get(Facility, facility_id)
        if facility is None:
            raise ValueError("Facility not found")

        lookup = self.registry.find_patient_by_phone(details.phone)
        if lookup.bound_elsewhere(facility_id):
            reason = transfer_reason or f"Enrollment requested at {facility.name}"
            transfer = TransferWorkflow(self.db).request_transfer(
                lookup.patient_id, facility_id, reason, requested_by=actor
            )
            logger.info(
                "Patient %s belongs to facility %s; transfer %s opened",
                lookup.patient_id,
                lookup.facility_id,
                transfer.id,
            )
            return EnrollmentResult(
                outcome=EnrollmentOutcome.TRANSFER_REQUESTED,
                patient=self.db.get(Patient, lookup.patient_id),
                transfer=transfer,
            )

        if lookup.exists:
            patient = self.db.get(Patient, lookup.patient_id)
            outcome = EnrollmentOutcome.UPDATED
        else:
            patient = Patient(phone=details.phone)
            outcome = EnrollmentOutcome.CREATED

        self._apply_details(patient, details)
        if patient.facility_id is None:
            patient.facility_id = facility_id
        if details.medications is not None:
            self._sync_medications(patient, details.medications)
        self.db.add(patient)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            if outcome != EnrollmentOutcome.CREATED or not retry:
                raise
            # Another request bound this phone after our lookup
            logger.warning("Phone already enrolled concurrently; repeating lookup")
            return self._enroll(details, facility_id, actor, transfer_reason, retry=False)

        pin = None
        if outcome == EnrollmentOutcome.CREATED:
            pin = issue_initial_credentials(self.db, patient)
            record_event(
                self.db,
                AuditAction.CREDENTIALS_ISSUED,
                "Patient",
                str(patient.id),
                actor=actor,
            )

        record_event(
            self.db,
            AuditAction.PATIENT_ENROLLED,
            "Patient",
            str(patient.id),
            {"outcome": outcome.value, "facility_id": str(facility_id)},
            actor=actor,
        )
        self.db.commit()

        result = EnrollmentResult(outcome=outcome, patient=patient)
        if pin and self.settings.SEND_ENROLLMENT_CREDENTIALS:
            result.credentials_delivery = self.send_credentials(patient, pin)
        return result

    def send_credentials(self, patient: Patient, pin: str) -> dict[str, bool]:
        transports = self.transports if self.transports is not None else default_transports()
        message = CREDENTIALS_MESSAGE.format(
            first_name=patient.first_name,
            phone=patient.phone,
            pin=pin,
            portal_url=self.settings.PORTAL_URL,
        )
        delivery: dict[str, bool] = {}
        for channel in (DeliveryChannel.SMS, DeliveryChannel.WHATSAPP):
            transport = transports.get(channel)
            if transport is None:
                continue
            delivery[channel.value] = transport.send(patient.phone, message).success
        if not any(delivery.values()):
            logger.warning("Credentials for patient %s could not be delivered", patient.id)
        return delivery

    def _apply_details(self, patient: Patient, details: PatientDetails) -> None:
        patient.name = details.name
        patient.age = details.age
        patient.gestational_weeks = details.gestational_weeks
        patient.location = details.location
        patient.risk_status = details.risk_status
        patient.next_appointment = details.next_appointment
        if details.preferred_channel is not None:
            patient.preferred_channel = details.preferred_channel

    def _sync_medications(self, patient: Patient, medications: list[MedicationDetails]) -> None:
        # Match by name so existing medication ids (and their reminder keys) survive re-enrollment
        existing = {med.name.strip().lower(): med for med in patient.medications}
        kept: list[Medication] = []
        for details in medications:
            med = existing.pop(details.name.strip().lower(), None) or Medication(name=details.name)
            med.name = details.name
            med.dosage = details.dosage
            med.frequency = details.frequency
            med.time = details.time
            med.instructions = details.instructions
            med.type = DoseSlot(details.type)
            med.adherence_rate = details.adherence_rate
            med.taken = details.taken
            kept.append(med)
        patient.medications = kept
