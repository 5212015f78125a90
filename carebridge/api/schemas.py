from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..models.medication import DoseSlot
from ..models.patient import RiskLevel
from ..models.reminder import DeliveryChannel, ReminderSeverity, ReminderType
from ..models.transfer import TransferStatus


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


class RecordModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class ReminderOut(RecordModel):
    id: UUID
    patient_id: UUID
    patient_name: str
    phone: str
    channel: DeliveryChannel
    type: ReminderType
    severity: ReminderSeverity
    message: str
    scheduled_for: datetime
    sent: bool
    sent_at: Optional[datetime] = None


class TransferOut(RecordModel):
    id: UUID
    patient_id: UUID
    patient_name: str
    patient_phone: str
    from_facility_id: UUID
    from_facility_name: str
    to_facility_id: UUID
    to_facility_name: str
    reason: str
    status: TransferStatus
    requested_by: Optional[str] = None
    created_at: datetime
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejection_reason: Optional[str] = None


class MedicationOut(RecordModel):
    id: UUID
    name: str
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    time: Optional[str] = None
    instructions: Optional[str] = None
    type: DoseSlot
    adherence_rate: Optional[float] = None
    taken: bool


class PatientOut(RecordModel):
    id: UUID
    name: str
    age: Optional[int] = None
    gestational_weeks: Optional[int] = None
    location: Optional[str] = None
    phone: str
    facility_id: Optional[UUID] = None
    risk_status: RiskLevel
    next_appointment: Optional[datetime] = None
    last_check_in: Optional[datetime] = None
    preferred_channel: Optional[DeliveryChannel] = None
    medications: list[MedicationOut] = Field(default_factory=list)


class PatientLookupOut(RecordModel):
    exists: bool
    patient_id: Optional[UUID] = None
    patient_name: Optional[str] = None
    facility_id: Optional[UUID] = None
    facility_name: Optional[str] = None


class MedicationPayload(StrictModel):
    name: str
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    time: Optional[str] = None
    instructions: Optional[str] = None
    type: DoseSlot = DoseSlot.MORNING
    adherence_rate: Optional[float] = None
    taken: bool = False


class EnrollmentRequest(StrictModel):
    name: str
    phone: str
    facility_id: UUID
    age: Optional[int] = None
    gestational_weeks: Optional[int] = None
    location: Optional[str] = None
    risk_status: RiskLevel = RiskLevel.LOW
    next_appointment: Optional[datetime] = None
    preferred_channel: Optional[DeliveryChannel] = None
    medications: Optional[list[MedicationPayload]] = None
    transfer_reason: Optional[str] = None

    @field_validator("name", "phone")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()


class EnrollmentResponse(RecordModel):
    outcome: str
    patient: Optional[PatientOut] = None
    transfer: Optional[TransferOut] = None
    credentials_delivery: dict[str, bool] = Field(default_factory=dict)


class TransferCreateRequest(StrictModel):
    patient_id: UUID
    to_facility_id: UUID
    reason: str


class RejectTransferRequest(StrictModel):
    reason: str


class DispatchSummaryOut(RecordModel):
    processed: int
    sent: int
    failed: int
