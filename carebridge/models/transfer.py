import enum
from sqlalchemy import DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import mapped_column
from .base import Base, UUIDMixin, TimestampMixin, enum_values


class TransferStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TransferDirection(str, enum.Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"


class PatientTransfer(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "patient_transfers"

    patient_id = mapped_column(ForeignKey("patients.id"), nullable=False, index=True)
    patient_name = mapped_column(String(128), nullable=False)
    patient_phone = mapped_column(String(20), nullable=False)

    from_facility_id = mapped_column(ForeignKey("facilities.id"), nullable=False, index=True)
    from_facility_name = mapped_column(String(128), nullable=False)
    to_facility_id = mapped_column(ForeignKey("facilities.id"), nullable=False, index=True)
    to_facility_name = mapped_column(String(128), nullable=False)

    reason = mapped_column(Text, nullable=False)
    status = mapped_column(
        Enum(TransferStatus, name="transferstatus", values_callable=enum_values),
        default=TransferStatus.PENDING,
        nullable=False,
    )
    requested_by = mapped_column(String(64), nullable=True)

    approved_at = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by = mapped_column(String(64), nullable=True)
    rejected_at = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by = mapped_column(String(64), nullable=True)
    rejection_reason = mapped_column(Text, nullable=True)

    def direction_for(self, facility_id) -> TransferDirection:
        if self.to_facility_id == facility_id:
            return TransferDirection.INCOMING
        return TransferDirection.OUTGOING
