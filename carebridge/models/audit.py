import enum
from sqlalchemy import DateTime, Enum, String, JSON
from sqlalchemy.orm import mapped_column
from .base import Base, UUIDMixin


class AuditAction(str, enum.Enum):
    VIEW = "VIEW"
    UPDATE = "UPDATE"
    PATIENT_ENROLLED = "PATIENT_ENROLLED"
    CREDENTIALS_ISSUED = "CREDENTIALS_ISSUED"
    REMINDER_CREATED = "REMINDER_CREATED"
    REMINDER_SENT = "REMINDER_SENT"
    TRANSFER_REQUESTED = "TRANSFER_REQUESTED"
    TRANSFER_APPROVED = "TRANSFER_APPROVED"
    TRANSFER_REJECTED = "TRANSFER_REJECTED"


class AuditEvent(Base, UUIDMixin):
    __tablename__ = "audit_events"

    actor = mapped_column(String(64), nullable=False)
    action = mapped_column(Enum(AuditAction), nullable=False)
    entity_type = mapped_column(String(64), nullable=False)
    entity_id = mapped_column(String(64), nullable=False)
    request_id = mapped_column(String(64), nullable=False)
    ip_address = mapped_column(String(64), nullable=False)
    details = mapped_column(JSON, nullable=True)
    timestamp = mapped_column(DateTime(timezone=True), nullable=False)
