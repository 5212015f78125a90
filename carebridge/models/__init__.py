from .base import Base
from .facility import Facility, FacilityKind
from .reminder import (
    DeliveryAttempt,
    DeliveryChannel,
    DeliveryStatus,
    Reminder,
    ReminderAlreadySentError,
    ReminderSeverity,
    ReminderType,
)
from .patient import Patient, RiskLevel
from .medication import Medication, DoseSlot
from .transfer import PatientTransfer, TransferDirection, TransferStatus
from .audit import AuditEvent, AuditAction
from .user import User, UserRole

__all__ = [
    "Base",
    "Facility",
    "FacilityKind",
    "DeliveryAttempt",
    "DeliveryChannel",
    "DeliveryStatus",
    "Reminder",
    "ReminderAlreadySentError",
    "ReminderSeverity",
    "ReminderType",
    "Patient",
    "RiskLevel",
    "Medication",
    "DoseSlot",
    "PatientTransfer",
    "TransferDirection",
    "TransferStatus",
    "AuditEvent",
    "AuditAction",
    "User",
    "UserRole",
]
