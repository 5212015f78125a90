import enum
from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String, Text, inspect
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import mapped_column, relationship, validates
from .base import Base, UUIDMixin, TimestampMixin, enum_values


class DeliveryChannel(str, enum.Enum):
    WHATSAPP = "whatsapp"
    SMS = "sms"
    BOTH = "both"


class ReminderType(str, enum.Enum):
    APPOINTMENT = "appointment"
    MEDICATION = "medication"
    SYMPTOM_CHECKIN = "symptom_checkin"


class ReminderSeverity(str, enum.Enum):
    NORMAL = "normal"
    URGENT = "urgent"


class DeliveryStatus(str, enum.Enum):
    SENT = "sent"
    FAILED = "failed"


class ReminderAlreadySentError(ValueError):
    pass


class Reminder(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "reminders"

    # Target info is copied from the patient so delivery does not depend on it.
    patient_id = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    patient_name = mapped_column(String(128), nullable=False)
    phone = mapped_column(String(20), nullable=False)
    channel = mapped_column(
        Enum(DeliveryChannel, name="deliverychannel", values_callable=enum_values),
        nullable=False,
    )
    type = mapped_column(
        Enum(ReminderType, name="remindertype", values_callable=enum_values),
        nullable=False,
    )
    severity = mapped_column(
        Enum(ReminderSeverity, name="reminderseverity", values_callable=enum_values),
        default=ReminderSeverity.NORMAL,
        nullable=False,
    )
    message = mapped_column(Text, nullable=False)
    scheduled_for = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    sent = mapped_column(Boolean, default=False, nullable=False, index=True)
    sent_at = mapped_column(DateTime(timezone=True), nullable=True)
    dedupe_key = mapped_column(String(160), nullable=False, unique=True)

    attempts = relationship(
        "DeliveryAttempt", back_populates="reminder", order_by="DeliveryAttempt.attempted_at"
    )

    @validates("patient_name", "phone", "channel", "type", "message", "scheduled_for", "sent", "sent_at")
    def _reject_changes_after_send(self, key, value):
        if not inspect(self).persistent:
            return value
        if self.sent and getattr(self, key) != value:
            raise ReminderAlreadySentError(f"Reminder {self.id} was already sent")
        return value


class DeliveryAttempt(Base, UUIDMixin):
    __tablename__ = "delivery_attempts"

    reminder_id = mapped_column(ForeignKey("reminders.id"), nullable=False, index=True)
    channel = mapped_column(
        Enum(DeliveryChannel, name="deliverychannel", values_callable=enum_values),
        nullable=False,
    )
    status = mapped_column(
        Enum(DeliveryStatus, name="deliverystatus", values_callable=enum_values),
        nullable=False,
    )
    provider_message_id = mapped_column(String(128), nullable=True)
    error_message = mapped_column(Text, nullable=True)
    attempted_at = mapped_column(DateTime(timezone=True), nullable=False)

    reminder = relationship("Reminder", back_populates="attempts")
