import enum
from sqlalchemy import Boolean, Enum, Float, ForeignKey, String, Text
from sqlalchemy.orm import mapped_column, relationship
from .base import Base, UUIDMixin, TimestampMixin, enum_values


class DoseSlot(str, enum.Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


class Medication(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "medications"

    patient_id = mapped_column(ForeignKey("patients.id"), nullable=False, index=True)
    name = mapped_column(String(128), nullable=False)
    dosage = mapped_column(String(64), nullable=True)
    frequency = mapped_column(String(64), nullable=True)
    # 12-hour clock, e.g. "08:00 AM"
    time = mapped_column(String(16), nullable=True)
    instructions = mapped_column(Text, nullable=True)
    type = mapped_column(
        Enum(DoseSlot, name="doseslot", values_callable=enum_values),
        default=DoseSlot.MORNING,
        nullable=False,
    )
    adherence_rate = mapped_column(Float, nullable=True)
    taken = mapped_column(Boolean, default=False, nullable=False)

    patient = relationship("Patient", back_populates="medications")
