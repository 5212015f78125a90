import enum
from sqlalchemy import DateTime, Enum, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import mapped_column, relationship, validates
from .base import Base, UUIDMixin, TimestampMixin, enum_values
from .reminder import DeliveryChannel
from ..services.phone import normalize_phone


class RiskLevel(str, enum.Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class Patient(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "patients"

    name = mapped_column(String(128), nullable=False)
    age = mapped_column(Integer, nullable=True)
    gestational_weeks = mapped_column(Integer, nullable=True)
    location = mapped_column(String(128), nullable=True)
    # Normalized phone number; unique so it binds to exactly one facility.
    phone = mapped_column(String(20), nullable=False, unique=True)
    facility_id = mapped_column(ForeignKey("facilities.id"), nullable=True, index=True)
    risk_status = mapped_column(
        Enum(RiskLevel, name="risklevel", values_callable=enum_values),
        default=RiskLevel.LOW,
        nullable=False,
    )
    next_appointment = mapped_column(DateTime(timezone=True), nullable=True)
    last_check_in = mapped_column(DateTime(timezone=True), nullable=True)
    preferred_channel = mapped_column(
        Enum(DeliveryChannel, name="deliverychannel", values_callable=enum_values),
        nullable=True,
    )
    alerts = mapped_column(JSON, nullable=False, default=list)

    facility = relationship("Facility", back_populates="patients")
    medications = relationship(
        "Medication", back_populates="patient", cascade="all, delete-orphan"
    )

    @property
    def first_name(self) -> str:
        parts = (self.name or "").split()
        return parts[0] if parts else ""

    @validates("phone")
    def _normalize_phone(self, key, value):
        normalized = normalize_phone(value)
        if not normalized:
            raise ValueError("phone is required")
        return normalized
