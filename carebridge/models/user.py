import enum
from sqlalchemy import Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import mapped_column
from .base import Base, UUIDMixin, TimestampMixin


class UserRole(str, enum.Enum):
    PATIENT = "patient"
    CLINIC = "clinic"
    PHARMACY = "pharmacy"
    SUPERADMIN = "superadmin"


class User(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "users"

    username = mapped_column(String(64), unique=True, nullable=False)
    role = mapped_column(String(32), nullable=False, default=UserRole.CLINIC.value)
    facility_id = mapped_column(ForeignKey("facilities.id"), nullable=True)
    patient_id = mapped_column(ForeignKey("patients.id"), nullable=True)
    password_hash = mapped_column(String(256), nullable=False)
    force_password_change = mapped_column(Boolean, default=True, nullable=False)
    last_login_at = mapped_column(DateTime(timezone=True), nullable=True)
