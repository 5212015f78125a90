import enum
from sqlalchemy import Enum, String
from sqlalchemy.orm import mapped_column, relationship
from .base import Base, UUIDMixin, TimestampMixin, enum_values


class FacilityKind(str, enum.Enum):
    CLINIC = "clinic"
    PHARMACY = "pharmacy"


class Facility(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "facilities"

    name = mapped_column(String(128), nullable=False)
    kind = mapped_column(
        Enum(FacilityKind, name="facilitykind", values_callable=enum_values),
        default=FacilityKind.CLINIC,
        nullable=False,
    )
    location = mapped_column(String(128), nullable=True)

    patients = relationship("Patient", back_populates="facility")
