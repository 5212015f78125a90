from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..models.audit import AuditAction
from ..models.facility import Facility
from ..models.patient import Patient
from ..models.transfer import PatientTransfer, TransferDirection, TransferStatus
from ..models.user import User
from .audit_logger import record_event
from .identity_registry import IdentityRegistry

logger = logging.getLogger(__name__)


class TransferError(ValueError):
    pass


class TransferNotFoundError(TransferError):
    pass


class TransferNotPendingError(TransferError):
    pass


class TransferPermissionError(TransferError):
    pass


class InvalidTransferRequestError(TransferError):
    pass


class TransferWorkflow:
    """Pending → approved | rejected, decided by the facility that currently owns the patient."""

    def __init__(self, db: Session):
        self.db = db
        self.registry = IdentityRegistry(db)

    def request_transfer(
        self,
        patient_id: UUID,
        to_facility_id: UUID,
        reason: str | None,
        requested_by: str | None = None,
    ) -> PatientTransfer:
        reason = (reason or "").strip()
        if not reason:
            raise InvalidTransferRequestError("A transfer reason is required")

        patient = self.db.get(Patient, patient_id)
        if patient is None:
            raise InvalidTransferRequestError("Patient not found")
        if patient.facility_id is None:
            raise InvalidTransferRequestError("Patient is not registered at any facility")
        if patient.facility_id == to_facility_id:
            raise InvalidTransferRequestError("Patient is already registered at this facility")

        source = self.db.get(Facility, patient.facility_id)
        destination = self.db.get(Facility, to_facility_id)
        if destination is None:
            raise InvalidTransferRequestError("Destination facility not found")

        existing = (
            self.db.query(PatientTransfer)
            .filter(
                PatientTransfer.patient_id == patient.id,
                PatientTransfer.to_facility_id == to_facility_id,
                PatientTransfer.status == TransferStatus.PENDING,
            )
            .first()
        )
        if existing:
            return existing

        transfer = PatientTransfer(
            patient_id=patient.id,
            patient_name=patient.name,
            patient_phone=patient.phone,
            from_facility_id=patient.facility_id,
            from_facility_name=source.name if source else "Unknown Facility",
            to_facility_id=destination.id,
            to_facility_name=destination.name,
            reason=reason,
            status=TransferStatus.PENDING,
            requested_by=requested_by,
        )
        self.db.add(transfer)
        self.db.flush()
        record_event(
            self.db,
            AuditAction.TRANSFER_REQUESTED,
            "PatientTransfer",
            str(transfer.id),
            {
                "patient_id": str(patient.id),
                "from_facility_id": str(transfer.from_facility_id),
                "to_facility_id": str(transfer.to_facility_id),
            },
            actor=requested_by or "SYSTEM",
        )
        self.db.commit()
        logger.info("Transfer %s requested for patient %s", transfer.id, patient.id)
        return transfer

    def approve_transfer(self, transfer_id: UUID, approver_id: UUID) -> PatientTransfer:
        transfer = self._get_for_update(transfer_id)
        try:
            approver = self._authorize(transfer, approver_id)
            patient = self.db.get(Patient, transfer.patient_id)
            if patient is None:
                raise InvalidTransferRequestError("Patient not found")
            if patient.facility_id != transfer.from_facility_id:
                raise InvalidTransferRequestError(
                    "Patient is no longer registered at the source facility"
                )

            transfer.status = TransferStatus.APPROVED
            transfer.approved_at = datetime.now(timezone.utc)
            transfer.approved_by = str(approver.id)
            self.registry.rebind(patient, transfer.to_facility_id)
            record_event(
                self.db,
                AuditAction.TRANSFER_APPROVED,
                "PatientTransfer",
                str(transfer.id),
                {
                    "patient_id": str(patient.id),
                    "to_facility_id": str(transfer.to_facility_id),
                },
                actor=approver.username,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("Transfer %s approved", transfer.id)
        return transfer

    def reject_transfer(
        self,
        transfer_id: UUID,
        approver_id: UUID,
        rejection_reason: str | None,
    ) -> PatientTransfer:
        rejection_reason = (rejection_reason or "").strip()
        if not rejection_reason:
            raise InvalidTransferRequestError("A rejection reason is required")

        transfer = self._get_for_update(transfer_id)
        try:
            approver = self._authorize(transfer, approver_id)
            transfer.status = TransferStatus.REJECTED
            transfer.rejected_at = datetime.now(timezone.utc)
            transfer.rejected_by = str(approver.id)
            transfer.rejection_reason = rejection_reason
            record_event(
                self.db,
                AuditAction.TRANSFER_REJECTED,
                "PatientTransfer",
                str(transfer.id),
                {"reason": rejection_reason},
                actor=approver.username,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("Transfer %s rejected", transfer.id)
        return transfer

    def get_transfers(
        self,
        viewer_facility_id: UUID | None = None,
        status: TransferStatus | str | None = None,
        direction: TransferDirection | str | None = None,
    ) -> list[PatientTransfer]:
        if direction is not None and viewer_facility_id is None:
            raise InvalidTransferRequestError("A viewer facility is required to filter by direction")
        query = self.db.query(PatientTransfer)
        if viewer_facility_id is not None:
            query = query.filter(
                or_(
                    PatientTransfer.from_facility_id == viewer_facility_id,
                    PatientTransfer.to_facility_id == viewer_facility_id,
                )
            )
            if direction is not None:
                if TransferDirection(direction) == TransferDirection.INCOMING:
                    query = query.filter(PatientTransfer.to_facility_id == viewer_facility_id)
                else:
                    query = query.filter(PatientTransfer.to_facility_id != viewer_facility_id)
        if status is not None:
            query = query.filter(PatientTransfer.status == TransferStatus(status))
        return query.order_by(PatientTransfer.created_at.desc()).all()

    def _get_for_update(self, transfer_id: UUID) -> PatientTransfer:
        transfer = (
            self.db.query(PatientTransfer)
            .filter(PatientTransfer.id == transfer_id)
            .with_for_update()
            .first()
        )
        if transfer is None:
            raise TransferNotFoundError("Transfer request not found")
        return transfer

    def _authorize(self, transfer: PatientTransfer, approver_id: UUID) -> User:
        if transfer.status != TransferStatus.PENDING:
            raise TransferNotPendingError(
                f"Transfer is not pending (status: {transfer.status.value})"
            )
        approver = self.db.get(User, approver_id)
        if approver is None or approver.facility_id != transfer.from_facility_id:
            raise TransferPermissionError(
                "Only staff of the patient's current facility can decide this transfer"
            )
        return approver
