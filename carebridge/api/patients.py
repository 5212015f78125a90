from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from ..auth import require_role, role_allows
from ..database import get_db
from ..models.audit import AuditAction
from ..models.medication import Medication
from ..models.patient import Patient
from ..models.user import User
from ..services.audit_logger import create_audit_event
from ..services.care_service import CareService
from ..services.enrollment import (
    EnrollmentOutcome,
    EnrollmentService,
    MedicationDetails,
    PatientDetails,
)
from ..services.transfer_workflow import TransferError
from .schemas import EnrollmentRequest, EnrollmentResponse, PatientLookupOut, PatientOut, TransferOut
from .transfers import transfer_error_status

router = APIRouter(prefix="/patients", tags=["patients"])


def _check_facility_access(user: User, facility_id: UUID | None) -> None:
    if role_allows(user.role, "superadmin"):
        return
    if user.facility_id is None or user.facility_id != facility_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Facility access denied")


@router.get("/lookup", response_model=PatientLookupOut)
def lookup_by_phone(
    phone: str,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("clinic", "pharmacy")),
):
    return CareService(db).find_patient_by_phone(phone)


@router.get("/{patient_id}", response_model=PatientOut)
def get_patient(
    patient_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("clinic", "pharmacy", "patient")),
):
    patient = db.get(Patient, patient_id)
    if not patient:
        raise HTTPException(status_code=404, detail="Patient not found")
    if current_user.role == "patient":
        if current_user.patient_id != patient.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Patient access denied")
    else:
        _check_facility_access(current_user, patient.facility_id)

    create_audit_event(
        db,
        actor=current_user.username,
        action=AuditAction.VIEW,
        entity_type="Patient",
        entity_id=str(patient.id),
        details=None,
        request=request,
    )
    return patient


@router.post("", response_model=EnrollmentResponse)
def enroll_patient(
    payload: EnrollmentRequest,
    response: Response,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("clinic")),
):
    _check_facility_access(current_user, payload.facility_id)
    details = PatientDetails(
        name=payload.name,
        phone=payload.phone,
        age=payload.age,
        gestational_weeks=payload.gestational_weeks,
        location=payload.location,
        risk_status=payload.risk_status,
        next_appointment=payload.next_appointment,
        preferred_channel=payload.preferred_channel,
        medications=(
            [MedicationDetails(**med.model_dump()) for med in payload.medications]
            if payload.medications is not None
            else None
        ),
    )
    try:
        result = EnrollmentService(db).enroll(
            details,
            payload.facility_id,
            actor=current_user.username,
            transfer_reason=payload.transfer_reason,
        )
    except TransferError as exc:
        raise HTTPException(status_code=transfer_error_status(exc), detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    if result.outcome == EnrollmentOutcome.TRANSFER_REQUESTED:
        # The patient record belongs to another facility until the transfer is approved
        response.status_code = status.HTTP_202_ACCEPTED
        return EnrollmentResponse(
            outcome=result.outcome.value,
            transfer=TransferOut.model_validate(result.transfer),
        )

    if result.outcome == EnrollmentOutcome.CREATED:
        response.status_code = status.HTTP_201_CREATED
    return EnrollmentResponse(
        outcome=result.outcome.value,
        patient=PatientOut.model_validate(result.patient),
        credentials_delivery=result.credentials_delivery,
    )


@router.post("/{patient_id}/medications/{medication_id}/taken")
def mark_medication_taken(
    patient_id: UUID,
    medication_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("clinic", "pharmacy", "patient")),
):
    medication = db.get(Medication, medication_id)
    if not medication or medication.patient_id != patient_id:
        raise HTTPException(status_code=404, detail="Medication not found")
    if current_user.role == "patient":
        if current_user.patient_id != patient_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Patient access denied")
    else:
        _check_facility_access(current_user, medication.patient.facility_id)

    medication.taken = True
    db.add(medication)
    db.commit()

    create_audit_event(
        db,
        actor=current_user.username,
        action=AuditAction.UPDATE,
        entity_type="Medication",
        entity_id=str(medication.id),
        details={"taken": True},
        request=request,
    )
    return {"status": "ok", "medication_id": str(medication.id), "taken": True}
