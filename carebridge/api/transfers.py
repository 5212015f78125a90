from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..auth import require_role, role_allows
from ..database import get_db
from ..models.transfer import TransferDirection, TransferStatus
from ..services.care_service import CareService
from ..services.transfer_workflow import (
    InvalidTransferRequestError,
    TransferError,
    TransferNotFoundError,
    TransferNotPendingError,
    TransferPermissionError,
)
from .schemas import RejectTransferRequest, TransferCreateRequest, TransferOut

router = APIRouter(prefix="/transfers", tags=["transfers"])

_ERROR_STATUS = {
    TransferNotFoundError: status.HTTP_404_NOT_FOUND,
    TransferNotPendingError: status.HTTP_409_CONFLICT,
    TransferPermissionError: status.HTTP_403_FORBIDDEN,
    InvalidTransferRequestError: status.HTTP_400_BAD_REQUEST,
}


def transfer_error_status(exc: TransferError) -> int:
    return _ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)


@router.get("", response_model=list[TransferOut])
def list_transfers(
    status_filter: TransferStatus | None = Query(default=None, alias="status"),
    direction: TransferDirection | None = None,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("clinic")),
):
    viewer = None if role_allows(current_user.role, "superadmin") else current_user.facility_id
    if viewer is None and not role_allows(current_user.role, "superadmin"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No facility assigned")
    try:
        return CareService(db).get_transfers(viewer, status=status_filter, direction=direction)
    except TransferError as exc:
        raise HTTPException(status_code=transfer_error_status(exc), detail=str(exc)) from exc


@router.post("", response_model=TransferOut, status_code=status.HTTP_201_CREATED)
def request_transfer(
    payload: TransferCreateRequest,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("clinic")),
):
    if not role_allows(current_user.role, "superadmin") and current_user.facility_id != payload.to_facility_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Transfers can only be requested into your own facility",
        )
    try:
        return CareService(db).request_transfer(
            payload.patient_id,
            payload.to_facility_id,
            payload.reason,
            requested_by=current_user.username,
        )
    except TransferError as exc:
        raise HTTPException(status_code=transfer_error_status(exc), detail=str(exc))


@router.post("/{transfer_id}/approve", response_model=TransferOut)
def approve_transfer(
    transfer_id: UUID,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("clinic")),
):
    try:
        return CareService(db).approve_transfer(transfer_id, current_user.id)
    except TransferError as exc:
        raise HTTPException(status_code=transfer_error_status(exc), detail=str(exc))


@router.post("/{transfer_id}/reject", response_model=TransferOut)
def reject_transfer(
    transfer_id: UUID,
    payload: RejectTransferRequest,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("clinic")),
):
    try:
        return CareService(db).reject_transfer(transfer_id, current_user.id, payload.reason)
    except TransferError as exc:
        raise HTTPException(status_code=transfer_error_status(exc), detail=str(exc))
