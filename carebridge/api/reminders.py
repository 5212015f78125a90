from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..auth import require_role
from ..database import get_db
from ..models.audit import AuditAction
from ..services.audit_logger import create_audit_event
from ..services.care_service import CareService
from .schemas import ReminderOut

router = APIRouter(prefix="/reminders", tags=["reminders"])


@router.get("/pending", response_model=list[ReminderOut])
def list_pending(
    db: Session = Depends(get_db),
    current_user=Depends(require_role("clinic")),
):
    return CareService(db).get_pending_reminders()


@router.post("/generate")
def generate(
    request: Request,
    db: Session = Depends(get_db),
    current_user=Depends(require_role("superadmin")),
):
    created = CareService(db).generate_daily_reminders()
    create_audit_event(
        db,
        actor=current_user.username,
        action=AuditAction.UPDATE,
        entity_type="Reminder",
        entity_id="*",
        details={"created": len(created)},
        request=request,
    )
    return {
        "created": len(created),
        "items": [ReminderOut.model_validate(r).model_dump(by_alias=True, mode="json") for r in created],
    }
