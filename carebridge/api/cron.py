import hmac
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import get_db
from ..services.dispatcher import ReminderDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(tags=["cron"])


def _token_matches(token: str | None, secret: str) -> bool:
    if not token:
        return False
    return hmac.compare_digest(token.encode("utf-8"), secret.encode("utf-8"))


@router.post("/reminder-cron")
def reminder_cron(
    x_auth_token: str | None = Header(default=None),
    db: Session = Depends(get_db),
):
    """Entry point for the external scheduler: deliver one batch of due reminders."""
    settings = get_settings()
    if not settings.CRON_SECRET:
        logger.error("Reminder cron called but CRON_SECRET is not configured")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "message": "Cron secret not configured"},
        )
    if not _token_matches(x_auth_token, settings.CRON_SECRET):
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    try:
        summary = ReminderDispatcher(db).process_pending_reminders()
    except Exception as exc:
        logger.exception("Reminder cron failed")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "message": str(exc)},
        )

    return {
        "success": True,
        "message": "Reminders processed",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "summary": summary.as_dict(),
    }
