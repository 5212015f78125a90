from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import Session

from ..models.reminder import (
    DeliveryAttempt,
    DeliveryChannel,
    DeliveryStatus,
    Reminder,
    ReminderAlreadySentError,
)


class ReminderStore:
    def __init__(self, db: Session):
        self.db = db

    def get_all(self, limit: int = 500) -> list[Reminder]:
        return (
            self.db.query(Reminder)
            .order_by(Reminder.created_at.desc())
            .limit(limit)
            .all()
        )

    def get_pending(self, now: datetime | None = None, limit: int | None = None) -> list[Reminder]:
        """Unsent reminders that are due, oldest first."""
        now = now or datetime.now(timezone.utc)
        query = (
            self.db.query(Reminder)
            .filter(Reminder.sent.is_(False), Reminder.scheduled_for <= now)
            .order_by(Reminder.scheduled_for.asc(), Reminder.created_at.asc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def exists(self, dedupe_key: str) -> bool:
        return (
            self.db.query(Reminder.id).filter(Reminder.dedupe_key == dedupe_key).first()
            is not None
        )

    def add(self, reminder: Reminder) -> Reminder:
        self.db.add(reminder)
        self.db.flush()
        return reminder

    def mark_sent(self, reminder: Reminder, sent_at: datetime | None = None) -> Reminder:
        if reminder.sent:
            raise ReminderAlreadySentError(f"Reminder {reminder.id} was already sent")
        reminder.sent_at = sent_at or datetime.now(timezone.utc)
        reminder.sent = True
        self.db.add(reminder)
        return reminder

    def record_attempt(
        self,
        reminder: Reminder,
        channel: DeliveryChannel,
        *,
        success: bool,
        attempted_at: datetime,
        provider_message_id: str | None = None,
        error_message: str | None = None,
    ) -> DeliveryAttempt:
        attempt = DeliveryAttempt(
            reminder_id=reminder.id,
            channel=channel,
            status=DeliveryStatus.SENT if success else DeliveryStatus.FAILED,
            provider_message_id=provider_message_id,
            error_message=error_message,
            attempted_at=attempted_at,
        )
        self.db.add(attempt)
        return attempt
