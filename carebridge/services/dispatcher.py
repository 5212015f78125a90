from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Callable, Mapping

from sqlalchemy.orm import Session

from ..adapters.base import MessageTransport, SendResult
from ..adapters.sms_adapter import SMSAdapter
from ..adapters.whatsapp_adapter import WhatsAppAdapter
from ..config import Settings, get_settings
from ..models.audit import AuditAction
from ..models.patient import Patient
from ..models.reminder import DeliveryChannel, Reminder
from .audit_logger import record_event
from .reminder_store import ReminderStore

logger = logging.getLogger(__name__)


@dataclass
class DispatchSummary:
    processed: int = 0
    sent: int = 0
    failed: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def resolve_effective_channel(
    reminder_channel: DeliveryChannel | str,
    preferred_channel: DeliveryChannel | str | None,
) -> DeliveryChannel:
    """First stage: a reminder addressed to "both" defers to the patient's preference."""
    channel = DeliveryChannel(reminder_channel)
    if channel != DeliveryChannel.BOTH:
        return channel
    if preferred_channel is None:
        return DeliveryChannel.BOTH
    return DeliveryChannel(preferred_channel)


def expand_channel(channel: DeliveryChannel) -> tuple[DeliveryChannel, ...]:
    """Second stage: the concrete transports to attempt."""
    if channel == DeliveryChannel.BOTH:
        return (DeliveryChannel.WHATSAPP, DeliveryChannel.SMS)
    return (channel,)


def default_transports(settings: Settings | None = None) -> dict[DeliveryChannel, MessageTransport]:
    return {
        DeliveryChannel.WHATSAPP: WhatsAppAdapter(settings),
        DeliveryChannel.SMS: SMSAdapter(settings),
    }


class ReminderDispatcher:
    """Delivers due reminders in bounded, oldest-first batches.

    A reminder counts as delivered when any channel succeeds. Reminders whose
    every channel failed stay unsent and are picked up again on the next run.
    """

    def __init__(
        self,
        db: Session,
        transports: Mapping[DeliveryChannel, MessageTransport] | None = None,
        *,
        batch_size: int | None = None,
        send_delay: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] | None = None,
    ):
        settings = get_settings()
        self.db = db
        self.store = ReminderStore(db)
        self.transports = dict(transports) if transports is not None else default_transports(settings)
        self.batch_size = batch_size or settings.REMINDER_BATCH_SIZE
        self.send_delay = settings.REMINDER_SEND_DELAY_SECONDS if send_delay is None else send_delay
        self.sleep = sleep
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def process_pending_reminders(self, now: datetime | None = None) -> DispatchSummary:
        now = now or self.clock()
        summary = DispatchSummary()

        reminders = self.store.get_pending(now, limit=self.batch_size)
        if not reminders:
            logger.info("No pending reminders")
            return summary

        logger.info("Found %s pending reminder(s)", len(reminders))
        for index, reminder in enumerate(reminders):
            if index and self.send_delay > 0:
                self.sleep(self.send_delay)
            summary.processed += 1
            reminder_id = reminder.id
            try:
                delivered = self.send_reminder(reminder)
            except Exception:
                logger.exception("Error processing reminder %s", reminder_id)
                self.db.rollback()
                summary.failed += 1
                continue
            if delivered:
                summary.sent += 1
                logger.info("Reminder %s sent", reminder_id)
            else:
                summary.failed += 1
                logger.warning("Failed to send reminder %s", reminder_id)

        logger.info("Dispatch summary: %s sent, %s failed", summary.sent, summary.failed)
        return summary

    def send_reminder(self, reminder: Reminder) -> bool:
        channel = resolve_effective_channel(reminder.channel, self._channel_preference(reminder))
        delivered_via: list[str] = []
        for target in expand_channel(channel):
            transport = self.transports.get(target)
            if transport is None:
                logger.warning("No transport registered for %s", target.value)
                continue
            try:
                result = transport.send(reminder.phone, reminder.message)
            except Exception as exc:
                logger.exception("%s transport raised for reminder %s", target.value, reminder.id)
                result = SendResult(False, error=str(exc) or type(exc).__name__)
            self.store.record_attempt(
                reminder,
                target,
                success=result.success,
                attempted_at=self.clock(),
                provider_message_id=result.provider_message_id,
                error_message=result.error,
            )
            if result.success:
                delivered_via.append(target.value)

        if delivered_via:
            self.store.mark_sent(reminder, self.clock())
            record_event(
                self.db,
                AuditAction.REMINDER_SENT,
                "Reminder",
                str(reminder.id),
                {"channels": delivered_via},
            )
        self.db.commit()
        return bool(delivered_via)

    def _channel_preference(self, reminder: Reminder) -> DeliveryChannel | None:
        if DeliveryChannel(reminder.channel) != DeliveryChannel.BOTH:
            return None
        patient = self.db.get(Patient, reminder.patient_id)
        if patient is None:
            return None
        return patient.preferred_channel
