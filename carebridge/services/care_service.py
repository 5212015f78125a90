"""Entry points used by the dashboards and the cron trigger."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from ..models.reminder import Reminder
from ..models.transfer import PatientTransfer, TransferDirection, TransferStatus
from .dispatcher import DispatchSummary, ReminderDispatcher
from .identity_registry import IdentityRegistry, PatientLookup
from .reminder_generator import ReminderGenerator
from .reminder_store import ReminderStore
from .transfer_workflow import TransferWorkflow


class CareService:
    def __init__(self, db: Session):
        self.db = db

    def generate_daily_reminders(self, now: datetime | None = None) -> list[Reminder]:
        return ReminderGenerator(self.db).generate_daily_reminders(now=now)

    def get_pending_reminders(self, now: datetime | None = None) -> list[Reminder]:
        return ReminderStore(self.db).get_pending(now)

    def mark_sent(self, reminder_id: UUID) -> Reminder:
        store = ReminderStore(self.db)
        reminder = self.db.get(Reminder, reminder_id)
        if reminder is None:
            raise ValueError("Reminder not found")
        store.mark_sent(reminder)
        self.db.commit()
        return reminder

    def process_pending_reminders(self, dispatcher: ReminderDispatcher | None = None) -> DispatchSummary:
        dispatcher = dispatcher or ReminderDispatcher(self.db)
        return dispatcher.process_pending_reminders()

    def find_patient_by_phone(self, phone: str) -> PatientLookup:
        return IdentityRegistry(self.db).find_patient_by_phone(phone)

    def request_transfer(
        self,
        patient_id: UUID,
        to_facility_id: UUID,
        reason: str | None,
        requested_by: str | None = None,
    ) -> PatientTransfer:
        return TransferWorkflow(self.db).request_transfer(
            patient_id, to_facility_id, reason, requested_by=requested_by
        )

    def approve_transfer(self, transfer_id: UUID, approver_id: UUID) -> PatientTransfer:
        return TransferWorkflow(self.db).approve_transfer(transfer_id, approver_id)

    def reject_transfer(self, transfer_id: UUID, approver_id: UUID, reason: str | None) -> PatientTransfer:
        return TransferWorkflow(self.db).reject_transfer(transfer_id, approver_id, reason)

    def get_transfers(
        self,
        viewer_facility_id: UUID | None = None,
        status: TransferStatus | str | None = None,
        direction: TransferDirection | str | None = None,
    ) -> list[PatientTransfer]:
        return TransferWorkflow(self.db).get_transfers(viewer_facility_id, status, direction)
