"""Create facilities, patients, reminders and transfers.

Revision ID: 20261019_initial_care_schema
Revises: None
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect
from sqlalchemy.sql import func
from sqlalchemy.dialects import postgresql


revision = "20261019_initial_care_schema"
down_revision = None
branch_labels = None
depends_on = None

DELIVERY_CHANNELS = ("whatsapp", "sms", "both")


def _uuid_type(bind):
    if bind.dialect.name == "postgresql":
        return postgresql.UUID(as_uuid=True)
    return sa.String(36)


def _enum(bind, *values, name):
    if bind.dialect.name == "postgresql":
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)
        return postgresql.ENUM(*values, name=name, create_type=False)
    return sa.Enum(*values, name=name)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    tables = set(inspector.get_table_names())
    id_type = _uuid_type(bind)
    channel_enum = _enum(bind, *DELIVERY_CHANNELS, name="deliverychannel")

    if "facilities" not in tables:
        op.create_table(
            "facilities",
            sa.Column("id", id_type, primary_key=True),
            sa.Column("name", sa.String(length=128), nullable=False),
            sa.Column("kind", _enum(bind, "clinic", "pharmacy", name="facilitykind"), nullable=False),
            sa.Column("location", sa.String(length=128), nullable=True),
            *_timestamps(),
        )

    if "patients" not in tables:
        op.create_table(
            "patients",
            sa.Column("id", id_type, primary_key=True),
            sa.Column("name", sa.String(length=128), nullable=False),
            sa.Column("age", sa.Integer(), nullable=True),
            sa.Column("gestational_weeks", sa.Integer(), nullable=True),
            sa.Column("location", sa.String(length=128), nullable=True),
            sa.Column("phone", sa.String(length=20), nullable=False),
            sa.Column("facility_id", id_type, sa.ForeignKey("facilities.id"), nullable=True),
            sa.Column(
                "risk_status",
                _enum(bind, "Low", "Medium", "High", "Critical", name="risklevel"),
                nullable=False,
            ),
            sa.Column("next_appointment", sa.DateTime(timezone=True), nullable=True),
            sa.Column("last_check_in", sa.DateTime(timezone=True), nullable=True),
            sa.Column("preferred_channel", channel_enum, nullable=True),
            sa.Column("alerts", sa.JSON(), nullable=False),
            *_timestamps(),
            sa.UniqueConstraint("phone", name="uq_patients_phone"),
        )
        op.create_index("ix_patients_facility_id", "patients", ["facility_id"])

    if "medications" not in tables:
        op.create_table(
            "medications",
            sa.Column("id", id_type, primary_key=True),
            sa.Column("patient_id", id_type, sa.ForeignKey("patients.id"), nullable=False),
            sa.Column("name", sa.String(length=128), nullable=False),
            sa.Column("dosage", sa.String(length=64), nullable=True),
            sa.Column("frequency", sa.String(length=64), nullable=True),
            sa.Column("time", sa.String(length=16), nullable=True),
            sa.Column("instructions", sa.Text(), nullable=True),
            sa.Column(
                "type", _enum(bind, "morning", "afternoon", "evening", name="doseslot"), nullable=False
            ),
            sa.Column("adherence_rate", sa.Float(), nullable=True),
            sa.Column("taken", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
        )
        op.create_index("ix_medications_patient_id", "medications", ["patient_id"])

    if "users" not in tables:
        op.create_table(
            "users",
            sa.Column("id", id_type, primary_key=True),
            sa.Column("username", sa.String(length=64), nullable=False),
            sa.Column("role", sa.String(length=32), nullable=False),
            sa.Column("facility_id", id_type, sa.ForeignKey("facilities.id"), nullable=True),
            sa.Column("patient_id", id_type, sa.ForeignKey("patients.id"), nullable=True),
            sa.Column("password_hash", sa.String(length=256), nullable=False),
            sa.Column("force_password_change", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.UniqueConstraint("username", name="uq_users_username"),
        )

    if "reminders" not in tables:
        op.create_table(
            "reminders",
            sa.Column("id", id_type, primary_key=True),
            sa.Column("patient_id", id_type, nullable=False),
            sa.Column("patient_name", sa.String(length=128), nullable=False),
            sa.Column("phone", sa.String(length=20), nullable=False),
            sa.Column("channel", channel_enum, nullable=False),
            sa.Column(
                "type",
                _enum(bind, "appointment", "medication", "symptom_checkin", name="remindertype"),
                nullable=False,
            ),
            sa.Column(
                "severity", _enum(bind, "normal", "urgent", name="reminderseverity"), nullable=False
            ),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=False),
            sa.Column("sent", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("dedupe_key", sa.String(length=160), nullable=False),
            *_timestamps(),
            sa.UniqueConstraint("dedupe_key", name="uq_reminders_dedupe_key"),
        )
        op.create_index("ix_reminders_patient_id", "reminders", ["patient_id"])
        op.create_index("ix_reminders_scheduled_for", "reminders", ["scheduled_for"])
        op.create_index("ix_reminders_sent", "reminders", ["sent"])

    if "delivery_attempts" not in tables:
        op.create_table(
            "delivery_attempts",
            sa.Column("id", id_type, primary_key=True),
            sa.Column("reminder_id", id_type, sa.ForeignKey("reminders.id"), nullable=False),
            sa.Column("channel", channel_enum, nullable=False),
            sa.Column("status", _enum(bind, "sent", "failed", name="deliverystatus"), nullable=False),
            sa.Column("provider_message_id", sa.String(length=128), nullable=True),
            sa.Column("error_message", sa.Text(), nullable=True),
            sa.Column("attempted_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_delivery_attempts_reminder_id", "delivery_attempts", ["reminder_id"])

    if "patient_transfers" not in tables:
        op.create_table(
            "patient_transfers",
            sa.Column("id", id_type, primary_key=True),
            sa.Column("patient_id", id_type, sa.ForeignKey("patients.id"), nullable=False),
            sa.Column("patient_name", sa.String(length=128), nullable=False),
            sa.Column("patient_phone", sa.String(length=20), nullable=False),
            sa.Column("from_facility_id", id_type, sa.ForeignKey("facilities.id"), nullable=False),
            sa.Column("from_facility_name", sa.String(length=128), nullable=False),
            sa.Column("to_facility_id", id_type, sa.ForeignKey("facilities.id"), nullable=False),
            sa.Column("to_facility_name", sa.String(length=128), nullable=False),
            sa.Column("reason", sa.Text(), nullable=False),
            sa.Column(
                "status",
                _enum(bind, "pending", "approved", "rejected", name="transferstatus"),
                nullable=False,
            ),
            sa.Column("requested_by", sa.String(length=64), nullable=True),
            sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("approved_by", sa.String(length=64), nullable=True),
            sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("rejected_by", sa.String(length=64), nullable=True),
            sa.Column("rejection_reason", sa.Text(), nullable=True),
            *_timestamps(),
        )
        op.create_index("ix_patient_transfers_patient_id", "patient_transfers", ["patient_id"])
        op.create_index(
            "ix_patient_transfers_from_facility_id", "patient_transfers", ["from_facility_id"]
        )
        op.create_index("ix_patient_transfers_to_facility_id", "patient_transfers", ["to_facility_id"])

    if "audit_events" not in tables:
        op.create_table(
            "audit_events",
            sa.Column("id", id_type, primary_key=True),
            sa.Column("actor", sa.String(length=64), nullable=False),
            sa.Column(
                "action",
                _enum(
                    bind,
                    "VIEW",
                    "UPDATE",
                    "PATIENT_ENROLLED",
                    "CREDENTIALS_ISSUED",
                    "REMINDER_CREATED",
                    "REMINDER_SENT",
                    "TRANSFER_REQUESTED",
                    "TRANSFER_APPROVED",
                    "TRANSFER_REJECTED",
                    name="auditaction",
                ),
                nullable=False,
            ),
            sa.Column("entity_type", sa.String(length=64), nullable=False),
            sa.Column("entity_id", sa.String(length=64), nullable=False),
            sa.Column("request_id", sa.String(length=64), nullable=False),
            sa.Column("ip_address", sa.String(length=64), nullable=False),
            sa.Column("details", sa.JSON(), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        )


def downgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    tables = set(inspector.get_table_names())
    for table in (
        "audit_events",
        "patient_transfers",
        "delivery_attempts",
        "reminders",
        "users",
        "medications",
        "patients",
        "facilities",
    ):
        if table in tables:
            op.drop_table(table)
    if bind.dialect.name == "postgresql":
        for enum_name in (
            "auditaction",
            "transferstatus",
            "deliverystatus",
            "reminderseverity",
            "remindertype",
            "doseslot",
            "risklevel",
            "deliverychannel",
            "facilitykind",
        ):
            sa.Enum(name=enum_name).drop(bind, checkfirst=True)
