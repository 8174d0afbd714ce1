# backend/alembic/versions/001_initial_schema.py
"""Initial schema - accounts, experts, sessions, ledger and outbox

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-09-28 00:00:00.000000

Creates every table in its final form. The partial unique index on
consultation_sessions is the storage-level guard against double booking:
only pending and confirmed sessions take part in it, so a cancelled slot
can be booked again.
"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_SESSION_CLAUSE = "status IN ('pending', 'confirmed')"


def _json_type() -> sa.types.TypeEngine:
    return JSONB(astext_type=sa.Text()).with_variant(sa.JSON(), "sqlite")


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("display_name", sa.String(120), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="client"),
        sa.Column("credit_balance", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("timezone", sa.String(64), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("credit_balance >= 0", name="ck_accounts_credit_balance_non_negative"),
    )

    op.create_table(
        "experts",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "account_id", sa.String(26), sa.ForeignKey("accounts.id"), nullable=False, unique=True
        ),
        sa.Column("headline", sa.String(200), nullable=True),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("availability", _json_type(), nullable=False),
        sa.Column("break_times", _json_type(), nullable=False),
        sa.Column("slot_duration", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="UTC"),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_accepting_clients", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("total_sessions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_sessions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cancelled_sessions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_earnings", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("rating", sa.Float(), nullable=False, server_default="0"),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("hourly_rate > 0", name="ck_experts_hourly_rate_positive"),
        sa.CheckConstraint("slot_duration IN (15, 30, 60)", name="ck_experts_slot_duration"),
        sa.CheckConstraint("rating >= 0 AND rating <= 5", name="ck_experts_rating_range"),
    )

    op.create_table(
        "consultation_sessions",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("client_id", sa.String(26), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("expert_id", sa.String(26), sa.ForeignKey("experts.id"), nullable=False),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("scheduled_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="UTC"),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("commission_rate", sa.Numeric(5, 4), nullable=False),
        sa.Column("platform_commission", sa.Numeric(10, 2), nullable=False),
        sa.Column("expert_commission", sa.Numeric(10, 2), nullable=False),
        sa.Column("user_credits_used", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("amount_due", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("meeting_link", sa.String(500), nullable=True),
        sa.Column("reminder_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.Column("review", sa.Text(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_by", sa.String(20), nullable=True),
        sa.Column("cancelled_by_id", sa.String(26), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_failed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled', 'refunded')",
            name="ck_sessions_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded', 'failed')",
            name="ck_sessions_payment_status",
        ),
        sa.CheckConstraint("duration_minutes IN (30, 60, 90, 120)", name="ck_sessions_duration"),
        sa.CheckConstraint(
            "rating IS NULL OR (rating >= 1 AND rating <= 5)", name="ck_sessions_rating_range"
        ),
        sa.CheckConstraint("price >= 0", name="ck_sessions_price_non_negative"),
    )
    op.create_index(
        "ix_consultation_sessions_client_id", "consultation_sessions", ["client_id"]
    )
    op.create_index(
        "ix_consultation_sessions_expert_id", "consultation_sessions", ["expert_id"]
    )
    op.create_index(
        "ix_consultation_sessions_scheduled_date", "consultation_sessions", ["scheduled_date"]
    )
    op.create_index("ix_consultation_sessions_status", "consultation_sessions", ["status"])
    op.create_index(
        "uq_sessions_active_slot",
        "consultation_sessions",
        ["expert_id", "scheduled_date", "scheduled_time"],
        unique=True,
        postgresql_where=sa.text(ACTIVE_SESSION_CLAUSE),
        sqlite_where=sa.text(ACTIVE_SESSION_CLAUSE),
    )
    op.create_index(
        "ix_sessions_reminder_scan",
        "consultation_sessions",
        ["status", "reminder_sent", "scheduled_date"],
    )

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "session_id", sa.String(26), sa.ForeignKey("consultation_sessions.id"), nullable=False
        ),
        sa.Column("account_id", sa.String(26), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("expert_id", sa.String(26), sa.ForeignKey("experts.id"), nullable=False),
        sa.Column("entry_type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_method", sa.String(20), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("platform_fee", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("expert_earnings", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("credits_applied", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "entry_type IN ('payment', 'refund', 'credit_usage')", name="ck_ledger_entries_type"
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'failed')", name="ck_ledger_entries_status"
        ),
        sa.CheckConstraint("amount >= 0", name="ck_ledger_entries_amount_non_negative"),
    )
    op.create_index("ix_ledger_entries_session_id", "ledger_entries", ["session_id"])
    op.create_index("ix_ledger_entries_account_id", "ledger_entries", ["account_id"])
    op.create_index("ix_ledger_entries_expert_id", "ledger_entries", ["expert_id"])

    op.create_table(
        "event_outbox",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("aggregate_id", sa.String(64), nullable=False),
        sa.Column("idempotency_key", sa.String(255), nullable=False),
        sa.Column("payload", _json_type(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("attempt_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.UniqueConstraint("idempotency_key", name="uq_event_outbox_idempotency_key"),
    )
    op.create_index("ix_event_outbox_event_type", "event_outbox", ["event_type"])
    op.create_index("ix_event_outbox_aggregate_id", "event_outbox", ["aggregate_id"])
    op.create_index("ix_event_outbox_status", "event_outbox", ["status"])
    op.create_index("ix_event_outbox_next_attempt_at", "event_outbox", ["next_attempt_at"])

    op.create_table(
        "notification_delivery",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("idempotency_key", sa.String(255), nullable=False),
        sa.Column("payload", _json_type(), nullable=False),
        sa.Column("attempt_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.UniqueConstraint("idempotency_key", name="uq_notification_delivery_idempotency"),
    )
    op.create_index(
        "ix_notification_delivery_event_type", "notification_delivery", ["event_type"]
    )


def downgrade() -> None:
    op.drop_table("notification_delivery")
    op.drop_table("event_outbox")
    op.drop_table("ledger_entries")
    op.drop_index("ix_sessions_reminder_scan", table_name="consultation_sessions")
    op.drop_index("uq_sessions_active_slot", table_name="consultation_sessions")
    op.drop_table("consultation_sessions")
    op.drop_table("experts")
    op.drop_table("accounts")
