# alembic/versions/001_initial_schema.py
"""Initial schema - wallets, ledger, payouts, bookings, modifications, settings

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-09-01 00:00:00.000000

Creates the wallet ledger (wallets, unified_transactions, payout_requests,
teacher_earnings, guardian_student_links), the booking lifecycle tables
(bookings, booking_history, booking_modifications, teacher availability)
and the platform_settings / webhook_events support tables.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(12, 2)
ULID = sa.String(26)
BLOCKING_BOOKING_STATUSES = "status IN ('pending', 'approved', 'upcoming')"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True
        ),
    ]


def upgrade() -> None:
    """Create every table with its constraints and indexes."""
    print("Creating wallet ledger tables...")

    op.create_table(
        "wallets",
        sa.Column("id", ULID, primary_key=True),
        sa.Column("user_id", ULID, nullable=False),
        sa.Column("wallet_type", sa.String(20), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="NGN"),
        sa.Column("balance", MONEY, nullable=False, server_default="0"),
        sa.Column("total_refunded", MONEY, nullable=False, server_default="0"),
        sa.Column("total_spent", MONEY, nullable=False, server_default="0"),
        sa.Column("total_earned", MONEY, nullable=False, server_default="0"),
        sa.Column("total_withdrawn", MONEY, nullable=False, server_default="0"),
        sa.Column("pending_payouts", MONEY, nullable=False, server_default="0"),
        sa.Column(
            "auto_withdrawal_enabled", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("auto_withdrawal_threshold", MONEY, nullable=True),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("payment_details", sa.JSON(), nullable=True),
        sa.Column("total_spent_on_children", MONEY, nullable=False, server_default="0"),
        sa.Column("child_allowances", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "wallet_type", name="uq_wallets_user_type"),
        sa.CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
        sa.CheckConstraint("pending_payouts >= 0", name="ck_wallets_pending_non_negative"),
        sa.CheckConstraint(
            "wallet_type IN ('student', 'teacher', 'guardian')", name="ck_wallets_type"
        ),
    )
    op.create_index("ix_wallets_id", "wallets", ["id"])
    op.create_index("ix_wallets_user_id", "wallets", ["user_id"])

    op.create_table(
        "unified_transactions",
        sa.Column("id", ULID, primary_key=True),
        sa.Column("wallet_id", ULID, sa.ForeignKey("wallets.id"), nullable=False),
        sa.Column("wallet_type", sa.String(20), nullable=False),
        sa.Column("user_id", ULID, nullable=False),
        sa.Column("transaction_type", sa.String(30), nullable=False),
        sa.Column("direction", sa.String(12), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("signed_amount", MONEY, nullable=False),
        sa.Column("balance_after", MONEY, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="completed"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("counterparty_wallet_id", ULID, sa.ForeignKey("wallets.id"), nullable=True),
        sa.Column("payout_request_id", ULID, nullable=True),
        sa.Column("booking_id", ULID, nullable=True),
        sa.Column("created_by_id", ULID, nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.CheckConstraint("amount > 0", name="ck_unified_transactions_amount_positive"),
        sa.CheckConstraint(
            "direction IN ('credit', 'debit', 'settlement')",
            name="ck_unified_transactions_direction",
        ),
    )
    for column in (
        "id",
        "wallet_id",
        "wallet_type",
        "user_id",
        "transaction_type",
        "payout_request_id",
        "booking_id",
    ):
        op.create_index(f"ix_unified_transactions_{column}", "unified_transactions", [column])
    op.create_index(
        "ix_unified_transactions_wallet_created",
        "unified_transactions",
        ["wallet_id", "created_at"],
    )

    op.create_table(
        "payout_requests",
        sa.Column("id", ULID, primary_key=True),
        sa.Column("teacher_id", ULID, nullable=False),
        sa.Column("wallet_id", ULID, sa.ForeignKey("wallets.id"), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column(
            "payment_method", sa.String(50), nullable=False, server_default="bank_transfer"
        ),
        sa.Column("payment_details", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("request_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_by_id", ULID, nullable=True),
        sa.Column("processed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "transaction_id", ULID, sa.ForeignKey("unified_transactions.id"), nullable=True
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_automatic", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="ck_payout_requests_amount_positive"),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'declined', 'paid')",
            name="ck_payout_requests_status",
        ),
    )
    op.create_index("ix_payout_requests_id", "payout_requests", ["id"])
    op.create_index("ix_payout_requests_teacher_id", "payout_requests", ["teacher_id"])
    op.create_index("ix_payout_requests_status", "payout_requests", ["status"])
    op.create_index(
        "ix_payout_requests_teacher_status", "payout_requests", ["teacher_id", "status"]
    )

    op.create_table(
        "teacher_earnings",
        sa.Column("id", ULID, primary_key=True),
        sa.Column("teacher_id", ULID, nullable=False),
        sa.Column("wallet_balance", MONEY, nullable=False, server_default="0"),
        sa.Column("total_earned", MONEY, nullable=False, server_default="0"),
        sa.Column("total_withdrawn", MONEY, nullable=False, server_default="0"),
        sa.Column("pending_payouts", MONEY, nullable=False, server_default="0"),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True
        ),
    )
    op.create_index(
        "ix_teacher_earnings_teacher_id", "teacher_earnings", ["teacher_id"], unique=True
    )

    op.create_table(
        "guardian_student_links",
        sa.Column("id", ULID, primary_key=True),
        sa.Column("guardian_id", ULID, nullable=False),
        sa.Column("student_id", ULID, nullable=False),
        sa.Column("relationship_label", sa.String(50), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True
        ),
        sa.UniqueConstraint("guardian_id", "student_id", name="uq_guardian_student_link"),
    )
    op.create_index(
        "ix_guardian_student_links_guardian_id", "guardian_student_links", ["guardian_id"]
    )
    op.create_index(
        "ix_guardian_student_links_student_id", "guardian_student_links", ["student_id"]
    )

    print("Creating booking lifecycle tables...")

    op.create_table(
        "bookings",
        sa.Column("id", ULID, primary_key=True),
        sa.Column("student_id", ULID, nullable=False),
        sa.Column("teacher_id", ULID, nullable=False),
        sa.Column("subject_id", ULID, nullable=False),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("price", MONEY, nullable=True),
        sa.Column("currency", sa.String(3), nullable=True),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("approved_by_id", ULID, nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by_id", ULID, nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rebooked_from_id", ULID, sa.ForeignKey("bookings.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True
        ),
        sa.CheckConstraint("duration_minutes > 0", name="ck_bookings_duration_positive"),
        sa.CheckConstraint("end_time > start_time", name="ck_bookings_time_order"),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'upcoming', "
            "'completed', 'missed', 'cancelled')",
            name="ck_bookings_status",
        ),
    )
    for column in ("id", "student_id", "teacher_id", "booking_date", "status"):
        op.create_index(f"ix_bookings_{column}", "bookings", [column])
    op.create_index("ix_bookings_teacher_date", "bookings", ["teacher_id", "booking_date"])
    # One active booking per teacher slot start.
    op.create_index(
        "uq_bookings_teacher_active_slot",
        "bookings",
        ["teacher_id", "booking_date", "start_time"],
        unique=True,
        postgresql_where=sa.text(BLOCKING_BOOKING_STATUSES),
        sqlite_where=sa.text(BLOCKING_BOOKING_STATUSES),
    )

    op.create_table(
        "booking_history",
        sa.Column("id", ULID, primary_key=True),
        sa.Column("booking_id", ULID, sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("from_status", sa.String(20), nullable=True),
        sa.Column("to_status", sa.String(20), nullable=True),
        sa.Column("performed_by_id", ULID, nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_booking_history_booking_id", "booking_history", ["booking_id"])

    op.create_table(
        "booking_modifications",
        sa.Column("id", ULID, primary_key=True),
        sa.Column("booking_id", ULID, sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("student_id", ULID, nullable=False),
        sa.Column("teacher_id", ULID, nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("original_booking_date", sa.Date(), nullable=False),
        sa.Column("original_start_time", sa.Time(), nullable=False),
        sa.Column("original_end_time", sa.Time(), nullable=False),
        sa.Column("original_duration_minutes", sa.Integer(), nullable=False),
        sa.Column("original_teacher_id", ULID, nullable=False),
        sa.Column("original_subject_id", ULID, nullable=False),
        sa.Column("original_price", MONEY, nullable=True),
        sa.Column("new_booking_date", sa.Date(), nullable=False),
        sa.Column("new_start_time", sa.Time(), nullable=False),
        sa.Column("new_end_time", sa.Time(), nullable=False),
        sa.Column("new_duration_minutes", sa.Integer(), nullable=False),
        sa.Column("new_teacher_id", ULID, nullable=True),
        sa.Column("new_subject_id", ULID, nullable=True),
        sa.Column("new_price", MONEY, nullable=True),
        sa.Column("price_difference", MONEY, nullable=False, server_default="0"),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("teacher_notes", sa.Text(), nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("modification_history", sa.JSON(), nullable=False),
        sa.Column("resulting_booking_id", ULID, sa.ForeignKey("bookings.id"), nullable=True),
        sa.Column("created_by_id", ULID, nullable=True),
        sa.Column("updated_by_id", ULID, nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "type IN ('reschedule', 'rebook')", name="ck_booking_modifications_type"
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'expired', 'cancelled', 'completed')",
            name="ck_booking_modifications_status",
        ),
    )
    for column in ("id", "booking_id", "student_id", "teacher_id", "status", "expires_at"):
        op.create_index(f"ix_booking_modifications_{column}", "booking_modifications", [column])
    op.create_index(
        "ix_booking_modifications_status_expires",
        "booking_modifications",
        ["status", "expires_at"],
    )

    op.create_table(
        "teacher_schedule_settings",
        sa.Column("teacher_id", ULID, primary_key=True),
        sa.Column("holiday_mode", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True
        ),
    )

    op.create_table(
        "teacher_availability",
        sa.Column("id", ULID, primary_key=True),
        sa.Column("teacher_id", ULID, nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("from_time", sa.Time(), nullable=False),
        sa.Column("to_time", sa.Time(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True
        ),
        sa.UniqueConstraint("teacher_id", "day_of_week", name="uq_teacher_availability_day"),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_teacher_availability_day"),
        sa.CheckConstraint("to_time > from_time", name="ck_teacher_availability_window"),
    )
    op.create_index(
        "ix_teacher_availability_teacher_id", "teacher_availability", ["teacher_id"]
    )

    print("Creating platform support tables...")

    op.create_table(
        "webhook_events",
        sa.Column("id", ULID, primary_key=True),
        sa.Column("gateway", sa.String(50), nullable=False),
        sa.Column("event_id", sa.String(255), nullable=False),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column(
            "payload",
            JSONB(astext_type=sa.Text()).with_variant(sa.JSON(), "sqlite"),
            nullable=False,
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="received"),
        sa.Column("processing_error", sa.Text(), nullable=True),
        sa.Column("related_entity_type", sa.String(50), nullable=True),
        sa.Column("related_entity_id", ULID, nullable=True),
        sa.Column(
            "received_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("gateway", "event_id", name="uq_webhook_events_gateway_event_id"),
    )
    op.create_index("ix_webhook_events_event_type", "webhook_events", ["event_type"])
    op.create_index("ix_webhook_events_status", "webhook_events", ["status"])

    op.create_table(
        "platform_settings",
        sa.Column("key", sa.Text(), primary_key=True),
        sa.Column("value_json", sa.JSON(), nullable=False),
        sa.Column("updated_by_id", ULID, nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    print("Initial schema created")


def downgrade() -> None:
    """Drop every table in reverse dependency order."""
    print("Dropping initial schema...")

    op.drop_table("platform_settings")
    op.drop_table("webhook_events")
    op.drop_table("teacher_availability")
    op.drop_table("teacher_schedule_settings")
    op.drop_table("booking_modifications")
    op.drop_table("booking_history")
    op.drop_index("uq_bookings_teacher_active_slot", table_name="bookings")
    op.drop_table("bookings")
    op.drop_table("guardian_student_links")
    op.drop_table("teacher_earnings")
    op.drop_table("payout_requests")
    op.drop_table("unified_transactions")
    op.drop_table("wallets")

    print("Initial schema dropped")
