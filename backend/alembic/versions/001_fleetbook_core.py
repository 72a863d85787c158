# backend/alembic/versions/001_fleetbook_core.py
"""Fleetbook core - catalog references, availability, bookings, commissions

Revision ID: 001_fleetbook_core
Revises:
Create Date: 2025-01-06 00:00:00.000000

Creates the tables of the booking core. Bookings store partner, date and
times directly and never reference availability rows, so partners can change
their schedule without touching existing bookings.

Double booking is blocked by the partial unique index
uq_bookings_partner_slot_active together with the per-partner
partner_calendar_locks row that every calendar write locks first.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_fleetbook_core"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

BLOCKING_STATUSES_SQL = "status IN ('pending', 'confirmed', 'in_progress', 'completed')"


def upgrade() -> None:
    """Create booking core tables."""
    print("Creating fleetbook core tables...")

    op.create_table(
        "partners",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("company_name", sa.String(255), nullable=False),
        sa.Column("commission_rate", sa.Numeric(5, 2), nullable=False, server_default="10"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "commission_rate >= 0 AND commission_rate <= 100",
            name="ck_partners_commission_rate",
        ),
    )

    op.create_table(
        "partner_services",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("partner_id", sa.String(26), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["partner_id"], ["partners.id"]),
        sa.CheckConstraint("duration_minutes > 0", name="ck_partner_services_duration_positive"),
        sa.CheckConstraint("price >= 0", name="ck_partner_services_price_non_negative"),
    )
    op.create_index("ix_partner_services_partner_id", "partner_services", ["partner_id"])

    op.create_table(
        "vehicles",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("tenant_id", sa.String(26), nullable=False),
        sa.Column("registration", sa.String(32), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_vehicles_tenant_id", "vehicles", ["tenant_id"])

    op.create_table(
        "availability_windows",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("partner_id", sa.String(26), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("slot_duration_minutes", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["partner_id"], ["partners.id"]),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_windows_day"),
        sa.CheckConstraint(
            "slot_duration_minutes BETWEEN 5 AND 120",
            name="ck_availability_windows_slot_duration",
        ),
        sa.CheckConstraint("start_time < end_time", name="ck_availability_windows_time_order"),
    )
    op.create_index("ix_availability_windows_partner_id", "availability_windows", ["partner_id"])
    op.create_index(
        "uq_availability_windows_partner_day_live",
        "availability_windows",
        ["partner_id", "day_of_week"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
        sqlite_where=sa.text("deleted_at IS NULL"),
    )

    op.create_table(
        "unavailabilities",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("partner_id", sa.String(26), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(255), nullable=False),
        sa.Column("is_full_day", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["partner_id"], ["partners.id"]),
        sa.CheckConstraint(
            "is_full_day OR (start_time IS NOT NULL AND end_time IS NOT NULL "
            "AND start_time < end_time)",
            name="ck_unavailabilities_partial_times",
        ),
    )
    op.create_index(
        "idx_unavailabilities_partner_date", "unavailabilities", ["partner_id", "date"]
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("partner_id", sa.String(26), nullable=False),
        sa.Column("tenant_id", sa.String(26), nullable=False),
        sa.Column("vehicle_id", sa.String(26), nullable=False),
        sa.Column("driver_id", sa.String(26), nullable=True),
        sa.Column("service_id", sa.String(26), nullable=False),
        # Schedule snapshot
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("scheduled_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        # Lifecycle
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        # Money snapshot
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("commission_rate", sa.Numeric(5, 2), nullable=True),
        sa.Column("commission_amount", sa.Numeric(10, 2), nullable=True),
        # Notes and reasons
        sa.Column("customer_notes", sa.Text(), nullable=True),
        sa.Column("partner_notes", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(26), nullable=True),
        # Timestamps
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["partner_id"], ["partners.id"]),
        sa.ForeignKeyConstraint(["vehicle_id"], ["vehicles.id"]),
        sa.ForeignKeyConstraint(["service_id"], ["partner_services.id"]),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'in_progress', 'completed', 'cancelled', 'rejected')",
            name="ck_bookings_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded')",
            name="ck_bookings_payment_status",
        ),
        sa.CheckConstraint("duration_minutes > 0", name="ck_bookings_duration_positive"),
        sa.CheckConstraint("price >= 0", name="ck_bookings_price_non_negative"),
        sa.CheckConstraint("scheduled_time < end_time", name="ck_bookings_time_order"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_partner_id", "bookings", ["partner_id"])
    op.create_index("ix_bookings_tenant_id", "bookings", ["tenant_id"])
    op.create_index("ix_bookings_scheduled_date", "bookings", ["scheduled_date"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index(
        "ix_bookings_partner_date_status", "bookings", ["partner_id", "scheduled_date", "status"]
    )
    # One live booking per partner start time
    op.create_index(
        "uq_bookings_partner_slot_active",
        "bookings",
        ["partner_id", "scheduled_date", "scheduled_time"],
        unique=True,
        postgresql_where=sa.text(f"{BLOCKING_STATUSES_SQL} AND deleted_at IS NULL"),
        sqlite_where=sa.text(f"{BLOCKING_STATUSES_SQL} AND deleted_at IS NULL"),
    )

    op.create_table(
        "commissions",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("partner_id", sa.String(26), nullable=False),
        sa.Column("booking_id", sa.String(26), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_reference", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["partner_id"], ["partners.id"]),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"]),
        sa.UniqueConstraint("booking_id", name="uq_commissions_booking_id"),
        sa.CheckConstraint("status IN ('pending', 'paid')", name="ck_commissions_status"),
        sa.CheckConstraint("amount >= 0", name="ck_commissions_amount_non_negative"),
    )
    op.create_index("idx_commissions_partner_status", "commissions", ["partner_id", "status"])

    op.create_table(
        "partner_calendar_locks",
        sa.Column("partner_id", sa.String(26), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("partner_id"),
        sa.ForeignKeyConstraint(["partner_id"], ["partners.id"]),
    )

    print("Fleetbook core tables created")


def downgrade() -> None:
    """Drop booking core tables."""
    print("Dropping fleetbook core tables...")

    op.drop_table("partner_calendar_locks")

    op.drop_index("idx_commissions_partner_status", table_name="commissions")
    op.drop_table("commissions")

    op.drop_index("uq_bookings_partner_slot_active", table_name="bookings")
    op.drop_index("ix_bookings_partner_date_status", table_name="bookings")
    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_scheduled_date", table_name="bookings")
    op.drop_index("ix_bookings_tenant_id", table_name="bookings")
    op.drop_index("ix_bookings_partner_id", table_name="bookings")
    op.drop_index("ix_bookings_id", table_name="bookings")
    op.drop_table("bookings")

    op.drop_index("idx_unavailabilities_partner_date", table_name="unavailabilities")
    op.drop_table("unavailabilities")

    op.drop_index("uq_availability_windows_partner_day_live", table_name="availability_windows")
    op.drop_index("ix_availability_windows_partner_id", table_name="availability_windows")
    op.drop_table("availability_windows")

    op.drop_index("ix_vehicles_tenant_id", table_name="vehicles")
    op.drop_table("vehicles")

    op.drop_index("ix_partner_services_partner_id", table_name="partner_services")
    op.drop_table("partner_services")

    op.drop_table("partners")
