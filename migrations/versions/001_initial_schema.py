"""Initial schema: rides, drivers, customers and push-notification devices.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── drivers ───────────────────────────────────────────────────────
    op.create_table(
        "drivers",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(120), nullable=True),
        sa.Column("phone_number", sa.String(20), unique=True, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── customers ─────────────────────────────────────────────────────
    op.create_table(
        "customers",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=True),
        sa.Column("name", sa.String(120), nullable=True),
        sa.Column("phone_number", sa.String(20), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("ride_id", sa.String(36), primary_key=True),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("driver_id", sa.String(64), nullable=True),
        sa.Column("accepted_by", sa.String(64), nullable=True),
        sa.Column("place_to", sa.JSON, nullable=False),
        sa.Column("place_from", sa.JSON, nullable=True),
        sa.Column("price", sa.Float, nullable=True),
        sa.Column(
            "requested_to",
            postgresql.ARRAY(sa.Text),
            nullable=False,
            server_default="{}",
        ),
        sa.Column(
            "rejected_by",
            postgresql.ARRAY(sa.Text),
            nullable=False,
            server_default="{}",
        ),
        sa.Column(
            "status",
            sa.Enum("created", "started", "ended", "cancel", name="ridestatus"),
            server_default="created",
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_rides_status", "rides", ["status"])
    op.create_index("idx_rides_customer", "rides", ["customer_id"])
    op.create_index("idx_rides_driver_status", "rides", ["driver_id", "status"])
    op.create_index(
        "idx_rides_requested_to",
        "rides",
        ["requested_to"],
        postgresql_using="gin",
    )

    # ── devices ───────────────────────────────────────────────────────
    op.create_table(
        "devices",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("fcm_token", sa.Text, nullable=False),
        sa.Column("device_type", sa.String(20), server_default="unknown", nullable=False),
        sa.Column("active", sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_notified", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_devices_active", "devices", ["active"])


def downgrade() -> None:
    op.drop_table("devices")
    op.drop_table("rides")
    op.drop_table("customers")
    op.drop_table("drivers")
    op.execute("DROP TYPE IF EXISTS ridestatus")
