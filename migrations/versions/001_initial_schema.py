"""Initial schema: ride requests and vehicles with optimistic version stamps.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

REQUEST_STATUS = sa.Enum(
    "WAITING", "MATCHED", "DISPATCHED", "COMPLETED", "CANCELLED",
    name="requeststatus",
)
VEHICLE_STATUS = sa.Enum(
    "AVAILABLE", "RESERVED", "IN_SERVICE", "MAINTENANCE",
    name="vehiclestatus",
)


def upgrade() -> None:
    # ── ride_requests ─────────────────────────────────────────────────
    op.create_table(
        "ride_requests",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("pickup_lat", sa.Float, nullable=False),
        sa.Column("pickup_lng", sa.Float, nullable=False),
        sa.Column("zone_code", sa.String(16), nullable=False),
        sa.Column("seats_requested", sa.Integer, nullable=False, server_default="1"),
        sa.Column("luggage_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("status", REQUEST_STATUS, nullable=False, server_default="WAITING"),
        sa.Column("group_id", sa.String(36), nullable=True),
        sa.Column("assigned_vehicle_id", sa.Integer, nullable=True),
        sa.Column("operator_name", sa.String(120), nullable=True),
        sa.Column("estimated_arrival", sa.DateTime(timezone=True), nullable=True),
        sa.Column("idempotency_key", sa.String(64), unique=True, nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("seats_requested > 0", name="ck_requests_seats_positive"),
        sa.CheckConstraint("luggage_count >= 0", name="ck_requests_luggage"),
        # group id present exactly while the request is grouped
        sa.CheckConstraint(
            "(status IN ('MATCHED', 'DISPATCHED')) = (group_id IS NOT NULL)",
            name="ck_requests_group_id",
        ),
    )
    op.create_index(
        "idx_requests_zone_status", "ride_requests", ["zone_code", "status"]
    )
    op.create_index("idx_requests_group", "ride_requests", ["group_id"])

    # ── vehicles ──────────────────────────────────────────────────────
    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("operator_name", sa.String(120), nullable=False),
        sa.Column("current_lat", sa.Float, nullable=False),
        sa.Column("current_lng", sa.Float, nullable=False),
        sa.Column("total_seats", sa.Integer, nullable=False, server_default="4"),
        sa.Column("available_seats", sa.Integer, nullable=False, server_default="4"),
        sa.Column("luggage_capacity", sa.Integer, nullable=False, server_default="3"),
        sa.Column("available_luggage", sa.Integer, nullable=False, server_default="3"),
        sa.Column("status", VEHICLE_STATUS, nullable=False, server_default="AVAILABLE"),
        sa.Column("bound_group_id", sa.String(36), nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "(status IN ('RESERVED', 'IN_SERVICE')) = (bound_group_id IS NOT NULL)",
            name="ck_vehicles_bound_group",
        ),
    )
    op.create_index("idx_vehicles_status", "vehicles", ["status"])
    op.create_index("idx_vehicles_group", "vehicles", ["bound_group_id"])


def downgrade() -> None:
    op.drop_table("vehicles")
    op.drop_table("ride_requests")
    VEHICLE_STATUS.drop(op.get_bind(), checkfirst=True)
    REQUEST_STATUS.drop(op.get_bind(), checkfirst=True)
