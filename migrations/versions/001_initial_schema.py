"""Initial schema: fleet registry, trips, fuel and maintenance records, audit log.

Revision ID: 001
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


VEHICLE_TYPES = ("van", "truck", "bike", "car", "other")
VEHICLE_STATUSES = ("available", "on_trip", "in_shop", "retired", "out_of_service")
DRIVER_STATUSES = ("on_duty", "off_duty", "suspended")
TRIP_STATUSES = ("draft", "dispatched", "completed", "cancelled")


def upgrade() -> None:
    # ── vehicles ──────────────────────────────────────────────────────
    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("license_plate", sa.String(20), unique=True, nullable=False),
        sa.Column(
            "vehicle_type",
            sa.Enum(*VEHICLE_TYPES, name="vehicletype"),
            default="van",
            nullable=False,
        ),
        sa.Column("max_load_kg", sa.Float, nullable=False),
        sa.Column("odometer_km", sa.Float, default=0.0, nullable=False),
        sa.Column(
            "status",
            sa.Enum(*VEHICLE_STATUSES, name="vehiclestatus"),
            default="available",
            nullable=False,
        ),
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
        sa.CheckConstraint("max_load_kg >= 0", name="ck_vehicles_max_load"),
        sa.CheckConstraint("odometer_km >= 0", name="ck_vehicles_odometer"),
    )
    op.create_index("idx_vehicles_status", "vehicles", ["status"])

    # ── drivers ───────────────────────────────────────────────────────
    op.create_table(
        "drivers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("license_number", sa.String(50), unique=True, nullable=False),
        sa.Column("license_expiry", sa.Date, nullable=False),
        sa.Column("categories", sa.JSON, nullable=False),
        sa.Column(
            "status",
            sa.Enum(*DRIVER_STATUSES, name="driverstatus"),
            default="off_duty",
            nullable=False,
        ),
        sa.Column(
            "assigned_vehicle_id",
            sa.Integer,
            sa.ForeignKey("vehicles.id"),
            nullable=True,
        ),
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
    )
    op.create_index("idx_drivers_status", "drivers", ["status"])
    op.create_index("idx_drivers_license_expiry", "drivers", ["license_expiry"])

    # ── trips ─────────────────────────────────────────────────────────
    op.create_table(
        "trips",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("reference_code", sa.String(40), unique=True, nullable=False),
        sa.Column("origin_address", sa.String(255), nullable=False),
        sa.Column("origin_lat", sa.Float, nullable=True),
        sa.Column("origin_lng", sa.Float, nullable=True),
        sa.Column("destination_address", sa.String(255), nullable=False),
        sa.Column("destination_lat", sa.Float, nullable=True),
        sa.Column("destination_lng", sa.Float, nullable=True),
        sa.Column("cargo_weight_kg", sa.Float, nullable=False),
        sa.Column(
            "vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=False
        ),
        sa.Column(
            "driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=False
        ),
        sa.Column(
            "status",
            sa.Enum(*TRIP_STATUSES, name="tripstatus"),
            default="draft",
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("dispatched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("start_odometer", sa.Float, default=0.0, nullable=False),
        sa.Column("end_odometer", sa.Float, nullable=True),
        sa.Column("revenue", sa.Float, default=0.0, nullable=False),
        sa.Column("notes", sa.Text, default="", nullable=False),
        sa.CheckConstraint("cargo_weight_kg >= 0", name="ck_trips_cargo"),
        sa.CheckConstraint(
            "end_odometer IS NULL OR end_odometer >= start_odometer",
            name="ck_trips_odometer",
        ),
    )
    op.create_index("idx_trips_status", "trips", ["status"])
    op.create_index("idx_trips_vehicle", "trips", ["vehicle_id"])
    op.create_index("idx_trips_driver", "trips", ["driver_id"])
    op.create_index("idx_trips_created", "trips", ["created_at"])

    # ── fuel_expenses ─────────────────────────────────────────────────
    op.create_table(
        "fuel_expenses",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=False
        ),
        sa.Column("trip_id", sa.Integer, sa.ForeignKey("trips.id"), nullable=True),
        sa.Column("liters", sa.Float, default=0.0, nullable=False),
        sa.Column("cost", sa.Float, default=0.0, nullable=False),
        sa.Column("expense_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.Integer, nullable=False),
    )
    op.create_index("idx_fuel_expenses_vehicle", "fuel_expenses", ["vehicle_id"])
    op.create_index("idx_fuel_expenses_trip", "fuel_expenses", ["trip_id"])

    # ── maintenance_logs ──────────────────────────────────────────────
    op.create_table(
        "maintenance_logs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=False
        ),
        sa.Column("maintenance_type", sa.String(100), nullable=False),
        sa.Column("provider", sa.String(100), default="", nullable=False),
        sa.Column("cost", sa.Float, default=0.0, nullable=False),
        sa.Column("service_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved", sa.Boolean, default=False, nullable=False),
        sa.Column("created_by", sa.Integer, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("cost >= 0", name="ck_maintenance_cost"),
    )
    op.create_index("idx_maintenance_vehicle", "maintenance_logs", ["vehicle_id"])
    op.create_index(
        "idx_maintenance_service_date", "maintenance_logs", ["service_date"]
    )

    # ── audit_entries ─────────────────────────────────────────────────
    op.create_table(
        "audit_entries",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(20), nullable=False),
        sa.Column("entity_id", sa.Integer, nullable=False),
        sa.Column("actor_id", sa.Integer, nullable=False),
        sa.Column("details", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "idx_audit_entity", "audit_entries", ["entity_type", "entity_id"]
    )
    op.create_index("idx_audit_created", "audit_entries", ["created_at"])


def downgrade() -> None:
    op.drop_table("audit_entries")
    op.drop_table("maintenance_logs")
    op.drop_table("fuel_expenses")
    op.drop_table("trips")
    op.drop_table("drivers")
    op.drop_table("vehicles")
    op.execute("DROP TYPE IF EXISTS tripstatus")
    op.execute("DROP TYPE IF EXISTS driverstatus")
    op.execute("DROP TYPE IF EXISTS vehiclestatus")
    op.execute("DROP TYPE IF EXISTS vehicletype")
