"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``vehicles``       -- fleet registry with status lifecycle
* ``drivers``        -- license, certified categories, duty status
* ``trips``          -- transportation jobs (one vehicle, one driver)
* ``fuel_expenses``  -- fuel records, optionally linked to a trip
* ``maintenance_logs`` -- shop visits; logging one sends the vehicle to the shop
* ``audit_entries``  -- append-only action log

Records reference each other by id only; nothing is embedded.

Indexes
-------
* **B-Tree** on ``status`` columns and on ``trips.vehicle_id`` /
  ``trips.driver_id`` for the listing filters.
* ``audit_entries (entity_type, entity_id)`` for per-entity history.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)

from .database import Base
from fleetflow.domain.enums import (
    DriverStatus,
    TripStatus,
    VehicleStatus,
    VehicleType,
)


def _enum(enum_cls):
    """Persist enum *values* (``on_trip``), not member names."""
    return Enum(
        enum_cls,
        name=enum_cls.__name__.lower(),
        values_callable=lambda members: [m.value for m in members],
    )


class VehicleModel(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    license_plate = Column(String(20), unique=True, nullable=False)
    vehicle_type = Column(_enum(VehicleType), default=VehicleType.VAN, nullable=False)
    max_load_kg = Column(Float, nullable=False)
    odometer_km = Column(Float, default=0.0, nullable=False)
    status = Column(
        _enum(VehicleStatus), default=VehicleStatus.AVAILABLE, nullable=False
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("idx_vehicles_status", "status"),)


class DriverModel(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    license_number = Column(String(50), unique=True, nullable=False)
    license_expiry = Column(Date, nullable=False)
    categories = Column(JSON, default=list, nullable=False)
    status = Column(_enum(DriverStatus), default=DriverStatus.OFF_DUTY, nullable=False)
    # Weak back-reference, written only by the allocator
    assigned_vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_drivers_status", "status"),
        Index("idx_drivers_license_expiry", "license_expiry"),
    )


class TripModel(Base):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reference_code = Column(String(40), unique=True, nullable=False)

    origin_address = Column(String(255), nullable=False)
    origin_lat = Column(Float, nullable=True)
    origin_lng = Column(Float, nullable=True)
    destination_address = Column(String(255), nullable=False)
    destination_lat = Column(Float, nullable=True)
    destination_lng = Column(Float, nullable=True)

    cargo_weight_kg = Column(Float, nullable=False)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False)
    status = Column(_enum(TripStatus), default=TripStatus.DRAFT, nullable=False)

    # Lifecycle milestones, each set exactly once
    created_at = Column(DateTime(timezone=True), nullable=False)
    dispatched_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    start_odometer = Column(Float, default=0.0, nullable=False)
    end_odometer = Column(Float, nullable=True)
    revenue = Column(Float, default=0.0, nullable=False)
    notes = Column(Text, default="", nullable=False)

    __table_args__ = (
        Index("idx_trips_status", "status"),
        Index("idx_trips_vehicle", "vehicle_id"),
        Index("idx_trips_driver", "driver_id"),
        Index("idx_trips_created", "created_at"),
    )


class FuelExpenseModel(Base):
    __tablename__ = "fuel_expenses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=True)
    liters = Column(Float, default=0.0, nullable=False)
    cost = Column(Float, default=0.0, nullable=False)
    expense_date = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(Integer, nullable=False)

    __table_args__ = (
        Index("idx_fuel_expenses_vehicle", "vehicle_id"),
        Index("idx_fuel_expenses_trip", "trip_id"),
    )


class MaintenanceLogModel(Base):
    __tablename__ = "maintenance_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)
    maintenance_type = Column(String(100), nullable=False)  # "Oil Change", "Brake Repair"
    provider = Column(String(100), default="", nullable=False)
    cost = Column(Float, default=0.0, nullable=False)
    service_date = Column(DateTime(timezone=True), nullable=False)
    resolved = Column(Boolean, default=False, nullable=False)
    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_maintenance_vehicle", "vehicle_id"),
        Index("idx_maintenance_service_date", "service_date"),
    )


class AuditEntryModel(Base):
    __tablename__ = "audit_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    action = Column(String(50), nullable=False)
    entity_type = Column(String(20), nullable=False)
    entity_id = Column(Integer, nullable=False)
    actor_id = Column(Integer, nullable=False)
    details = Column(JSON, default=dict, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_created", "created_at"),
    )
