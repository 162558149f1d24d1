"""Domain enumerations and state-transition rules."""

import enum


class TripStatus(str, enum.Enum):
    DRAFT = "draft"
    DISPATCHED = "dispatched"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# State machine: maps current status -> set of valid next statuses
TRIP_TRANSITIONS: dict[TripStatus, set[TripStatus]] = {
    TripStatus.DRAFT: {TripStatus.DISPATCHED, TripStatus.CANCELLED},
    TripStatus.DISPATCHED: {TripStatus.COMPLETED, TripStatus.CANCELLED},
    TripStatus.COMPLETED: set(),
    TripStatus.CANCELLED: set(),
}

TERMINAL_TRIP_STATUSES = frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED})


class VehicleType(str, enum.Enum):
    VAN = "van"
    TRUCK = "truck"
    BIKE = "bike"
    CAR = "car"
    OTHER = "other"


class VehicleStatus(str, enum.Enum):
    AVAILABLE = "available"
    ON_TRIP = "on_trip"
    IN_SHOP = "in_shop"
    RETIRED = "retired"
    OUT_OF_SERVICE = "out_of_service"


class DriverStatus(str, enum.Enum):
    ON_DUTY = "on_duty"
    OFF_DUTY = "off_duty"
    SUSPENDED = "suspended"


class AuditAction(str, enum.Enum):
    TRIP_CREATED = "trip_created"
    TRIP_DISPATCHED = "trip_dispatched"
    TRIP_COMPLETED = "trip_completed"
    TRIP_CANCELLED = "trip_cancelled"
    VEHICLE_STATUS_CHANGED = "vehicle_status_changed"
    DRIVER_STATUS_CHANGED = "driver_status_changed"
    MAINTENANCE_CREATED = "maintenance_created"
    FUEL_EXPENSE_CREATED = "fuel_expense_created"


class EntityType(str, enum.Enum):
    TRIP = "trip"
    VEHICLE = "vehicle"
    DRIVER = "driver"
    MAINTENANCE = "maintenance"
    FUEL_EXPENSE = "fuel_expense"


class EventType(str, enum.Enum):
    TRIP_CREATED = "trip:created"
    TRIP_DISPATCHED = "trip:dispatched"
    TRIP_COMPLETED = "trip:completed"
    TRIP_CANCELLED = "trip:cancelled"
    VEHICLE_UPDATE = "vehicle:update"
    DRIVER_UPDATE = "driver:update"
    MAINTENANCE_ADDED = "maintenance:added"


class EligibilityRule(str, enum.Enum):
    CAPACITY = "capacity"
    LICENSE_EXPIRED = "license_expired"
    CATEGORY_MISMATCH = "category_mismatch"
    VEHICLE_UNAVAILABLE = "vehicle_unavailable"
    DRIVER_SUSPENDED = "driver_suspended"
