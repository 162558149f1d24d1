"""
Domain value objects and lifecycle rules.

Patterns used
-------------
- **State Pattern** on trips: ``assert_transition`` enforces valid lifecycle
  transitions (DRAFT -> DISPATCHED -> COMPLETED | CANCELLED, DRAFT -> CANCELLED).
- Frozen snapshots of vehicles and drivers are what the eligibility checker
  sees, so it never touches the database or holds a lock.
"""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from .enums import (
    TRIP_TRANSITIONS,
    DriverStatus,
    TripStatus,
    VehicleStatus,
    VehicleType,
)
from .errors import StateConflictError


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass(frozen=True)
class VehicleSnapshot:
    id: int
    vehicle_type: VehicleType
    max_load_kg: float
    odometer_km: float
    status: VehicleStatus

    @classmethod
    def from_record(cls, record: Any) -> "VehicleSnapshot":
        return cls(
            id=record.id,
            vehicle_type=VehicleType(record.vehicle_type),
            max_load_kg=float(record.max_load_kg),
            odometer_km=float(record.odometer_km),
            status=VehicleStatus(record.status),
        )


@dataclass(frozen=True)
class DriverSnapshot:
    id: int
    license_expiry: date
    status: DriverStatus
    categories: frozenset[VehicleType] = field(default_factory=frozenset)
    assigned_vehicle_id: Optional[int] = None

    @classmethod
    def from_record(cls, record: Any) -> "DriverSnapshot":
        return cls(
            id=record.id,
            license_expiry=record.license_expiry,
            status=DriverStatus(record.status),
            categories=frozenset(VehicleType(c) for c in (record.categories or [])),
            assigned_vehicle_id=record.assigned_vehicle_id,
        )


# ── Trip lifecycle ────────────────────────────────────────────────────


def can_transition(current: TripStatus, target: TripStatus) -> bool:
    return target in TRIP_TRANSITIONS.get(TripStatus(current), set())


def assert_transition(trip_id: Any, current: TripStatus, target: TripStatus) -> None:
    """Raise ``StateConflictError`` unless *current* -> *target* is legal."""
    current = TripStatus(current)
    if not can_transition(current, target):
        allowed = {s for s, nxt in TRIP_TRANSITIONS.items() if target in nxt}
        raise StateConflictError(
            f'Cannot move trip {trip_id} to "{target.value}" from status "{current.value}".',
            entity_type="trip",
            entity_id=trip_id,
            current=current,
            required=allowed,
        )


def generate_reference_code(prefix: str = "TRP") -> str:
    """Human-readable trip reference, e.g. ``TRP-1718000000000-4F2A``."""
    millis = int(time.time() * 1000)
    return f"{prefix}-{millis}-{secrets.token_hex(2).upper()}"
