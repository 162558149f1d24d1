"""
Trip eligibility rules
======================

Evaluated in order; the first failing rule wins:

1. **Capacity**            -- cargo weight must not exceed ``max_load_kg``.
2. **License validity**    -- the license lapses at the start (00:00 UTC) of
   ``license_expiry``, so it must be strictly after today (UTC).
3. **Category match**      -- a driver with a non-empty category list must
   be certified for the vehicle type.  An empty list is unrestricted unless
   ``strict_categories`` is set, in which case it certifies nothing.
4. **Vehicle availability** -- vehicle status must be ``available``.
5. **Driver availability** -- driver must not be ``suspended``.

Pure functions over snapshots: no I/O, no locks, no clock reads unless
``now`` is omitted.  A naive ``now`` is taken as UTC.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from typing import Any, Optional

from .entities import DriverSnapshot, VehicleSnapshot
from .enums import DriverStatus, EligibilityRule, VehicleStatus
from .errors import EligibilityRejection


@dataclass(frozen=True)
class EligibilityFailure:
    rule: EligibilityRule
    message: str
    context: dict[str, Any] = field(default_factory=dict)

    def to_error(self) -> EligibilityRejection:
        return EligibilityRejection(self.rule, self.message, self.context)


def check_eligibility(
    cargo_weight_kg: float,
    vehicle: VehicleSnapshot,
    driver: DriverSnapshot,
    now: Optional[datetime] = None,
    strict_categories: bool = False,
) -> Optional[EligibilityFailure]:
    """Return ``None`` if the pairing is eligible, else the first failure."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    if cargo_weight_kg > vehicle.max_load_kg:
        return EligibilityFailure(
            EligibilityRule.CAPACITY,
            f"Load of {cargo_weight_kg:g} kg exceeds vehicle capacity "
            f"({vehicle.max_load_kg:g} kg). Choose a different vehicle or reduce load.",
            {"cargo_weight_kg": cargo_weight_kg, "max_load_kg": vehicle.max_load_kg},
        )

    lapses_at = datetime.combine(driver.license_expiry, time.min, tzinfo=timezone.utc)
    if lapses_at <= now:
        return EligibilityFailure(
            EligibilityRule.LICENSE_EXPIRED,
            f"Driver's license expired on {driver.license_expiry.isoformat()}. "
            "Assignment blocked.",
            {"license_expiry": driver.license_expiry.isoformat()},
        )

    if _category_blocked(vehicle, driver, strict_categories):
        held = sorted(c.value for c in driver.categories)
        return EligibilityFailure(
            EligibilityRule.CATEGORY_MISMATCH,
            f'Driver is not certified for vehicle type "{vehicle.vehicle_type.value}". '
            f"Driver categories: {', '.join(held) or 'none'}.",
            {"vehicle_type": vehicle.vehicle_type.value, "driver_categories": held},
        )

    if vehicle.status != VehicleStatus.AVAILABLE:
        return EligibilityFailure(
            EligibilityRule.VEHICLE_UNAVAILABLE,
            f'Vehicle is currently "{vehicle.status.value}" and cannot be '
            "assigned to a new trip.",
            {"vehicle_status": vehicle.status.value},
        )

    if driver.status == DriverStatus.SUSPENDED:
        return EligibilityFailure(
            EligibilityRule.DRIVER_SUSPENDED,
            "Driver is suspended and cannot be assigned to a trip.",
            {"driver_status": driver.status.value},
        )

    return None


def ensure_eligible(
    cargo_weight_kg: float,
    vehicle: VehicleSnapshot,
    driver: DriverSnapshot,
    now: Optional[datetime] = None,
    strict_categories: bool = False,
) -> None:
    """Raise ``EligibilityRejection`` for the first failing rule."""
    failure = check_eligibility(
        cargo_weight_kg, vehicle, driver, now, strict_categories
    )
    if failure is not None:
        raise failure.to_error()


def _category_blocked(
    vehicle: VehicleSnapshot, driver: DriverSnapshot, strict: bool
) -> bool:
    if not driver.categories:
        return strict
    return vehicle.vehicle_type not in driver.categories
