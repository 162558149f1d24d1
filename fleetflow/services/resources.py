"""
Manual resource status changes and registry reads.

Operators can take a vehicle out of service, retire it or send it to the
shop, and can suspend or reinstate drivers.  These changes go through the
same allocator as trip transitions so vehicle and driver status keep a
single write path:

* ``on_trip`` is never set by hand; only dispatching a trip sets it.
* A vehicle that is ``on_trip`` cannot be changed by hand.
* A driver with a vehicle assigned cannot be changed by hand.

Logging maintenance writes the log row and moves the vehicle to ``in_shop``
in the same unit.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetflow.domain.enums import (
    AuditAction,
    DriverStatus,
    EntityType,
    EventType,
    VehicleStatus,
    VehicleType,
)
from fleetflow.domain.errors import ValidationError
from fleetflow.domain.validation import check_amount, check_id, check_text
from fleetflow.infrastructure.allocator import AllocationUnit, TransactionalAllocator
from fleetflow.infrastructure.models import (
    DriverModel,
    MaintenanceLogModel,
    VehicleModel,
)
from fleetflow.infrastructure.repositories import (
    DriverRegistry,
    MaintenanceRepository,
    VehicleRegistry,
)
from fleetflow.services.audit import AuditRecorder
from fleetflow.services.notifier import (
    EventNotifier,
    StateChangeEvent,
    driver_state,
    maintenance_state,
    vehicle_state,
)

logger = logging.getLogger(__name__)

_MANUAL_VEHICLE_STATUSES = set(VehicleStatus) - {VehicleStatus.ON_TRIP}
_SERVICEABLE_STATUSES = {
    VehicleStatus.AVAILABLE,
    VehicleStatus.OUT_OF_SERVICE,
    VehicleStatus.IN_SHOP,
}


class ResourceService:
    def __init__(
        self,
        allocator: TransactionalAllocator,
        audit: AuditRecorder,
        notifier: EventNotifier,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self.allocator = allocator
        self.audit = audit
        self.notifier = notifier
        self._session_factory = session_factory

    async def change_vehicle_status(
        self, vehicle_id: int, status: VehicleStatus, *, actor_id: int
    ) -> VehicleModel:
        check_id("vehicle_id", vehicle_id)
        check_id("actor_id", actor_id)
        status = _coerce_status(VehicleStatus, status)
        if status == VehicleStatus.ON_TRIP:
            raise ValidationError(
                "status",
                'A vehicle becomes "on_trip" only by dispatching a trip.',
                status.value,
            )

        async def work(unit: AllocationUnit):
            before = await unit.vehicles.require(vehicle_id, for_update=True)
            previous = before.status
            vehicle = await unit.vehicles.transition(
                vehicle_id, status, expected=_MANUAL_VEHICLE_STATUSES
            )
            return previous, vehicle

        previous, vehicle = await self.allocator.run(work)
        logger.info(
            "Vehicle %s status %s -> %s", vehicle_id, previous.value, status.value
        )
        await self.audit.record(
            AuditAction.VEHICLE_STATUS_CHANGED,
            EntityType.VEHICLE,
            vehicle_id,
            actor_id,
            {"previous_status": previous.value, "new_status": status.value},
        )
        self._publish(
            StateChangeEvent(
                EventType.VEHICLE_UPDATE,
                EntityType.VEHICLE,
                vehicle.id,
                vehicle_state(vehicle),
            )
        )
        return vehicle

    async def change_driver_status(
        self, driver_id: int, status: DriverStatus, *, actor_id: int
    ) -> DriverModel:
        check_id("driver_id", driver_id)
        check_id("actor_id", actor_id)
        status = _coerce_status(DriverStatus, status)

        async def work(unit: AllocationUnit):
            before = await unit.drivers.require(driver_id, for_update=True)
            previous = before.status
            driver = await unit.drivers.transition(
                driver_id,
                status,
                expected=set(DriverStatus),
                expected_vehicle_id=None,
            )
            return previous, driver

        previous, driver = await self.allocator.run(work)
        logger.info("Driver %s status %s -> %s", driver_id, previous.value, status.value)
        await self.audit.record(
            AuditAction.DRIVER_STATUS_CHANGED,
            EntityType.DRIVER,
            driver_id,
            actor_id,
            {"previous_status": previous.value, "new_status": status.value},
        )
        self._publish(
            StateChangeEvent(
                EventType.DRIVER_UPDATE,
                EntityType.DRIVER,
                driver.id,
                driver_state(driver),
            )
        )
        return driver

    async def log_maintenance(
        self,
        vehicle_id: int,
        *,
        maintenance_type: str,
        cost: float,
        actor_id: int,
        provider: str = "",
        service_date: Optional[datetime] = None,
        resolved: bool = False,
    ) -> tuple[MaintenanceLogModel, VehicleModel]:
        """Record a maintenance job and send the vehicle to the shop.

        The log row and the ``in_shop`` status are written in one unit, so
        either both exist or neither does.  A vehicle that is on a trip or
        retired is rejected with ``StateConflictError``; one already in the
        shop takes the extra log and stays there.
        """
        check_id("vehicle_id", vehicle_id)
        check_id("actor_id", actor_id)
        check_text("maintenance_type", maintenance_type)
        check_amount("cost", cost)
        if service_date is None:
            service_date = datetime.now(timezone.utc)

        async def work(unit: AllocationUnit):
            before = await unit.vehicles.require(vehicle_id, for_update=True)
            previous = before.status
            vehicle = await unit.vehicles.transition(
                vehicle_id, VehicleStatus.IN_SHOP, expected=_SERVICEABLE_STATUSES
            )
            log = await unit.maintenance.create(
                vehicle_id=vehicle_id,
                maintenance_type=maintenance_type.strip(),
                provider=(provider or "").strip(),
                cost=cost,
                service_date=service_date,
                created_by=actor_id,
                resolved=resolved,
            )
            return previous, log, vehicle

        previous, log, vehicle = await self.allocator.run(work)
        logger.info(
            "Maintenance %s logged for vehicle %s (%s -> in_shop)",
            log.id,
            vehicle_id,
            previous.value,
        )
        await self.audit.record(
            AuditAction.MAINTENANCE_CREATED,
            EntityType.MAINTENANCE,
            log.id,
            actor_id,
            {
                "vehicle_id": vehicle_id,
                "maintenance_type": log.maintenance_type,
                "previous_status": previous.value,
            },
        )
        self._publish(
            StateChangeEvent(
                EventType.VEHICLE_UPDATE,
                EntityType.VEHICLE,
                vehicle.id,
                vehicle_state(vehicle),
            )
        )
        self._publish(
            StateChangeEvent(
                EventType.MAINTENANCE_ADDED,
                EntityType.MAINTENANCE,
                log.id,
                maintenance_state(log),
            )
        )
        return log, vehicle

    # ── Queries ───────────────────────────────────────────────────────

    async def get_vehicle(self, vehicle_id: int) -> VehicleModel:
        async with self._session_factory() as session:
            return await VehicleRegistry(session).require(vehicle_id)

    async def list_vehicles(
        self,
        *,
        status: Optional[VehicleStatus] = None,
        vehicle_type: Optional[VehicleType] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[VehicleModel], int]:
        async with self._session_factory() as session:
            return await VehicleRegistry(session).list(
                status=status,
                vehicle_type=vehicle_type,
                search=search,
                offset=offset,
                limit=limit,
            )

    async def get_driver(self, driver_id: int) -> DriverModel:
        async with self._session_factory() as session:
            return await DriverRegistry(session).require(driver_id)

    async def list_drivers(
        self,
        *,
        status: Optional[DriverStatus] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[DriverModel], int]:
        async with self._session_factory() as session:
            return await DriverRegistry(session).list(
                status=status, search=search, offset=offset, limit=limit
            )

    async def list_maintenance(
        self,
        *,
        vehicle_id: Optional[int] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[MaintenanceLogModel], int]:
        async with self._session_factory() as session:
            return await MaintenanceRepository(session).list(
                vehicle_id=vehicle_id, search=search, offset=offset, limit=limit
            )

    def _publish(self, event: StateChangeEvent) -> None:
        try:
            self.notifier.publish(event)
        except Exception:
            logger.exception("Failed to publish %s", event.event_type.value)


def _coerce_status(enum_cls, value):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(
            "status", f"Unknown status {value!r}; expected one of: {allowed}.", value
        ) from None
