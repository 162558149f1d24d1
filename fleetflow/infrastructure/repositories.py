"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  None of them commits: the caller owns the
transaction.

``VehicleRegistry`` and ``DriverRegistry`` form the resource registry.
Their ``transition`` methods are conditional updates
(``UPDATE ... WHERE id = :id AND status IN (:expected)``): a concurrent
writer that got there first leaves zero matching rows and the loser gets a
``StateConflictError`` instead of silently overwriting.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    AuditEntryModel,
    DriverModel,
    FuelExpenseModel,
    MaintenanceLogModel,
    TripModel,
    VehicleModel,
)
from fleetflow.domain.entities import assert_transition
from fleetflow.domain.enums import (
    DriverStatus,
    TripStatus,
    VehicleStatus,
    VehicleType,
)
from fleetflow.domain.errors import NotFoundError, StateConflictError

_KEEP = object()


class VehicleRegistry:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(
        self,
        *,
        name: str,
        license_plate: str,
        max_load_kg: float,
        vehicle_type: VehicleType = VehicleType.VAN,
        odometer_km: float = 0.0,
        status: VehicleStatus = VehicleStatus.AVAILABLE,
    ) -> VehicleModel:
        vehicle = VehicleModel(
            name=name,
            license_plate=license_plate,
            vehicle_type=vehicle_type,
            max_load_kg=max_load_kg,
            odometer_km=odometer_km,
            status=status,
        )
        self.session.add(vehicle)
        await self.session.flush()
        return vehicle

    async def require(self, vehicle_id: int, *, for_update: bool = False) -> VehicleModel:
        """Latest committed row (optionally ``SELECT ... FOR UPDATE``)."""
        query = select(VehicleModel).where(VehicleModel.id == vehicle_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(
            query.execution_options(populate_existing=True)
        )
        vehicle = result.scalar_one_or_none()
        if vehicle is None:
            raise NotFoundError("vehicle", vehicle_id)
        return vehicle

    async def list(
        self,
        *,
        status: VehicleStatus | None = None,
        vehicle_type: VehicleType | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[VehicleModel], int]:
        filters = []
        if status:
            filters.append(VehicleModel.status == status)
        if vehicle_type:
            filters.append(VehicleModel.vehicle_type == vehicle_type)
        if search:
            pattern = f"%{search}%"
            filters.append(
                or_(
                    VehicleModel.name.ilike(pattern),
                    VehicleModel.license_plate.ilike(pattern),
                )
            )
        return await _page(
            self.session, VehicleModel, filters, VehicleModel.id.desc(), offset, limit
        )

    async def transition(
        self,
        vehicle_id: int,
        target: VehicleStatus,
        *,
        expected: Iterable[VehicleStatus],
        odometer_km: float | None = None,
    ) -> VehicleModel:
        """Move the vehicle to *target* if its status is one of *expected*.

        ``odometer_km`` raises the odometer; it never lowers it.
        """
        expected = set(expected)
        values: dict[str, Any] = {"status": target}
        if odometer_km is not None:
            values["odometer_km"] = case(
                (VehicleModel.odometer_km < odometer_km, odometer_km),
                else_=VehicleModel.odometer_km,
            )

        result = await self.session.execute(
            update(VehicleModel)
            .where(
                VehicleModel.id == vehicle_id,
                VehicleModel.status.in_(list(expected)),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            current = await self.require(vehicle_id)
            raise StateConflictError(
                f'Vehicle {vehicle_id} is "{current.status.value}"; cannot move it '
                f'to "{target.value}".',
                entity_type="vehicle",
                entity_id=vehicle_id,
                current=current.status,
                required=expected,
            )
        return await self.require(vehicle_id)


class DriverRegistry:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(
        self,
        *,
        name: str,
        license_number: str,
        license_expiry,
        categories: Iterable[VehicleType] = (),
        status: DriverStatus = DriverStatus.OFF_DUTY,
    ) -> DriverModel:
        driver = DriverModel(
            name=name,
            license_number=license_number,
            license_expiry=license_expiry,
            categories=[VehicleType(c).value for c in categories],
            status=status,
        )
        self.session.add(driver)
        await self.session.flush()
        return driver

    async def require(self, driver_id: int, *, for_update: bool = False) -> DriverModel:
        query = select(DriverModel).where(DriverModel.id == driver_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(
            query.execution_options(populate_existing=True)
        )
        driver = result.scalar_one_or_none()
        if driver is None:
            raise NotFoundError("driver", driver_id)
        return driver

    async def list(
        self,
        *,
        status: DriverStatus | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[DriverModel], int]:
        filters = []
        if status:
            filters.append(DriverModel.status == status)
        if search:
            pattern = f"%{search}%"
            filters.append(
                or_(
                    DriverModel.name.ilike(pattern),
                    DriverModel.license_number.ilike(pattern),
                )
            )
        return await _page(
            self.session, DriverModel, filters, DriverModel.id.desc(), offset, limit
        )

    async def transition(
        self,
        driver_id: int,
        target: DriverStatus,
        *,
        expected: Iterable[DriverStatus],
        expected_vehicle_id: Any = _KEEP,
        assigned_vehicle_id: Any = _KEEP,
    ) -> DriverModel:
        """Move the driver to *target* if its status is one of *expected*.

        ``expected_vehicle_id`` additionally requires the current vehicle
        back-reference (``None`` = unassigned).  ``assigned_vehicle_id``
        sets or clears it; both are left alone when omitted.
        """
        expected = set(expected)
        conditions = [
            DriverModel.id == driver_id,
            DriverModel.status.in_(list(expected)),
        ]
        if expected_vehicle_id is None:
            conditions.append(DriverModel.assigned_vehicle_id.is_(None))
        elif expected_vehicle_id is not _KEEP:
            conditions.append(DriverModel.assigned_vehicle_id == expected_vehicle_id)

        values: dict[str, Any] = {"status": target}
        if assigned_vehicle_id is not _KEEP:
            values["assigned_vehicle_id"] = assigned_vehicle_id

        result = await self.session.execute(
            update(DriverModel)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            current = await self.require(driver_id)
            detail = f'Driver {driver_id} is "{current.status.value}"'
            if current.assigned_vehicle_id is not None:
                detail += f" with vehicle {current.assigned_vehicle_id} assigned"
            raise StateConflictError(
                f'{detail}; cannot move it to "{target.value}".',
                entity_type="driver",
                entity_id=driver_id,
                current=current.status,
                required=expected,
            )
        return await self.require(driver_id)


class TripRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, trip: TripModel) -> TripModel:
        self.session.add(trip)
        await self.session.flush()
        return trip

    async def require(self, trip_id: int, *, for_update: bool = False) -> TripModel:
        query = select(TripModel).where(TripModel.id == trip_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(
            query.execution_options(populate_existing=True)
        )
        trip = result.scalar_one_or_none()
        if trip is None:
            raise NotFoundError("trip", trip_id)
        return trip

    async def list(
        self,
        *,
        status: TripStatus | None = None,
        vehicle_id: int | None = None,
        driver_id: int | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[TripModel], int]:
        filters = []
        if status:
            filters.append(TripModel.status == status)
        if vehicle_id:
            filters.append(TripModel.vehicle_id == vehicle_id)
        if driver_id:
            filters.append(TripModel.driver_id == driver_id)
        if search:
            pattern = f"%{search}%"
            filters.append(
                or_(
                    TripModel.reference_code.ilike(pattern),
                    TripModel.origin_address.ilike(pattern),
                    TripModel.destination_address.ilike(pattern),
                )
            )
        return await _page(
            self.session, TripModel, filters, TripModel.created_at.desc(), offset, limit
        )

    async def transition(
        self,
        trip_id: int,
        target: TripStatus,
        *,
        expected: TripStatus,
        **values: Any,
    ) -> TripModel:
        """Compare-and-set the trip status; *values* are written alongside."""
        result = await self.session.execute(
            update(TripModel)
            .where(TripModel.id == trip_id, TripModel.status == expected)
            .values(status=target, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            current = await self.require(trip_id)
            assert_transition(trip_id, current.status, target)
            # Legal in general but not from the status we read earlier
            raise StateConflictError(
                f'Trip {trip_id} changed concurrently (now "{current.status.value}").',
                entity_type="trip",
                entity_id=trip_id,
                current=current.status,
                required=expected,
            )
        return await self.require(trip_id)


class FuelExpenseRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        *,
        vehicle_id: int,
        trip_id: int | None,
        liters: float,
        cost: float,
        expense_date: datetime,
        created_by: int,
    ) -> FuelExpenseModel:
        expense = FuelExpenseModel(
            vehicle_id=vehicle_id,
            trip_id=trip_id,
            liters=liters,
            cost=cost,
            expense_date=expense_date,
            created_by=created_by,
        )
        self.session.add(expense)
        await self.session.flush()
        return expense

    async def list(
        self,
        *,
        vehicle_id: int | None = None,
        trip_id: int | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[FuelExpenseModel], int]:
        filters = []
        if vehicle_id:
            filters.append(FuelExpenseModel.vehicle_id == vehicle_id)
        if trip_id:
            filters.append(FuelExpenseModel.trip_id == trip_id)
        return await _page(
            self.session,
            FuelExpenseModel,
            filters,
            FuelExpenseModel.expense_date.desc(),
            offset,
            limit,
        )

    async def list_for_trip(self, trip_id: int) -> list[FuelExpenseModel]:
        result = await self.session.execute(
            select(FuelExpenseModel)
            .where(FuelExpenseModel.trip_id == trip_id)
            .order_by(FuelExpenseModel.id)
        )
        return list(result.scalars().all())


class MaintenanceRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        *,
        vehicle_id: int,
        maintenance_type: str,
        cost: float,
        service_date: datetime,
        created_by: int,
        provider: str = "",
        resolved: bool = False,
    ) -> MaintenanceLogModel:
        log = MaintenanceLogModel(
            vehicle_id=vehicle_id,
            maintenance_type=maintenance_type,
            provider=provider,
            cost=cost,
            service_date=service_date,
            created_by=created_by,
            resolved=resolved,
        )
        self.session.add(log)
        await self.session.flush()
        return log

    async def list(
        self,
        *,
        vehicle_id: int | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[MaintenanceLogModel], int]:
        filters = []
        if vehicle_id:
            filters.append(MaintenanceLogModel.vehicle_id == vehicle_id)
        if search:
            pattern = f"%{search}%"
            filters.append(
                or_(
                    MaintenanceLogModel.maintenance_type.ilike(pattern),
                    MaintenanceLogModel.provider.ilike(pattern),
                )
            )
        return await _page(
            self.session,
            MaintenanceLogModel,
            filters,
            MaintenanceLogModel.service_date.desc(),
            offset,
            limit,
        )


class AuditRepository:
    """Append-only; exposes no update or delete."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, entry: AuditEntryModel) -> AuditEntryModel:
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list(
        self,
        *,
        entity_type: str | None = None,
        entity_id: int | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[AuditEntryModel], int]:
        filters = []
        if entity_type:
            filters.append(AuditEntryModel.entity_type == entity_type)
        if entity_id:
            filters.append(AuditEntryModel.entity_id == entity_id)
        return await _page(
            self.session,
            AuditEntryModel,
            filters,
            AuditEntryModel.id.desc(),
            offset,
            limit,
        )


async def _page(session: AsyncSession, model, filters, order_by, offset, limit):
    total = await session.execute(
        select(func.count()).select_from(model).where(*filters)
    )
    rows = await session.execute(
        select(model).where(*filters).order_by(order_by).offset(offset).limit(limit)
    )
    return list(rows.scalars().all()), total.scalar() or 0
