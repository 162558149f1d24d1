"""
Fuel expenses outside trip completion.

Completing a trip can record its fuel in the same transaction (see
``TripService.complete_trip``).  This service covers the rest: fuel bought
between trips, or added to a trip after the fact, and the fleet-wide
listing.  An expense linked to a trip must name that trip's vehicle.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetflow.domain.enums import AuditAction, EntityType
from fleetflow.domain.errors import ValidationError
from fleetflow.domain.validation import check_amount, check_id
from fleetflow.infrastructure.allocator import AllocationUnit, TransactionalAllocator
from fleetflow.infrastructure.models import FuelExpenseModel
from fleetflow.infrastructure.repositories import FuelExpenseRepository
from fleetflow.services.audit import AuditRecorder

logger = logging.getLogger(__name__)


class ExpenseService:
    def __init__(
        self,
        allocator: TransactionalAllocator,
        audit: AuditRecorder,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self.allocator = allocator
        self.audit = audit
        self._session_factory = session_factory

    async def record_fuel_expense(
        self,
        *,
        vehicle_id: int,
        liters: float,
        cost: float,
        actor_id: int,
        trip_id: Optional[int] = None,
        expense_date: Optional[datetime] = None,
    ) -> FuelExpenseModel:
        check_id("vehicle_id", vehicle_id)
        check_id("actor_id", actor_id)
        if trip_id is not None:
            check_id("trip_id", trip_id)
        check_amount("liters", liters)
        check_amount("cost", cost)
        if liters == 0 and cost == 0:
            raise ValidationError(
                "liters", "A fuel expense needs liters or cost above zero.", liters
            )
        if expense_date is None:
            expense_date = datetime.now(timezone.utc)

        async def work(unit: AllocationUnit) -> FuelExpenseModel:
            await unit.vehicles.require(vehicle_id)
            if trip_id is not None:
                trip = await unit.trips.require(trip_id)
                if trip.vehicle_id != vehicle_id:
                    raise ValidationError(
                        "trip_id",
                        f"Trip {trip.reference_code} uses vehicle {trip.vehicle_id}, "
                        f"not vehicle {vehicle_id}.",
                        trip_id,
                    )
            return await unit.expenses.create(
                vehicle_id=vehicle_id,
                trip_id=trip_id,
                liters=liters,
                cost=cost,
                expense_date=expense_date,
                created_by=actor_id,
            )

        expense = await self.allocator.run(work)
        logger.info(
            "Fuel expense %s recorded for vehicle %s (%.1f L, %.2f)",
            expense.id,
            vehicle_id,
            liters,
            cost,
        )
        await self.audit.record(
            AuditAction.FUEL_EXPENSE_CREATED,
            EntityType.FUEL_EXPENSE,
            expense.id,
            actor_id,
            {"vehicle_id": vehicle_id, "trip_id": trip_id, "liters": liters, "cost": cost},
        )
        return expense

    async def list_expenses(
        self,
        *,
        vehicle_id: Optional[int] = None,
        trip_id: Optional[int] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[FuelExpenseModel], int]:
        async with self._session_factory() as session:
            return await FuelExpenseRepository(session).list(
                vehicle_id=vehicle_id, trip_id=trip_id, offset=offset, limit=limit
            )
