"""
Trip State Machine
==================

Lifecycle::

    draft ──dispatch──> dispatched ──complete──> completed
      │                     │
      └──────cancel─────────┴──────cancel──────> cancelled

``completed`` and ``cancelled`` are terminal.

Every operation follows the same pipeline:

1. validate input (``ValidationError`` before any lookup),
2. run one ``TransactionalAllocator`` unit that moves the trip and its
   vehicle / driver together (all or nothing),
3. append one audit entry (best effort),
4. publish one event per affected entity (best effort).

Draft trips hold no resources; only dispatch takes the vehicle and driver,
and completion / cancellation of a dispatched trip gives them back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetflow.domain.eligibility import ensure_eligible
from fleetflow.domain.entities import (
    DriverSnapshot,
    Location,
    VehicleSnapshot,
    assert_transition,
    generate_reference_code,
)
from fleetflow.domain.enums import (
    AuditAction,
    DriverStatus,
    EntityType,
    EventType,
    TripStatus,
    VehicleStatus,
)
from fleetflow.domain.errors import OdometerRegressionError
from fleetflow.domain.validation import check_amount, check_id, check_location
from fleetflow.infrastructure.allocator import AllocationUnit, TransactionalAllocator
from fleetflow.infrastructure.models import (
    DriverModel,
    FuelExpenseModel,
    TripModel,
    VehicleModel,
)
from fleetflow.infrastructure.repositories import FuelExpenseRepository, TripRepository
from fleetflow.services.audit import AuditRecorder
from fleetflow.services.notifier import (
    EventNotifier,
    StateChangeEvent,
    driver_state,
    trip_state,
    vehicle_state,
)

logger = logging.getLogger(__name__)


@dataclass
class _Outcome:
    trip: TripModel
    vehicle: Optional[VehicleModel] = None
    driver: Optional[DriverModel] = None
    expense: Optional[FuelExpenseModel] = None


class TripService:
    def __init__(
        self,
        allocator: TransactionalAllocator,
        audit: AuditRecorder,
        notifier: EventNotifier,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        reference_prefix: str = "TRP",
        strict_categories: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.allocator = allocator
        self.audit = audit
        self.notifier = notifier
        self._session_factory = session_factory
        self._reference_prefix = reference_prefix
        self._strict_categories = strict_categories
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ── Commands ──────────────────────────────────────────────────────

    async def create_trip(
        self,
        *,
        origin: Location,
        destination: Location,
        cargo_weight_kg: float,
        vehicle_id: int,
        driver_id: int,
        actor_id: int,
        revenue: float = 0.0,
        notes: str = "",
    ) -> TripModel:
        """Create a ``draft`` trip after the eligibility rules pass."""
        check_location("origin", origin)
        check_location("destination", destination)
        check_amount("cargo_weight_kg", cargo_weight_kg)
        check_amount("revenue", revenue)
        check_id("vehicle_id", vehicle_id)
        check_id("driver_id", driver_id)
        check_id("actor_id", actor_id)

        now = self._clock()

        async def work(unit: AllocationUnit) -> _Outcome:
            vehicle = await unit.vehicles.require(vehicle_id)
            driver = await unit.drivers.require(driver_id)
            ensure_eligible(
                cargo_weight_kg,
                VehicleSnapshot.from_record(vehicle),
                DriverSnapshot.from_record(driver),
                now=now,
                strict_categories=self._strict_categories,
            )
            trip = TripModel(
                reference_code=generate_reference_code(self._reference_prefix),
                origin_address=origin.address,
                origin_lat=origin.latitude,
                origin_lng=origin.longitude,
                destination_address=destination.address,
                destination_lat=destination.latitude,
                destination_lng=destination.longitude,
                cargo_weight_kg=cargo_weight_kg,
                vehicle_id=vehicle.id,
                driver_id=driver.id,
                status=TripStatus.DRAFT,
                created_at=now,
                start_odometer=vehicle.odometer_km,
                revenue=revenue,
                notes=notes or "",
            )
            return _Outcome(trip=await unit.trips.create(trip))

        outcome = await self.allocator.run(work)
        trip = outcome.trip
        logger.info(
            "Trip %s created (vehicle=%s driver=%s cargo=%.1fkg)",
            trip.reference_code,
            vehicle_id,
            driver_id,
            cargo_weight_kg,
        )
        await self.audit.record(
            AuditAction.TRIP_CREATED,
            EntityType.TRIP,
            trip.id,
            actor_id,
            {
                "reference_code": trip.reference_code,
                "status": trip.status.value,
                "vehicle_id": vehicle_id,
                "driver_id": driver_id,
            },
        )
        self._broadcast(EventType.TRIP_CREATED, outcome)
        return trip

    async def dispatch_trip(self, trip_id: int, *, actor_id: int) -> TripModel:
        """``draft`` -> ``dispatched``; takes the vehicle and driver."""
        check_id("trip_id", trip_id)
        check_id("actor_id", actor_id)
        now = self._clock()

        async def work(unit: AllocationUnit) -> _Outcome:
            trip = await unit.trips.require(trip_id, for_update=True)
            assert_transition(trip.id, trip.status, TripStatus.DISPATCHED)
            vehicle = await unit.vehicles.require(trip.vehicle_id, for_update=True)

            # The odometer may have advanced since the draft was created
            trip = await unit.trips.transition(
                trip.id,
                TripStatus.DISPATCHED,
                expected=TripStatus.DRAFT,
                dispatched_at=now,
                start_odometer=max(trip.start_odometer, vehicle.odometer_km),
            )
            vehicle = await unit.vehicles.transition(
                trip.vehicle_id,
                VehicleStatus.ON_TRIP,
                expected={VehicleStatus.AVAILABLE},
            )
            driver = await unit.drivers.transition(
                trip.driver_id,
                DriverStatus.ON_DUTY,
                expected={DriverStatus.ON_DUTY, DriverStatus.OFF_DUTY},
                expected_vehicle_id=None,
                assigned_vehicle_id=trip.vehicle_id,
            )
            return _Outcome(trip=trip, vehicle=vehicle, driver=driver)

        outcome = await self.allocator.run(work)
        trip = outcome.trip
        logger.info("Trip %s dispatched", trip.reference_code)
        await self.audit.record(
            AuditAction.TRIP_DISPATCHED,
            EntityType.TRIP,
            trip.id,
            actor_id,
            {
                "reference_code": trip.reference_code,
                "status": trip.status.value,
                "start_odometer": trip.start_odometer,
            },
        )
        self._broadcast(EventType.TRIP_DISPATCHED, outcome)
        return trip

    async def complete_trip(
        self,
        trip_id: int,
        *,
        end_odometer: float,
        actor_id: int,
        fuel_liters: Optional[float] = None,
        fuel_cost: Optional[float] = None,
    ) -> TripModel:
        """``dispatched`` -> ``completed``; releases the vehicle and driver.

        A fuel expense is recorded in the same transaction when either
        ``fuel_liters`` or ``fuel_cost`` is greater than zero; the missing
        one is stored as ``0``.
        """
        check_id("trip_id", trip_id)
        check_id("actor_id", actor_id)
        check_amount("end_odometer", end_odometer)
        if fuel_liters is not None:
            check_amount("fuel_liters", fuel_liters)
        if fuel_cost is not None:
            check_amount("fuel_cost", fuel_cost)
        liters = fuel_liters or 0.0
        cost = fuel_cost or 0.0
        now = self._clock()

        async def work(unit: AllocationUnit) -> _Outcome:
            trip = await unit.trips.require(trip_id, for_update=True)
            assert_transition(trip.id, trip.status, TripStatus.COMPLETED)
            if end_odometer < trip.start_odometer:
                raise OdometerRegressionError(end_odometer, trip.start_odometer)

            trip = await unit.trips.transition(
                trip.id,
                TripStatus.COMPLETED,
                expected=TripStatus.DISPATCHED,
                completed_at=now,
                end_odometer=end_odometer,
            )
            vehicle = await unit.vehicles.transition(
                trip.vehicle_id,
                VehicleStatus.AVAILABLE,
                expected={VehicleStatus.ON_TRIP},
                odometer_km=end_odometer,
            )
            driver = await unit.drivers.transition(
                trip.driver_id,
                DriverStatus.OFF_DUTY,
                expected={DriverStatus.ON_DUTY},
                expected_vehicle_id=trip.vehicle_id,
                assigned_vehicle_id=None,
            )
            expense = None
            if liters > 0 or cost > 0:
                expense = await unit.expenses.create(
                    vehicle_id=trip.vehicle_id,
                    trip_id=trip.id,
                    liters=liters,
                    cost=cost,
                    expense_date=now,
                    created_by=actor_id,
                )
            return _Outcome(trip=trip, vehicle=vehicle, driver=driver, expense=expense)

        outcome = await self.allocator.run(work)
        trip = outcome.trip
        logger.info(
            "Trip %s completed (%.1f km)",
            trip.reference_code,
            trip.end_odometer - trip.start_odometer,
        )
        details: dict[str, Any] = {
            "reference_code": trip.reference_code,
            "status": trip.status.value,
            "end_odometer": end_odometer,
        }
        if outcome.expense is not None:
            details["fuel_expense_id"] = outcome.expense.id
        await self.audit.record(
            AuditAction.TRIP_COMPLETED, EntityType.TRIP, trip.id, actor_id, details
        )
        self._broadcast(EventType.TRIP_COMPLETED, outcome)
        return trip

    async def cancel_trip(self, trip_id: int, *, actor_id: int) -> TripModel:
        """``draft | dispatched`` -> ``cancelled``.

        Resources are handed back only if the trip had been dispatched.
        """
        check_id("trip_id", trip_id)
        check_id("actor_id", actor_id)
        now = self._clock()

        async def work(unit: AllocationUnit) -> _Outcome:
            trip = await unit.trips.require(trip_id, for_update=True)
            assert_transition(trip.id, trip.status, TripStatus.CANCELLED)
            was_dispatched = trip.status == TripStatus.DISPATCHED

            trip = await unit.trips.transition(
                trip.id,
                TripStatus.CANCELLED,
                expected=trip.status,
                cancelled_at=now,
            )
            if not was_dispatched:
                return _Outcome(trip=trip)

            vehicle = await unit.vehicles.transition(
                trip.vehicle_id,
                VehicleStatus.AVAILABLE,
                expected={VehicleStatus.ON_TRIP},
            )
            driver = await unit.drivers.transition(
                trip.driver_id,
                DriverStatus.OFF_DUTY,
                expected={DriverStatus.ON_DUTY},
                expected_vehicle_id=trip.vehicle_id,
                assigned_vehicle_id=None,
            )
            return _Outcome(trip=trip, vehicle=vehicle, driver=driver)

        outcome = await self.allocator.run(work)
        trip = outcome.trip
        logger.info(
            "Trip %s cancelled%s",
            trip.reference_code,
            " (resources released)" if outcome.vehicle else "",
        )
        await self.audit.record(
            AuditAction.TRIP_CANCELLED,
            EntityType.TRIP,
            trip.id,
            actor_id,
            {
                "reference_code": trip.reference_code,
                "status": trip.status.value,
                "resources_released": outcome.vehicle is not None,
            },
        )
        self._broadcast(EventType.TRIP_CANCELLED, outcome)
        return trip

    # ── Queries (no transactional isolation) ──────────────────────────

    async def get_trip(self, trip_id: int) -> TripModel:
        async with self._session_factory() as session:
            return await TripRepository(session).require(trip_id)

    async def list_trips(
        self,
        *,
        status: Optional[TripStatus] = None,
        vehicle_id: Optional[int] = None,
        driver_id: Optional[int] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[TripModel], int]:
        async with self._session_factory() as session:
            return await TripRepository(session).list(
                status=status,
                vehicle_id=vehicle_id,
                driver_id=driver_id,
                search=search,
                offset=offset,
                limit=limit,
            )

    async def list_trip_expenses(self, trip_id: int) -> list[FuelExpenseModel]:
        async with self._session_factory() as session:
            await TripRepository(session).require(trip_id)
            return await FuelExpenseRepository(session).list_for_trip(trip_id)

    # ── Internals ─────────────────────────────────────────────────────

    def _broadcast(self, event_type: EventType, outcome: _Outcome) -> None:
        events = [
            StateChangeEvent(
                event_type, EntityType.TRIP, outcome.trip.id, trip_state(outcome.trip)
            )
        ]
        if outcome.vehicle is not None:
            events.append(
                StateChangeEvent(
                    EventType.VEHICLE_UPDATE,
                    EntityType.VEHICLE,
                    outcome.vehicle.id,
                    vehicle_state(outcome.vehicle),
                )
            )
        if outcome.driver is not None:
            events.append(
                StateChangeEvent(
                    EventType.DRIVER_UPDATE,
                    EntityType.DRIVER,
                    outcome.driver.id,
                    driver_state(outcome.driver),
                )
            )
        try:
            self.notifier.publish_all(events)
        except Exception:
            logger.exception("Failed to publish %s events", event_type.value)
