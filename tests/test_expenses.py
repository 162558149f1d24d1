"""Tests for fuel expenses recorded outside trip completion."""

from datetime import datetime, timezone

import pytest

from fleetflow.domain.entities import Location
from fleetflow.domain.enums import AuditAction, EntityType
from fleetflow.domain.errors import NotFoundError, ValidationError
from tests.conftest import ACTOR_ID


async def _trip(trip_service, vehicle, driver):
    return await trip_service.create_trip(
        origin=Location("Depot"),
        destination=Location("Site"),
        cargo_weight_kg=50,
        vehicle_id=vehicle.id,
        driver_id=driver.id,
        actor_id=ACTOR_ID,
    )


class TestRecordFuelExpense:
    @pytest.mark.asyncio
    async def test_standalone_expense(self, expense_service, audit, add_vehicle):
        vehicle = await add_vehicle()

        expense = await expense_service.record_fuel_expense(
            vehicle_id=vehicle.id, liters=40.0, cost=72.0, actor_id=ACTOR_ID
        )

        assert expense.trip_id is None
        assert expense.created_by == ACTOR_ID
        entries, _ = await audit.list_entries(
            entity_type=EntityType.FUEL_EXPENSE, entity_id=expense.id
        )
        assert [e.action for e in entries] == [AuditAction.FUEL_EXPENSE_CREATED.value]
        assert entries[0].details["vehicle_id"] == vehicle.id

    @pytest.mark.asyncio
    async def test_expense_linked_to_trip(
        self, expense_service, trip_service, add_vehicle, add_driver
    ):
        vehicle = await add_vehicle()
        trip = await _trip(trip_service, vehicle, await add_driver())

        await expense_service.record_fuel_expense(
            vehicle_id=vehicle.id, trip_id=trip.id, liters=5, cost=0, actor_id=ACTOR_ID
        )

        listed = await trip_service.list_trip_expenses(trip.id)
        assert [e.liters for e in listed] == [5]

    @pytest.mark.asyncio
    async def test_trip_of_another_vehicle_rejected(
        self, expense_service, trip_service, add_vehicle, add_driver
    ):
        trip = await _trip(trip_service, await add_vehicle(), await add_driver())
        other = await add_vehicle()

        with pytest.raises(ValidationError) as exc:
            await expense_service.record_fuel_expense(
                vehicle_id=other.id, trip_id=trip.id, liters=5, cost=9, actor_id=ACTOR_ID
            )

        assert exc.value.field == "trip_id"
        _, total = await expense_service.list_expenses()
        assert total == 0

    @pytest.mark.asyncio
    async def test_unknown_trip_is_not_found(self, expense_service, add_vehicle):
        vehicle = await add_vehicle()
        with pytest.raises(NotFoundError):
            await expense_service.record_fuel_expense(
                vehicle_id=vehicle.id, trip_id=404, liters=5, cost=9, actor_id=ACTOR_ID
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"liters": 0, "cost": 0}, "liters"),
            ({"cost": -1}, "cost"),
            ({"vehicle_id": 0}, "vehicle_id"),
            ({"actor_id": -3}, "actor_id"),
            ({"trip_id": 0}, "trip_id"),
        ],
    )
    async def test_malformed_input_rejected(self, expense_service, overrides, field):
        kwargs = dict(vehicle_id=1, liters=10.0, cost=20.0, actor_id=ACTOR_ID)
        kwargs.update(overrides)
        with pytest.raises(ValidationError) as exc:
            await expense_service.record_fuel_expense(**kwargs)
        assert exc.value.field == field


class TestListExpenses:
    @pytest.mark.asyncio
    async def test_filters_and_newest_first(
        self, expense_service, trip_service, add_vehicle, add_driver
    ):
        van = await add_vehicle()
        truck = await add_vehicle()
        trip = await _trip(trip_service, van, await add_driver())
        for day, vehicle, trip_id in ((1, van, None), (3, van, trip.id), (2, truck, None)):
            await expense_service.record_fuel_expense(
                vehicle_id=vehicle.id,
                trip_id=trip_id,
                liters=day,
                cost=day * 2,
                expense_date=datetime(2026, 3, day, tzinfo=timezone.utc),
                actor_id=ACTOR_ID,
            )

        items, total = await expense_service.list_expenses(vehicle_id=van.id)
        assert total == 2
        assert [e.liters for e in items] == [3, 1]

        items, total = await expense_service.list_expenses(trip_id=trip.id)
        assert total == 1

        items, total = await expense_service.list_expenses(limit=1)
        assert total == 3
        assert items[0].liters == 3
