"""
Seed script -- populates the database with a sample fleet for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 10 vehicles (vans, trucks, bikes, cars; one in the shop, one retired)
  - 8 drivers (one suspended, one with an expired license, one uncertified)
  - 3 trips driven through the real service: one draft, one dispatched,
    one completed with a fuel expense
"""

import asyncio
from datetime import date, timedelta

from sqlalchemy import func, select

from fleetflow.config import settings
from fleetflow.domain.entities import Location
from fleetflow.domain.enums import DriverStatus, VehicleStatus, VehicleType
from fleetflow.infrastructure.allocator import TransactionalAllocator
from fleetflow.infrastructure.database import async_session_factory, engine
from fleetflow.infrastructure.models import VehicleModel
from fleetflow.infrastructure.repositories import DriverRegistry, VehicleRegistry
from fleetflow.services.audit import AuditRecorder
from fleetflow.services.notifier import EventNotifier
from fleetflow.services.trips import TripService

SEED_USER_ID = 1

VEHICLES = [
    {"name": "Van-01", "license_plate": "FF-1001", "vehicle_type": VehicleType.VAN, "max_load_kg": 800, "odometer_km": 12500},
    {"name": "Van-02", "license_plate": "FF-1002", "vehicle_type": VehicleType.VAN, "max_load_kg": 800, "odometer_km": 30210},
    {"name": "Van-03", "license_plate": "FF-1003", "vehicle_type": VehicleType.VAN, "max_load_kg": 500, "odometer_km": 4100},
    {"name": "Truck-01", "license_plate": "FF-2001", "vehicle_type": VehicleType.TRUCK, "max_load_kg": 8000, "odometer_km": 88000},
    {"name": "Truck-02", "license_plate": "FF-2002", "vehicle_type": VehicleType.TRUCK, "max_load_kg": 12000, "odometer_km": 152300},
    {"name": "Bike-01", "license_plate": "FF-3001", "vehicle_type": VehicleType.BIKE, "max_load_kg": 25, "odometer_km": 900},
    {"name": "Bike-02", "license_plate": "FF-3002", "vehicle_type": VehicleType.BIKE, "max_load_kg": 25, "odometer_km": 1450},
    {"name": "Car-01", "license_plate": "FF-4001", "vehicle_type": VehicleType.CAR, "max_load_kg": 300, "odometer_km": 20000},
    # Unavailable for dispatch
    {"name": "Van-04", "license_plate": "FF-1004", "vehicle_type": VehicleType.VAN, "max_load_kg": 800, "odometer_km": 61000, "status": VehicleStatus.IN_SHOP},
    {"name": "Truck-03", "license_plate": "FF-2003", "vehicle_type": VehicleType.TRUCK, "max_load_kg": 8000, "odometer_km": 410000, "status": VehicleStatus.RETIRED},
]

_NEXT_YEAR = date.today() + timedelta(days=365)

DRIVERS = [
    {"name": "Alex Morgan", "license_number": "DL-0001", "license_expiry": _NEXT_YEAR, "categories": [VehicleType.VAN, VehicleType.TRUCK]},
    {"name": "Sam Rivera", "license_number": "DL-0002", "license_expiry": _NEXT_YEAR, "categories": [VehicleType.VAN]},
    {"name": "Jordan Lee", "license_number": "DL-0003", "license_expiry": _NEXT_YEAR, "categories": [VehicleType.TRUCK]},
    {"name": "Casey Patel", "license_number": "DL-0004", "license_expiry": _NEXT_YEAR, "categories": [VehicleType.BIKE, VehicleType.CAR]},
    {"name": "Robin Okafor", "license_number": "DL-0005", "license_expiry": _NEXT_YEAR, "categories": []},
    {"name": "Taylor Novak", "license_number": "DL-0006", "license_expiry": _NEXT_YEAR, "categories": [VehicleType.VAN]},
    # Not eligible
    {"name": "Jamie Chen", "license_number": "DL-0007", "license_expiry": _NEXT_YEAR, "categories": [VehicleType.VAN], "status": DriverStatus.SUSPENDED},
    {"name": "Drew Silva", "license_number": "DL-0008", "license_expiry": date.today() - timedelta(days=30), "categories": [VehicleType.VAN]},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(select(func.count()).select_from(VehicleModel))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        vehicles = []
        registry = VehicleRegistry(session)
        for v in VEHICLES:
            vehicles.append(await registry.add(**v))
        print(f"  Created {len(vehicles)} vehicles")

        drivers = []
        registry = DriverRegistry(session)
        for d in DRIVERS:
            drivers.append(await registry.add(**d))
        print(f"  Created {len(drivers)} drivers")

        await session.commit()

    # Trips go through the service so resources and audit stay consistent
    service = TripService(
        TransactionalAllocator(async_session_factory),
        AuditRecorder(async_session_factory),
        EventNotifier(),
        async_session_factory,
        reference_prefix=settings.trip_reference_prefix,
    )
    depot = Location("Central Depot, 1 Harbour Rd", 51.5072, -0.1276)

    await service.create_trip(
        origin=depot,
        destination=Location("Northside Market"),
        cargo_weight_kg=350,
        vehicle_id=vehicles[0].id,
        driver_id=drivers[0].id,
        revenue=180.0,
        actor_id=SEED_USER_ID,
    )

    active = await service.create_trip(
        origin=depot,
        destination=Location("Riverside Warehouse", 51.4975, -0.1357),
        cargo_weight_kg=6500,
        vehicle_id=vehicles[3].id,
        driver_id=drivers[2].id,
        revenue=950.0,
        actor_id=SEED_USER_ID,
    )
    await service.dispatch_trip(active.id, actor_id=SEED_USER_ID)

    done = await service.create_trip(
        origin=depot,
        destination=Location("Airport Cargo Terminal 4"),
        cargo_weight_kg=420,
        vehicle_id=vehicles[1].id,
        driver_id=drivers[1].id,
        revenue=310.0,
        notes="Fragile, keep upright",
        actor_id=SEED_USER_ID,
    )
    await service.dispatch_trip(done.id, actor_id=SEED_USER_ID)
    await service.complete_trip(
        done.id,
        end_odometer=done.start_odometer + 64,
        fuel_liters=9.5,
        fuel_cost=17.1,
        actor_id=SEED_USER_ID,
    )
    print("  Created 3 trips (draft, dispatched, completed)")
    print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
