"""
Shared test fixtures.

Each test gets its own file-backed SQLite database (via aiosqlite) so the
suite runs without Docker / PostgreSQL / Redis.  A file rather than
``:memory:`` lets several sessions see the same data, which the allocator
and the concurrency tests rely on.
"""

from datetime import date, timedelta
from typing import AsyncGenerator

import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from fleetflow.domain.enums import DriverStatus, VehicleStatus, VehicleType
from fleetflow.infrastructure.allocator import TransactionalAllocator
from fleetflow.infrastructure.database import Base
from fleetflow.infrastructure.models import DriverModel, VehicleModel
from fleetflow.infrastructure.repositories import DriverRegistry, VehicleRegistry
from fleetflow.services.audit import AuditRecorder
from fleetflow.services.expenses import ExpenseService
from fleetflow.services.notifier import EventNotifier
from fleetflow.services.resources import ResourceService
from fleetflow.services.trips import TripService

ACTOR_ID = 7
NEXT_YEAR = date.today() + timedelta(days=365)


# ── Database ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Create tables in a fresh SQLite file, yield a session factory, dispose."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'fleetflow.db'}", echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


# ── Collaborators ─────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def notifier() -> EventNotifier:
    return EventNotifier(queue_size=50)


@pytest_asyncio.fixture
async def allocator(session_factory) -> TransactionalAllocator:
    return TransactionalAllocator(session_factory, timeout_seconds=5)


@pytest_asyncio.fixture
async def audit(session_factory) -> AuditRecorder:
    return AuditRecorder(session_factory)


@pytest_asyncio.fixture
async def trip_service(allocator, audit, notifier, session_factory) -> TripService:
    return TripService(allocator, audit, notifier, session_factory)


@pytest_asyncio.fixture
async def expense_service(allocator, audit, session_factory) -> ExpenseService:
    return ExpenseService(allocator, audit, session_factory)


@pytest_asyncio.fixture
async def resource_service(
    allocator, audit, notifier, session_factory
) -> ResourceService:
    return ResourceService(allocator, audit, notifier, session_factory)


# ── Seed helpers ──────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def add_vehicle(session_factory):
    """Factory fixture: ``await add_vehicle(max_load_kg=500, ...)``."""
    counter = {"n": 0}

    async def _add(**overrides) -> VehicleModel:
        counter["n"] += 1
        fields = {
            "name": f"Van-{counter['n']:02d}",
            "license_plate": f"TST-{counter['n']:04d}",
            "vehicle_type": VehicleType.VAN,
            "max_load_kg": 500.0,
            "odometer_km": 1000.0,
            "status": VehicleStatus.AVAILABLE,
        }
        fields.update(overrides)
        async with session_factory() as session:
            vehicle = await VehicleRegistry(session).add(**fields)
            await session.commit()
            return vehicle

    return _add


@pytest_asyncio.fixture
async def add_driver(session_factory):
    """Factory fixture: ``await add_driver(categories=[...], ...)``."""
    counter = {"n": 0}

    async def _add(**overrides) -> DriverModel:
        counter["n"] += 1
        fields = {
            "name": f"Driver {counter['n']}",
            "license_number": f"DL-{counter['n']:04d}",
            "license_expiry": NEXT_YEAR,
            "categories": [VehicleType.VAN],
            "status": DriverStatus.OFF_DUTY,
        }
        fields.update(overrides)
        async with session_factory() as session:
            driver = await DriverRegistry(session).add(**fields)
            await session.commit()
            return driver

    return _add


@pytest_asyncio.fixture
async def fetch(session_factory):
    """Re-read a vehicle or driver row as committed in the database."""

    async def _fetch(model, entity_id):
        async with session_factory() as session:
            return await session.get(model, entity_id)

    return _fetch
