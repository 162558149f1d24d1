"""
Transactional Allocator (unit of work)
======================================

``TransactionalAllocator.run(work)`` opens one session, hands *work* an
``AllocationUnit`` whose repositories all share that session, and then:

* commits if *work* returns, or
* rolls back everything *work* did if it raises, times out or the commit
  fails.

Domain errors (``StateConflictError``, ``NotFoundError`` ...) propagate
unchanged.  When the store aborts the transaction because it lost a race
against a concurrent one (serialization failure, deadlock, locked SQLite
file) the caller gets a retryable ``StateConflictError``.  Any other store
failure becomes a retryable ``PersistenceError``.  Either way nothing was
committed, so the caller may resubmit the same request.

Once the commit has started it runs to completion even if the caller is
cancelled.

Concurrency safety
------------------
* The engine runs at SERIALIZABLE isolation (see ``database.py``).
* Rows are read with ``SELECT ... FOR UPDATE`` inside the unit.
* Status writes are conditional updates, so the second of two racing
  dispatches against one vehicle matches zero rows and is rejected.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .repositories import (
    DriverRegistry,
    FuelExpenseRepository,
    MaintenanceRepository,
    TripRepository,
    VehicleRegistry,
)
from fleetflow.domain.errors import (
    FleetFlowError,
    PersistenceError,
    StateConflictError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL serialization_failure / deadlock_detected
_RACE_SQLSTATES = frozenset({"40001", "40P01"})


class AllocationUnit:
    """Repositories bound to the allocator's single transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.trips = TripRepository(session)
        self.vehicles = VehicleRegistry(session)
        self.drivers = DriverRegistry(session)
        self.expenses = FuelExpenseRepository(session)
        self.maintenance = MaintenanceRepository(session)


class TransactionalAllocator:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout_seconds: Optional[float] = None,
    ):
        self._session_factory = session_factory
        self._timeout = timeout_seconds

    async def run(self, work: Callable[[AllocationUnit], Awaitable[T]]) -> T:
        async with self._session_factory() as session:
            unit = AllocationUnit(session)
            try:
                result = await asyncio.wait_for(work(unit), timeout=self._timeout)
            except asyncio.TimeoutError:
                await session.rollback()
                logger.warning("Allocation timed out after %ss", self._timeout)
                raise PersistenceError(
                    "Transaction timed out; no changes were saved. Retry the request.",
                    {"timeout_seconds": self._timeout},
                ) from None
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.warning("Allocation aborted by the store: %s", exc)
                raise _store_error(exc) from exc
            except BaseException:
                await session.rollback()
                raise

            await self._commit(session)
            return result

    @staticmethod
    async def _commit(session: AsyncSession) -> None:
        commit = asyncio.ensure_future(session.commit())
        try:
            await asyncio.shield(commit)
        except asyncio.CancelledError:
            # Caller gave up waiting; the commit still has to settle
            # before the session closes.
            await asyncio.wait([commit])
            if not commit.cancelled() and commit.exception() is not None:
                logger.warning(
                    "Commit failed after the caller cancelled: %s",
                    commit.exception(),
                )
                await session.rollback()
            raise
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.warning("Commit failed: %s", exc)
            raise _store_error(exc) from exc


def is_lost_race(exc: SQLAlchemyError) -> bool:
    """True if the store aborted *exc*'s transaction in favour of another."""
    orig = getattr(exc, "orig", None)
    if orig is None:
        return False
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _RACE_SQLSTATES:
        return True
    return "database is locked" in str(orig)


def _store_error(exc: SQLAlchemyError) -> FleetFlowError:
    if is_lost_race(exc):
        error = StateConflictError(
            "Another request changed the same records concurrently; no changes "
            "were saved. Reload and retry.",
            retryable=True,
        )
        error.context["cause"] = type(exc).__name__
        return error
    return PersistenceError(
        "The data store could not complete the transaction; no changes were "
        "saved. Retry the request.",
        {"cause": type(exc).__name__},
    )
