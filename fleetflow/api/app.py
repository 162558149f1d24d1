"""
FastAPI application factory.

* Builds the process-lifetime collaborators (allocator, audit recorder,
  event notifier, services) and keeps them on ``app.state``.
* Registers the trip, vehicle, maintenance, expense, driver, audit, event and
  admin routes.
* Starts / stops the optional Redis event relay via lifespan events.
* Maps domain errors to HTTP responses and applies rate limiting.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetflow.api.middleware import limiter
from fleetflow.api.routes import (
    admin,
    audit,
    drivers,
    events,
    expenses,
    maintenance,
    trips,
    vehicles,
)
from fleetflow.config import settings
from fleetflow.domain.errors import (
    EligibilityRejection,
    FleetFlowError,
    NotFoundError,
    PersistenceError,
    StateConflictError,
    ValidationError,
)
from fleetflow.infrastructure.allocator import TransactionalAllocator
from fleetflow.services.audit import AuditRecorder
from fleetflow.services.expenses import ExpenseService
from fleetflow.services.notifier import EventNotifier, RedisEventRelay
from fleetflow.services.resources import ResourceService
from fleetflow.services.trips import TripService

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

_STATUS_CODES = (
    (ValidationError, 422),
    (NotFoundError, 404),
    (EligibilityRejection, 400),
    (StateConflictError, 409),
    (PersistenceError, 503),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the Redis event relay on startup (if enabled); stop on shutdown."""
    relay: Optional[RedisEventRelay] = None
    if settings.redis_events_enabled:
        from fleetflow.infrastructure.redis_client import create_redis

        relay = RedisEventRelay(
            app.state.notifier, create_redis(), settings.redis_events_channel
        )
        await relay.start()
    yield
    if relay is not None:
        await relay.stop()


async def fleetflow_error_handler(request: Request, exc: FleetFlowError):
    status_code = next(
        (code for cls, code in _STATUS_CODES if isinstance(exc, cls)), 500
    )
    if status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(
        status_code=status_code, content=exc.to_dict(), headers=headers
    )


def create_app(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    notifier: Optional[EventNotifier] = None,
) -> FastAPI:
    if session_factory is None:
        from fleetflow.infrastructure.database import async_session_factory

        session_factory = async_session_factory

    app = FastAPI(
        title="FleetFlow Dispatch API",
        description=(
            "Dispatches vehicles and drivers against transportation trips. "
            "Enforces capacity, licensing and availability rules, moves each "
            "trip and its resources through the lifecycle atomically, and "
            "streams every committed change to live observers."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    notifier = notifier or EventNotifier(settings.subscriber_queue_size)
    allocator = TransactionalAllocator(
        session_factory, timeout_seconds=settings.transaction_timeout_seconds
    )
    recorder = AuditRecorder(session_factory)
    app.state.notifier = notifier
    app.state.audit = recorder
    app.state.trip_service = TripService(
        allocator,
        recorder,
        notifier,
        session_factory,
        reference_prefix=settings.trip_reference_prefix,
        strict_categories=settings.strict_category_match,
    )
    app.state.resource_service = ResourceService(
        allocator, recorder, notifier, session_factory
    )
    app.state.expense_service = ExpenseService(allocator, recorder, session_factory)

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(FleetFlowError, fleetflow_error_handler)

    # Routers
    for module in (
        trips,
        vehicles,
        maintenance,
        expenses,
        drivers,
        audit,
        events,
        admin,
    ):
        app.include_router(module.router, prefix="/api/v1")

    return app
