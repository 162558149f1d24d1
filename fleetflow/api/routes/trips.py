"""
Trip endpoints
==============

POST  /api/v1/trips                    -- create a draft trip (201)
GET   /api/v1/trips                    -- list trips (filters + pagination)
GET   /api/v1/trips/{trip_id}          -- single trip
GET   /api/v1/trips/{trip_id}/expenses -- fuel expenses linked to a trip
PATCH /api/v1/trips/{trip_id}/dispatch -- draft -> dispatched
PATCH /api/v1/trips/{trip_id}/complete -- dispatched -> completed
PATCH /api/v1/trips/{trip_id}/cancel   -- draft | dispatched -> cancelled
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from fleetflow.api.dependencies import Pagination, get_actor_id, get_trip_service
from fleetflow.api.middleware import limiter
from fleetflow.api.schemas import (
    ErrorResponse,
    FuelExpenseResponse,
    TripCompleteRequest,
    TripCreateRequest,
    TripPage,
    TripResponse,
)
from fleetflow.config import settings
from fleetflow.domain.enums import TripStatus
from fleetflow.services.trips import TripService

router = APIRouter(prefix="/trips", tags=["trips"])

_CONFLICT = {
    404: {"model": ErrorResponse, "description": "Trip not found"},
    409: {"model": ErrorResponse, "description": "Transition not allowed"},
    503: {"model": ErrorResponse, "description": "Store failure; safe to retry"},
}


@router.post(
    "",
    status_code=201,
    response_model=TripResponse,
    summary="Create a draft trip",
    responses={
        400: {"model": ErrorResponse, "description": "Eligibility rule failed"},
        404: {"model": ErrorResponse, "description": "Vehicle or driver not found"},
    },
)
@limiter.limit(settings.rate_limit)
async def create_trip(
    request: Request,
    body: TripCreateRequest,
    actor_id: int = Depends(get_actor_id),
    service: TripService = Depends(get_trip_service),
):
    trip = await service.create_trip(
        origin=body.origin.to_domain(),
        destination=body.destination.to_domain(),
        cargo_weight_kg=body.cargo_weight_kg,
        vehicle_id=body.vehicle_id,
        driver_id=body.driver_id,
        revenue=body.revenue,
        notes=body.notes,
        actor_id=actor_id,
    )
    return TripResponse.from_model(trip)


@router.get("", response_model=TripPage, summary="List trips")
@limiter.limit(settings.rate_limit)
async def list_trips(
    request: Request,
    status: Optional[TripStatus] = None,
    vehicle_id: Optional[int] = Query(None, gt=0),
    driver_id: Optional[int] = Query(None, gt=0),
    search: Optional[str] = Query(None, max_length=100),
    paging: Pagination = Depends(),
    service: TripService = Depends(get_trip_service),
):
    trips, total = await service.list_trips(
        status=status,
        vehicle_id=vehicle_id,
        driver_id=driver_id,
        search=search,
        offset=paging.offset,
        limit=paging.limit,
    )
    return TripPage(
        items=[TripResponse.from_model(t) for t in trips],
        total=total,
        page=paging.page,
        total_pages=paging.total_pages(total),
    )


@router.get("/{trip_id}", response_model=TripResponse, summary="Get a trip")
@limiter.limit(settings.rate_limit)
async def get_trip(
    request: Request,
    trip_id: int,
    service: TripService = Depends(get_trip_service),
):
    return TripResponse.from_model(await service.get_trip(trip_id))


@router.get(
    "/{trip_id}/expenses",
    response_model=list[FuelExpenseResponse],
    summary="Fuel expenses recorded for a trip",
)
@limiter.limit(settings.rate_limit)
async def list_trip_expenses(
    request: Request,
    trip_id: int,
    service: TripService = Depends(get_trip_service),
):
    return await service.list_trip_expenses(trip_id)


@router.patch(
    "/{trip_id}/dispatch",
    response_model=TripResponse,
    summary="Dispatch a draft trip",
    description=(
        "Moves the trip to DISPATCHED and, in the same transaction, marks the "
        "vehicle ON_TRIP and the driver ON_DUTY with the vehicle assigned."
    ),
    responses=_CONFLICT,
)
@limiter.limit(settings.rate_limit)
async def dispatch_trip(
    request: Request,
    trip_id: int,
    actor_id: int = Depends(get_actor_id),
    service: TripService = Depends(get_trip_service),
):
    trip = await service.dispatch_trip(trip_id, actor_id=actor_id)
    return TripResponse.from_model(trip)


@router.patch(
    "/{trip_id}/complete",
    response_model=TripResponse,
    summary="Complete a dispatched trip",
    description=(
        "Records the end odometer, frees the vehicle and driver, and stores a "
        "fuel expense when fuel data is supplied."
    ),
    responses=_CONFLICT,
)
@limiter.limit(settings.rate_limit)
async def complete_trip(
    request: Request,
    trip_id: int,
    body: TripCompleteRequest,
    actor_id: int = Depends(get_actor_id),
    service: TripService = Depends(get_trip_service),
):
    trip = await service.complete_trip(
        trip_id,
        end_odometer=body.end_odometer,
        fuel_liters=body.fuel_liters,
        fuel_cost=body.fuel_cost,
        actor_id=actor_id,
    )
    return TripResponse.from_model(trip)


@router.patch(
    "/{trip_id}/cancel",
    response_model=TripResponse,
    summary="Cancel a trip",
    description=(
        "Transitions a DRAFT or DISPATCHED trip to CANCELLED. A dispatched "
        "trip's vehicle and driver are released."
    ),
    responses=_CONFLICT,
)
@limiter.limit(settings.rate_limit)
async def cancel_trip(
    request: Request,
    trip_id: int,
    actor_id: int = Depends(get_actor_id),
    service: TripService = Depends(get_trip_service),
):
    trip = await service.cancel_trip(trip_id, actor_id=actor_id)
    return TripResponse.from_model(trip)
