"""
Vehicle endpoints
=================

GET   /api/v1/vehicles                       -- list vehicles
GET   /api/v1/vehicles/{vehicle_id}          -- single vehicle
PATCH /api/v1/vehicles/{vehicle_id}/status   -- in_shop / retired / out_of_service / available
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from fleetflow.api.dependencies import Pagination, get_actor_id, get_resource_service
from fleetflow.api.middleware import limiter
from fleetflow.api.schemas import (
    ErrorResponse,
    VehiclePage,
    VehicleResponse,
    VehicleStatusRequest,
)
from fleetflow.config import settings
from fleetflow.domain.enums import VehicleStatus, VehicleType
from fleetflow.services.resources import ResourceService

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


@router.get("", response_model=VehiclePage, summary="List vehicles")
@limiter.limit(settings.rate_limit)
async def list_vehicles(
    request: Request,
    status: Optional[VehicleStatus] = None,
    vehicle_type: Optional[VehicleType] = Query(None, alias="type"),
    search: Optional[str] = Query(None, max_length=100),
    paging: Pagination = Depends(),
    service: ResourceService = Depends(get_resource_service),
):
    vehicles, total = await service.list_vehicles(
        status=status,
        vehicle_type=vehicle_type,
        search=search,
        offset=paging.offset,
        limit=paging.limit,
    )
    return VehiclePage(
        items=[VehicleResponse.model_validate(v) for v in vehicles],
        total=total,
        page=paging.page,
        total_pages=paging.total_pages(total),
    )


@router.get("/{vehicle_id}", response_model=VehicleResponse, summary="Get a vehicle")
@limiter.limit(settings.rate_limit)
async def get_vehicle(
    request: Request,
    vehicle_id: int,
    service: ResourceService = Depends(get_resource_service),
):
    return await service.get_vehicle(vehicle_id)


@router.patch(
    "/{vehicle_id}/status",
    response_model=VehicleResponse,
    summary="Change a vehicle's status by hand",
    description="Vehicles on a trip cannot be changed; ON_TRIP is set by dispatch only.",
    responses={409: {"model": ErrorResponse, "description": "Vehicle is on a trip"}},
)
@limiter.limit(settings.rate_limit)
async def change_vehicle_status(
    request: Request,
    vehicle_id: int,
    body: VehicleStatusRequest,
    actor_id: int = Depends(get_actor_id),
    service: ResourceService = Depends(get_resource_service),
):
    return await service.change_vehicle_status(
        vehicle_id, body.status, actor_id=actor_id
    )
