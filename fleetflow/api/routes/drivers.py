"""
Driver endpoints
================

GET   /api/v1/drivers                      -- list drivers
GET   /api/v1/drivers/{driver_id}          -- single driver
PATCH /api/v1/drivers/{driver_id}/status   -- on_duty / off_duty / suspended
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from fleetflow.api.dependencies import Pagination, get_actor_id, get_resource_service
from fleetflow.api.middleware import limiter
from fleetflow.api.schemas import (
    DriverPage,
    DriverResponse,
    DriverStatusRequest,
    ErrorResponse,
)
from fleetflow.config import settings
from fleetflow.domain.enums import DriverStatus
from fleetflow.services.resources import ResourceService

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.get("", response_model=DriverPage, summary="List drivers")
@limiter.limit(settings.rate_limit)
async def list_drivers(
    request: Request,
    status: Optional[DriverStatus] = None,
    search: Optional[str] = Query(None, max_length=100),
    paging: Pagination = Depends(),
    service: ResourceService = Depends(get_resource_service),
):
    drivers, total = await service.list_drivers(
        status=status, search=search, offset=paging.offset, limit=paging.limit
    )
    return DriverPage(
        items=[DriverResponse.model_validate(d) for d in drivers],
        total=total,
        page=paging.page,
        total_pages=paging.total_pages(total),
    )


@router.get("/{driver_id}", response_model=DriverResponse, summary="Get a driver")
@limiter.limit(settings.rate_limit)
async def get_driver(
    request: Request,
    driver_id: int,
    service: ResourceService = Depends(get_resource_service),
):
    return await service.get_driver(driver_id)


@router.patch(
    "/{driver_id}/status",
    response_model=DriverResponse,
    summary="Change a driver's status by hand",
    description="Drivers with a vehicle assigned cannot be changed until the trip ends.",
    responses={409: {"model": ErrorResponse, "description": "Driver is on a trip"}},
)
@limiter.limit(settings.rate_limit)
async def change_driver_status(
    request: Request,
    driver_id: int,
    body: DriverStatusRequest,
    actor_id: int = Depends(get_actor_id),
    service: ResourceService = Depends(get_resource_service),
):
    return await service.change_driver_status(
        driver_id, body.status, actor_id=actor_id
    )
