"""
Maintenance endpoints
=====================

POST /api/v1/vehicles/{vehicle_id}/maintenance -- log a job; vehicle goes in_shop
GET  /api/v1/maintenance                       -- maintenance logs, newest service first
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from fleetflow.api.dependencies import Pagination, get_actor_id, get_resource_service
from fleetflow.api.middleware import limiter
from fleetflow.api.schemas import (
    ErrorResponse,
    MaintenanceCreateRequest,
    MaintenancePage,
    MaintenanceResponse,
    MaintenanceResult,
    VehicleResponse,
)
from fleetflow.config import settings
from fleetflow.services.resources import ResourceService

router = APIRouter(tags=["maintenance"])


@router.post(
    "/vehicles/{vehicle_id}/maintenance",
    response_model=MaintenanceResult,
    status_code=status.HTTP_201_CREATED,
    summary="Log maintenance and send the vehicle to the shop",
    responses={
        404: {"model": ErrorResponse, "description": "Vehicle not found"},
        409: {"model": ErrorResponse, "description": "Vehicle is on a trip or retired"},
    },
)
@limiter.limit(settings.rate_limit)
async def log_maintenance(
    request: Request,
    vehicle_id: int,
    body: MaintenanceCreateRequest,
    actor_id: int = Depends(get_actor_id),
    service: ResourceService = Depends(get_resource_service),
):
    log, vehicle = await service.log_maintenance(
        vehicle_id,
        maintenance_type=body.maintenance_type,
        provider=body.provider,
        cost=body.cost,
        service_date=body.service_date,
        resolved=body.resolved,
        actor_id=actor_id,
    )
    return MaintenanceResult(
        maintenance=MaintenanceResponse.model_validate(log),
        vehicle=VehicleResponse.model_validate(vehicle),
    )


@router.get("/maintenance", response_model=MaintenancePage, summary="List maintenance logs")
@limiter.limit(settings.rate_limit)
async def list_maintenance(
    request: Request,
    vehicle_id: Optional[int] = Query(None, gt=0),
    search: Optional[str] = Query(None, max_length=100),
    paging: Pagination = Depends(),
    service: ResourceService = Depends(get_resource_service),
):
    logs, total = await service.list_maintenance(
        vehicle_id=vehicle_id,
        search=search,
        offset=paging.offset,
        limit=paging.limit,
    )
    return MaintenancePage(
        items=[MaintenanceResponse.model_validate(m) for m in logs],
        total=total,
        page=paging.page,
        total_pages=paging.total_pages(total),
    )
