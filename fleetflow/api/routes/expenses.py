"""
Fuel expense endpoints
======================

GET  /api/v1/expenses -- fleet-wide fuel expenses, newest first
POST /api/v1/expenses -- record fuel outside trip completion
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from fleetflow.api.dependencies import Pagination, get_actor_id, get_expense_service
from fleetflow.api.middleware import limiter
from fleetflow.api.schemas import (
    ErrorResponse,
    FuelExpenseCreateRequest,
    FuelExpensePage,
    FuelExpenseResponse,
)
from fleetflow.config import settings
from fleetflow.services.expenses import ExpenseService

router = APIRouter(prefix="/expenses", tags=["expenses"])


@router.get("", response_model=FuelExpensePage, summary="List fuel expenses")
@limiter.limit(settings.rate_limit)
async def list_expenses(
    request: Request,
    vehicle_id: Optional[int] = Query(None, gt=0),
    trip_id: Optional[int] = Query(None, gt=0),
    paging: Pagination = Depends(),
    service: ExpenseService = Depends(get_expense_service),
):
    expenses, total = await service.list_expenses(
        vehicle_id=vehicle_id,
        trip_id=trip_id,
        offset=paging.offset,
        limit=paging.limit,
    )
    return FuelExpensePage(
        items=[FuelExpenseResponse.model_validate(e) for e in expenses],
        total=total,
        page=paging.page,
        total_pages=paging.total_pages(total),
    )


@router.post(
    "",
    response_model=FuelExpenseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a fuel expense",
    responses={
        404: {"model": ErrorResponse, "description": "Vehicle or trip not found"},
        422: {"model": ErrorResponse, "description": "Trip uses another vehicle"},
    },
)
@limiter.limit(settings.rate_limit)
async def record_expense(
    request: Request,
    body: FuelExpenseCreateRequest,
    actor_id: int = Depends(get_actor_id),
    service: ExpenseService = Depends(get_expense_service),
):
    return await service.record_fuel_expense(
        vehicle_id=body.vehicle_id,
        trip_id=body.trip_id,
        liters=body.liters,
        cost=body.cost,
        expense_date=body.expense_date,
        actor_id=actor_id,
    )
