"""
Admin / observability endpoints
===============================

GET /api/v1/admin/health -- liveness plus the number of live event observers
"""

from fastapi import APIRouter, Request

from fleetflow.api.schemas import HealthResponse

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(request: Request):
    return HealthResponse(subscribers=request.app.state.notifier.subscriber_count)
