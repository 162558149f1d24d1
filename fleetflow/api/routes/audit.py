"""
Audit endpoint
==============

GET /api/v1/audit -- audit entries, newest first, optionally per entity
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from fleetflow.api.dependencies import Pagination, get_audit_recorder
from fleetflow.api.middleware import limiter
from fleetflow.api.schemas import AuditEntryResponse, AuditPage
from fleetflow.config import settings
from fleetflow.domain.enums import EntityType
from fleetflow.services.audit import AuditRecorder

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=AuditPage, summary="List audit entries")
@limiter.limit(settings.rate_limit)
async def list_audit_entries(
    request: Request,
    entity_type: Optional[EntityType] = None,
    entity_id: Optional[int] = Query(None, gt=0),
    paging: Pagination = Depends(),
    recorder: AuditRecorder = Depends(get_audit_recorder),
):
    entries, total = await recorder.list_entries(
        entity_type=entity_type,
        entity_id=entity_id,
        offset=paging.offset,
        limit=paging.limit,
    )
    return AuditPage(
        items=[AuditEntryResponse.model_validate(e) for e in entries],
        total=total,
        page=paging.page,
        total_pages=paging.total_pages(total),
    )
