"""
Audit Controllers (API Routes)
==============================

Read-only FastAPI routes over the audit trail. Administrators only.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.audit.application import (
    AuditLogPage,
    AuditLogQueryService,
    AuditLogResponse,
    AuditStatisticsResponse,
)
from src.audit.infrastructure import SQLAlchemyAuditLogRepository
from src.infrastructure.database import get_session
from src.workflow.interfaces.dependencies import require_admin

router = APIRouter(
    prefix="/audit-logs",
    tags=["Audit"],
    dependencies=[Depends(require_admin)]
)


async def get_audit_query_service(
    session: AsyncSession = Depends(get_session)
) -> AuditLogQueryService:
    """Get audit query service instance."""
    return AuditLogQueryService(SQLAlchemyAuditLogRepository(session))


@router.get(
    "",
    response_model=AuditLogPage,
    summary="Search the audit trail",
    description="""
    Filters combine with AND. `username` matches as a case-insensitive
    substring; `start` and `end` bound the timestamp inclusively. Newest
    entries first.
    """
)
async def search_audit_logs(
    entity_type: Optional[str] = Query(None, description="e.g. Story, Epic, User"),
    operation: Optional[str] = Query(None, description="CREATE, UPDATE, DELETE or READ"),
    username: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    service: AuditLogQueryService = Depends(get_audit_query_service)
):
    items, total = await service.search(
        entity_type=entity_type,
        operation=operation,
        username=username,
        start=start,
        end=end,
        limit=limit,
        offset=offset
    )
    return AuditLogPage(
        items=[AuditLogResponse.model_validate(item) for item in items],
        total=total,
        limit=limit,
        offset=offset
    )


@router.get("/recent", response_model=List[AuditLogResponse], summary="Last 100 audit entries")
async def recent_audit_logs(service: AuditLogQueryService = Depends(get_audit_query_service)):
    return await service.recent()


@router.get("/statistics", response_model=AuditStatisticsResponse, summary="Audit trail statistics")
async def audit_statistics(service: AuditLogQueryService = Depends(get_audit_query_service)):
    return await service.statistics()


@router.get(
    "/{entity_type}/{entity_id}",
    response_model=List[AuditLogResponse],
    summary="History of one entity",
)
async def entity_history(
    entity_type: str,
    entity_id: int,
    service: AuditLogQueryService = Depends(get_audit_query_service)
):
    return await service.history(entity_type, entity_id)
