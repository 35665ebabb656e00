"""
Audit Application Services
==========================

Recording and querying of the audit trail.

Following SOLID principles:
- Single Responsibility: recording and querying are separate services
- Dependency Inversion: both depend on repository abstractions
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.audit.domain import (
    SYSTEM_USER,
    AuditRecord,
    compute_changes,
    to_json,
)
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

RECENT_LIMIT = 100


# ========== Repository Interfaces (Dependency Inversion) ==========

class IAuditRecorder(ABC):
    """Write side of the audit trail."""

    @abstractmethod
    async def record(self, record: AuditRecord) -> None:
        """Persist one audit record."""


class IAuditLogRepository(IAuditRecorder):
    """Read and write access to the audit trail."""

    @abstractmethod
    async def recent(self, limit: int = RECENT_LIMIT) -> List[Any]:
        """Newest records first."""

    @abstractmethod
    async def search(
        self,
        filters: Dict[str, Any],
        limit: int = 50,
        offset: int = 0
    ) -> List[Any]:
        """Records matching filters, newest first."""

    @abstractmethod
    async def count(self, filters: Dict[str, Any]) -> int:
        """Number of records matching filters."""

    @abstractmethod
    async def history(self, entity_type: str, entity_id: int) -> List[Any]:
        """All records of one entity, newest first."""

    @abstractmethod
    async def count_by(self, column: str) -> Dict[str, int]:
        """Record counts grouped by ``operation`` or ``entity_type``."""


# ========== Application Services ==========

class AuditLogService:
    """
    Builds audit records and hands them to the recorder.

    ``log_operation`` never raises. The audited operation must complete even
    when the trail cannot be written, so any failure is logged at ERROR and
    dropped.
    """

    def __init__(self, recorder: IAuditRecorder):
        self._recorder = recorder

    async def log_operation(
        self,
        entity_type: str,
        entity_id: Optional[int],
        operation: str,
        old_value: Optional[Dict[str, Any]],
        new_value: Optional[Dict[str, Any]],
        description: str,
        username: Optional[str] = None
    ) -> Optional[AuditRecord]:
        """
        Record one operation.

        Returns:
            The recorded AuditRecord, or None if recording failed
        """
        try:
            changes = compute_changes(old_value, new_value)
            record = AuditRecord(
                entity_type=entity_type,
                entity_id=entity_id,
                operation=operation,
                username=username or SYSTEM_USER,
                old_value=to_json(old_value),
                new_value=to_json(new_value),
                changes=to_json(changes) if changes is not None else None,
                description=description,
            )
            await self._recorder.record(record)
        except Exception as e:
            logger.error(
                f"Failed to record audit log for {entity_type} {operation}: {e}",
                extra={"entity_type": entity_type, "entity_id": entity_id, "operation": operation}
            )
            return None

        logger.debug(
            f"Audit: {operation} {entity_type} {entity_id}",
            extra={"entity_type": entity_type, "entity_id": entity_id, "operation": operation}
        )
        return record


class AuditLogQueryService:
    """Read-only access to the audit trail."""

    def __init__(self, repository: IAuditLogRepository):
        self._repo = repository

    async def recent(self) -> List[Any]:
        return await self._repo.recent(RECENT_LIMIT)

    async def search(
        self,
        entity_type: Optional[str] = None,
        operation: Optional[str] = None,
        username: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0
    ) -> tuple[List[Any], int]:
        """
        Search the trail.

        ``username`` matches as a case-insensitive substring; ``start`` and
        ``end`` bound the timestamp inclusively.

        Returns:
            (page of records, total matching count)
        """
        filters: Dict[str, Any] = {}
        if entity_type:
            filters["entity_type"] = entity_type
        if operation:
            filters["operation"] = operation.upper()
        if username:
            filters["username"] = username
        if start:
            filters["start"] = start
        if end:
            filters["end"] = end

        items = await self._repo.search(filters, limit=limit, offset=offset)
        total = await self._repo.count(filters)
        return items, total

    async def history(self, entity_type: str, entity_id: int) -> List[Any]:
        return await self._repo.history(entity_type, entity_id)

    async def statistics(self) -> Dict[str, Any]:
        """Counts by operation, by entity type and in total."""
        by_operation = await self._repo.count_by("operation")
        by_entity_type = await self._repo.count_by("entity_type")
        return {
            "total": sum(by_operation.values()),
            "by_operation": by_operation,
            "by_entity_type": by_entity_type,
        }
