"""
Audit Infrastructure Repositories
=================================

SQLAlchemy implementation of the audit trail repository.
"""

from typing import Any, Dict, List

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.audit.application import RECENT_LIMIT, IAuditLogRepository
from src.audit.domain import AuditRecord
from src.audit.infrastructure.models import AuditLogModel


class SQLAlchemyAuditLogRepository(IAuditLogRepository):
    """
    SQLAlchemy implementation of the audit log repository.

    ``record`` writes the row inside a savepoint of the request transaction:
    it commits together with the audited change, but a failed insert only
    rolls back the savepoint and leaves the audited change intact.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def record(self, record: AuditRecord) -> None:
        """Write audit record under a savepoint of the current transaction."""
        model = AuditLogModel(
            entity_type=record.entity_type,
            entity_id=record.entity_id,
            operation=record.operation,
            username=record.username,
            old_value=record.old_value,
            new_value=record.new_value,
            changes=record.changes,
            description=record.description,
            timestamp=record.timestamp
        )
        async with self._session.begin_nested():
            self._session.add(model)
            await self._session.flush()

    async def recent(self, limit: int = RECENT_LIMIT) -> List[AuditLogModel]:
        """Get newest records."""
        await self._session.flush()
        stmt = (
            select(AuditLogModel)
            .order_by(AuditLogModel.timestamp.desc(), AuditLogModel.id.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    def _conditions(self, filters: Dict[str, Any]) -> list:
        conditions = []
        if "entity_type" in filters:
            conditions.append(AuditLogModel.entity_type == filters["entity_type"])
        if "operation" in filters:
            conditions.append(AuditLogModel.operation == filters["operation"])
        if "username" in filters:
            conditions.append(AuditLogModel.username.ilike(f"%{filters['username']}%"))
        if "start" in filters:
            conditions.append(AuditLogModel.timestamp >= filters["start"])
        if "end" in filters:
            conditions.append(AuditLogModel.timestamp <= filters["end"])
        return conditions

    async def search(
        self,
        filters: Dict[str, Any],
        limit: int = 50,
        offset: int = 0
    ) -> List[AuditLogModel]:
        """Search records with filters."""
        await self._session.flush()
        stmt = select(AuditLogModel)

        conditions = self._conditions(filters)
        if conditions:
            stmt = stmt.where(and_(*conditions))

        stmt = stmt.order_by(AuditLogModel.timestamp.desc(), AuditLogModel.id.desc())
        stmt = stmt.limit(limit).offset(offset)

        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def count(self, filters: Dict[str, Any]) -> int:
        """Count records matching filters."""
        stmt = select(func.count(AuditLogModel.id))

        conditions = self._conditions(filters)
        if conditions:
            stmt = stmt.where(and_(*conditions))

        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def history(self, entity_type: str, entity_id: int) -> List[AuditLogModel]:
        """Get all records of one entity."""
        await self._session.flush()
        stmt = (
            select(AuditLogModel)
            .where(
                AuditLogModel.entity_type == entity_type,
                AuditLogModel.entity_id == entity_id
            )
            .order_by(AuditLogModel.timestamp.desc(), AuditLogModel.id.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def count_by(self, column: str) -> Dict[str, int]:
        """Count records grouped by operation or entity type."""
        if column not in ("operation", "entity_type"):
            raise ValueError(f"Cannot group audit logs by {column}")

        await self._session.flush()
        attribute = getattr(AuditLogModel, column)
        stmt = select(attribute, func.count(AuditLogModel.id)).group_by(attribute)
        result = await self._session.execute(stmt)
        return {key: count for key, count in result.all()}
