"""
Notification Infrastructure Repositories
========================================

SQLAlchemy implementation of the inbox repository.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, func, select, update

from src.notifications.application.inbox import IInboxRepository
from src.notifications.infrastructure.models import InboxNotificationModel
from src.workflow.infrastructure.repositories import SQLAlchemyRepository


class SQLAlchemyInboxRepository(SQLAlchemyRepository[InboxNotificationModel], IInboxRepository):
    model = InboxNotificationModel

    def _newest_first(self, stmt):
        return stmt.order_by(InboxNotificationModel.created_at.desc(), InboxNotificationModel.id.desc())

    async def record(self, notification: InboxNotificationModel) -> InboxNotificationModel:
        """Insert under a savepoint so a failure leaves the outer transaction usable."""
        async with self._session.begin_nested():
            self._session.add(notification)
            await self._session.flush()
        return notification

    async def list_unread(self, user_id: int, limit: Optional[int] = None) -> List[InboxNotificationModel]:
        stmt = self._newest_first(
            select(InboxNotificationModel).where(
                InboxNotificationModel.user_id == user_id,
                InboxNotificationModel.is_read.is_(False)
            )
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def count_unread(self, user_id: int) -> int:
        stmt = select(func.count(InboxNotificationModel.id)).where(
            InboxNotificationModel.user_id == user_id,
            InboxNotificationModel.is_read.is_(False)
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def list_page(self, user_id: int, limit: int, offset: int) -> List[InboxNotificationModel]:
        stmt = self._newest_first(
            select(InboxNotificationModel).where(InboxNotificationModel.user_id == user_id)
        ).limit(limit).offset(offset)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def count(self, user_id: int) -> int:
        stmt = select(func.count(InboxNotificationModel.id)).where(InboxNotificationModel.user_id == user_id)
        return (await self._session.execute(stmt)).scalar_one()

    async def mark_all_read(self, user_id: int) -> int:
        stmt = (
            update(InboxNotificationModel)
            .where(InboxNotificationModel.user_id == user_id, InboxNotificationModel.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session="fetch")
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def delete_older_than(self, user_id: int, cutoff: datetime) -> int:
        stmt = (
            delete(InboxNotificationModel)
            .where(InboxNotificationModel.user_id == user_id, InboxNotificationModel.created_at < cutoff)
            .execution_options(synchronize_session="fetch")
        )
        result = await self._session.execute(stmt)
        return result.rowcount
