"""
In-app Notifications
====================

- IInboxRepository: storage boundary for in-app notifications
- InboxRecorder: writes workflow events into the recipient's inbox
- InboxService: the acting user's inbox (read, mark read, delete, cleanup)

Inbox entries are written in the same transaction as the change they
describe; a failed write is logged and never fails that change.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

from src.config import VALID_NOTIFICATION_TYPES, NotificationType, settings
from src.core.exceptions import (
    PermissionDeniedException,
    ResourceNotFoundException,
    UserNotFoundException,
)
from src.shared.infrastructure.interception import observed
from src.shared.infrastructure.logging import get_logger
from src.workflow.domain import AccessContext, AccessControl

logger = get_logger(__name__)


class IInboxRepository(ABC):

    @abstractmethod
    async def get(self, notification_id: int) -> Optional[Any]:
        """Get notification by ID."""

    @abstractmethod
    async def save(self, notification: Any) -> Any:
        """Insert or update notification."""

    @abstractmethod
    async def record(self, notification: Any) -> Any:
        """Insert notification under a savepoint of the current transaction."""

    @abstractmethod
    async def delete(self, notification: Any) -> None:
        """Delete notification."""

    @abstractmethod
    async def list_unread(self, user_id: int, limit: Optional[int] = None) -> List[Any]:
        """Unread notifications of a user, newest first."""

    @abstractmethod
    async def count_unread(self, user_id: int) -> int:
        """Number of unread notifications of a user."""

    @abstractmethod
    async def list_page(self, user_id: int, limit: int, offset: int) -> List[Any]:
        """One page of a user's notifications, newest first."""

    @abstractmethod
    async def count(self, user_id: int) -> int:
        """Number of notifications of a user."""

    @abstractmethod
    async def mark_all_read(self, user_id: int) -> int:
        """Mark every notification of a user read. Returns rows changed."""

    @abstractmethod
    async def delete_older_than(self, user_id: int, cutoff: datetime) -> int:
        """Delete a user's notifications created before ``cutoff``. Returns rows removed."""


def normalize_type(value: Optional[str]) -> str:
    """Known notification type, upper-cased; anything else is a system alert."""
    if value:
        candidate = value.strip().upper()
        if candidate in VALID_NOTIFICATION_TYPES:
            return candidate
    return NotificationType.SYSTEM_ALERT


class InboxRecorder:
    """Writes workflow events into the inbox of the user they concern."""

    def __init__(self, repository: IInboxRepository):
        self._repository = repository

    async def notify(
        self,
        user: Any,
        title: str,
        message: str,
        type: str,
        entity: Any = None
    ) -> Optional[Any]:
        from src.notifications.infrastructure.models import InboxNotificationModel

        user_id = getattr(user, "id", None)
        if user_id is None:
            return None

        notification = InboxNotificationModel(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            related_entity_type=getattr(entity, "entity_type", None),
            related_entity_id=getattr(entity, "id", None)
        )
        try:
            return await self._repository.record(notification)
        except Exception as e:
            logger.warning(f"Failed to record {type} notification for user {user_id}: {e}")
            return None


class InboxService:
    """
    The acting user's in-app notifications.

    Administrators may address notifications to other users and clean up
    any inbox; everyone else only sees and changes their own.
    """

    def __init__(self, repository: IInboxRepository, users: Any, context: AccessContext):
        self._repository = repository
        self._users = users
        self._context = context

    def _check_owner(self, notification: Any) -> None:
        current = self._context.require_user()
        if notification.user_id != current.id and not AccessControl.is_admin(self._context):
            raise PermissionDeniedException(
                f"Notification {notification.id} belongs to another user"
            )

    async def _get(self, notification_id: int) -> Any:
        notification = await self._repository.get(notification_id)
        if notification is None:
            raise ResourceNotFoundException("Notification", notification_id)
        return notification

    @observed
    async def create(
        self,
        title: str,
        message: str,
        type: Optional[str] = None,
        related_entity_type: Optional[str] = None,
        related_entity_id: Optional[int] = None,
        user_id: Optional[int] = None
    ) -> Any:
        from src.notifications.infrastructure.models import InboxNotificationModel

        current = self._context.require_user()
        if user_id is None or user_id == current.id:
            user_id = current.id
        elif not AccessControl.is_admin(self._context):
            raise PermissionDeniedException("Only administrators can notify other users")
        elif await self._users.get(user_id) is None:
            raise UserNotFoundException(user_id)

        notification = InboxNotificationModel(
            user_id=user_id,
            title=title,
            message=message,
            type=normalize_type(type),
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id
        )
        return await self._repository.save(notification)

    @observed
    async def recent(self) -> List[Any]:
        current = self._context.require_user()
        return await self._repository.list_unread(current.id, limit=settings.inbox_recent_limit)

    @observed
    async def unread(self) -> List[Any]:
        current = self._context.require_user()
        return await self._repository.list_unread(current.id)

    @observed
    async def unread_count(self) -> int:
        current = self._context.require_user()
        return await self._repository.count_unread(current.id)

    @observed
    async def page(self, page: int = 0, size: int = 10) -> dict:
        current = self._context.require_user()
        items = await self._repository.list_page(current.id, limit=size, offset=page * size)
        total = await self._repository.count(current.id)
        return {"items": items, "page": page, "size": size, "total": total}

    @observed
    async def mark_read(self, notification_id: int) -> Any:
        notification = await self._get(notification_id)
        self._check_owner(notification)
        notification.is_read = True
        return await self._repository.save(notification)

    @observed
    async def mark_all_read(self) -> int:
        current = self._context.require_user()
        return await self._repository.mark_all_read(current.id)

    @observed
    async def delete(self, notification_id: int) -> None:
        notification = await self._get(notification_id)
        self._check_owner(notification)
        await self._repository.delete(notification)

    @observed
    async def cleanup(self, user_id: int, now: Optional[datetime] = None) -> int:
        """Remove a user's notifications older than the retention window. Administrators only."""
        self._context.require_user()
        if not AccessControl.is_admin(self._context):
            raise PermissionDeniedException("Administrator role required")
        if await self._users.get(user_id) is None:
            raise UserNotFoundException(user_id)

        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=settings.inbox_retention_days)
        removed = await self._repository.delete_older_than(user_id, cutoff)
        logger.info(f"Removed {removed} old notification(s) of user {user_id}", extra={"user_id": user_id})
        return removed
