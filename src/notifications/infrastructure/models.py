"""
Notification Infrastructure Models
==================================

SQLAlchemy ORM model for in-app notifications.

Maps to the 'inbox_notifications' table.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.config import NotificationType
from src.infrastructure.database import Base


class InboxNotificationModel(Base):
    """
    Database model for an in-app notification addressed to one user.
    """
    __tablename__ = "inbox_notifications"
    entity_type = "Notification"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False, default=NotificationType.SYSTEM_ALERT)

    # What the notification is about
    related_entity_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    related_entity_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True,
        default=lambda: datetime.now(timezone.utc)
    )

    @property
    def entity_id(self) -> Optional[int]:
        return self.id
