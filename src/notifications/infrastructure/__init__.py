"""
Notifications Infrastructure Layer
==================================

- Email: SMTP sender with circuit breaker and retry
- Scheduler: APScheduler wrapper for the periodic sweep
- Models / Repositories: in-app notification storage
"""

from src.notifications.infrastructure.email import (
    CircuitBreaker,
    CircuitState,
    SMTPEmailSender,
)
from src.notifications.infrastructure.models import InboxNotificationModel
from src.notifications.infrastructure.repositories import SQLAlchemyInboxRepository
from src.notifications.infrastructure.scheduler import SweepScheduler

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "InboxNotificationModel",
    "SMTPEmailSender",
    "SQLAlchemyInboxRepository",
    "SweepScheduler",
]
