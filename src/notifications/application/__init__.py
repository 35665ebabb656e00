"""
Notifications Application Layer
===============================

Contains:
- NotificationDispatcher: composes and sends workflow notifications
- OverdueSlaSweep: the periodic overdue / SLA-breach scan
- IEmailSender: the outbound email boundary
- InboxService / InboxRecorder: in-app notifications
"""

from src.notifications.application.inbox import (
    IInboxRepository,
    InboxRecorder,
    InboxService,
    normalize_type,
)
from src.notifications.application.services import (
    IEmailSender,
    NotificationDispatcher,
    OverdueSlaSweep,
    elapsed_whole_hours,
)

__all__ = [
    "IEmailSender",
    "IInboxRepository",
    "InboxRecorder",
    "InboxService",
    "NotificationDispatcher",
    "OverdueSlaSweep",
    "elapsed_whole_hours",
    "normalize_type",
]
