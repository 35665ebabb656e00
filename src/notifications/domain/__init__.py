"""
Notifications Domain Layer
==========================

Contains:
- EmailMessage value object
- Pure composers turning workflow events into messages

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from src.notifications.domain.messages import (
    EmailMessage,
    epic_approved,
    epic_finished,
    sla_breach,
    sla_rule_name,
    story_assigned,
    story_completed,
    story_overdue,
    usable_email,
)

__all__ = [
    "EmailMessage",
    "epic_approved",
    "epic_finished",
    "sla_breach",
    "sla_rule_name",
    "story_assigned",
    "story_completed",
    "story_overdue",
    "usable_email",
]
