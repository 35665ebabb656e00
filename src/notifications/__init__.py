"""
Notifications Module
====================

Bounded Context for email notifications.

Responsibilities:
- Compose assignment, completion, epic, overdue and SLA-breach emails
- Keep every user's in-app notification inbox
- Send them over SMTP behind a circuit breaker
- Run the periodic overdue / SLA-breach sweep
"""

__version__ = "1.0.0"
