"""
Audit Infrastructure Layer
==========================

- Models: SQLAlchemy ORM model for audit rows
- Repositories: Data access layer
- Interception: the audited repository wrapper
"""

from src.audit.infrastructure.interception import AuditedRepository
from src.audit.infrastructure.models import AuditLogModel
from src.audit.infrastructure.repositories import SQLAlchemyAuditLogRepository

__all__ = [
    "AuditedRepository",
    "AuditLogModel",
    "SQLAlchemyAuditLogRepository",
]
