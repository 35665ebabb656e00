"""
Audit Application Layer
=======================

Contains:
- Services: audit recording (never raising) and audit queries
- DTOs: Data transfer objects for API serialization
"""

from src.audit.application.dto import (
    AuditLogPage,
    AuditLogResponse,
    AuditStatisticsResponse,
)
from src.audit.application.services import (
    RECENT_LIMIT,
    AuditLogQueryService,
    AuditLogService,
    IAuditLogRepository,
    IAuditRecorder,
)

__all__ = [
    # DTOs
    "AuditLogPage",
    "AuditLogResponse",
    "AuditStatisticsResponse",
    # Services
    "RECENT_LIMIT",
    "AuditLogQueryService",
    "AuditLogService",
    # Repository Interfaces
    "IAuditLogRepository",
    "IAuditRecorder",
]
