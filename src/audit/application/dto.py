"""
Audit Application DTOs
======================

Pydantic models for the audit query API.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AuditLogResponse(BaseModel):
    """One audit trail entry."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    entity_type: str
    entity_id: Optional[int] = None
    operation: str
    username: str
    old_value: Optional[str] = Field(None, description="JSON snapshot before the operation")
    new_value: Optional[str] = Field(None, description="JSON snapshot after the operation")
    changes: Optional[str] = Field(None, description="JSON list of changed fields")
    description: Optional[str] = None
    timestamp: datetime


class AuditLogPage(BaseModel):
    """Paginated search result."""
    items: List[AuditLogResponse]
    total: int = Field(..., ge=0)
    limit: int
    offset: int


class AuditStatisticsResponse(BaseModel):
    """Aggregate counts over the whole trail."""
    total: int = Field(..., ge=0)
    by_operation: Dict[str, int]
    by_entity_type: Dict[str, int]
