"""
Audit Domain Layer
==================

Contains:
- Entities: AuditRecord
- Domain helpers: entity id/type extraction, snapshots, change diffs

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from src.audit.domain.entities import (
    SYSTEM_USER,
    AuditRecord,
    compute_changes,
    entity_id_of,
    entity_type_from_repository,
    entity_type_of,
    snapshot_of,
    to_json,
)

__all__ = [
    "SYSTEM_USER",
    "AuditRecord",
    "compute_changes",
    "entity_id_of",
    "entity_type_from_repository",
    "entity_type_of",
    "snapshot_of",
    "to_json",
]
