"""
Audited Repository
==================

Wraps any repository exposing ``save``, ``delete`` and ``delete_by_id`` and
records one audit entry per successful mutation:

    save (no id yet)  -> CREATE, old=None,     new=saved
    save (has id)     -> UPDATE, old=persisted, new=saved
    delete(entity)    -> DELETE, old=entity,   new=None
    delete_by_id(id)  -> DELETE, old=None,     new=None

Every other attribute is delegated to the wrapped repository untouched.
Failures of the wrapped call propagate and are not audited; failures while
building or writing the audit entry are logged and never propagate.
"""

from typing import Any, Dict, Optional

from src.audit.application import AuditLogService
from src.audit.domain import (
    SYSTEM_USER,
    entity_id_of,
    entity_type_from_repository,
    entity_type_of,
    snapshot_of,
)
from src.config import OperationType
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class AuditedRepository:
    """Audit-recording proxy around a repository."""

    def __init__(
        self,
        inner: Any,
        audit_service: AuditLogService,
        actor: Optional[str] = None
    ):
        self._inner = inner
        self._audit = audit_service
        self._actor = actor or SYSTEM_USER

    @property
    def inner(self) -> Any:
        return self._inner

    def __getattr__(self, name: str) -> Any:
        return getattr(self._inner, name)

    def _snapshot(self, entity: Any, persisted: bool = False) -> Optional[Dict[str, Any]]:
        try:
            if persisted and hasattr(entity, "persisted_snapshot"):
                return entity.persisted_snapshot()
            return snapshot_of(entity)
        except Exception as e:
            logger.error(f"Failed to snapshot {type(entity).__name__} for audit: {e}")
            return None

    async def save(self, entity: Any) -> Any:
        existing_id = entity_id_of(entity)
        entity_type = entity_type_of(entity)

        if existing_id is None:
            saved = await self._inner.save(entity)
            await self._audit.log_operation(
                entity_type=entity_type,
                entity_id=entity_id_of(saved),
                operation=OperationType.CREATE,
                old_value=None,
                new_value=self._snapshot(saved),
                description=f"Created new {entity_type}",
                username=self._actor,
            )
            return saved

        old_value = self._snapshot(entity, persisted=True)
        saved = await self._inner.save(entity)
        await self._audit.log_operation(
            entity_type=entity_type,
            entity_id=entity_id_of(saved),
            operation=OperationType.UPDATE,
            old_value=old_value,
            new_value=self._snapshot(saved),
            description=f"Updated {entity_type}",
            username=self._actor,
        )
        return saved

    async def delete(self, entity: Any) -> None:
        entity_type = entity_type_of(entity)
        entity_id = entity_id_of(entity)
        old_value = self._snapshot(entity)

        await self._inner.delete(entity)
        await self._audit.log_operation(
            entity_type=entity_type,
            entity_id=entity_id,
            operation=OperationType.DELETE,
            old_value=old_value,
            new_value=None,
            description=f"Deleted {entity_type}",
            username=self._actor,
        )

    async def delete_by_id(self, entity_id: Any) -> None:
        entity_type = entity_type_from_repository(self._inner)

        await self._inner.delete_by_id(entity_id)
        await self._audit.log_operation(
            entity_type=entity_type,
            entity_id=_as_int(entity_id),
            operation=OperationType.DELETE,
            old_value=None,
            new_value=None,
            description=f"Deleted {entity_type} by ID",
            username=self._actor,
        )


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None
