"""
Audit Domain Entities
=====================

Pure Python representation of an audit trail entry and the helpers that
derive its fields from arbitrary domain objects.

Entities taking part in auditing expose two things explicitly:
- ``entity_id``: the identifier (``None`` before the first save)
- ``to_snapshot()``: a flat, JSON-safe dict of their state
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from src.config import OperationType

SYSTEM_USER = "system"


@dataclass
class AuditRecord:
    """
    An immutable entry describing one mutation of one entity.

    ``old_value`` and ``new_value`` are JSON documents of the entity state
    before and after the operation; ``changes`` lists the fields that differ
    when both are present.
    """

    entity_type: str
    operation: str
    entity_id: Optional[int] = None
    username: str = SYSTEM_USER
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    changes: Optional[str] = None
    description: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: Optional[int] = None

    def __post_init__(self):
        if self.operation not in (
            OperationType.CREATE, OperationType.UPDATE,
            OperationType.DELETE, OperationType.READ
        ):
            raise ValueError(f"Unknown audit operation: {self.operation}")
        if not self.username:
            self.username = SYSTEM_USER


def entity_id_of(entity: Any) -> Optional[int]:
    """
    Identifier of ``entity`` when it is integer-like, otherwise ``None``.

    Never raises: objects without an ``entity_id`` accessor, ids that are not
    integers or digit strings, and accessors that fail all yield ``None``.
    """
    if entity is None:
        return None
    try:
        value = getattr(entity, "entity_id", None)
    except Exception:
        return None

    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def entity_type_of(entity: Any) -> str:
    """Short type name recorded in the trail (``Story``, ``Epic``...)."""
    declared = getattr(type(entity), "entity_type", None)
    if isinstance(declared, str) and declared:
        return declared
    return type(entity).__name__


def entity_type_from_repository(repository: Any) -> str:
    """
    Derive the entity type from a repository class name.

    ``SQLAlchemyStoryRepository`` -> ``Story``.
    """
    name = type(repository).__name__
    if name.startswith("SQLAlchemy"):
        name = name[len("SQLAlchemy"):]
    if name.endswith("Repository"):
        name = name[:-len("Repository")]
    return name or "Unknown"


def snapshot_of(entity: Any) -> Optional[Dict[str, Any]]:
    if entity is None:
        return None
    to_snapshot = getattr(entity, "to_snapshot", None)
    if callable(to_snapshot):
        return to_snapshot()
    return {"value": str(entity)}


def to_json(snapshot: Optional[Dict[str, Any]]) -> Optional[str]:
    if snapshot is None:
        return None
    return json.dumps(snapshot, default=str, sort_keys=True)


def compute_changes(
    old: Optional[Dict[str, Any]],
    new: Optional[Dict[str, Any]]
) -> Optional[List[str]]:
    """
    Field-by-field differences between two snapshots.

    Returns ``None`` unless both snapshots exist. Entries read
    ``"Added: field"``, ``"Removed: field"`` or ``"field: old → new"``.
    """
    if old is None or new is None:
        return None

    changes = []
    for key in sorted(set(old) | set(new)):
        if key not in old:
            changes.append(f"Added: {key}")
        elif key not in new:
            changes.append(f"Removed: {key}")
        elif old[key] != new[key]:
            changes.append(f"{key}: {old[key]} → {new[key]}")
    return changes
