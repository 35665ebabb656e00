"""
Workflow Domain Layer
=====================

Contains:
- Access control: role-hierarchy edit checks against an explicit AccessContext

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from src.workflow.domain.access_control import AccessContext, AccessControl

__all__ = [
    "AccessContext",
    "AccessControl",
]
