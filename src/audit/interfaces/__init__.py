"""
Audit Interfaces Layer
======================

Read-only audit trail routes.
"""

from src.audit.interfaces.controllers import router as audit_router

__all__ = ["audit_router"]
