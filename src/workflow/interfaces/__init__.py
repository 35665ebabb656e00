"""
Workflow Interfaces Layer
=========================

Interface adapters (controllers) for the workflow module.

This is the outermost layer - handles HTTP requests/responses and
delegates to application services.
"""

from src.workflow.interfaces.controllers import (
    epics_router,
    projects_router,
    sla_rules_router,
    stories_router,
    time_logs_router,
    users_router,
)

__all__ = [
    "epics_router",
    "projects_router",
    "sla_rules_router",
    "stories_router",
    "time_logs_router",
    "users_router",
]
