"""
Workflow Dependencies
=====================

FastAPI dependencies wiring the request session, the authenticated user
and the audited repositories into the workflow services.

The authenticated user id arrives in the ``X-User-Id`` header; the gateway
in front of the service is responsible for authentication.
"""

from typing import Any, Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from src.audit.application import AuditLogService
from src.audit.infrastructure import AuditedRepository, SQLAlchemyAuditLogRepository
from src.core.exceptions import PermissionDeniedException
from src.infrastructure.database import get_session
from src.notifications.application import NotificationDispatcher
from src.notifications.interfaces.dependencies import get_dispatcher
from src.workflow.application import (
    EpicService,
    ProjectService,
    SlaRuleService,
    StoryService,
    TimeLogService,
    UserService,
)
from src.workflow.domain import AccessContext, AccessControl
from src.workflow.infrastructure import (
    SQLAlchemyEpicRepository,
    SQLAlchemyProjectRepository,
    SQLAlchemySlaRuleRepository,
    SQLAlchemyStoryRepository,
    SQLAlchemyTimeLogRepository,
    SQLAlchemyUserRepository,
)

USER_HEADER = "X-User-Id"


async def get_access_context(
    x_user_id: Optional[int] = Header(None, alias=USER_HEADER),
    session: AsyncSession = Depends(get_session)
) -> AccessContext:
    """Resolve the acting user; an empty context when the header is absent."""
    if x_user_id is None:
        return AccessContext()

    user = await SQLAlchemyUserRepository(session).get(x_user_id)
    if user is None:
        raise PermissionDeniedException(f"Unknown user id {x_user_id}")
    return AccessContext(user)


async def require_admin(context: AccessContext = Depends(get_access_context)) -> AccessContext:
    context.require_user()
    if not AccessControl.is_admin(context):
        raise PermissionDeniedException("Administrator role required")
    return context


def audited(inner: Any, session: AsyncSession, context: AccessContext) -> AuditedRepository:
    """Wrap a repository so its mutations are recorded under the acting user."""
    audit_service = AuditLogService(SQLAlchemyAuditLogRepository(session))
    return AuditedRepository(inner, audit_service, actor=context.username)


# ========== Services ==========

def get_user_service(
    session: AsyncSession = Depends(get_session),
    context: AccessContext = Depends(get_access_context)
) -> UserService:
    users = audited(SQLAlchemyUserRepository(session), session, context)
    return UserService(users, context)


def get_project_service(
    session: AsyncSession = Depends(get_session),
    context: AccessContext = Depends(get_access_context)
) -> ProjectService:
    return ProjectService(
        audited(SQLAlchemyProjectRepository(session), session, context),
        SQLAlchemyUserRepository(session),
        context
    )


def get_epic_service(
    session: AsyncSession = Depends(get_session),
    context: AccessContext = Depends(get_access_context),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
) -> EpicService:
    return EpicService(
        audited(SQLAlchemyEpicRepository(session), session, context),
        SQLAlchemyProjectRepository(session),
        dispatcher,
        context
    )


def get_story_service(
    session: AsyncSession = Depends(get_session),
    context: AccessContext = Depends(get_access_context),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    epic_service: EpicService = Depends(get_epic_service)
) -> StoryService:
    return StoryService(
        audited(SQLAlchemyStoryRepository(session), session, context),
        SQLAlchemyUserRepository(session),
        SQLAlchemyProjectRepository(session),
        epic_service,
        dispatcher,
        context
    )


def get_sla_rule_service(
    session: AsyncSession = Depends(get_session),
    context: AccessContext = Depends(get_access_context)
) -> SlaRuleService:
    return SlaRuleService(
        audited(SQLAlchemySlaRuleRepository(session), session, context),
        SQLAlchemyEpicRepository(session),
        context
    )


def get_time_log_service(
    session: AsyncSession = Depends(get_session),
    context: AccessContext = Depends(get_access_context)
) -> TimeLogService:
    return TimeLogService(
        audited(SQLAlchemyTimeLogRepository(session), session, context),
        SQLAlchemyStoryRepository(session),
        SQLAlchemyUserRepository(session),
        context
    )
