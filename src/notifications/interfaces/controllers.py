"""
Notification Controllers (API Routes)
=====================================

FastAPI routes for triggering the sweep, sending ad-hoc emails and the
acting user's in-app inbox.
"""

import base64
import binascii
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import ValidationException
from src.infrastructure.database import get_session
from src.notifications.application import (
    IEmailSender,
    InboxService,
    NotificationDispatcher,
    OverdueSlaSweep,
)
from src.notifications.infrastructure import SQLAlchemyInboxRepository
from src.notifications.interfaces.dependencies import get_dispatcher, get_email_sender
from src.shared.infrastructure.logging import get_logger, log_latency
from src.workflow.domain import AccessContext
from src.workflow.infrastructure import (
    SQLAlchemySlaRuleRepository,
    SQLAlchemyStoryRepository,
    SQLAlchemyUserRepository,
)
from src.workflow.interfaces.dependencies import get_access_context, require_admin

logger = get_logger(__name__)
router = APIRouter(prefix="/notifications", tags=["Notifications"])
inbox_router = APIRouter(prefix="/inbox", tags=["Inbox"])


# ========== DTOs ==========

class SweepSummaryResponse(BaseModel):
    """Counts from one overdue / SLA-breach sweep."""
    stories_scanned: int = Field(..., ge=0)
    overdue_notifications: int = Field(..., ge=0)
    sla_breach_notifications: int = Field(..., ge=0)
    failures: int = Field(..., ge=0)


class EmailRequest(BaseModel):
    """Ad-hoc email, optionally with one base64-encoded attachment."""
    to: str = Field(..., min_length=3, max_length=255)
    subject: str = Field(..., min_length=1, max_length=500)
    body: str = Field(..., description="Plain-text body")
    attachment_name: Optional[str] = Field(None, max_length=255)
    attachment_base64: Optional[str] = None


class EmailResponse(BaseModel):
    recipient: str
    sent: bool


class InboxNotificationCreate(BaseModel):
    """
    In-app notification. Addressed to the acting user unless an
    administrator names another ``user_id``. Unknown types become
    SYSTEM_ALERT.
    """
    title: str = Field(default="Activity", min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    type: Optional[str] = Field(None, max_length=50)
    related_entity_type: Optional[str] = Field(None, max_length=100)
    related_entity_id: Optional[int] = None
    user_id: Optional[int] = None


class InboxBatchCreate(BaseModel):
    notifications: List[InboxNotificationCreate] = Field(..., min_length=1)


class InboxNotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    title: str
    message: str
    type: str
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[int] = None
    is_read: bool
    created_at: datetime


class InboxPageResponse(BaseModel):
    items: List[InboxNotificationResponse]
    page: int
    size: int
    total: int


class CountResponse(BaseModel):
    count: int


def build_sweep(session: AsyncSession, dispatcher: NotificationDispatcher) -> OverdueSlaSweep:
    """Sweep over the stories and SLA rules visible to ``session``."""
    return OverdueSlaSweep(
        SQLAlchemyStoryRepository(session),
        SQLAlchemySlaRuleRepository(session),
        dispatcher
    )


def get_inbox_service(
    session: AsyncSession = Depends(get_session),
    context: AccessContext = Depends(get_access_context)
) -> InboxService:
    return InboxService(SQLAlchemyInboxRepository(session), SQLAlchemyUserRepository(session), context)


# ========== Route Handlers ==========

@router.post(
    "/sweep",
    response_model=SweepSummaryResponse,
    summary="Run the overdue / SLA-breach sweep now",
    description="""
    Runs one tick of the periodic sweep immediately. **Administrators only.**

    - Stories due before today and not approved notify their assignee.
    - Stories older than an SLA rule's duration (in the rule's epic) notify
      the project manager, or the assignee when there is no manager email.
    """
)
async def run_sweep(
    _: AccessContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    with log_latency(logger, "manual_sweep"):
        summary = await build_sweep(session, dispatcher).run()
    return SweepSummaryResponse(**summary)


@router.post(
    "/email",
    response_model=EmailResponse,
    summary="Send an email",
    description="Sends a plain-text email, optionally with one attachment. Requires an authenticated user."
)
async def send_email(
    request: EmailRequest,
    context: AccessContext = Depends(get_access_context),
    sender: IEmailSender = Depends(get_email_sender)
):
    context.require_user()

    if (request.attachment_name is None) != (request.attachment_base64 is None):
        raise ValidationException("attachment_name and attachment_base64 must be given together")

    if request.attachment_name is None:
        sent = await sender.send(request.to, request.subject, request.body)
    else:
        try:
            content = base64.b64decode(request.attachment_base64, validate=True)
        except (binascii.Error, ValueError):
            raise ValidationException("attachment_base64 is not valid base64")
        sent = await sender.send_with_attachment(
            request.to, request.subject, request.body, request.attachment_name, content
        )

    return EmailResponse(recipient=request.to, sent=sent)


# ========== Inbox ==========

@inbox_router.post(
    "",
    response_model=InboxNotificationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an in-app notification"
)
async def create_notification(
    request: InboxNotificationCreate,
    service: InboxService = Depends(get_inbox_service)
):
    return await service.create(**request.model_dump())


@inbox_router.post(
    "/batch",
    response_model=List[InboxNotificationResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create several in-app notifications"
)
async def create_notifications(
    request: InboxBatchCreate,
    service: InboxService = Depends(get_inbox_service)
):
    return [await service.create(**item.model_dump()) for item in request.notifications]


@inbox_router.get(
    "/recent",
    response_model=List[InboxNotificationResponse],
    summary="Newest unread notifications",
    description="The five newest unread notifications of the acting user."
)
async def recent_notifications(service: InboxService = Depends(get_inbox_service)):
    return await service.recent()


@inbox_router.get("/unread", response_model=List[InboxNotificationResponse], summary="Unread notifications")
async def unread_notifications(service: InboxService = Depends(get_inbox_service)):
    return await service.unread()


@inbox_router.get("/unread-count", response_model=CountResponse, summary="Number of unread notifications")
async def unread_count(service: InboxService = Depends(get_inbox_service)):
    return CountResponse(count=await service.unread_count())


@inbox_router.get("", response_model=InboxPageResponse, summary="Notifications, one page at a time")
async def list_notifications(
    page: int = Query(0, ge=0),
    size: int = Query(10, ge=1, le=100),
    service: InboxService = Depends(get_inbox_service)
):
    return await service.page(page=page, size=size)


@inbox_router.put("/read-all", response_model=CountResponse, summary="Mark every notification read")
async def mark_all_read(service: InboxService = Depends(get_inbox_service)):
    return CountResponse(count=await service.mark_all_read())


@inbox_router.put("/{notification_id}/read", response_model=InboxNotificationResponse, summary="Mark a notification read")
async def mark_read(notification_id: int, service: InboxService = Depends(get_inbox_service)):
    return await service.mark_read(notification_id)


@inbox_router.delete("/cleanup", response_model=CountResponse, summary="Remove old notifications of a user")
async def cleanup_notifications(
    user_id: int = Query(...),
    service: InboxService = Depends(get_inbox_service)
):
    return CountResponse(count=await service.cleanup(user_id))


@inbox_router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a notification")
async def delete_notification(notification_id: int, service: InboxService = Depends(get_inbox_service)):
    await service.delete(notification_id)
