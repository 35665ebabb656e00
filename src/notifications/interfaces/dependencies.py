"""
Notification Dependencies
=========================

FastAPI dependencies providing the email sender and the dispatcher.

The application installs its sender at startup; tests replace it through
``app.dependency_overrides[get_email_sender]``.
"""

from typing import AsyncGenerator, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database import get_session
from src.notifications.application import IEmailSender, InboxRecorder, NotificationDispatcher
from src.notifications.infrastructure import SMTPEmailSender, SQLAlchemyInboxRepository

_email_sender: Optional[IEmailSender] = None


def configure_email_sender(sender: Optional[IEmailSender]) -> None:
    global _email_sender
    _email_sender = sender


def get_email_sender() -> IEmailSender:
    """Get the process-wide email sender, creating the SMTP one on first use."""
    global _email_sender
    if _email_sender is None:
        _email_sender = SMTPEmailSender()
    return _email_sender


async def get_dispatcher(
    session: AsyncSession = Depends(get_session),
    sender: IEmailSender = Depends(get_email_sender)
) -> AsyncGenerator[NotificationDispatcher, None]:
    """
    Request-scoped dispatcher.

    Emails raised while handling the request are held back until the
    request's session has committed. When the handler or the commit fails
    they are dropped. In-app notifications join the request transaction.
    """
    dispatcher = NotificationDispatcher(
        sender, deferred=True, inbox=InboxRecorder(SQLAlchemyInboxRepository(session))
    )
    try:
        yield dispatcher
        await session.commit()
    except Exception:
        dispatcher.discard()
        raise
    await dispatcher.flush()
