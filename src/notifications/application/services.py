"""
Notification Application Services
=================================

- NotificationDispatcher: composes workflow event emails and hands them to
  the email sender
- OverdueSlaSweep: one tick of the periodic overdue / SLA-breach scan
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from src.config import NotificationType
from src.notifications.application.inbox import InboxRecorder
from src.notifications.domain import (
    EmailMessage,
    epic_approved,
    epic_finished,
    sla_breach,
    sla_rule_name,
    story_assigned,
    story_completed,
    story_overdue,
)
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Sender Interface (Dependency Inversion) ==========

class IEmailSender(ABC):
    """
    Outbound email boundary.

    Implementations never raise: delivery failures are logged and reported
    as ``False``.
    """

    @abstractmethod
    async def send(self, to: str, subject: str, body: str) -> bool:
        """Send a plain-text email."""

    @abstractmethod
    async def send_with_attachment(
        self,
        to: str,
        subject: str,
        body: str,
        filename: str,
        content: bytes
    ) -> bool:
        """Send a plain-text email with one attachment."""


# ========== Dispatcher ==========

class NotificationDispatcher:
    """
    Sends workflow notifications.

    Events without a usable recipient are skipped silently. Every method
    returns the composed message, or None.

    A ``deferred`` dispatcher only queues messages; ``flush`` sends them
    once the change they announce has been committed and ``discard`` drops
    them when it has not.

    With an ``inbox`` the assignment, completion and epic events are also
    written to the in-app inbox of the user they concern, whether or not
    that user has an email address.
    """

    def __init__(
        self,
        sender: IEmailSender,
        deferred: bool = False,
        inbox: Optional[InboxRecorder] = None
    ):
        self._sender = sender
        self._deferred = deferred
        self._inbox = inbox
        self._outbox: List[Tuple[str, EmailMessage]] = []

    @property
    def pending(self) -> List[EmailMessage]:
        return [message for _, message in self._outbox]

    async def _dispatch(
        self,
        event: str,
        compose: Callable[..., Optional[EmailMessage]],
        *args: Any
    ) -> Optional[EmailMessage]:
        message = compose(*args)
        if message is None:
            logger.debug(f"Skipping {event} notification: no recipient email")
            return None

        if self._deferred:
            self._outbox.append((event, message))
        else:
            await self._deliver(event, message)
        return message

    async def _deliver(self, event: str, message: EmailMessage) -> bool:
        sent = await self._sender.send(message.to, message.subject, message.body)
        logger.info(
            f"{event} notification {'sent' if sent else 'not delivered'}",
            extra={"event": event, "recipient": message.to}
        )
        return sent

    async def flush(self) -> int:
        """Send every queued message. Returns how many were delivered."""
        outbox, self._outbox = self._outbox, []
        delivered = 0
        for event, message in outbox:
            if await self._deliver(event, message):
                delivered += 1
        return delivered

    def discard(self) -> int:
        """Drop every queued message. Returns how many were dropped."""
        dropped = len(self._outbox)
        self._outbox = []
        if dropped:
            logger.info(f"Discarded {dropped} notification(s) of a rolled back change")
        return dropped

    async def _to_inbox(self, user: Any, title: str, message: str, type: str, entity: Any) -> None:
        if self._inbox is not None and user is not None:
            await self._inbox.notify(user, title, message, type, entity)

    async def story_assigned(self, story: Any) -> Optional[EmailMessage]:
        await self._to_inbox(
            getattr(story, "assignee", None), "New Story Assigned",
            f"You have been assigned to story: {story.title}",
            NotificationType.STORY_ASSIGNED, story
        )
        return await self._dispatch("story_assigned", story_assigned, story)

    async def story_completed(self, story: Any) -> Optional[EmailMessage]:
        await self._to_inbox(
            getattr(story, "assignee", None), "Story Completed",
            f"Your story '{story.title}' has been completed",
            NotificationType.STORY_COMPLETED, story
        )
        return await self._dispatch("story_completed", story_completed, story)

    async def epic_approved(self, epic: Any) -> Optional[EmailMessage]:
        await self._to_inbox(
            getattr(epic, "manager", None), "Epic Approved",
            f"Your epic '{epic.name}' has been approved",
            NotificationType.EPIC_APPROVED, epic
        )
        return await self._dispatch("epic_approved", epic_approved, epic)

    async def epic_finished(self, epic: Any) -> Optional[EmailMessage]:
        await self._to_inbox(
            getattr(epic, "manager", None), "Epic Completed",
            f"Your epic '{epic.name}' has been completed",
            NotificationType.EPIC_COMPLETED, epic
        )
        return await self._dispatch("epic_finished", epic_finished, epic)

    async def story_overdue(self, story: Any) -> Optional[EmailMessage]:
        return await self._dispatch("story_overdue", story_overdue, story)

    async def sla_breach(self, story: Any, rule: Any) -> Optional[EmailMessage]:
        return await self._dispatch("sla_breach", sla_breach, story, sla_rule_name(rule))


# ========== Sweep ==========

def elapsed_whole_hours(since: datetime, now: datetime) -> int:
    """Whole hours between two instants, truncated. Naive values are UTC."""
    if since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return int((now - since).total_seconds() / 3600)


class OverdueSlaSweep:
    """
    One tick of the overdue / SLA-breach scan.

    1. Every story due before today and not approved gets an overdue notice.
    2. For every notifiable SLA rule, every story in the rule's epic whose
       age in whole hours exceeds the rule's duration gets a breach notice.

    A failure on one story is logged and the scan moves on to the next
    story. Any other failure ends the tick early; both are logged at
    WARNING and never raised.
    """

    def __init__(
        self,
        story_repository: Any,
        sla_rule_repository: Any,
        dispatcher: NotificationDispatcher
    ):
        self._stories = story_repository
        self._rules = sla_rule_repository
        self._dispatcher = dispatcher

    async def run(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Run one tick.

        Args:
            now: Reference instant (defaults to the current UTC time)

        Returns:
            Summary counts of the tick
        """
        now = now or datetime.now(timezone.utc)
        summary = {
            "stories_scanned": 0,
            "overdue_notifications": 0,
            "sla_breach_notifications": 0,
            "failures": 0,
        }

        try:
            stories = await self._stories.list_all()
            summary["stories_scanned"] = len(stories)
            await self._scan_overdue(stories, now, summary)

            rules = await self._rules.list_notifiable()
            await self._scan_sla(stories, rules, now, summary)
        except Exception as e:
            logger.warning(f"Overdue/SLA sweep failed: {e}", extra=summary)
            return summary

        logger.info("Overdue/SLA sweep completed", extra=summary)
        return summary

    async def _scan_overdue(self, stories: List[Any], now: datetime, summary: Dict[str, int]) -> None:
        today = now.date()
        for story in stories:
            try:
                if story.due_date is not None and story.due_date < today and not story.approved:
                    if await self._dispatcher.story_overdue(story) is not None:
                        summary["overdue_notifications"] += 1
            except Exception as e:
                summary["failures"] += 1
                logger.warning(f"Overdue check failed for story {story.id}: {e}")

    async def _scan_sla(
        self,
        stories: List[Any],
        rules: List[Any],
        now: datetime,
        summary: Dict[str, int]
    ) -> None:
        by_epic: Dict[int, List[Any]] = defaultdict(list)
        for story in stories:
            if story.epic_id is not None:
                by_epic[story.epic_id].append(story)

        for rule in rules:
            if not rule.notify_email or rule.state_id is None:
                continue
            for story in by_epic.get(rule.state_id, []):
                try:
                    if story.created_at is None:
                        continue
                    if elapsed_whole_hours(story.created_at, now) > rule.duration_hours:
                        if await self._dispatcher.sla_breach(story, rule) is not None:
                            summary["sla_breach_notifications"] += 1
                except Exception as e:
                    summary["failures"] += 1
                    logger.warning(f"SLA check failed for story {story.id} under rule {rule.id}: {e}")
