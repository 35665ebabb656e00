"""
Notification Messages
=====================

Pure composition of notification emails from workflow objects.

Every composer returns an EmailMessage, or None when there is nobody to
send to (missing user, missing or blank email address).
"""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class EmailMessage:
    """A plain-text email ready to be sent."""

    to: str
    subject: str
    body: str


def usable_email(user: Any) -> Optional[str]:
    """The user's email address, or None if it cannot be used."""
    if user is None:
        return None
    email = getattr(user, "email", None)
    if email is None or not str(email).strip():
        return None
    return str(email).strip()


def _project_manager(item: Any) -> Any:
    project = getattr(item, "project", None)
    return getattr(project, "manager", None) if project is not None else None


def story_assigned(story: Any) -> Optional[EmailMessage]:
    assignee = story.assignee
    to = usable_email(assignee)
    if to is None:
        return None

    project_name = story.project.name if story.project else ""
    body = (
        f"Hello {assignee.username},\n\n"
        f"You have been assigned a new task: '{story.title}' in project '{project_name}'.\n"
        f"Due date: {story.due_date}\n\n"
        f"Description:\n{story.description or ''}"
    )
    return EmailMessage(to, f"New Task Assigned: {story.title}", body)


def story_completed(story: Any) -> Optional[EmailMessage]:
    manager = _project_manager(story)
    to = usable_email(manager)
    if to is None:
        return None

    body = (
        f"Hello {manager.username},\n\n"
        f"The task '{story.title}' has been marked completed/approved.\n\n"
        f"Regards"
    )
    return EmailMessage(to, f"Task Completed: {story.title}", body)


def epic_approved(epic: Any) -> Optional[EmailMessage]:
    to = usable_email(_project_manager(epic))
    if to is None:
        return None
    return EmailMessage(to, f"Epic Approved: {epic.name}", f"Epic '{epic.name}' has been approved.")


def epic_finished(epic: Any) -> Optional[EmailMessage]:
    to = usable_email(_project_manager(epic))
    if to is None:
        return None
    return EmailMessage(to, f"Epic Finished: {epic.name}", f"Epic '{epic.name}' has been finished.")


def story_overdue(story: Any) -> Optional[EmailMessage]:
    to = usable_email(story.assignee)
    if to is None:
        return None
    return EmailMessage(
        to,
        f"Overdue Task: {story.title}",
        f"Your task '{story.title}' is overdue. Please take action."
    )


def sla_breach(story: Any, rule_name: str) -> Optional[EmailMessage]:
    """Breach notice to the project manager, falling back to the assignee."""
    to = usable_email(_project_manager(story)) or usable_email(story.assignee)
    if to is None:
        return None
    return EmailMessage(
        to,
        f"SLA Breach: {story.title}",
        f"SLA breached for task '{story.title}' (rule: {rule_name})."
    )


def sla_rule_name(rule: Any) -> str:
    return f"SLA#{rule.id}"
