"""Tests for notification composition and dispatch."""
from datetime import date
from types import SimpleNamespace

import pytest

from src.notifications.application import NotificationDispatcher
from src.notifications.domain import (
    epic_approved,
    epic_finished,
    sla_breach,
    story_assigned,
    story_completed,
    story_overdue,
    usable_email,
)
from src.notifications.interfaces.dependencies import get_dispatcher
from tests.conftest import RecordingEmailSender


def person(username, email):
    return SimpleNamespace(username=username, email=email)


def make_story(assignee=None, manager=None, title="Fix login"):
    project = SimpleNamespace(name="Platform", manager=manager)
    return SimpleNamespace(
        id=1, title=title, description="Users cannot log in", due_date=date(2024, 1, 15),
        assignee=assignee, project=project
    )


class TestComposition:
    def test_usable_email(self):
        assert usable_email(None) is None
        assert usable_email(person("a", None)) is None
        assert usable_email(person("a", "   ")) is None
        assert usable_email(person("a", " a@x.com ")) == "a@x.com"

    def test_story_assigned(self):
        message = story_assigned(make_story(assignee=person("alice", "alice@x.com")))
        assert message.to == "alice@x.com"
        assert message.subject == "New Task Assigned: Fix login"
        assert "Hello alice" in message.body
        assert "Platform" in message.body
        assert "2024-01-15" in message.body

    def test_story_assigned_without_email(self):
        assert story_assigned(make_story(assignee=person("alice", None))) is None
        assert story_assigned(make_story(assignee=None)) is None

    def test_story_completed_goes_to_manager(self):
        message = story_completed(make_story(manager=person("mia", "mia@x.com")))
        assert message.to == "mia@x.com"
        assert message.subject == "Task Completed: Fix login"

    def test_story_completed_without_project(self):
        story = make_story()
        story.project = None
        assert story_completed(story) is None

    def test_epic_messages(self):
        epic = SimpleNamespace(name="Onboarding", project=SimpleNamespace(manager=person("mia", "mia@x.com")))
        assert epic_approved(epic).subject == "Epic Approved: Onboarding"
        assert epic_finished(epic).subject == "Epic Finished: Onboarding"
        assert epic_finished(epic).to == "mia@x.com"

    def test_epic_without_manager_email(self):
        epic = SimpleNamespace(name="Onboarding", project=SimpleNamespace(manager=person("mia", "")))
        assert epic_approved(epic) is None

    def test_overdue(self):
        message = story_overdue(make_story(assignee=person("alice", "alice@x.com")))
        assert message.subject == "Overdue Task: Fix login"
        assert message.to == "alice@x.com"

    def test_sla_breach_prefers_manager(self):
        story = make_story(assignee=person("alice", "alice@x.com"), manager=person("mia", "mia@x.com"))
        message = sla_breach(story, "SLA#7")
        assert message.to == "mia@x.com"
        assert message.subject == "SLA Breach: Fix login"
        assert "SLA#7" in message.body

    def test_sla_breach_falls_back_to_assignee(self):
        story = make_story(assignee=person("alice", "alice@x.com"), manager=person("mia", None))
        assert sla_breach(story, "SLA#7").to == "alice@x.com"

    def test_sla_breach_nobody_to_notify(self):
        assert sla_breach(make_story(), "SLA#7") is None


@pytest.mark.asyncio
class TestDispatcher:
    async def test_sends_composed_message(self):
        sender = RecordingEmailSender()
        dispatcher = NotificationDispatcher(sender)
        message = await dispatcher.story_assigned(make_story(assignee=person("alice", "alice@x.com")))
        assert message is not None
        assert sender.subjects() == ["New Task Assigned: Fix login"]

    async def test_assignee_without_email_is_skipped(self):
        sender = RecordingEmailSender()
        dispatcher = NotificationDispatcher(sender)
        assert await dispatcher.story_assigned(make_story(assignee=person("alice", None))) is None
        assert sender.sent == []

    async def test_sla_breach_names_rule(self):
        sender = RecordingEmailSender()
        dispatcher = NotificationDispatcher(sender)
        story = make_story(assignee=person("alice", "alice@x.com"))
        await dispatcher.sla_breach(story, SimpleNamespace(id=3))
        assert "SLA#3" in sender.sent[0].body

    async def test_deferred_dispatcher_holds_messages_until_flush(self):
        sender = RecordingEmailSender()
        dispatcher = NotificationDispatcher(sender, deferred=True)
        message = await dispatcher.story_assigned(make_story(assignee=person("alice", "alice@x.com")))

        assert message is not None
        assert sender.sent == []
        assert dispatcher.pending == [message]

        assert await dispatcher.flush() == 1
        assert sender.subjects() == ["New Task Assigned: Fix login"]
        assert dispatcher.pending == []

    async def test_discard_drops_queued_messages(self):
        sender = RecordingEmailSender()
        dispatcher = NotificationDispatcher(sender, deferred=True)
        await dispatcher.story_completed(make_story(manager=person("bob", "bob@x.com")))

        assert dispatcher.discard() == 1
        assert await dispatcher.flush() == 0
        assert sender.sent == []

    async def test_flush_counts_only_delivered(self):
        sender = RecordingEmailSender(fail_for=("bob@x.com",))
        dispatcher = NotificationDispatcher(sender, deferred=True)
        await dispatcher.story_assigned(make_story(assignee=person("alice", "alice@x.com")))
        await dispatcher.story_assigned(make_story(assignee=person("bob", "bob@x.com")))

        assert await dispatcher.flush() == 1
        assert [m.to for m in sender.sent] == ["alice@x.com"]


class FakeSession:
    def __init__(self, fail_commit=False):
        self.fail_commit = fail_commit
        self.commits = 0

    async def commit(self):
        if self.fail_commit:
            raise RuntimeError("database is locked")
        self.commits += 1


@pytest.mark.asyncio
class TestRequestDispatcher:
    async def test_sends_after_commit(self):
        sender = RecordingEmailSender()
        session = FakeSession()
        provider = get_dispatcher(session=session, sender=sender)

        dispatcher = await provider.__anext__()
        await dispatcher.story_assigned(make_story(assignee=person("alice", "alice@x.com")))
        assert sender.sent == []

        with pytest.raises(StopAsyncIteration):
            await provider.__anext__()
        assert session.commits == 1
        assert sender.subjects() == ["New Task Assigned: Fix login"]

    async def test_handler_failure_sends_nothing(self):
        sender = RecordingEmailSender()
        session = FakeSession()
        provider = get_dispatcher(session=session, sender=sender)

        dispatcher = await provider.__anext__()
        await dispatcher.story_assigned(make_story(assignee=person("alice", "alice@x.com")))

        with pytest.raises(RuntimeError):
            await provider.athrow(RuntimeError("handler failed"))
        assert session.commits == 0
        assert sender.sent == []

    async def test_commit_failure_sends_nothing(self):
        sender = RecordingEmailSender()
        provider = get_dispatcher(session=FakeSession(fail_commit=True), sender=sender)

        dispatcher = await provider.__anext__()
        await dispatcher.story_assigned(make_story(assignee=person("alice", "alice@x.com")))

        with pytest.raises(RuntimeError, match="locked"):
            await provider.__anext__()
        assert sender.sent == []
