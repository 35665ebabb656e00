"""Tests for in-app notifications."""
from datetime import timedelta
from types import SimpleNamespace

import pytest

from src.notifications.application import InboxRecorder, normalize_type
from src.notifications.infrastructure import InboxNotificationModel, SQLAlchemyInboxRepository
from src.workflow.infrastructure.models import StoryModel
from tests.conftest import user_headers, utcnow
from tests.test_api import create_story


async def notify(client, user, **fields):
    payload = {"title": "Heads up", "message": "Something happened"}
    payload.update(fields)
    response = await client.post("/inbox", json=payload, headers=user_headers(user))
    assert response.status_code == 201, response.text
    return response.json()


class TestNormalizeType:
    def test_known_types_are_kept(self):
        assert normalize_type("story_assigned") == "STORY_ASSIGNED"
        assert normalize_type(" EPIC_APPROVED ") == "EPIC_APPROVED"

    def test_unknown_types_become_system_alert(self):
        assert normalize_type(None) == "SYSTEM_ALERT"
        assert normalize_type("") == "SYSTEM_ALERT"
        assert normalize_type("lunch") == "SYSTEM_ALERT"


@pytest.mark.asyncio
class TestInboxRecorder:
    async def test_recipient_without_id_is_skipped(self, db_session):
        recorder = InboxRecorder(SQLAlchemyInboxRepository(db_session))
        assert await recorder.notify(SimpleNamespace(username="x"), "t", "m", "SYSTEM_ALERT") is None

    async def test_failed_write_keeps_transaction_usable(self, db_session, employee_user):
        repo = SQLAlchemyInboxRepository(db_session)
        recorder = InboxRecorder(repo)
        story = StoryModel(title="Kept")
        db_session.add(story)
        await db_session.flush()

        # A missing title violates NOT NULL
        assert await recorder.notify(employee_user, None, "m", "SYSTEM_ALERT") is None
        await db_session.commit()

        assert await repo.count(employee_user.id) == 0
        assert await db_session.get(StoryModel, story.id) is not None


@pytest.mark.asyncio
class TestInboxApi:
    async def test_create_for_self(self, client, employee_user):
        created = await notify(client, employee_user, type="story_assigned", related_entity_type="Story", related_entity_id=7)
        assert created["user_id"] == employee_user.id
        assert created["type"] == "STORY_ASSIGNED"
        assert created["is_read"] is False
        assert created["related_entity_id"] == 7

    async def test_unknown_type_defaults_to_system_alert(self, client, employee_user):
        created = await notify(client, employee_user, type="whatever")
        assert created["type"] == "SYSTEM_ALERT"

    async def test_only_admin_notifies_others(self, client, employee_user, manager_user, admin_user):
        response = await client.post(
            "/inbox", json={"message": "hi", "user_id": manager_user.id}, headers=user_headers(employee_user)
        )
        assert response.status_code == 403

        created = await notify(client, admin_user, user_id=manager_user.id)
        assert created["user_id"] == manager_user.id

        response = await client.post(
            "/inbox", json={"message": "hi", "user_id": 999}, headers=user_headers(admin_user)
        )
        assert response.status_code == 404

    async def test_batch(self, client, employee_user):
        response = await client.post(
            "/inbox/batch",
            json={"notifications": [{"message": "one"}, {"message": "two"}]},
            headers=user_headers(employee_user)
        )
        assert response.status_code == 201
        assert [n["message"] for n in response.json()] == ["one", "two"]

        response = await client.post("/inbox/batch", json={"notifications": []}, headers=user_headers(employee_user))
        assert response.status_code == 400

    async def test_recent_returns_five_newest_unread(self, client, employee_user):
        for i in range(7):
            await notify(client, employee_user, message=f"n{i}")

        response = await client.get("/inbox/recent", headers=user_headers(employee_user))
        assert [n["message"] for n in response.json()] == ["n6", "n5", "n4", "n3", "n2"]

    async def test_read_flow(self, client, employee_user, manager_user):
        first = await notify(client, employee_user, message="first")
        await notify(client, employee_user, message="second")
        await notify(client, manager_user, message="not mine")

        response = await client.get("/inbox/unread-count", headers=user_headers(employee_user))
        assert response.json() == {"count": 2}

        response = await client.put(f"/inbox/{first['id']}/read", headers=user_headers(employee_user))
        assert response.status_code == 200
        assert response.json()["is_read"] is True

        response = await client.get("/inbox/unread", headers=user_headers(employee_user))
        assert [n["message"] for n in response.json()] == ["second"]

        response = await client.put("/inbox/read-all", headers=user_headers(employee_user))
        assert response.json() == {"count": 1}

        response = await client.get("/inbox/unread-count", headers=user_headers(manager_user))
        assert response.json() == {"count": 1}

    async def test_pages(self, client, employee_user):
        for i in range(3):
            await notify(client, employee_user, message=f"n{i}")

        response = await client.get("/inbox", params={"page": 1, "size": 2}, headers=user_headers(employee_user))
        body = response.json()
        assert body["total"] == 3
        assert body["page"] == 1
        assert [n["message"] for n in body["items"]] == ["n0"]

    async def test_cannot_touch_other_users_notifications(self, client, employee_user, manager_user):
        theirs = await notify(client, manager_user)

        response = await client.put(f"/inbox/{theirs['id']}/read", headers=user_headers(employee_user))
        assert response.status_code == 403
        response = await client.delete(f"/inbox/{theirs['id']}", headers=user_headers(employee_user))
        assert response.status_code == 403

    async def test_delete(self, client, employee_user):
        mine = await notify(client, employee_user)
        response = await client.delete(f"/inbox/{mine['id']}", headers=user_headers(employee_user))
        assert response.status_code == 204
        response = await client.delete(f"/inbox/{mine['id']}", headers=user_headers(employee_user))
        assert response.status_code == 404

    async def test_cleanup_removes_old_entries(self, client, db_session, admin_user, employee_user):
        db_session.add_all([
            InboxNotificationModel(
                user_id=employee_user.id, title="old", message="old", created_at=utcnow() - timedelta(days=31)
            ),
            InboxNotificationModel(
                user_id=employee_user.id, title="new", message="new", created_at=utcnow() - timedelta(days=2)
            ),
        ])
        await db_session.commit()

        response = await client.delete(
            "/inbox/cleanup", params={"user_id": employee_user.id}, headers=user_headers(employee_user)
        )
        assert response.status_code == 403

        response = await client.delete(
            "/inbox/cleanup", params={"user_id": employee_user.id}, headers=user_headers(admin_user)
        )
        assert response.json() == {"count": 1}

        response = await client.get("/inbox/unread", headers=user_headers(employee_user))
        assert [n["title"] for n in response.json()] == ["new"]

    async def test_anonymous_rejected(self, client):
        response = await client.get("/inbox/unread")
        assert response.status_code == 403


@pytest.mark.asyncio
class TestWorkflowEventsReachInbox:
    async def test_assignment_lands_in_assignee_inbox(self, client, employee_user, manager_user):
        story = await create_story(client, manager_user, assignee_id=employee_user.id)

        response = await client.get("/inbox/unread", headers=user_headers(employee_user))
        [entry] = response.json()
        assert entry["type"] == "STORY_ASSIGNED"
        assert entry["related_entity_type"] == "Story"
        assert entry["related_entity_id"] == story["id"]

    async def test_user_without_email_still_notified(self, client, db_session, manager_user):
        from src.workflow.infrastructure.models import UserModel

        quiet = UserModel(username="quiet", role="USER", access_level=1)
        db_session.add(quiet)
        await db_session.commit()

        await create_story(client, manager_user, assignee_id=quiet.id)

        response = await client.get("/inbox/unread-count", headers=user_headers(quiet))
        assert response.json() == {"count": 1}

    async def test_epic_approval_lands_in_manager_inbox(self, client, epic, manager_user, employee_user):
        response = await client.post(f"/epics/{epic.id}/approve", headers=user_headers(employee_user))
        assert response.status_code == 200

        response = await client.get("/inbox/unread", headers=user_headers(manager_user))
        assert [n["type"] for n in response.json()] == ["EPIC_APPROVED"]
