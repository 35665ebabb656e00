"""HTTP tests for time logging on stories."""
import pytest

from src.workflow.infrastructure import SQLAlchemyTimeLogRepository
from tests.conftest import user_headers
from tests.test_api import create_story


async def log_time(client, user, story_id, hours, **fields):
    payload = {"story_id": story_id, "hours_worked": hours}
    payload.update(fields)
    response = await client.post("/time-logs", json=payload, headers=user_headers(user))
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
class TestTimeLogs:
    async def test_log_time_for_acting_user(self, client, employee_user):
        story = await create_story(client, employee_user)
        entry = await log_time(client, employee_user, story["id"], 2.5, description="Setup")

        assert entry["user_id"] == employee_user.id
        assert entry["story_id"] == story["id"]
        assert entry["hours_worked"] == 2.5
        assert entry["work_date"] is not None

    async def test_story_listing_newest_work_first(self, client, employee_user):
        story = await create_story(client, employee_user)
        await log_time(client, employee_user, story["id"], 1, work_date="2024-03-01T09:00:00Z")
        await log_time(client, employee_user, story["id"], 2, work_date="2024-03-05T09:00:00Z")

        response = await client.get(f"/time-logs/story/{story['id']}", headers=user_headers(employee_user))
        assert response.status_code == 200
        assert [e["hours_worked"] for e in response.json()] == [2, 1]

    async def test_story_total(self, client, employee_user, manager_user):
        story = await create_story(client, employee_user)
        response = await client.get(f"/time-logs/story/{story['id']}/total", headers=user_headers(employee_user))
        assert response.json() == {"total_hours": 0.0}

        await log_time(client, employee_user, story["id"], 1.5)
        await log_time(client, manager_user, story["id"], 3)

        response = await client.get(f"/time-logs/story/{story['id']}/total", headers=user_headers(employee_user))
        assert response.json() == {"total_hours": 4.5}

    async def test_user_total_within_window(self, client, employee_user):
        story = await create_story(client, employee_user)
        await log_time(client, employee_user, story["id"], 1, work_date="2024-01-10T12:00:00Z")
        await log_time(client, employee_user, story["id"], 2, work_date="2024-02-10T12:00:00Z")
        await log_time(client, employee_user, story["id"], 4, work_date="2024-03-10T12:00:00Z")

        response = await client.get(
            f"/time-logs/user/{employee_user.id}/total",
            params={"start": "2024-02-01T00:00:00Z", "end": "2024-03-31T00:00:00Z"},
            headers=user_headers(employee_user)
        )
        assert response.json() == {"total_hours": 6.0}

        response = await client.get(f"/time-logs/user/{employee_user.id}/total", headers=user_headers(employee_user))
        assert response.json() == {"total_hours": 7.0}

    async def test_inverted_window_rejected(self, client, employee_user):
        response = await client.get(
            f"/time-logs/user/{employee_user.id}/total",
            params={"start": "2024-03-01T00:00:00Z", "end": "2024-02-01T00:00:00Z"},
            headers=user_headers(employee_user)
        )
        assert response.status_code == 400

    async def test_user_listing(self, client, employee_user, manager_user):
        story = await create_story(client, employee_user)
        await log_time(client, employee_user, story["id"], 1)
        await log_time(client, manager_user, story["id"], 2)

        response = await client.get(f"/time-logs/user/{manager_user.id}", headers=user_headers(employee_user))
        assert [e["hours_worked"] for e in response.json()] == [2]

    async def test_unknown_story(self, client, employee_user):
        response = await client.post(
            "/time-logs", json={"story_id": 999, "hours_worked": 1}, headers=user_headers(employee_user)
        )
        assert response.status_code == 404

    async def test_hours_must_be_positive(self, client, employee_user):
        story = await create_story(client, employee_user)
        for hours in (0, -1, 25):
            response = await client.post(
                "/time-logs", json={"story_id": story["id"], "hours_worked": hours}, headers=user_headers(employee_user)
            )
            assert response.status_code == 400

    async def test_anonymous_cannot_log(self, client, employee_user):
        story = await create_story(client, employee_user)
        response = await client.post("/time-logs", json={"story_id": story["id"], "hours_worked": 1})
        assert response.status_code == 403

    async def test_author_updates_entry(self, client, employee_user):
        story = await create_story(client, employee_user)
        entry = await log_time(client, employee_user, story["id"], 1, description="first")

        response = await client.put(
            f"/time-logs/{entry['id']}",
            json={"hours_worked": 3, "description": "corrected"},
            headers=user_headers(employee_user)
        )
        assert response.status_code == 200
        assert response.json()["hours_worked"] == 3
        assert response.json()["description"] == "corrected"
        assert response.json()["work_date"] == entry["work_date"]

    async def test_other_user_cannot_change_entry(self, client, employee_user, manager_user):
        story = await create_story(client, employee_user)
        entry = await log_time(client, employee_user, story["id"], 1)

        response = await client.put(
            f"/time-logs/{entry['id']}", json={"hours_worked": 8}, headers=user_headers(manager_user)
        )
        assert response.status_code == 403
        response = await client.delete(f"/time-logs/{entry['id']}", headers=user_headers(manager_user))
        assert response.status_code == 403

    async def test_admin_deletes_entry(self, client, employee_user, admin_user):
        story = await create_story(client, employee_user)
        entry = await log_time(client, employee_user, story["id"], 1)

        response = await client.delete(f"/time-logs/{entry['id']}", headers=user_headers(admin_user))
        assert response.status_code == 204
        response = await client.get(f"/time-logs/{entry['id']}", headers=user_headers(admin_user))
        assert response.status_code == 404

    async def test_entries_are_audited(self, client, employee_user, admin_user):
        story = await create_story(client, employee_user)
        entry = await log_time(client, employee_user, story["id"], 1)

        response = await client.get(f"/audit-logs/TimeLog/{entry['id']}", headers=user_headers(admin_user))
        assert response.status_code == 200
        records = response.json()
        assert [r["operation"] for r in records] == ["CREATE"]
        assert records[0]["username"] == "employee"

    async def test_deleting_story_removes_its_entries(self, client, db_session, employee_user):
        story = await create_story(client, employee_user)
        await log_time(client, employee_user, story["id"], 1)

        response = await client.delete(f"/stories/{story['id']}", headers=user_headers(employee_user))
        assert response.status_code == 204
        assert await SQLAlchemyTimeLogRepository(db_session).list_by_user(employee_user.id) == []

    async def test_story_hours_fields(self, client, employee_user):
        story = await create_story(client, employee_user, estimated_hours=8)
        assert story["estimated_hours"] == 8
        assert story["actual_hours"] is None

        response = await client.put(
            f"/stories/{story['id']}", json={"actual_hours": 6.5}, headers=user_headers(employee_user)
        )
        assert response.json()["actual_hours"] == 6.5

        response = await client.put(
            f"/stories/{story['id']}", json={"estimated_hours": 500}, headers=user_headers(employee_user)
        )
        assert response.status_code == 400
