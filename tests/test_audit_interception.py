"""Tests for the audited repository wrapper and audit recording."""
import json

import pytest
from sqlalchemy import select, text

from src.audit.application import AuditLogQueryService, AuditLogService, IAuditRecorder
from src.audit.domain import (
    compute_changes,
    entity_id_of,
    entity_type_from_repository,
)
from src.audit.infrastructure import AuditedRepository, SQLAlchemyAuditLogRepository
from src.workflow.infrastructure import (
    SQLAlchemyStoryRepository,
    SQLAlchemyUserRepository,
    StoryModel,
    UserModel,
)


class ExplodingRecorder(IAuditRecorder):
    async def record(self, record):
        raise RuntimeError("audit store unavailable")


class IdHolder:
    def __init__(self, entity_id):
        self.entity_id = entity_id


class TestDomainHelpers:
    def test_entity_id_of(self):
        assert entity_id_of(IdHolder(5)) == 5
        assert entity_id_of(IdHolder("42")) == 42
        assert entity_id_of(IdHolder("abc")) is None
        assert entity_id_of(IdHolder(None)) is None
        assert entity_id_of(IdHolder(True)) is None
        assert entity_id_of(object()) is None
        assert entity_id_of(None) is None

    def test_entity_id_of_never_raises(self):
        class Broken:
            @property
            def entity_id(self):
                raise ValueError("boom")

        assert entity_id_of(Broken()) is None

    def test_entity_type_from_repository(self):
        assert entity_type_from_repository(SQLAlchemyStoryRepository(None)) == "Story"
        assert entity_type_from_repository(SQLAlchemyUserRepository(None)) == "User"

    def test_compute_changes(self):
        assert compute_changes(None, {"a": 1}) is None
        assert compute_changes({"a": 1, "b": 2}, {"a": 1, "b": 3, "c": 4}) == ["b: 2 → 3", "Added: c"]
        assert compute_changes({"a": 1}, {}) == ["Removed: a"]


def audited_stories(session, recorder=None):
    audit_service = AuditLogService(recorder or SQLAlchemyAuditLogRepository(session))
    return AuditedRepository(SQLAlchemyStoryRepository(session), audit_service, actor="alice")


@pytest.mark.asyncio
class TestAuditedRepository:
    async def test_create_update_delete_trail(self, db_session):
        repo = audited_stories(db_session)

        story = await repo.save(StoryModel(title="Draft"))
        story_id = story.id
        story.title = "Final"
        await repo.save(story)
        await repo.delete(story)
        await db_session.commit()

        history = await AuditLogQueryService(SQLAlchemyAuditLogRepository(db_session)).history("Story", story_id)
        created, updated, deleted = sorted(history, key=lambda r: r.id)

        assert created.operation == "CREATE"
        assert created.old_value is None
        assert json.loads(created.new_value)["title"] == "Draft"
        assert created.description == "Created new Story"
        assert created.username == "alice"

        assert updated.operation == "UPDATE"
        assert json.loads(updated.old_value)["title"] == "Draft"
        assert json.loads(updated.new_value)["title"] == "Final"
        assert "title: Draft → Final" in json.loads(updated.changes)
        assert updated.description == "Updated Story"

        assert deleted.operation == "DELETE"
        assert json.loads(deleted.old_value)["title"] == "Final"
        assert deleted.new_value is None
        assert deleted.description == "Deleted Story"

    async def test_delete_by_id(self, db_session):
        repo = audited_stories(db_session)
        story = await repo.save(StoryModel(title="Temp"))

        await repo.delete_by_id(story.id)
        await db_session.commit()

        records = await SQLAlchemyAuditLogRepository(db_session).search({"operation": "DELETE"})
        assert len(records) == 1
        assert records[0].entity_type == "Story"
        assert records[0].entity_id == story.id
        assert records[0].old_value is None
        assert records[0].new_value is None
        assert records[0].description == "Deleted Story by ID"

    async def test_one_record_per_call(self, db_session):
        repo = audited_stories(db_session)
        await repo.save(StoryModel(title="One"))
        await repo.save(StoryModel(title="Two"))
        await db_session.commit()

        stats = await AuditLogQueryService(SQLAlchemyAuditLogRepository(db_session)).statistics()
        assert stats["total"] == 2
        assert stats["by_operation"] == {"CREATE": 2}
        assert stats["by_entity_type"] == {"Story": 2}

    async def test_failing_recorder_does_not_fail_save(self, db_session):
        repo = audited_stories(db_session, recorder=ExplodingRecorder())
        story = await repo.save(StoryModel(title="Still saved"))
        await db_session.commit()

        assert story.id is not None
        assert await SQLAlchemyStoryRepository(db_session).get(story.id) is not None

    async def test_failed_save_is_not_audited(self, db_session):
        repo = AuditedRepository(
            SQLAlchemyUserRepository(db_session),
            AuditLogService(SQLAlchemyAuditLogRepository(db_session))
        )
        await repo.save(UserModel(username="dup", role="USER", access_level=1))
        await db_session.commit()

        with pytest.raises(Exception):
            await repo.save(UserModel(username="dup", role="USER", access_level=1))
        await db_session.rollback()

        records = await SQLAlchemyAuditLogRepository(db_session).recent()
        assert len(records) == 1
        assert records[0].username == "system"

    async def test_other_calls_delegate(self, db_session):
        repo = audited_stories(db_session)
        story = await repo.save(StoryModel(title="Readable"))
        assert (await repo.get(story.id)).title == "Readable"

    async def test_failed_audit_insert_keeps_audited_change(self, db_session):
        await db_session.execute(text("DROP TABLE audit_logs"))
        await db_session.commit()

        repo = audited_stories(db_session)
        story = await repo.save(StoryModel(title="Survives"))
        await db_session.commit()

        assert story.id is not None
        titles = (await db_session.execute(select(StoryModel.title))).scalars().all()
        assert titles == ["Survives"]

    async def test_audit_row_commits_with_change(self, db_session):
        repo = audited_stories(db_session)
        await repo.save(StoryModel(title="Together"))
        await db_session.rollback()

        assert (await db_session.execute(select(StoryModel.title))).scalars().all() == []
        assert await SQLAlchemyAuditLogRepository(db_session).recent() == []
