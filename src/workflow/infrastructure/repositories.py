"""
Workflow Infrastructure Repositories
====================================

Concrete implementations of the workflow repository interfaces using
SQLAlchemy.

All repositories share ``save``, ``delete`` and ``delete_by_id`` so that
they can be wrapped by the audited repository.
"""

from datetime import datetime
from typing import Generic, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core import DataAccessException, ResourceNotFoundException
from src.workflow.application.services import (
    IEpicRepository,
    IProjectRepository,
    ISlaRuleRepository,
    IStoryRepository,
    ITimeLogRepository,
    IUserRepository,
)
from src.workflow.infrastructure.models import (
    EpicModel,
    ProjectModel,
    SlaRuleModel,
    StoryModel,
    TimeLogModel,
    UserModel,
)

M = TypeVar("M")


class SQLAlchemyRepository(Generic[M]):
    """
    Generic SQLAlchemy repository for one model class.

    Storage errors other than integrity violations are wrapped in
    DataAccessException; integrity violations propagate so the API can
    report them as conflicts.
    """

    model: Type[M]

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, entity_id: int) -> Optional[M]:
        """Get entity by ID."""
        try:
            return await self._session.get(self.model, entity_id)
        except SQLAlchemyError as e:
            raise DataAccessException(f"Failed to load {self.model.__name__} {entity_id}: {e}")

    async def list_all(self, limit: int = 100, offset: int = 0) -> List[M]:
        """List entities ordered by ID."""
        stmt = select(self.model).order_by(self.model.id).limit(limit).offset(offset)
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise DataAccessException(f"Failed to list {self.model.__name__}: {e}")
        return list(result.scalars().all())

    async def save(self, entity: M) -> M:
        """Insert or update entity and reload generated values."""
        try:
            self._session.add(entity)
            await self._session.flush()
            await self._session.refresh(entity)
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            raise DataAccessException(f"Failed to save {self.model.__name__}: {e}")
        return entity

    async def delete(self, entity: M) -> None:
        """Delete entity."""
        try:
            await self._session.delete(entity)
            await self._session.flush()
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            raise DataAccessException(f"Failed to delete {self.model.__name__}: {e}")

    async def delete_by_id(self, entity_id: int) -> None:
        """Delete entity by ID."""
        entity = await self.get(entity_id)
        if entity is None:
            raise ResourceNotFoundException(getattr(self.model, "entity_type", self.model.__name__), entity_id)
        await self.delete(entity)


class SQLAlchemyUserRepository(SQLAlchemyRepository[UserModel], IUserRepository):
    model = UserModel

    async def get_by_username(self, username: str) -> Optional[UserModel]:
        """Get user by unique username."""
        stmt = select(UserModel).where(UserModel.username == username)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()


class SQLAlchemyProjectRepository(SQLAlchemyRepository[ProjectModel], IProjectRepository):
    model = ProjectModel


class SQLAlchemyEpicRepository(SQLAlchemyRepository[EpicModel], IEpicRepository):
    model = EpicModel


class SQLAlchemyStoryRepository(SQLAlchemyRepository[StoryModel], IStoryRepository):
    model = StoryModel

    async def list_all(self, limit: Optional[int] = None, offset: int = 0) -> List[StoryModel]:
        """List stories; without ``limit`` every story is returned."""
        stmt = select(StoryModel).order_by(StoryModel.id).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise DataAccessException(f"Failed to list stories: {e}")
        return list(result.scalars().all())

    async def list_by_epic(self, epic_id: int) -> List[StoryModel]:
        """Stories belonging to one epic."""
        stmt = select(StoryModel).where(StoryModel.epic_id == epic_id).order_by(StoryModel.id)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class SQLAlchemySlaRuleRepository(SQLAlchemyRepository[SlaRuleModel], ISlaRuleRepository):
    model = SlaRuleModel

    async def list_notifiable(self) -> List[SlaRuleModel]:
        """Rules with email notification enabled and a target state."""
        stmt = (
            select(SlaRuleModel)
            .where(SlaRuleModel.notify_email.is_(True), SlaRuleModel.state_id.is_not(None))
            .order_by(SlaRuleModel.id)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())



class SQLAlchemyTimeLogRepository(SQLAlchemyRepository[TimeLogModel], ITimeLogRepository):
    model = TimeLogModel

    async def list_by_story(self, story_id: int) -> List[TimeLogModel]:
        """Entries for one story, newest work first."""
        stmt = (
            select(TimeLogModel)
            .where(TimeLogModel.story_id == story_id)
            .order_by(TimeLogModel.work_date.desc(), TimeLogModel.id.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_by_user(self, user_id: int) -> List[TimeLogModel]:
        """Entries of one user, newest work first."""
        stmt = (
            select(TimeLogModel)
            .where(TimeLogModel.user_id == user_id)
            .order_by(TimeLogModel.work_date.desc(), TimeLogModel.id.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def total_for_story(self, story_id: int) -> float:
        """Hours logged on a story; 0.0 when nothing was logged."""
        stmt = select(func.coalesce(func.sum(TimeLogModel.hours_worked), 0.0)).where(
            TimeLogModel.story_id == story_id
        )
        result = await self._session.execute(stmt)
        return float(result.scalar_one())

    async def total_for_user(
        self,
        user_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> float:
        """Hours logged by a user with ``work_date`` inside ``[start, end]``."""
        stmt = select(func.coalesce(func.sum(TimeLogModel.hours_worked), 0.0)).where(
            TimeLogModel.user_id == user_id
        )
        if start is not None:
            stmt = stmt.where(TimeLogModel.work_date >= start)
        if end is not None:
            stmt = stmt.where(TimeLogModel.work_date <= end)
        result = await self._session.execute(stmt)
        return float(result.scalar_one())
