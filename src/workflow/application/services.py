"""
Workflow Application Services
=============================

Application services orchestrate business logic and coordinate between
domain rules, repositories and notifications.

Repositories handed to these services are expected to be wrapped by the
audited repository, so every ``save`` and ``delete`` lands in the audit
trail. Every public method is traced, timed and exception-tracked.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, List, Optional

from src.config import DEFAULT_ACCESS_LEVELS, Role
from src.core.exceptions import (
    DuplicateResourceException,
    PermissionDeniedException,
    ResourceNotFoundException,
    UserNotFoundException,
    ValidationException,
)
from src.notifications.application import NotificationDispatcher
from src.shared.infrastructure.interception import observed
from src.shared.infrastructure.logging import get_logger
from src.workflow.application.dto import (
    EpicCreate,
    ProjectCreate,
    SlaRuleCreate,
    StoryCreate,
    StoryUpdate,
    TimeLogCreate,
    TimeLogUpdate,
    UserCreate,
    UserUpdate,
)
from src.workflow.domain import AccessContext, AccessControl

logger = get_logger(__name__)


def _today():
    return datetime.now(timezone.utc).date()


# ========== Repository Interfaces (Dependency Inversion) ==========

class IRepository(ABC):
    """Operations shared by every workflow repository."""

    @abstractmethod
    async def get(self, entity_id: int) -> Optional[Any]:
        """Get entity by ID."""

    @abstractmethod
    async def list_all(self, limit: int = 100, offset: int = 0) -> List[Any]:
        """List entities."""

    @abstractmethod
    async def save(self, entity: Any) -> Any:
        """Insert or update entity."""

    @abstractmethod
    async def delete(self, entity: Any) -> None:
        """Delete entity."""

    @abstractmethod
    async def delete_by_id(self, entity_id: int) -> None:
        """Delete entity by ID."""


class IUserRepository(IRepository):

    @abstractmethod
    async def get_by_username(self, username: str) -> Optional[Any]:
        """Get user by unique username."""


class IProjectRepository(IRepository):
    pass


class IEpicRepository(IRepository):
    pass


class IStoryRepository(IRepository):

    @abstractmethod
    async def list_by_epic(self, epic_id: int) -> List[Any]:
        """Stories belonging to one epic."""


class ISlaRuleRepository(IRepository):

    @abstractmethod
    async def list_notifiable(self) -> List[Any]:
        """Rules with email notification enabled and a target state."""


class ITimeLogRepository(IRepository):

    @abstractmethod
    async def list_by_story(self, story_id: int) -> List[Any]:
        """Entries for one story, newest work first."""

    @abstractmethod
    async def list_by_user(self, user_id: int) -> List[Any]:
        """Entries of one user, newest work first."""

    @abstractmethod
    async def total_for_story(self, story_id: int) -> float:
        """Hours logged on a story."""

    @abstractmethod
    async def total_for_user(
        self,
        user_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> float:
        """Hours logged by a user, optionally within a work-date window."""


# ========== Application Services ==========

class UserService:
    """
    User management.

    Creation requires an administrator; edits go through the role-hierarchy
    check; deletion requires an administrator ranked above the target.
    """

    def __init__(self, users: IUserRepository, context: AccessContext):
        self._users = users
        self._context = context

    @observed
    async def get(self, user_id: int) -> Any:
        user = await self._users.get(user_id)
        if user is None:
            raise UserNotFoundException(user_id)
        return user

    @observed
    async def list(self, limit: int = 100, offset: int = 0) -> List[Any]:
        return await self._users.list_all(limit=limit, offset=offset)

    @observed
    async def create(self, data: UserCreate) -> Any:
        from src.workflow.infrastructure.models import UserModel

        current = self._context.require_user()
        if not AccessControl.is_admin(self._context):
            raise PermissionDeniedException("Only administrators can create users")

        access_level = data.access_level
        if access_level is None:
            access_level = DEFAULT_ACCESS_LEVELS.get(data.role, DEFAULT_ACCESS_LEVELS[Role.USER])

        # New users must stay editable by their creator
        if current.access_level is None or access_level >= current.access_level:
            raise PermissionDeniedException(
                f"Cannot create user with access level {access_level}: "
                f"your access level is {current.access_level}"
            )

        if await self._users.get_by_username(data.username) is not None:
            raise DuplicateResourceException(f"Username '{data.username}' is already taken")

        user = UserModel(
            username=data.username,
            email=data.email,
            role=data.role,
            access_level=access_level
        )
        user = await self._users.save(user)
        logger.info(f"User created: {user.username}", extra={"user_id": user.id})
        return user

    @observed
    async def update(self, user_id: int, data: UserUpdate) -> Any:
        current = self._context.require_user()
        target = await self.get(user_id)
        AccessControl.check_edit_permission(current, target)

        changes = data.model_dump(exclude_unset=True)

        # Privileges are never self-assigned
        if ("role" in changes or "access_level" in changes) and not AccessControl.is_admin(self._context):
            raise PermissionDeniedException("Only administrators can change roles or access levels")
        level = changes.get("access_level")
        if level is not None:
            if current.id == target.id:
                if current.access_level is None or level > current.access_level:
                    raise PermissionDeniedException(
                        f"Cannot raise your own access level to {level}"
                    )
            elif level >= current.access_level:
                raise PermissionDeniedException(
                    f"Cannot grant access level {level}: "
                    f"your access level is {current.access_level}"
                )

        username = changes.get("username")
        if username and username != target.username:
            if await self._users.get_by_username(username) is not None:
                raise DuplicateResourceException(f"Username '{username}' is already taken")

        for field, value in changes.items():
            if field in ("role", "username") and value is None:
                continue
            setattr(target, field, value)

        return await self._users.save(target)

    @observed
    async def delete(self, user_id: int) -> None:
        current = self._context.require_user()
        target = await self.get(user_id)

        if not AccessControl.is_admin(self._context):
            raise PermissionDeniedException("Only administrators can delete users")
        if current.id == target.id:
            raise PermissionDeniedException("Administrators cannot delete themselves")
        if not AccessControl.has_higher_access_level(self._context, target):
            raise PermissionDeniedException(
                f"Cannot delete user {target.username}: access level too high"
            )

        await self._users.delete(target)
        logger.info(f"User deleted: {target.username}", extra={"user_id": user_id})


class ProjectService:
    """Project management."""

    def __init__(self, projects: IProjectRepository, users: IUserRepository, context: AccessContext):
        self._projects = projects
        self._users = users
        self._context = context

    @observed
    async def get(self, project_id: int) -> Any:
        project = await self._projects.get(project_id)
        if project is None:
            raise ResourceNotFoundException("Project", project_id)
        return project

    @observed
    async def list(self, limit: int = 100, offset: int = 0) -> List[Any]:
        return await self._projects.list_all(limit=limit, offset=offset)

    @observed
    async def create(self, data: ProjectCreate) -> Any:
        from src.workflow.infrastructure.models import ProjectModel

        self._context.require_user()
        if data.manager_id is not None and await self._users.get(data.manager_id) is None:
            raise UserNotFoundException(data.manager_id)

        project = ProjectModel(
            name=data.name,
            description=data.description,
            manager_id=data.manager_id
        )
        return await self._projects.save(project)


class EpicService:
    """Epic management including approval and completion."""

    def __init__(
        self,
        epics: IEpicRepository,
        projects: IProjectRepository,
        dispatcher: NotificationDispatcher,
        context: AccessContext
    ):
        self._epics = epics
        self._projects = projects
        self._dispatcher = dispatcher
        self._context = context

    @observed
    async def get(self, epic_id: int) -> Any:
        epic = await self._epics.get(epic_id)
        if epic is None:
            raise ResourceNotFoundException("Epic", epic_id)
        return epic

    @observed
    async def list(self, limit: int = 100, offset: int = 0) -> List[Any]:
        return await self._epics.list_all(limit=limit, offset=offset)

    @observed
    async def create(self, data: EpicCreate) -> Any:
        from src.workflow.infrastructure.models import EpicModel

        self._context.require_user()
        if data.project_id is not None and await self._projects.get(data.project_id) is None:
            raise ResourceNotFoundException("Project", data.project_id)

        epic = EpicModel(name=data.name, project_id=data.project_id, end_date=data.end_date)
        return await self._epics.save(epic)

    @observed
    async def approve(self, epic_id: int) -> Any:
        self._context.require_user()
        epic = await self.get(epic_id)
        epic.approved = True
        if epic.end_date is None:
            epic.end_date = _today()

        epic = await self._epics.save(epic)
        await self._dispatcher.epic_approved(epic)
        return epic

    @observed
    async def finish(self, epic_id: int) -> Any:
        self._context.require_user()
        epic = await self.get(epic_id)
        epic.finished = True
        if epic.end_date is None:
            epic.end_date = _today()

        epic = await self._epics.save(epic)
        await self._dispatcher.epic_finished(epic)
        return epic


class StoryService:
    """
    Story (task) management.

    Assignment and completion notify the people involved; completing the
    last open story of an epic finishes the epic.
    """

    def __init__(
        self,
        stories: IStoryRepository,
        users: IUserRepository,
        projects: IProjectRepository,
        epic_service: EpicService,
        dispatcher: NotificationDispatcher,
        context: AccessContext
    ):
        self._stories = stories
        self._users = users
        self._projects = projects
        self._epic_service = epic_service
        self._dispatcher = dispatcher
        self._context = context

    async def _check_references(
        self,
        assignee_id: Optional[int],
        project_id: Optional[int],
        epic_id: Optional[int]
    ) -> None:
        if assignee_id is not None and await self._users.get(assignee_id) is None:
            raise UserNotFoundException(assignee_id)
        if project_id is not None and await self._projects.get(project_id) is None:
            raise ResourceNotFoundException("Project", project_id)
        if epic_id is not None:
            await self._epic_service.get(epic_id)

    @observed
    async def get(self, story_id: int) -> Any:
        story = await self._stories.get(story_id)
        if story is None:
            raise ResourceNotFoundException("Story", story_id)
        return story

    @observed
    async def list(self, limit: int = 100, offset: int = 0) -> List[Any]:
        return await self._stories.list_all(limit=limit, offset=offset)

    @observed
    async def create(self, data: StoryCreate) -> Any:
        from src.workflow.infrastructure.models import StoryModel

        self._context.require_user()
        await self._check_references(data.assignee_id, data.project_id, data.epic_id)

        story = StoryModel(**data.model_dump())
        story = await self._stories.save(story)

        if story.assignee_id is not None:
            await self._dispatcher.story_assigned(story)
        return story

    @observed
    async def update(self, story_id: int, data: StoryUpdate) -> Any:
        self._context.require_user()
        story = await self.get(story_id)
        changes = data.model_dump(exclude_unset=True)
        await self._check_references(
            changes.get("assignee_id"), changes.get("project_id"), changes.get("epic_id")
        )

        previous_assignee = story.assignee_id
        for field, value in changes.items():
            if field == "title" and value is None:
                continue
            setattr(story, field, value)

        story = await self._stories.save(story)

        if story.assignee_id is not None and story.assignee_id != previous_assignee:
            await self._dispatcher.story_assigned(story)
        return story

    @observed
    async def complete(self, story_id: int) -> Any:
        """Approve the story, notify its manager and finish a fully completed epic."""
        self._context.require_user()
        story = await self.get(story_id)
        story.approved = True
        if story.completed_on is None:
            story.completed_on = _today()

        story = await self._stories.save(story)
        await self._dispatcher.story_completed(story)

        if story.epic_id is not None:
            siblings = await self._stories.list_by_epic(story.epic_id)
            epic = await self._epic_service.get(story.epic_id)
            if not epic.finished and all(s.approved for s in siblings):
                logger.info(f"All stories of epic {epic.id} completed, finishing epic")
                await self._epic_service.finish(epic.id)
        return story

    @observed
    async def delete(self, story_id: int) -> None:
        self._context.require_user()
        story = await self.get(story_id)
        await self._stories.delete(story)


class SlaRuleService:
    """SLA rule management."""

    def __init__(self, rules: ISlaRuleRepository, epics: IEpicRepository, context: AccessContext):
        self._rules = rules
        self._epics = epics
        self._context = context

    @observed
    async def get(self, rule_id: int) -> Any:
        rule = await self._rules.get(rule_id)
        if rule is None:
            raise ResourceNotFoundException("SlaRule", rule_id)
        return rule

    @observed
    async def list(self, limit: int = 100, offset: int = 0) -> List[Any]:
        return await self._rules.list_all(limit=limit, offset=offset)

    @observed
    async def create(self, data: SlaRuleCreate) -> Any:
        from src.workflow.infrastructure.models import SlaRuleModel

        self._context.require_user()
        if await self._epics.get(data.state_id) is None:
            raise ResourceNotFoundException("Epic", data.state_id)

        rule = SlaRuleModel(**data.model_dump())
        return await self._rules.save(rule)

    @observed
    async def delete(self, rule_id: int) -> None:
        self._context.require_user()
        await self.get(rule_id)
        await self._rules.delete_by_id(rule_id)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TimeLogService:
    """
    Hours worked on stories.

    Entries are always logged for the acting user. Only the author or an
    administrator may correct or remove an entry.
    """

    def __init__(
        self,
        time_logs: ITimeLogRepository,
        stories: IStoryRepository,
        users: IUserRepository,
        context: AccessContext
    ):
        self._time_logs = time_logs
        self._stories = stories
        self._users = users
        self._context = context

    async def _require_story(self, story_id: int) -> None:
        if await self._stories.get(story_id) is None:
            raise ResourceNotFoundException("Story", story_id)

    async def _require_user(self, user_id: int) -> None:
        if await self._users.get(user_id) is None:
            raise UserNotFoundException(user_id)

    def _check_author(self, entry: Any) -> None:
        current = self._context.require_user()
        if entry.user_id != current.id and not AccessControl.is_admin(self._context):
            raise PermissionDeniedException(
                f"Only the author or an administrator can change time log {entry.id}"
            )

    @observed
    async def get(self, time_log_id: int) -> Any:
        entry = await self._time_logs.get(time_log_id)
        if entry is None:
            raise ResourceNotFoundException("TimeLog", time_log_id)
        return entry

    @observed
    async def log_time(self, data: TimeLogCreate) -> Any:
        from src.workflow.infrastructure.models import TimeLogModel

        current = self._context.require_user()
        await self._require_story(data.story_id)

        entry = TimeLogModel(
            story_id=data.story_id,
            user_id=current.id,
            hours_worked=data.hours_worked,
            work_date=_as_utc(data.work_date) or datetime.now(timezone.utc),
            description=data.description
        )
        entry = await self._time_logs.save(entry)
        logger.info(
            f"{current.username} logged {data.hours_worked}h on story {data.story_id}",
            extra={"story_id": data.story_id, "user_id": current.id}
        )
        return entry

    @observed
    async def for_story(self, story_id: int) -> List[Any]:
        await self._require_story(story_id)
        return await self._time_logs.list_by_story(story_id)

    @observed
    async def for_user(self, user_id: int) -> List[Any]:
        await self._require_user(user_id)
        return await self._time_logs.list_by_user(user_id)

    @observed
    async def total_for_story(self, story_id: int) -> float:
        await self._require_story(story_id)
        return await self._time_logs.total_for_story(story_id)

    @observed
    async def total_for_user(
        self,
        user_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> float:
        start, end = _as_utc(start), _as_utc(end)
        if start is not None and end is not None and start > end:
            raise ValidationException("start must not be after end")
        await self._require_user(user_id)
        return await self._time_logs.total_for_user(user_id, start, end)

    @observed
    async def update(self, time_log_id: int, data: TimeLogUpdate) -> Any:
        entry = await self.get(time_log_id)
        self._check_author(entry)

        changes = data.model_dump(exclude_unset=True)
        if changes.get("hours_worked") is not None:
            entry.hours_worked = changes["hours_worked"]
        if changes.get("work_date") is not None:
            entry.work_date = _as_utc(changes["work_date"])
        if "description" in changes:
            entry.description = changes["description"]

        return await self._time_logs.save(entry)

    @observed
    async def delete(self, time_log_id: int) -> None:
        entry = await self.get(time_log_id)
        self._check_author(entry)
        await self._time_logs.delete(entry)
