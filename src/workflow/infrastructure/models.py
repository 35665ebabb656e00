"""
Workflow Infrastructure Models
==============================

SQLAlchemy ORM models for users, projects, epics, stories, time logs and
SLA rules.

Each model names its audit entity type and exposes ``entity_id`` so that
the audited repository never has to guess at field names.
"""

from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.config import Role
from src.infrastructure.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserModel(Base):
    """
    Database model for User entity.

    Maps to the 'users' table.
    """
    __tablename__ = "users"
    entity_type = "User"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default=Role.USER)
    access_level: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    @property
    def entity_id(self) -> Optional[int]:
        return self.id


class ProjectModel(Base):
    """
    Database model for Project entity.

    Maps to the 'projects' table.
    """
    __tablename__ = "projects"
    entity_type = "Project"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    manager_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    manager: Mapped[Optional[UserModel]] = relationship(lazy="selectin")

    @property
    def entity_id(self) -> Optional[int]:
        return self.id


class EpicModel(Base):
    """
    Database model for Epic entity.

    Maps to the 'epics' table. An epic doubles as the workflow state that
    SLA rules target.
    """
    __tablename__ = "epics"
    entity_type = "Epic"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    project_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True
    )
    approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    finished: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    project: Mapped[Optional[ProjectModel]] = relationship(lazy="selectin")

    @property
    def entity_id(self) -> Optional[int]:
        return self.id

    @property
    def manager(self) -> Optional[UserModel]:
        return self.project.manager if self.project else None


class StoryModel(Base):
    """
    Database model for Story (task) entity.

    Maps to the 'stories' table. The story's manager is its project's
    manager.
    """
    __tablename__ = "stories"
    entity_type = "Story"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    assignee_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    project_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True
    )
    epic_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("epics.id", ondelete="SET NULL"), nullable=True, index=True
    )

    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_on: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    estimated_hours: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    actual_hours: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    assignee: Mapped[Optional[UserModel]] = relationship(lazy="selectin")
    project: Mapped[Optional[ProjectModel]] = relationship(lazy="selectin")
    epic: Mapped[Optional[EpicModel]] = relationship(lazy="selectin")
    time_logs: Mapped[List["TimeLogModel"]] = relationship(
        back_populates="story", cascade="all, delete-orphan", lazy="select"
    )

    @property
    def entity_id(self) -> Optional[int]:
        return self.id

    @property
    def manager(self) -> Optional[UserModel]:
        return self.project.manager if self.project else None


class SlaRuleModel(Base):
    """
    Database model for SlaRule entity.

    Maps to the 'sla_rules' table. ``state_id`` is the epic the rule
    watches.
    """
    __tablename__ = "sla_rules"
    entity_type = "SlaRule"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    state_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("epics.id", ondelete="CASCADE"), nullable=True, index=True
    )
    duration_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    notify_email: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    priority: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    state: Mapped[Optional[EpicModel]] = relationship(lazy="selectin")

    @property
    def entity_id(self) -> Optional[int]:
        return self.id


class TimeLogModel(Base):
    """
    Database model for TimeLog entity.

    Maps to the 'time_logs' table. One entry of hours worked by a user on
    a story.
    """
    __tablename__ = "time_logs"
    entity_type = "TimeLog"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    story_id: Mapped[int] = mapped_column(
        ForeignKey("stories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    hours_worked: Mapped[float] = mapped_column(Float, nullable=False)
    work_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    description: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    story: Mapped[StoryModel] = relationship(back_populates="time_logs", lazy="selectin")
    user: Mapped[UserModel] = relationship(lazy="selectin")

    @property
    def entity_id(self) -> Optional[int]:
        return self.id


__all__: List[str] = [
    "UserModel",
    "ProjectModel",
    "EpicModel",
    "StoryModel",
    "SlaRuleModel",
    "TimeLogModel",
]
