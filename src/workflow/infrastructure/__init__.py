"""
Workflow Infrastructure Layer
=============================

- Models: SQLAlchemy ORM models
- Repositories: Data access layer
"""

from src.workflow.infrastructure.models import (
    EpicModel,
    ProjectModel,
    SlaRuleModel,
    StoryModel,
    TimeLogModel,
    UserModel,
)
from src.workflow.infrastructure.repositories import (
    SQLAlchemyEpicRepository,
    SQLAlchemyProjectRepository,
    SQLAlchemyRepository,
    SQLAlchemySlaRuleRepository,
    SQLAlchemyStoryRepository,
    SQLAlchemyTimeLogRepository,
    SQLAlchemyUserRepository,
)

__all__ = [
    "EpicModel",
    "ProjectModel",
    "SlaRuleModel",
    "StoryModel",
    "TimeLogModel",
    "UserModel",
    "SQLAlchemyEpicRepository",
    "SQLAlchemyProjectRepository",
    "SQLAlchemyRepository",
    "SQLAlchemySlaRuleRepository",
    "SQLAlchemyStoryRepository",
    "SQLAlchemyTimeLogRepository",
    "SQLAlchemyUserRepository",
]
