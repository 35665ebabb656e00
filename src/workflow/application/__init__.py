"""
Workflow Application Layer
==========================

Contains:
- Services: users, projects, epics, stories, time logs and SLA rules
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from src.workflow.application.dto import (
    EpicCreate,
    EpicResponse,
    ProjectCreate,
    ProjectResponse,
    SlaRuleCreate,
    SlaRuleResponse,
    StoryCreate,
    StoryResponse,
    StoryUpdate,
    TimeLogCreate,
    TimeLogResponse,
    TimeLogUpdate,
    TimeTotalResponse,
    UserCreate,
    UserResponse,
    UserUpdate,
)
from src.workflow.application.services import (
    EpicService,
    IEpicRepository,
    IProjectRepository,
    ISlaRuleRepository,
    IStoryRepository,
    ITimeLogRepository,
    IUserRepository,
    ProjectService,
    SlaRuleService,
    StoryService,
    TimeLogService,
    UserService,
)

__all__ = [
    # DTOs
    "EpicCreate",
    "EpicResponse",
    "ProjectCreate",
    "ProjectResponse",
    "SlaRuleCreate",
    "SlaRuleResponse",
    "StoryCreate",
    "StoryResponse",
    "StoryUpdate",
    "TimeLogCreate",
    "TimeLogResponse",
    "TimeLogUpdate",
    "TimeTotalResponse",
    "UserCreate",
    "UserResponse",
    "UserUpdate",
    # Services
    "EpicService",
    "ProjectService",
    "SlaRuleService",
    "StoryService",
    "TimeLogService",
    "UserService",
    # Repository Interfaces
    "IEpicRepository",
    "IProjectRepository",
    "ISlaRuleRepository",
    "IStoryRepository",
    "ITimeLogRepository",
    "IUserRepository",
]
