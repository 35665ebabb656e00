"""
Workflow Controllers (API Routes)
=================================

FastAPI routes for users, projects, epics, stories, time logs and SLA rules.

Controllers are thin - they delegate to application services. The acting
user is identified by the ``X-User-Id`` header.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from src.workflow.application import (
    EpicCreate,
    EpicResponse,
    EpicService,
    ProjectCreate,
    ProjectResponse,
    ProjectService,
    SlaRuleCreate,
    SlaRuleResponse,
    SlaRuleService,
    StoryCreate,
    StoryResponse,
    StoryService,
    StoryUpdate,
    TimeLogCreate,
    TimeLogResponse,
    TimeLogService,
    TimeLogUpdate,
    TimeTotalResponse,
    UserCreate,
    UserResponse,
    UserService,
    UserUpdate,
)
from src.workflow.interfaces.dependencies import (
    get_epic_service,
    get_project_service,
    get_sla_rule_service,
    get_story_service,
    get_time_log_service,
    get_user_service,
)

users_router = APIRouter(prefix="/users", tags=["Users"])
projects_router = APIRouter(prefix="/projects", tags=["Projects"])
epics_router = APIRouter(prefix="/epics", tags=["Epics"])
stories_router = APIRouter(prefix="/stories", tags=["Stories"])
sla_rules_router = APIRouter(prefix="/sla-rules", tags=["SLA Rules"])
time_logs_router = APIRouter(prefix="/time-logs", tags=["Time Logs"])


# ========== Users ==========

@users_router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
    description="""
    Create a user. **Administrators only.**

    When `access_level` is omitted the role's default is used:
    ADMIN 5, MANAGER 4, EMPLOYEE 2, USER 1.
    """
)
async def create_user(data: UserCreate, service: UserService = Depends(get_user_service)):
    return await service.create(data)


@users_router.get("", response_model=List[UserResponse], summary="List users")
async def list_users(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: UserService = Depends(get_user_service)
):
    return await service.list(limit=limit, offset=offset)


@users_router.get("/{user_id}", response_model=UserResponse, summary="Get a user")
async def get_user(user_id: int, service: UserService = Depends(get_user_service)):
    return await service.get(user_id)


@users_router.put(
    "/{user_id}",
    response_model=UserResponse,
    summary="Update a user",
    description="""
    Users may always edit themselves. An administrator may edit another
    user only when the target's access level is strictly lower than their
    own. Role and access level changes require an administrator.
    """
)
async def update_user(
    user_id: int,
    data: UserUpdate,
    service: UserService = Depends(get_user_service)
):
    return await service.update(user_id, data)


@users_router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a user")
async def delete_user(user_id: int, service: UserService = Depends(get_user_service)):
    await service.delete(user_id)


# ========== Projects ==========

@projects_router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED, summary="Create a project")
async def create_project(data: ProjectCreate, service: ProjectService = Depends(get_project_service)):
    return await service.create(data)


@projects_router.get("", response_model=List[ProjectResponse], summary="List projects")
async def list_projects(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: ProjectService = Depends(get_project_service)
):
    return await service.list(limit=limit, offset=offset)


@projects_router.get("/{project_id}", response_model=ProjectResponse, summary="Get a project")
async def get_project(project_id: int, service: ProjectService = Depends(get_project_service)):
    return await service.get(project_id)


# ========== Epics ==========

@epics_router.post("", response_model=EpicResponse, status_code=status.HTTP_201_CREATED, summary="Create an epic")
async def create_epic(data: EpicCreate, service: EpicService = Depends(get_epic_service)):
    return await service.create(data)


@epics_router.get("", response_model=List[EpicResponse], summary="List epics")
async def list_epics(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: EpicService = Depends(get_epic_service)
):
    return await service.list(limit=limit, offset=offset)


@epics_router.get("/{epic_id}", response_model=EpicResponse, summary="Get an epic")
async def get_epic(epic_id: int, service: EpicService = Depends(get_epic_service)):
    return await service.get(epic_id)


@epics_router.post(
    "/{epic_id}/approve",
    response_model=EpicResponse,
    summary="Approve an epic",
    description="Marks the epic approved, sets its end date if missing and notifies the project manager."
)
async def approve_epic(epic_id: int, service: EpicService = Depends(get_epic_service)):
    return await service.approve(epic_id)


@epics_router.post(
    "/{epic_id}/finish",
    response_model=EpicResponse,
    summary="Finish an epic",
    description="Marks the epic finished, sets its end date if missing and notifies the project manager."
)
async def finish_epic(epic_id: int, service: EpicService = Depends(get_epic_service)):
    return await service.finish(epic_id)


# ========== Stories ==========

@stories_router.post(
    "",
    response_model=StoryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a story",
    description="Creates a task; the assignee, if any, is notified by email."
)
async def create_story(data: StoryCreate, service: StoryService = Depends(get_story_service)):
    return await service.create(data)


@stories_router.get("", response_model=List[StoryResponse], summary="List stories")
async def list_stories(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: StoryService = Depends(get_story_service)
):
    return await service.list(limit=limit, offset=offset)


@stories_router.get("/{story_id}", response_model=StoryResponse, summary="Get a story")
async def get_story(story_id: int, service: StoryService = Depends(get_story_service)):
    return await service.get(story_id)


@stories_router.put(
    "/{story_id}",
    response_model=StoryResponse,
    summary="Update a story",
    description="A newly set assignee is notified by email."
)
async def update_story(
    story_id: int,
    data: StoryUpdate,
    service: StoryService = Depends(get_story_service)
):
    return await service.update(story_id, data)


@stories_router.post(
    "/{story_id}/complete",
    response_model=StoryResponse,
    summary="Complete a story",
    description="""
    Approves the story and notifies the project manager. When every story
    of the story's epic is complete the epic is finished as well.
    """
)
async def complete_story(story_id: int, service: StoryService = Depends(get_story_service)):
    return await service.complete(story_id)


@stories_router.delete("/{story_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a story")
async def delete_story(story_id: int, service: StoryService = Depends(get_story_service)):
    await service.delete(story_id)


# ========== SLA Rules ==========

@sla_rules_router.post(
    "",
    response_model=SlaRuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an SLA rule",
    description="Stories of the target epic older than `duration_hours` trigger breach emails."
)
async def create_sla_rule(data: SlaRuleCreate, service: SlaRuleService = Depends(get_sla_rule_service)):
    return await service.create(data)


@sla_rules_router.get("", response_model=List[SlaRuleResponse], summary="List SLA rules")
async def list_sla_rules(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: SlaRuleService = Depends(get_sla_rule_service)
):
    return await service.list(limit=limit, offset=offset)


@sla_rules_router.get("/{rule_id}", response_model=SlaRuleResponse, summary="Get an SLA rule")
async def get_sla_rule(rule_id: int, service: SlaRuleService = Depends(get_sla_rule_service)):
    return await service.get(rule_id)


@sla_rules_router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete an SLA rule")
async def delete_sla_rule(rule_id: int, service: SlaRuleService = Depends(get_sla_rule_service)):
    await service.delete(rule_id)


# ========== Time Logs ==========

@time_logs_router.post(
    "",
    response_model=TimeLogResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Log time on a story",
    description="Records hours worked by the acting user. `work_date` defaults to now."
)
async def log_time(data: TimeLogCreate, service: TimeLogService = Depends(get_time_log_service)):
    return await service.log_time(data)


@time_logs_router.get("/story/{story_id}", response_model=List[TimeLogResponse], summary="Time logged on a story")
async def story_time_logs(story_id: int, service: TimeLogService = Depends(get_time_log_service)):
    return await service.for_story(story_id)


@time_logs_router.get("/story/{story_id}/total", response_model=TimeTotalResponse, summary="Total hours on a story")
async def story_total_hours(story_id: int, service: TimeLogService = Depends(get_time_log_service)):
    return TimeTotalResponse(total_hours=await service.total_for_story(story_id))


@time_logs_router.get("/user/{user_id}", response_model=List[TimeLogResponse], summary="Time logged by a user")
async def user_time_logs(user_id: int, service: TimeLogService = Depends(get_time_log_service)):
    return await service.for_user(user_id)


@time_logs_router.get(
    "/user/{user_id}/total",
    response_model=TimeTotalResponse,
    summary="Total hours of a user",
    description="Optionally restricted to work dates between `start` and `end` (inclusive)."
)
async def user_total_hours(
    user_id: int,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    service: TimeLogService = Depends(get_time_log_service)
):
    return TimeTotalResponse(total_hours=await service.total_for_user(user_id, start, end))


@time_logs_router.get("/{time_log_id}", response_model=TimeLogResponse, summary="Get a time log")
async def get_time_log(time_log_id: int, service: TimeLogService = Depends(get_time_log_service)):
    return await service.get(time_log_id)


@time_logs_router.put(
    "/{time_log_id}",
    response_model=TimeLogResponse,
    summary="Correct a time log",
    description="Only the author or an administrator may change an entry."
)
async def update_time_log(
    time_log_id: int,
    data: TimeLogUpdate,
    service: TimeLogService = Depends(get_time_log_service)
):
    return await service.update(time_log_id, data)


@time_logs_router.delete("/{time_log_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a time log")
async def delete_time_log(time_log_id: int, service: TimeLogService = Depends(get_time_log_service)):
    await service.delete(time_log_id)
