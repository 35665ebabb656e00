"""
Workflow Application DTOs
=========================

Data Transfer Objects for the workflow API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.config import VALID_ROLES

# Twenty working days
MAX_STORY_HOURS = 160
MAX_DAILY_HOURS = 24


def _normalize_role(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    role = v.strip().upper()
    if role not in VALID_ROLES:
        raise ValueError(f"role must be one of {VALID_ROLES}")
    return role


# ========== Users ==========

class UserCreate(BaseModel):
    """Request model for creating a user."""
    username: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=255, description="Notification address")
    role: str = Field(default="USER", description="ADMIN, MANAGER, EMPLOYEE or USER")
    access_level: Optional[int] = Field(
        None, ge=0, description="Defaults to the role's level when omitted"
    )

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        return _normalize_role(v)


class UserUpdate(BaseModel):
    """Request model for updating a user. Omitted fields are left unchanged."""
    username: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    role: Optional[str] = None
    access_level: Optional[int] = Field(None, ge=0)

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_role(v)

    @field_validator("access_level")
    @classmethod
    def validate_access_level(cls, v: Optional[int]) -> int:
        # Only reached when the field is sent; a user without a level can no longer be edited
        if v is None:
            raise ValueError("access_level cannot be null")
        return v


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: Optional[str] = None
    role: str
    access_level: Optional[int] = None


# ========== Projects ==========

class ProjectCreate(BaseModel):
    """Request model for creating a project."""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    manager_id: Optional[int] = Field(None, description="User managing the project")


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    manager_id: Optional[int] = None


# ========== Epics ==========

class EpicCreate(BaseModel):
    """Request model for creating an epic."""
    name: str = Field(..., min_length=1, max_length=255)
    project_id: Optional[int] = None
    end_date: Optional[date] = None


class EpicResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    project_id: Optional[int] = None
    approved: bool
    finished: bool
    end_date: Optional[date] = None


# ========== Stories ==========

class StoryCreate(BaseModel):
    """Request model for creating a story (task)."""
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    assignee_id: Optional[int] = None
    project_id: Optional[int] = None
    epic_id: Optional[int] = None
    due_date: Optional[date] = None
    estimated_hours: Optional[float] = Field(None, ge=0, le=MAX_STORY_HOURS)


class StoryUpdate(BaseModel):
    """Request model for updating a story. Omitted fields are left unchanged."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    assignee_id: Optional[int] = None
    project_id: Optional[int] = None
    epic_id: Optional[int] = None
    due_date: Optional[date] = None
    estimated_hours: Optional[float] = Field(None, ge=0, le=MAX_STORY_HOURS)
    actual_hours: Optional[float] = Field(None, ge=0, le=MAX_STORY_HOURS)


class StoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    assignee_id: Optional[int] = None
    project_id: Optional[int] = None
    epic_id: Optional[int] = None
    due_date: Optional[date] = None
    approved: bool
    completed_on: Optional[date] = None
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    created_at: datetime
    updated_at: datetime


# ========== SLA Rules ==========

class SlaRuleCreate(BaseModel):
    """Request model for creating an SLA rule."""
    state_id: int = Field(..., description="Epic whose stories the rule watches")
    duration_hours: int = Field(..., ge=0, description="Hours before a story breaches")
    notify_email: bool = Field(default=True)
    priority: Optional[str] = Field(None, max_length=50)


class SlaRuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    state_id: Optional[int] = None
    duration_hours: int
    notify_email: bool
    priority: Optional[str] = None


# ========== Time Logs ==========

class TimeLogCreate(BaseModel):
    """Request model for logging time on a story. The author is the acting user."""
    story_id: int
    hours_worked: float = Field(..., gt=0, le=MAX_DAILY_HOURS)
    work_date: Optional[datetime] = Field(None, description="Defaults to now")
    description: Optional[str] = Field(None, max_length=1000)


class TimeLogUpdate(BaseModel):
    """Request model for correcting a time log. Omitted fields are left unchanged."""
    hours_worked: Optional[float] = Field(None, gt=0, le=MAX_DAILY_HOURS)
    work_date: Optional[datetime] = None
    description: Optional[str] = Field(None, max_length=1000)


class TimeLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    story_id: int
    user_id: int
    hours_worked: float
    work_date: datetime
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TimeTotalResponse(BaseModel):
    """Sum of logged hours."""
    total_hours: float
