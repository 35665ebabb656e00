"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from typing import Dict, List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="workflow-tracker", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/workflow",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Periodic Sweep ==========
    sweep_interval_seconds: int = Field(
        default=300,
        description="Seconds between overdue/SLA sweeps (0 disables the scheduler)",
        ge=0
    )

    # ========== SMTP ==========
    smtp_host: Optional[str] = Field(
        default=None,
        description="SMTP server host; notifications are skipped when unset"
    )
    smtp_port: int = Field(default=587, description="SMTP server port", ge=1, le=65535)
    smtp_username: Optional[str] = Field(default=None, description="SMTP username")
    smtp_password: Optional[str] = Field(default=None, description="SMTP password")
    smtp_use_tls: bool = Field(default=True, description="Use STARTTLS")
    smtp_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for SMTP calls",
        ge=0.1,
        le=60
    )
    mail_from: str = Field(
        default="noreply@enterprise.com",
        description="Sender address for notification emails"
    )

    # ========== In-app Notifications ==========
    inbox_retention_days: int = Field(
        default=30,
        description="Notifications older than this are removed by cleanup",
        ge=1
    )
    inbox_recent_limit: int = Field(default=5, description="Unread notifications shown as recent", ge=1)

    # ========== Interception ==========
    slow_method_threshold_ms: int = Field(
        default=1000,
        description="Service calls slower than this are logged as warnings",
        ge=1
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production", "test"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class Role(str):
    """User roles. Stored upper-case."""
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"
    USER = "USER"


class OperationType(str):
    """Audited operation kinds."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    READ = "READ"


class NotificationType(str):
    """In-app notification kinds."""
    STORY_ASSIGNED = "STORY_ASSIGNED"
    STORY_COMPLETED = "STORY_COMPLETED"
    EPIC_CREATED = "EPIC_CREATED"
    EPIC_APPROVED = "EPIC_APPROVED"
    EPIC_COMPLETED = "EPIC_COMPLETED"
    PROJECT_CREATED = "PROJECT_CREATED"
    PROJECT_UPDATED = "PROJECT_UPDATED"
    PROJECT_COMPLETED = "PROJECT_COMPLETED"
    SYSTEM_ALERT = "SYSTEM_ALERT"


# ========== Lists for validation ==========

VALID_ROLES = [Role.ADMIN, Role.MANAGER, Role.EMPLOYEE, Role.USER]
VALID_OPERATIONS = [
    OperationType.CREATE, OperationType.UPDATE,
    OperationType.DELETE, OperationType.READ
]
VALID_NOTIFICATION_TYPES = [
    NotificationType.STORY_ASSIGNED, NotificationType.STORY_COMPLETED,
    NotificationType.EPIC_CREATED, NotificationType.EPIC_APPROVED, NotificationType.EPIC_COMPLETED,
    NotificationType.PROJECT_CREATED, NotificationType.PROJECT_UPDATED, NotificationType.PROJECT_COMPLETED,
    NotificationType.SYSTEM_ALERT
]

# Access level assigned on creation when none is supplied
DEFAULT_ACCESS_LEVELS: Dict[str, int] = {
    Role.ADMIN: 5,
    Role.MANAGER: 4,
    Role.EMPLOYEE: 2,
    Role.USER: 1,
}
