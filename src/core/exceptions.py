"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

Every exception carries a short machine-readable ``error_code`` and the HTTP
status it maps to, so that the API boundary can render a structured error
response without knowing which layer raised it.
"""

from typing import Optional, Any


class ApplicationException(Exception):
    """Base exception for all application errors."""

    error_code: str = "ERR_INTERNAL"
    status_code: int = 500
    title: str = "Internal Error"

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None,
        error_code: Optional[str] = None
    ):
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code
        super().__init__(message)


class ValidationException(ApplicationException):
    """Exception for invalid input."""

    error_code = "ERR_BAD_REQUEST"
    status_code = 400
    title = "Bad Request"


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    error_code = "ERR_RESOURCE_NOT_FOUND"
    status_code = 404
    title = "Not Found"

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Any] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id is not None:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class UserNotFoundException(ResourceNotFoundException):
    """Exception when a referenced user does not exist."""

    error_code = "ERR_USER_NOT_FOUND"
    title = "User Not Found"

    def __init__(self, user_id: Optional[Any] = None, details: Optional[dict] = None):
        super().__init__("User", user_id, details)


class PermissionDeniedException(ApplicationException):
    """Exception for forbidden edits or access."""

    error_code = "ERR_FORBIDDEN"
    status_code = 403
    title = "Access Forbidden"


class DuplicateResourceException(ApplicationException):
    """Exception when a resource with the same unique key already exists."""

    error_code = "ERR_DUPLICATE_RESOURCE"
    status_code = 409
    title = "Duplicate Resource"


class DataAccessException(ApplicationException):
    """Exception for storage failures."""

    error_code = "ERR_DATA_ACCESS"
    status_code = 500
    title = "Data Access Error"
