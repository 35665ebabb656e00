"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from src.core.exceptions import (
    ApplicationException,
    ValidationException,
    ResourceNotFoundException,
    UserNotFoundException,
    PermissionDeniedException,
    DuplicateResourceException,
    DataAccessException,
)

__all__ = [
    "ApplicationException",
    "ValidationException",
    "ResourceNotFoundException",
    "UserNotFoundException",
    "PermissionDeniedException",
    "DuplicateResourceException",
    "DataAccessException",
]
