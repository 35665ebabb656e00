"""
Shared Kernel Module
====================

This module contains shared infrastructure used across all bounded
contexts (Audit, Workflow and Notifications).

Architecture Pattern: Modular Monolith
- Each module (audit, workflow, notifications) is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add business logic from the bounded contexts to the shared kernel.
"""

__version__ = "1.0.0"
