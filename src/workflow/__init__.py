"""
Workflow Module
===============

Bounded Context for users, projects, epics, stories (tasks) and SLA rules.

Responsibilities:
- CRUD for the workflow entities, every mutation audited
- Role-hierarchy access control for editing users
- Trigger assignment, completion and epic notifications
"""

__version__ = "1.0.0"
