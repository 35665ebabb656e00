"""
Audit Module
============

Bounded Context for the audit trail.

Responsibilities:
- Record one immutable audit entry per intercepted repository mutation
- Capture before/after snapshots and field-level changes
- Never let a recording failure break the audited operation
- Provide query API for recent entries, search, entity history and statistics
"""

__version__ = "1.0.0"
