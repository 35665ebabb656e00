"""
Shared Infrastructure
=====================

Low-level technical concerns used by every bounded context:
- Structured logging and correlation IDs
- Call interception (tracing, performance, exception tracking)
"""
