"""
Notifications Interfaces Layer
==============================

- controllers: sweep trigger and ad-hoc email routes
- dependencies: email sender and dispatcher providers

Routers are imported from ``src.notifications.interfaces.controllers``
directly; the workflow dependencies import this package's providers.
"""
