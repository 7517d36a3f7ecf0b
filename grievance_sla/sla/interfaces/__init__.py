"""
SLA Interfaces Layer
====================

Interface adapters (controllers) for the SLA engine.

Contains:
- Controllers: FastAPI route handlers

This is the outermost layer - handles HTTP requests/responses and
delegates to application services.
"""

from grievance_sla.sla.interfaces.controllers import sla_router

__all__ = ["sla_router"]
