"""
Shared Kernel Module
====================

Generic infrastructure used across bounded contexts: structured logging,
HTTP middleware and metrics export.

DO NOT add SLA business logic to the shared kernel.
"""

__version__ = "1.0.0"
