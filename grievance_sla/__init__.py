"""
Grievance SLA Engine
====================

Working-time SLA tracking and priority escalation for a grievance
ticketing system.
"""

__version__ = "1.0.0"
