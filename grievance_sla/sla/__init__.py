"""
SLA Engine Module
=================

Bounded context for grievance SLA tracking and priority escalation.

Responsibilities:
- Measure issue age in working hours on a configured business calendar
- Classify issues as pending, at risk, breached or on time
- Escalate breached issues and raise their priority
- Persist changes with an audit trail on a periodic cycle
- Freeze the SLA outcome of closed issues
- Provide summary statistics for dashboards
"""

__version__ = "1.0.0"
