"""
SLA Domain Layer
================

Domain layer for the SLA working-time and escalation engine.

Contains:
- Calendar: The working week, daily window and holidays (WorkingCalendar)
- Services: Stateless business logic (WorkingTimeCalculator, SLAClassifier)
- Value Objects: Immutable configuration and results (SLAPolicy, SLAEvaluation)
- Entities: Issue snapshots and the mutations/audit records derived from them

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from grievance_sla.sla.domain.calendar import WorkingCalendar
from grievance_sla.sla.domain.working_time import WorkingTimeCalculator
from grievance_sla.sla.domain.value_objects import (
    SLABudget,
    SLAPolicy,
    EscalationPolicy,
    CalendarConfig,
    SLAEngineConfig,
    SLAEvaluation,
)
from grievance_sla.sla.domain.entities import (
    IssueSnapshot,
    SLAMutation,
    AuditEntry,
    CycleReport,
)
from grievance_sla.sla.domain.classifier import SLAClassifier

__all__ = [
    # Calendar
    "WorkingCalendar",
    # Services
    "WorkingTimeCalculator",
    "SLAClassifier",
    # Value Objects
    "SLABudget",
    "SLAPolicy",
    "EscalationPolicy",
    "CalendarConfig",
    "SLAEngineConfig",
    "SLAEvaluation",
    # Entities
    "IssueSnapshot",
    "SLAMutation",
    "AuditEntry",
    "CycleReport",
]
