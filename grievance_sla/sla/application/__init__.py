"""
SLA Application Layer
======================

Application layer for the SLA engine.

Contains:
- Services: Orchestrate the escalation cycle, closure freezing and reporting
- DTOs: Data transfer objects for API serialization
- Cache: Explicit TTL cache for derived reports

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from grievance_sla.sla.application.dto import (
    WorkingHoursRequest,
    WorkingHoursResponse,
    IssueSnapshotDTO,
    ClassifyRequest,
    SLAEvaluationResponse,
    CycleReportResponse,
    SLASummaryResponse,
    CalendarResponse,
)
from grievance_sla.sla.application.cache import TTLCache
from grievance_sla.sla.application.services import (
    Clock,
    utc_now,
    EscalationScheduler,
    EscalationService,
    SLAClosureService,
    SLAReportService,
    IIssueStore,
    ISLAConfigProvider,
    ICycleMetricsExporter,
)

__all__ = [
    # DTOs
    "WorkingHoursRequest",
    "WorkingHoursResponse",
    "IssueSnapshotDTO",
    "ClassifyRequest",
    "SLAEvaluationResponse",
    "CycleReportResponse",
    "SLASummaryResponse",
    "CalendarResponse",
    # Cache
    "TTLCache",
    # Services
    "Clock",
    "utc_now",
    "EscalationScheduler",
    "EscalationService",
    "SLAClosureService",
    "SLAReportService",
    # Repository Interfaces
    "IIssueStore",
    "ISLAConfigProvider",
    "ICycleMetricsExporter",
]
