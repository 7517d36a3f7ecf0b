"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for the SLA engine:
- Models: SQLAlchemy ORM models
- Repositories: Issue store, writing audit entries with each update
- External: YAML config loader, APScheduler job, Grafana cycle metrics
"""

from grievance_sla.sla.infrastructure.models import IssueModel, AuditLogModel
from grievance_sla.sla.infrastructure.repositories import SQLAlchemyIssueStore
from grievance_sla.sla.infrastructure.external import (
    SLAConfigManager,
    SLAScheduler,
    GrafanaCycleMetricsExporter,
)

__all__ = [
    "IssueModel",
    "AuditLogModel",
    "SQLAlchemyIssueStore",
    "SLAConfigManager",
    "SLAScheduler",
    "GrafanaCycleMetricsExporter",
]
