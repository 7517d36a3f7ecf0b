"""
SLA Domain Entities
====================

Pure Python domain entities for SLA monitoring.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns. Issues themselves
belong to the surrounding CRUD layer; the engine only ever sees read-only
snapshots of them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from grievance_sla.config import (
    Priority, IssueStatus, SLAStatus,
    OPEN_STATUSES, CLOSED_STATUSES, AUDIT_REASON_SLA_ESCALATION
)
from grievance_sla.sla.domain.value_objects import SLAEvaluation


@dataclass(frozen=True)
class IssueSnapshot:
    """
    Read view of a grievance as stored by the CRUD layer.

    Besides the raw timestamps it carries the engine state persisted by the
    previous cycle, which is what a new evaluation is diffed against.
    """

    id: str
    priority: Priority
    status: IssueStatus
    created_at: datetime
    closed_at: Optional[datetime] = None

    # Last persisted engine state
    sla_status: Optional[SLAStatus] = None
    escalation_level: int = 0
    escalated_at: Optional[datetime] = None
    sla_outcome: Optional[SLAEvaluation] = None

    # Optimistic-lock token owned by the issue store
    version: int = 0

    def __post_init__(self):
        """Validate snapshot on initialization."""
        if self.escalation_level < 0:
            raise ValueError("escalation_level cannot be negative")

    @property
    def is_open(self) -> bool:
        """Check if issue still counts against its SLA."""
        return self.status in OPEN_STATUSES

    @property
    def is_closed(self) -> bool:
        """Check if issue reached a terminal status with a closure time."""
        return self.status in CLOSED_STATUSES and self.closed_at is not None


@dataclass(frozen=True)
class SLAMutation:
    """
    A change the scheduler wants persisted for one issue.

    Holds the snapshot it was computed from so the writer can do a
    compare-and-swap on ``previous.version`` and build the audit entry.
    """

    issue_id: str
    evaluation: SLAEvaluation
    previous: IssueSnapshot

    @property
    def new_priority(self) -> Priority:
        return self.evaluation.effective_priority(self.previous)

    def to_audit_entry(self, at: datetime) -> "AuditEntry":
        """Build the single audit record that accompanies this mutation."""
        return AuditEntry(
            issue_id=self.issue_id,
            previous_priority=self.previous.priority,
            new_priority=self.new_priority,
            previous_status=self.previous.sla_status,
            new_status=self.evaluation.status,
            previous_escalation_level=self.previous.escalation_level,
            new_escalation_level=self.evaluation.recommended_escalation_level,
            at=at,
        )


@dataclass(frozen=True)
class AuditEntry:
    """Audit trail record for an engine-driven change."""

    issue_id: str
    previous_priority: Priority
    new_priority: Priority
    previous_status: Optional[SLAStatus]
    new_status: SLAStatus
    previous_escalation_level: int
    new_escalation_level: int
    at: datetime
    reason: str = AUDIT_REASON_SLA_ESCALATION

    def to_changes(self) -> dict:
        """Changes payload in the ``audit_logs.changes`` shape."""
        return {
            "priority": {
                "from": self.previous_priority.value,
                "to": self.new_priority.value
            },
            "sla_status": {
                "from": self.previous_status.value if self.previous_status else None,
                "to": self.new_status.value
            },
            "escalation_level": {
                "from": self.previous_escalation_level,
                "to": self.new_escalation_level
            },
            "reason": self.reason,
        }


@dataclass
class CycleReport:
    """Outcome of one escalation cycle, for logs, metrics and the API."""

    started_at: datetime
    issues_evaluated: int = 0
    mutations: int = 0
    applied: int = 0
    failed: int = 0
    cancelled: bool = False
    aborted: bool = False
    skipped: bool = False
    duration_ms: int = 0
    errors: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "issues_evaluated": self.issues_evaluated,
            "mutations": self.mutations,
            "applied": self.applied,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "aborted": self.aborted,
            "skipped": self.skipped,
            "duration_ms": self.duration_ms,
            "errors": list(self.errors),
        }
