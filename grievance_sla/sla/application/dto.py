"""
SLA Application DTOs
=====================

Data Transfer Objects for SLA API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses. Following YAGNI - only what's needed.
"""

from datetime import date, datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from grievance_sla.config import Priority, IssueStatus, SLAStatus
from grievance_sla.core import ValidationException


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["low", "medium", "high", "critical"]
IssueStatusStr = Literal["open", "in_progress", "pending", "escalated", "resolved", "closed"]
SLAStatusStr = Literal["pending", "at_risk", "breached", "on_time"]


# ========== Request DTOs ==========

class WorkingHoursRequest(BaseModel):
    """Request model for working-hours arithmetic."""
    start: datetime = Field(..., description="Interval start")
    end: Optional[datetime] = Field(None, description="Interval end (defaults to now)")
    priority: Optional[PriorityStr] = Field(
        None, description="When given, the SLA deadline for this priority is included"
    )


class IssueSnapshotDTO(BaseModel):
    """Issue state as sent by the CRUD layer for an ad-hoc classification."""
    id: str = Field(..., min_length=1, description="Issue ID")
    priority: PriorityStr = Field(..., description="Current priority")
    status: IssueStatusStr = Field(default="open", description="Issue status")
    created_at: datetime = Field(..., description="Creation timestamp")
    closed_at: Optional[datetime] = Field(None, description="Closure timestamp")
    sla_status: Optional[SLAStatusStr] = Field(None, description="Last stored SLA status")
    escalation_level: int = Field(default=0, ge=0, description="Current escalation level")
    escalated_at: Optional[datetime] = Field(None, description="Last escalation time")

    @field_validator("closed_at")
    @classmethod
    def validate_closed_at(cls, v: Optional[datetime], info) -> Optional[datetime]:
        """
        Ensure closed_at is not before created_at.

        A naive and an aware value cannot be ordered without the calendar
        timezone; ``to_domain`` checks that pair once both are localized.
        """
        created_at = info.data.get("created_at")
        if v is None or created_at is None:
            return v
        if (v.tzinfo is None) != (created_at.tzinfo is None):
            return v
        if v < created_at:
            raise ValueError("closed_at cannot be before created_at")
        return v

    def to_domain(self, calendar=None):
        """
        Convert to domain snapshot.

        With a calendar, naive timestamps are read as calendar-local time.

        Raises:
            ValidationException: If closed_at falls before created_at
        """
        from grievance_sla.sla.domain import IssueSnapshot

        def local(value: Optional[datetime]) -> Optional[datetime]:
            if value is None or calendar is None:
                return value
            return calendar.localize(value)

        created_at = local(self.created_at)
        closed_at = local(self.closed_at)
        if closed_at is not None and created_at.tzinfo is not None and closed_at.tzinfo is not None:
            if closed_at < created_at:
                raise ValidationException(
                    "closed_at cannot be before created_at",
                    {"issue_id": self.id}
                )

        return IssueSnapshot(
            id=self.id,
            priority=Priority(self.priority),
            status=IssueStatus(self.status),
            created_at=created_at,
            closed_at=closed_at,
            sla_status=SLAStatus(self.sla_status) if self.sla_status else None,
            escalation_level=self.escalation_level,
            escalated_at=local(self.escalated_at),
        )


class ClassifyRequest(BaseModel):
    """Request model for classifying one issue."""
    issue: IssueSnapshotDTO
    now: Optional[datetime] = Field(None, description="Evaluation instant (defaults to now)")


# ========== Response DTOs ==========

class WorkingHoursResponse(BaseModel):
    """Response model for working-hours arithmetic."""
    start: datetime
    end: datetime
    working_hours: float = Field(..., description="Elapsed working hours (2 decimals)")
    deadline: Optional[datetime] = Field(None, description="SLA deadline for the requested priority")


class SLAEvaluationResponse(BaseModel):
    """Response model for an SLA evaluation."""
    issue_id: str
    working_hours_elapsed: float
    deadline: Optional[datetime] = None
    status: SLAStatusStr
    recommended_priority: Optional[PriorityStr] = None
    recommended_escalation_level: int
    escalated_at: Optional[datetime] = None
    is_final: bool = False

    @classmethod
    def from_domain(cls, evaluation) -> "SLAEvaluationResponse":
        """Create from domain evaluation."""
        return cls(
            issue_id=evaluation.issue_id,
            working_hours_elapsed=evaluation.working_hours_elapsed,
            deadline=evaluation.deadline,
            status=evaluation.status.value,
            recommended_priority=(
                evaluation.recommended_priority.value if evaluation.recommended_priority else None
            ),
            recommended_escalation_level=evaluation.recommended_escalation_level,
            escalated_at=evaluation.escalated_at,
            is_final=evaluation.is_final,
        )


class CycleReportResponse(BaseModel):
    """Response model for a manual escalation run."""
    started_at: datetime
    issues_evaluated: int
    mutations: int
    applied: int
    failed: int
    cancelled: bool
    aborted: bool
    skipped: bool
    duration_ms: int
    errors: List[str] = Field(default_factory=list)


class SLASummaryCounts(BaseModel):
    """Status counts and rates for one slice of issues."""
    total: int
    pending: int
    at_risk: int
    breached: int
    on_time: int
    breach_rate: float = Field(..., description="Percentage of issues breached")
    average_resolution_hours: Optional[float] = Field(
        None, description="Mean working hours to closure of closed issues"
    )


class SLASummaryResponse(SLASummaryCounts):
    """Summary statistics across all issues."""
    by_priority: Dict[PriorityStr, SLASummaryCounts] = Field(
        default_factory=dict, description="The same figures per current priority"
    )
    generated_at: datetime


class CalendarResponse(BaseModel):
    """Active working calendar and SLA budgets."""
    timezone: str
    day_start_hour: int
    day_end_hour: int
    working_weekdays: List[int]
    holidays: List[date]
    budgets: dict = Field(..., description="Working-hour budget per priority (null = soft cap)")
    critical_soft_cap_hours: float
    at_risk_ratio: float
