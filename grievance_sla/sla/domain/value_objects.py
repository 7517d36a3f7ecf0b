"""
SLA Value Objects
==================

Immutable value objects for SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

from grievance_sla.config import Priority, SLAStatus, PRIORITY_ORDER
from grievance_sla.core import InvalidCalendarConfigException
from grievance_sla.sla.domain.calendar import WorkingCalendar, WEEKDAY_NAMES


# Default public holiday list (2024)
DEFAULT_HOLIDAYS = [
    date(2024, 1, 26),   # Republic Day
    date(2024, 3, 29),   # Holi
    date(2024, 8, 15),   # Independence Day
    date(2024, 10, 2),   # Gandhi Jayanti
    date(2024, 11, 1),   # Diwali
    date(2024, 12, 25),  # Christmas
]


@dataclass(frozen=True)
class SLABudget:
    """
    Working-hour allowance for one priority tier.

    A soft budget is an escalation trigger only: it has no deadline.
    """
    hours: float
    soft: bool = False


class CalendarConfig(BaseModel):
    """Working calendar section of the SLA YAML file."""
    model_config = ConfigDict(frozen=True)

    timezone: str = Field(default="Asia/Kolkata", description="IANA timezone for the deployment")
    day_start_hour: int = Field(default=9, ge=0, le=24, description="Working window start")
    day_end_hour: int = Field(default=17, ge=0, le=24, description="Working window end")
    working_weekdays: List[int] = Field(
        default_factory=lambda: [0, 1, 2, 3, 4, 5],
        description="Working weekdays, 0 = Monday; names such as 'monday' are accepted"
    )
    holidays: List[date] = Field(
        default_factory=lambda: list(DEFAULT_HOLIDAYS),
        description="Dates that are never working days"
    )

    @field_validator("working_weekdays", mode="before")
    @classmethod
    def parse_weekdays(cls, v: List[Union[int, str]]) -> List[int]:
        """Map weekday names to ``date.weekday()`` numbers."""
        parsed = []
        for day in v or []:
            if isinstance(day, str) and not day.isdigit():
                matches = [i for i, name in enumerate(WEEKDAY_NAMES) if name.startswith(day.strip().lower()[:3])]
                if not matches:
                    raise ValueError(f"unknown weekday {day!r}")
                parsed.append(matches[0])
            else:
                parsed.append(int(day))
        return parsed

    def to_calendar(self) -> WorkingCalendar:
        """
        Build the domain calendar.

        Raises:
            InvalidCalendarConfigException: If the values cannot form a valid calendar
        """
        try:
            tz = ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise InvalidCalendarConfigException(
                f"Unknown timezone {self.timezone!r}", {"error": str(e)}
            ) from e

        return WorkingCalendar(
            day_start_hour=self.day_start_hour,
            day_end_hour=self.day_end_hour,
            working_weekdays=frozenset(self.working_weekdays),
            holidays=frozenset(self.holidays),
            timezone=tz,
        )


class EscalationPolicy(BaseModel):
    """
    Rules turning a breached SLA into escalation levels and priority bumps.

    Levels are cumulative per issue and never decrease. ``max_levels`` caps
    the level while the issue sits at a tier; every
    ``breaches_before_priority_bump``-th escalation also raises the priority
    one tier.
    """
    model_config = ConfigDict(frozen=True)

    max_levels: Dict[Priority, int] = Field(
        default_factory=lambda: {
            Priority.LOW: 2,
            Priority.MEDIUM: 4,
            Priority.HIGH: 6,
            Priority.CRITICAL: 8,
        },
        description="Escalation level ceiling per priority tier"
    )
    breaches_before_priority_bump: int = Field(
        default=2, ge=1,
        description="Escalations needed before the priority is raised one tier"
    )
    re_escalation_hours: float = Field(
        default=8.0, gt=0,
        description="Working hours between escalations of a still-breached issue"
    )

    @field_validator("max_levels")
    @classmethod
    def fill_max_levels(cls, v: Dict[Priority, int]) -> Dict[Priority, int]:
        """Every tier gets a ceiling; a missing one inherits from the tier below."""
        filled = {}
        previous = 0
        for priority in PRIORITY_ORDER:
            level = v.get(priority, previous)
            if level < 0:
                raise ValueError(f"max level for {priority.value} cannot be negative")
            filled[priority] = level
            previous = level
        return filled

    def max_level_for(self, priority: Priority) -> int:
        return self.max_levels[priority]


class SLAPolicy(BaseModel):
    """
    SLA budget table loaded from YAML.

    A tier mapped to ``None`` has no hard deadline; it uses
    ``critical_soft_cap_hours`` as a soft escalation trigger instead.

    This is a value object - immutable and defined by its attributes.
    """
    model_config = ConfigDict(frozen=True)

    budgets: Dict[Priority, Optional[float]] = Field(
        default_factory=lambda: {
            Priority.LOW: 4.0,
            Priority.MEDIUM: 24.0,
            Priority.HIGH: 72.0,
            Priority.CRITICAL: None,
        },
        description="Working-hour budget per priority"
    )
    critical_soft_cap_hours: float = Field(
        default=72.0, gt=0,
        description="Soft cap used for tiers without a hard budget"
    )
    at_risk_ratio: float = Field(
        default=0.8, gt=0, lt=1,
        description="Fraction of the budget after which an issue is at risk"
    )
    escalation: EscalationPolicy = Field(default_factory=EscalationPolicy)

    @field_validator("budgets")
    @classmethod
    def validate_budgets(cls, v: Dict[Priority, Optional[float]]) -> Dict[Priority, Optional[float]]:
        """Every priority has an entry; missing ones take medium's budget."""
        if Priority.MEDIUM not in v:
            v[Priority.MEDIUM] = 24.0
        for priority in PRIORITY_ORDER:
            if priority not in v:
                v[priority] = v[Priority.MEDIUM]
            budget = v[priority]
            if budget is not None and budget <= 0:
                raise ValueError(f"budget for {priority.value} must be positive")
        return v

    def budget_for(self, priority: Priority) -> SLABudget:
        """
        Working-hour budget for a priority.

        Example:
            budget_for(Priority.LOW)      -> SLABudget(4.0)
            budget_for(Priority.CRITICAL) -> SLABudget(72.0, soft=True)
        """
        hours = self.budgets.get(priority, self.budgets[Priority.MEDIUM])
        if hours is None:
            return SLABudget(hours=self.critical_soft_cap_hours, soft=True)
        return SLABudget(hours=float(hours))

    def at_risk_hours(self, priority: Priority) -> float:
        return self.budget_for(priority).hours * self.at_risk_ratio


class SLAEngineConfig(BaseModel):
    """Root of the SLA YAML file."""
    model_config = ConfigDict(frozen=True)

    calendar: CalendarConfig = Field(default_factory=CalendarConfig)
    policy: SLAPolicy = Field(default_factory=SLAPolicy)


@dataclass(frozen=True)
class SLAEvaluation:
    """
    Result of classifying one issue at one instant.

    Transient: created on every pass and only persisted when it differs
    from the issue's stored state.
    """
    issue_id: str
    working_hours_elapsed: float
    deadline: Optional[datetime]
    status: SLAStatus
    recommended_escalation_level: int
    recommended_priority: Optional[Priority] = None
    escalated_at: Optional[datetime] = None
    is_final: bool = False

    def effective_priority(self, issue) -> Priority:
        """Priority the issue has once this evaluation is applied."""
        return self.recommended_priority or issue.priority

    def differs_from(self, issue) -> bool:
        """Check whether persisting this evaluation would change ``issue``."""
        return (
            self.status != issue.sla_status
            or self.effective_priority(issue) != issue.priority
            or self.recommended_escalation_level != issue.escalation_level
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses and audit payloads."""
        return {
            "issue_id": self.issue_id,
            "working_hours_elapsed": self.working_hours_elapsed,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "status": self.status.value,
            "recommended_escalation_level": self.recommended_escalation_level,
            "recommended_priority": self.recommended_priority.value if self.recommended_priority else None,
            "escalated_at": self.escalated_at.isoformat() if self.escalated_at else None,
            "is_final": self.is_final,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SLAEvaluation":
        """Rebuild an evaluation stored with ``to_dict``."""
        def _parse(value):
            return datetime.fromisoformat(value) if value else None

        recommended = data.get("recommended_priority")
        return cls(
            issue_id=str(data["issue_id"]),
            working_hours_elapsed=float(data["working_hours_elapsed"]),
            deadline=_parse(data.get("deadline")),
            status=SLAStatus(data["status"]),
            recommended_escalation_level=int(data.get("recommended_escalation_level", 0)),
            recommended_priority=Priority(recommended) if recommended else None,
            escalated_at=_parse(data.get("escalated_at")),
            is_final=bool(data.get("is_final", False)),
        )
