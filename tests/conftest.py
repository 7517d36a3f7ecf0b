"""
Shared pytest fixtures for the SLA engine test suite.

Provides:
- A fixed working calendar (09:00-17:00, Mon-Sat, Asia/Kolkata, no holidays)
- In-memory issue store (with its audit log) and config provider
- Helpers for building issue snapshots
"""

import asyncio
import os
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

import pytest

# Settings are read at import time
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("ESCALATION_INTERVAL_SECONDS", "0")
os.environ.setdefault("SLA_CONFIG_PATH", "does-not-exist.yaml")

from grievance_sla.config import Priority, IssueStatus, SLAStatus
from grievance_sla.core import (
    ConcurrentModificationException,
    RepositoryException,
)
from grievance_sla.sla.application import IIssueStore, ISLAConfigProvider
from grievance_sla.sla.domain import (
    AuditEntry,
    IssueSnapshot,
    SLAEvaluation,
    SLAPolicy,
    WorkingCalendar,
)

IST = ZoneInfo("Asia/Kolkata")


def ist(year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0) -> datetime:
    """Aware datetime in the calendar timezone."""
    return datetime(year, month, day, hour, minute, second, tzinfo=IST)


# 2024-06-03 is a Monday
MON = (2024, 6, 3)
TUE = (2024, 6, 4)
WED = (2024, 6, 5)
THU = (2024, 6, 6)
FRI = (2024, 6, 7)
SAT = (2024, 6, 8)
SUN = (2024, 6, 9)
NEXT_MON = (2024, 6, 10)


def make_issue(
    issue_id: str = "1",
    priority: Priority = Priority.LOW,
    status: IssueStatus = IssueStatus.OPEN,
    created_at: Optional[datetime] = None,
    **kwargs
) -> IssueSnapshot:
    return IssueSnapshot(
        id=issue_id,
        priority=priority,
        status=status,
        created_at=created_at or ist(*MON, 9),
        **kwargs
    )


# ============================================================================
# IN-MEMORY COLLABORATORS
# ============================================================================

class InMemoryIssueStore(IIssueStore):
    """
    Issue store keeping snapshots in a dict, with version-based CAS.

    Audit entries land in ``audit_entries`` together with the row update;
    an issue listed in ``fail_audit_for`` has both rejected.
    """

    def __init__(self, issues: Optional[List[IssueSnapshot]] = None):
        self.issues: Dict[str, IssueSnapshot] = {i.id: i for i in issues or []}
        self.audit_entries: List[AuditEntry] = []
        self.list_calls = 0
        self.list_error: Optional[Exception] = None
        self.list_gate: Optional[asyncio.Event] = None
        self.fail_writes_for: set = set()
        self.fail_audit_for: set = set()
        self.write_delay: float = 0
        self.saved_outcomes: List[str] = []

    def add(self, issue: IssueSnapshot) -> None:
        self.issues[issue.id] = issue

    async def list_open_issues(self) -> List[IssueSnapshot]:
        self.list_calls += 1
        if self.list_gate is not None:
            await self.list_gate.wait()
        if self.list_error is not None:
            raise self.list_error
        return [i for i in self.issues.values() if i.is_open]

    async def list_issues(self) -> List[IssueSnapshot]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return list(self.issues.values())

    async def get_by_id(self, issue_id: str) -> Optional[IssueSnapshot]:
        return self.issues.get(issue_id)

    async def apply_evaluation(
        self,
        issue_id: str,
        evaluation: SLAEvaluation,
        expected_version: Optional[int] = None,
        audit_entry: Optional[AuditEntry] = None
    ) -> None:
        if self.write_delay:
            await asyncio.sleep(self.write_delay)
        if issue_id in self.fail_writes_for:
            raise RepositoryException(f"write failed for {issue_id}")
        current = self.issues.get(issue_id)
        if current is None:
            raise RepositoryException(f"Issue {issue_id} not found")
        if expected_version is not None and current.version != expected_version:
            raise ConcurrentModificationException(issue_id, expected_version)
        if audit_entry is not None and issue_id in self.fail_audit_for:
            raise RepositoryException(f"audit insert failed for {issue_id}")

        if audit_entry is not None:
            self.audit_entries.append(audit_entry)

        self.issues[issue_id] = replace(
            current,
            priority=evaluation.effective_priority(current),
            sla_status=evaluation.status,
            escalation_level=evaluation.recommended_escalation_level,
            escalated_at=evaluation.escalated_at,
            version=current.version + 1,
        )

    async def save_outcome(self, issue_id: str, evaluation: SLAEvaluation) -> None:
        current = self.issues[issue_id]
        self.saved_outcomes.append(issue_id)
        self.issues[issue_id] = replace(
            current,
            sla_outcome=evaluation,
            sla_status=evaluation.status,
            version=current.version + 1,
        )


class StaticConfigProvider(ISLAConfigProvider):
    def __init__(self, calendar: WorkingCalendar, policy: SLAPolicy):
        self._calendar = calendar
        self._policy = policy

    @property
    def calendar(self) -> WorkingCalendar:
        return self._calendar

    @property
    def policy(self) -> SLAPolicy:
        return self._policy


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def calendar() -> WorkingCalendar:
    """09:00-17:00, Monday to Saturday, no holidays."""
    return WorkingCalendar(
        day_start_hour=9,
        day_end_hour=17,
        working_weekdays=frozenset({0, 1, 2, 3, 4, 5}),
        holidays=frozenset(),
        timezone=IST,
    )


@pytest.fixture
def policy() -> SLAPolicy:
    return SLAPolicy()


@pytest.fixture
def config_provider(calendar, policy) -> StaticConfigProvider:
    return StaticConfigProvider(calendar, policy)


@pytest.fixture
def store() -> InMemoryIssueStore:
    return InMemoryIssueStore()


@pytest.fixture
def fixed_now() -> datetime:
    return ist(*MON, 14)
