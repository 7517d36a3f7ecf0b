"""
SLA Classifier
==============

Combines the working-time calculator and the SLA policy to classify an
issue at a given instant and to decide whether it escalates.

Classification is a pure function of ``(calendar, policy, issue, now)``:
concurrent evaluations of the same inputs always agree.
"""

from datetime import datetime
from typing import Optional, Tuple

from grievance_sla.config import Priority, SLAStatus
from grievance_sla.core import ValidationException
from grievance_sla.sla.domain.calendar import WorkingCalendar
from grievance_sla.sla.domain.entities import IssueSnapshot
from grievance_sla.sla.domain.value_objects import SLAEvaluation, SLAPolicy
from grievance_sla.sla.domain.working_time import WorkingTimeCalculator


class SLAClassifier:
    """
    Pure functions for SLA classification.

    Stateless utility class - all status and escalation rules in one place.
    """

    @staticmethod
    def classify(
        calendar: WorkingCalendar,
        policy: SLAPolicy,
        issue: IssueSnapshot,
        now: datetime
    ) -> SLAEvaluation:
        """
        Classify an issue.

        Closed issues get their terminal outcome. If the snapshot already holds
        a frozen outcome it is returned as stored, so later calendar edits
        never rewrite history.

        Args:
            calendar: Working calendar
            policy: SLA budget table and escalation rules
            issue: Snapshot of the issue
            now: Injected evaluation instant

        Returns:
            SLAEvaluation for the issue at ``now``
        """
        if issue.is_closed:
            if issue.sla_outcome is not None:
                return issue.sla_outcome
            return SLAClassifier.freeze_outcome(calendar, policy, issue)

        elapsed = WorkingTimeCalculator.elapsed_working_hours(calendar, issue.created_at, now)
        status, deadline = SLAClassifier.open_status(
            calendar, policy, issue.priority, issue.created_at, elapsed
        )
        return SLAClassifier.decide_escalation(
            calendar, policy, issue, now, elapsed, status, deadline
        )

    @staticmethod
    def open_status(
        calendar: WorkingCalendar,
        policy: SLAPolicy,
        priority: Priority,
        created_at: datetime,
        elapsed: float
    ) -> Tuple[SLAStatus, Optional[datetime]]:
        """
        Status and deadline of an open issue of ``elapsed`` working hours.

        Both thresholds use strict comparisons: exactly at the budget is
        still not breached.
        """
        budget = policy.budget_for(priority)

        if elapsed > budget.hours:
            status = SLAStatus.BREACHED
        elif elapsed > budget.hours * policy.at_risk_ratio:
            status = SLAStatus.AT_RISK
        else:
            status = SLAStatus.PENDING

        deadline = None
        if not budget.soft:
            deadline = WorkingTimeCalculator.add_working_hours(calendar, created_at, budget.hours)

        return status, deadline

    @staticmethod
    def decide_escalation(
        calendar: WorkingCalendar,
        policy: SLAPolicy,
        issue: IssueSnapshot,
        now: datetime,
        elapsed: float,
        status: SLAStatus,
        deadline: Optional[datetime]
    ) -> SLAEvaluation:
        """
        Apply the escalation rules on top of an open-issue status.

        A breached issue below its tier's level ceiling escalates once per
        ``re_escalation_hours`` of working time. Every
        ``breaches_before_priority_bump``-th level also raises the priority,
        after which status and deadline are re-derived for the new tier.
        Levels and priority only ever go up here.
        """
        rules = policy.escalation
        level = issue.escalation_level
        escalated_at = issue.escalated_at
        recommended_priority = None

        due = escalated_at is None or WorkingTimeCalculator.elapsed_working_hours(
            calendar, escalated_at, now
        ) >= rules.re_escalation_hours

        if status == SLAStatus.BREACHED and level < rules.max_level_for(issue.priority) and due:
            level += 1
            escalated_at = now

            if level % rules.breaches_before_priority_bump == 0 and issue.priority < Priority.CRITICAL:
                recommended_priority = issue.priority.next_higher()
                status, deadline = SLAClassifier.open_status(
                    calendar, policy, recommended_priority, issue.created_at, elapsed
                )

        return SLAEvaluation(
            issue_id=issue.id,
            working_hours_elapsed=elapsed,
            deadline=deadline,
            status=status,
            recommended_escalation_level=level,
            recommended_priority=recommended_priority,
            escalated_at=escalated_at,
        )

    @staticmethod
    def freeze_outcome(
        calendar: WorkingCalendar,
        policy: SLAPolicy,
        issue: IssueSnapshot
    ) -> SLAEvaluation:
        """
        Terminal on-time/breached outcome of a closed issue.

        Computed once at closure and persisted by the caller.

        Raises:
            ValidationException: If the issue has no closure time
        """
        if issue.closed_at is None:
            raise ValidationException(
                f"Issue {issue.id} has no closed_at",
                {"issue_id": issue.id, "status": issue.status.value}
            )

        budget = policy.budget_for(issue.priority)
        elapsed = WorkingTimeCalculator.elapsed_working_hours(
            calendar, issue.created_at, issue.closed_at
        )
        deadline = None
        if not budget.soft:
            deadline = WorkingTimeCalculator.add_working_hours(calendar, issue.created_at, budget.hours)

        return SLAEvaluation(
            issue_id=issue.id,
            working_hours_elapsed=elapsed,
            deadline=deadline,
            status=SLAStatus.ON_TIME if elapsed <= budget.hours else SLAStatus.BREACHED,
            recommended_escalation_level=issue.escalation_level,
            escalated_at=issue.escalated_at,
            is_final=True,
        )

    @staticmethod
    def differs_from_stored(issue: IssueSnapshot, evaluation: SLAEvaluation) -> bool:
        """Check whether persisting ``evaluation`` would change the issue."""
        return evaluation.differs_from(issue)
