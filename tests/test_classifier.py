"""
Unit tests for SLA classification and the escalation decision.
"""

from dataclasses import replace
from datetime import date, timedelta

import pytest

from grievance_sla.config import Priority, IssueStatus, SLAStatus
from grievance_sla.core import ValidationException
from grievance_sla.sla.domain import SLAClassifier, SLAEvaluation, WorkingCalendar

from conftest import IST, ist, make_issue, MON, TUE, WED, NEXT_MON

classify = SLAClassifier.classify


class TestOpenIssueStatus:

    def test_low_just_over_budget_is_breached(self, calendar, policy):
        issue = make_issue(priority=Priority.LOW, created_at=ist(*MON, 9))
        evaluation = classify(calendar, policy, issue, ist(*MON, 13, 0, 36))
        assert evaluation.working_hours_elapsed == 4.01
        assert evaluation.status == SLAStatus.BREACHED

    def test_exactly_at_budget_is_not_breached(self, calendar, policy):
        issue = make_issue(priority=Priority.LOW, created_at=ist(*MON, 9))
        evaluation = classify(calendar, policy, issue, ist(*MON, 13))
        assert evaluation.status == SLAStatus.AT_RISK

    def test_pending(self, calendar, policy):
        issue = make_issue(priority=Priority.LOW, created_at=ist(*MON, 9))
        evaluation = classify(calendar, policy, issue, ist(*MON, 11))
        assert evaluation.status == SLAStatus.PENDING
        assert evaluation.recommended_escalation_level == 0
        assert evaluation.recommended_priority is None

    def test_high_at_risk(self, calendar, policy):
        issue = make_issue(priority=Priority.HIGH, created_at=ist(*MON, 9))
        # 48h in week one, 8h next Monday, 2h Tuesday
        evaluation = classify(calendar, policy, issue, ist(2024, 6, 11, 11))
        assert evaluation.working_hours_elapsed == 58.0
        assert evaluation.status == SLAStatus.AT_RISK
        assert evaluation.deadline == ist(2024, 6, 12, 17)

    def test_deadline(self, calendar, policy):
        issue = make_issue(priority=Priority.LOW, created_at=ist(*MON, 16))
        evaluation = classify(calendar, policy, issue, ist(*MON, 16, 30))
        assert evaluation.deadline == ist(*TUE, 12)

    def test_critical_has_no_deadline(self, calendar, policy):
        issue = make_issue(priority=Priority.CRITICAL, created_at=ist(*MON, 9))
        evaluation = classify(calendar, policy, issue, ist(*MON, 10))
        assert evaluation.deadline is None
        assert evaluation.status == SLAStatus.PENDING

    def test_critical_soft_cap(self, calendar, policy):
        issue = make_issue(priority=Priority.CRITICAL, created_at=ist(*MON, 9))
        # 60h -> at risk (> 57.6)
        assert classify(calendar, policy, issue, ist(2024, 6, 11, 13)).status == SLAStatus.AT_RISK
        # 72h exactly -> still at risk
        assert classify(calendar, policy, issue, ist(2024, 6, 12, 17)).status == SLAStatus.AT_RISK
        # 73h -> breached
        assert classify(calendar, policy, issue, ist(2024, 6, 13, 10)).status == SLAStatus.BREACHED

    def test_weekend_does_not_age_issue(self, calendar, policy):
        issue = make_issue(priority=Priority.LOW, created_at=ist(2024, 6, 8, 16))
        evaluation = classify(calendar, policy, issue, ist(*NEXT_MON, 10))
        assert evaluation.working_hours_elapsed == 2.0
        assert evaluation.status == SLAStatus.PENDING

    def test_resolved_without_closed_at_is_treated_as_open(self, calendar, policy):
        issue = make_issue(status=IssueStatus.RESOLVED, created_at=ist(*MON, 9))
        evaluation = classify(calendar, policy, issue, ist(*MON, 10))
        assert evaluation.is_final is False
        assert evaluation.status == SLAStatus.PENDING


class TestClosedIssueStatus:

    def test_closed_on_time(self, calendar, policy):
        issue = make_issue(
            status=IssueStatus.CLOSED,
            created_at=ist(*MON, 9),
            closed_at=ist(*MON, 12)
        )
        evaluation = classify(calendar, policy, issue, ist(*WED, 9))
        assert evaluation.status == SLAStatus.ON_TIME
        assert evaluation.is_final is True
        assert evaluation.working_hours_elapsed == 3.0

    def test_resolved_late_is_breached(self, calendar, policy):
        issue = make_issue(
            status=IssueStatus.RESOLVED,
            created_at=ist(*MON, 9),
            closed_at=ist(*MON, 15)
        )
        evaluation = classify(calendar, policy, issue, ist(*WED, 9))
        assert evaluation.status == SLAStatus.BREACHED
        assert evaluation.is_final is True

    def test_closed_at_budget_is_on_time(self, calendar, policy):
        issue = make_issue(
            status=IssueStatus.CLOSED,
            created_at=ist(*MON, 9),
            closed_at=ist(*MON, 13)
        )
        assert classify(calendar, policy, issue, ist(*WED, 9)).status == SLAStatus.ON_TIME

    def test_critical_closed_within_soft_cap(self, calendar, policy):
        issue = make_issue(
            priority=Priority.CRITICAL,
            status=IssueStatus.CLOSED,
            created_at=ist(*MON, 9),
            closed_at=ist(2024, 6, 11, 13)
        )
        evaluation = classify(calendar, policy, issue, ist(2024, 6, 20, 9))
        assert evaluation.status == SLAStatus.ON_TIME
        assert evaluation.deadline is None

    def test_frozen_outcome_is_never_recomputed(self, calendar, policy):
        issue = make_issue(
            status=IssueStatus.CLOSED,
            created_at=ist(*MON, 9),
            closed_at=ist(*MON, 12)
        )
        frozen = SLAClassifier.freeze_outcome(calendar, policy, issue)
        issue = replace(issue, sla_outcome=frozen)

        # A holiday added after closure would shrink elapsed time if recomputed
        later_calendar = WorkingCalendar(holidays=frozenset({date(*MON)}), timezone=IST)
        evaluation = classify(later_calendar, policy, issue, ist(*WED, 9))
        assert evaluation is frozen

    def test_freeze_requires_closed_at(self, calendar, policy):
        issue = make_issue(status=IssueStatus.CLOSED)
        with pytest.raises(ValidationException):
            SLAClassifier.freeze_outcome(calendar, policy, issue)


class TestEscalationDecision:

    def test_first_breach_escalates_one_level(self, calendar, policy):
        issue = make_issue(priority=Priority.LOW, created_at=ist(*MON, 9))
        now = ist(*MON, 14)
        evaluation = classify(calendar, policy, issue, now)
        assert evaluation.status == SLAStatus.BREACHED
        assert evaluation.recommended_escalation_level == 1
        assert evaluation.escalated_at == now
        assert evaluation.recommended_priority is None

    def test_no_re_escalation_before_interval(self, calendar, policy):
        issue = make_issue(
            priority=Priority.LOW,
            created_at=ist(*MON, 9),
            sla_status=SLAStatus.BREACHED,
            escalation_level=1,
            escalated_at=ist(*TUE, 9)
        )
        evaluation = classify(calendar, policy, issue, ist(*TUE, 13))
        assert evaluation.recommended_escalation_level == 1
        assert evaluation.escalated_at == ist(*TUE, 9)
        assert not SLAClassifier.differs_from_stored(issue, evaluation)

    def test_second_escalation_bumps_priority(self, calendar, policy):
        issue = make_issue(
            priority=Priority.LOW,
            created_at=ist(*MON, 9),
            sla_status=SLAStatus.BREACHED,
            escalation_level=1,
            escalated_at=ist(*MON, 13)
        )
        now = ist(*TUE, 13)
        evaluation = classify(calendar, policy, issue, now)

        assert evaluation.recommended_escalation_level == 2
        assert evaluation.recommended_priority == Priority.MEDIUM
        # 12h against medium's 24h budget
        assert evaluation.working_hours_elapsed == 12.0
        assert evaluation.status == SLAStatus.PENDING
        assert evaluation.deadline == ist(*WED, 17)

    def test_level_capped_per_tier(self, calendar, policy):
        issue = make_issue(
            priority=Priority.LOW,
            created_at=ist(*MON, 9),
            sla_status=SLAStatus.BREACHED,
            escalation_level=2,
            escalated_at=ist(*MON, 13)
        )
        evaluation = classify(calendar, policy, issue, ist(*WED, 13))
        assert evaluation.recommended_escalation_level == 2
        assert evaluation.recommended_priority is None

    def test_critical_never_bumped(self, calendar, policy):
        issue = make_issue(
            priority=Priority.CRITICAL,
            created_at=ist(*MON, 9),
            sla_status=SLAStatus.BREACHED,
            escalation_level=1,
            escalated_at=ist(2024, 6, 12, 9)
        )
        evaluation = classify(calendar, policy, issue, ist(2024, 6, 14, 9))
        assert evaluation.recommended_escalation_level == 2
        assert evaluation.recommended_priority is None

    def test_not_breached_does_not_escalate(self, calendar, policy):
        issue = make_issue(priority=Priority.MEDIUM, created_at=ist(*MON, 9))
        evaluation = classify(calendar, policy, issue, ist(*WED, 13))
        assert evaluation.status == SLAStatus.AT_RISK
        assert evaluation.recommended_escalation_level == 0

    def test_level_and_priority_never_decrease(self, calendar, policy):
        issue = make_issue(priority=Priority.LOW, created_at=ist(*MON, 9))
        now = ist(*MON, 9)
        levels, ranks = [], []

        for _ in range(120):
            now += timedelta(hours=3)
            evaluation = classify(calendar, policy, issue, now)
            issue = replace(
                issue,
                priority=evaluation.effective_priority(issue),
                sla_status=evaluation.status,
                escalation_level=evaluation.recommended_escalation_level,
                escalated_at=evaluation.escalated_at,
            )
            levels.append(issue.escalation_level)
            ranks.append(issue.priority.rank)

        assert levels == sorted(levels)
        assert ranks == sorted(ranks)
        assert issue.priority > Priority.LOW

    def test_differs_from_stored(self, calendar, policy):
        issue = make_issue(created_at=ist(*MON, 9), sla_status=SLAStatus.PENDING)
        same = classify(calendar, policy, issue, ist(*MON, 10))
        assert not SLAClassifier.differs_from_stored(issue, same)

        changed = classify(calendar, policy, issue, ist(*MON, 12, 30))
        assert changed.status == SLAStatus.AT_RISK
        assert SLAClassifier.differs_from_stored(issue, changed)


class TestEvaluationSerialization:

    def test_dict_round_trip(self, calendar, policy):
        issue = make_issue(
            status=IssueStatus.CLOSED,
            created_at=ist(*MON, 9),
            closed_at=ist(*MON, 15)
        )
        outcome = SLAClassifier.freeze_outcome(calendar, policy, issue)
        assert SLAEvaluation.from_dict(outcome.to_dict()) == outcome
