"""
Unit tests for the SLA budget table, escalation rules and priority ordering.
"""

import pytest
from pydantic import ValidationError

from grievance_sla.config import Priority
from grievance_sla.sla.domain import EscalationPolicy, SLABudget, SLAPolicy


class TestPriority:

    def test_ordering(self):
        assert Priority.LOW < Priority.MEDIUM < Priority.HIGH < Priority.CRITICAL
        assert max([Priority.HIGH, Priority.LOW, Priority.CRITICAL]) == Priority.CRITICAL

    def test_next_higher(self):
        assert Priority.LOW.next_higher() == Priority.MEDIUM
        assert Priority.HIGH.next_higher() == Priority.CRITICAL

    def test_next_higher_saturates(self):
        assert Priority.CRITICAL.next_higher() == Priority.CRITICAL


class TestSLAPolicy:

    def test_default_budgets(self, policy):
        assert policy.budget_for(Priority.LOW) == SLABudget(4.0)
        assert policy.budget_for(Priority.MEDIUM) == SLABudget(24.0)
        assert policy.budget_for(Priority.HIGH) == SLABudget(72.0)

    def test_critical_is_soft(self, policy):
        budget = policy.budget_for(Priority.CRITICAL)
        assert budget.soft is True
        assert budget.hours == 72.0

    def test_at_risk_hours(self, policy):
        assert policy.at_risk_hours(Priority.HIGH) == pytest.approx(57.6)
        assert policy.at_risk_hours(Priority.LOW) == pytest.approx(3.2)
        assert policy.at_risk_hours(Priority.CRITICAL) == pytest.approx(57.6)

    def test_missing_tier_takes_medium_budget(self):
        policy = SLAPolicy(budgets={"medium": 10, "high": 30})
        assert policy.budget_for(Priority.LOW).hours == 10.0
        assert policy.budget_for(Priority.CRITICAL).hours == 10.0
        assert policy.budget_for(Priority.HIGH).hours == 30.0

    def test_non_positive_budget_rejected(self):
        with pytest.raises(ValidationError):
            SLAPolicy(budgets={"low": 0})

    def test_at_risk_ratio_bounds(self):
        with pytest.raises(ValidationError):
            SLAPolicy(at_risk_ratio=1.5)

    def test_immutable(self, policy):
        with pytest.raises(ValidationError):
            policy.at_risk_ratio = 0.5


class TestEscalationPolicy:

    def test_defaults(self):
        rules = EscalationPolicy()
        assert rules.max_level_for(Priority.LOW) == 2
        assert rules.max_level_for(Priority.CRITICAL) == 8
        assert rules.breaches_before_priority_bump == 2
        assert rules.re_escalation_hours == 8.0

    def test_missing_tier_inherits_from_lower(self):
        rules = EscalationPolicy(max_levels={"low": 1, "high": 3})
        assert rules.max_level_for(Priority.MEDIUM) == 1
        assert rules.max_level_for(Priority.HIGH) == 3
        assert rules.max_level_for(Priority.CRITICAL) == 3

    def test_negative_level_rejected(self):
        with pytest.raises(ValidationError):
            EscalationPolicy(max_levels={"low": -1})

    def test_bump_count_must_be_positive(self):
        with pytest.raises(ValidationError):
            EscalationPolicy(breaches_before_priority_bump=0)
