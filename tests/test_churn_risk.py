"""Tests for explainable churn risk scoring."""

from datetime import date, timedelta

import pytest

from retention_audit.analyses.churn_risk import (
    ChurnAssessment,
    ChurnRiskLevel,
    ChurnSignals,
    assess_customer,
    average_days_between_orders,
    detect_signals,
    risk_level,
    risk_score,
    score_churn_risk,
)
from retention_audit.analyses.retention_status import (
    RetentionStatus,
    classify_retention,
)
from retention_audit.config import ChurnSignalConfig
from retention_audit.foundation.customer_facts import CustomerFacts, build_customer_facts

DAY_0 = date(2024, 3, 1)


def _day(n):
    return DAY_0 + timedelta(days=n)


def _score_one(facts, reference_date, config=ChurnSignalConfig()):
    snapshots = classify_retention({facts.customer_id: facts}, reference_date)
    return score_churn_risk({facts.customer_id: facts}, snapshots, config)[
        facts.customer_id
    ]


class TestExampleScenarios:
    """Worked examples of the scoring rules."""

    def test_regular_buyer_overdue_is_high_risk(self):
        """Orders on days 0, 10, 20 and a reference date of day 45."""
        facts = build_customer_facts(
            [
                {"customer_id": "C1", "order_id": f"O{i}", "order_date": _day(d), "order_amount": 30}
                for i, d in enumerate((0, 10, 20))
            ]
        )["C1"]

        assessment = _score_one(facts, _day(45))

        assert facts.total_orders == 3
        assert assessment.avg_days_between_orders == 10
        assert assessment.days_since_last_order == 25
        assert assessment.retention_status is RetentionStatus.ACTIVE
        assert assessment.is_frequency_drop is True
        assert assessment.is_value_drop is False
        assert assessment.is_status_inconsistent is True
        assert assessment.churn_risk_score == 70
        assert assessment.churn_risk_level is ChurnRiskLevel.HIGH

    @pytest.mark.parametrize("recency", [0, 1, 15, 29])
    def test_single_order_customer_is_low_risk(self, recency):
        """One order: no gap to compare against, only low engagement fires."""
        facts = CustomerFacts("C2", DAY_0, DAY_0, 1, 25.0)

        assessment = _score_one(facts, _day(recency))

        assert assessment.retention_status is RetentionStatus.ACTIVE
        assert assessment.avg_days_between_orders is None
        assert assessment.is_frequency_drop is False
        assert assessment.is_status_inconsistent is True
        assert assessment.churn_risk_score == 20
        assert assessment.churn_risk_level is ChurnRiskLevel.LOW

    def test_single_order_customer_never_frequency_drop(self):
        facts = CustomerFacts("C2", DAY_0, DAY_0, 1, 25.0)
        assessment = _score_one(facts, _day(400))
        assert assessment.retention_status is RetentionStatus.INACTIVE
        assert assessment.is_frequency_drop is False
        assert assessment.churn_risk_score == 0

    def test_clock_skew_is_data_quality_issue(self):
        facts = CustomerFacts("C3", _day(-300), _day(10), 40, 4000.0)

        assessment = _score_one(facts, _day(0))

        assert assessment.days_since_last_order == -10
        assert assessment.retention_status is RetentionStatus.DATA_QUALITY_ISSUE
        assert assessment.is_frequency_drop is False
        assert assessment.is_status_inconsistent is False


class TestSignals:
    """Individual signal rules."""

    def test_average_gap(self):
        facts = CustomerFacts("C1", _day(0), _day(30), 4, 100.0)
        assert average_days_between_orders(facts) == 10.0
        assert average_days_between_orders(CustomerFacts("C1", DAY_0, DAY_0, 1, 1.0)) is None

    def test_frequency_drop_is_strictly_greater(self):
        """Exactly 1.5x the usual gap is not yet a drop."""
        facts = CustomerFacts("C1", _day(0), _day(20), 3, 90.0)
        at_limit = _score_one(facts, _day(35))
        past_limit = _score_one(facts, _day(36))
        assert at_limit.days_since_last_order == 15
        assert at_limit.is_frequency_drop is False
        assert past_limit.is_frequency_drop is True

    def test_pattern_break_for_engaged_active_customer(self):
        """Many orders, still ACTIVE, but past 70% of the usual gap."""
        facts = CustomerFacts("C1", _day(0), _day(200), 11, 1100.0)  # gap of 20 days
        on_rhythm = _score_one(facts, _day(213))
        drifting = _score_one(facts, _day(215))

        assert on_rhythm.is_status_inconsistent is False
        assert on_rhythm.churn_risk_score == 0
        assert drifting.days_since_last_order == 15
        assert drifting.is_status_inconsistent is True
        assert drifting.churn_risk_score == 20

    def test_inconsistency_requires_active_status(self):
        facts = CustomerFacts("C1", _day(0), _day(0), 1, 10.0)
        assessment = _score_one(facts, _day(60))
        assert assessment.retention_status is RetentionStatus.AT_RISK
        assert assessment.is_status_inconsistent is False

    def test_value_drop_disabled_by_default(self):
        facts = CustomerFacts("C1", _day(0), _day(20), 3, 300.0, last_order_amount=10.0)
        assessment = _score_one(facts, _day(25))
        assert assessment.value_drop_evaluated is False
        assert assessment.is_value_drop is False

    def test_value_drop_when_enabled(self):
        config = ChurnSignalConfig(evaluate_value_drop=True)
        facts = CustomerFacts("C1", _day(0), _day(20), 3, 300.0, last_order_amount=10.0)

        assessment = _score_one(facts, _day(36), config)

        assert assessment.value_drop_evaluated is True
        assert assessment.is_value_drop is True
        # 16 > 1.5 * 10 -> frequency drop, ACTIVE with 3 orders -> inconsistent
        assert assessment.churn_risk_score == 100
        assert assessment.churn_risk_level is ChurnRiskLevel.HIGH

    def test_value_drop_not_evaluated_without_last_amount(self):
        config = ChurnSignalConfig(evaluate_value_drop=True)
        facts = CustomerFacts("C1", _day(0), _day(20), 3, 300.0)
        assessment = _score_one(facts, _day(25), config)
        assert assessment.value_drop_evaluated is False
        assert assessment.is_value_drop is False

    def test_unevaluated_value_drop_cannot_be_true(self):
        with pytest.raises(ValueError, match="not evaluated"):
            ChurnSignals(True, True, False, value_drop_evaluated=False)

    def test_custom_multiplier(self):
        config = ChurnSignalConfig(frequency_drop_multiplier=3.0)
        facts = CustomerFacts("C1", _day(0), _day(20), 3, 90.0)
        snapshot = classify_retention({"C1": facts}, _day(45))["C1"]
        signals = detect_signals(facts, snapshot, config)
        assert signals.is_frequency_drop is False


class TestScoring:
    """Score arithmetic and level bands."""

    @pytest.mark.parametrize(
        "frequency,value,inconsistent,expected",
        [
            (False, False, False, 0),
            (True, False, False, 50),
            (False, True, False, 30),
            (False, False, True, 20),
            (True, True, False, 80),
            (True, False, True, 70),
            (False, True, True, 50),
            (True, True, True, 100),
        ],
    )
    def test_score_is_sum_of_true_weights(self, frequency, value, inconsistent, expected):
        signals = ChurnSignals(frequency, value, inconsistent, value_drop_evaluated=True)
        score = risk_score(signals)
        assert score == expected
        assert 0 <= score <= 100

    @pytest.mark.parametrize(
        "score,level",
        [
            (0, ChurnRiskLevel.LOW),
            (20, ChurnRiskLevel.LOW),
            (21, ChurnRiskLevel.MEDIUM),
            (50, ChurnRiskLevel.MEDIUM),
            (51, ChurnRiskLevel.HIGH),
            (100, ChurnRiskLevel.HIGH),
        ],
    )
    def test_level_bands(self, score, level):
        assert risk_level(score) is level

    def test_score_out_of_range_rejected(self):
        with pytest.raises(ValueError, match="between 0 and 100"):
            ChurnAssessment(
                customer_id="C1",
                reference_date=DAY_0,
                retention_status=RetentionStatus.ACTIVE,
                days_since_last_order=1,
                total_orders=1,
                total_revenue=1.0,
                avg_order_value=1.0,
                customer_lifetime_days=0,
                avg_days_between_orders=None,
                orders_per_month_active=1.0,
                signals=ChurnSignals(False, False, False),
                churn_risk_score=120,
                churn_risk_level=ChurnRiskLevel.HIGH,
            )


class TestScoreChurnRisk:
    """Batch scoring over a fact table."""

    def test_descriptive_fields(self):
        facts = CustomerFacts("C1", date(2024, 1, 15), date(2024, 4, 2), 4, 200.0)
        assessment = _score_one(facts, date(2024, 4, 10))

        assert assessment.customer_lifetime_days == 78
        assert assessment.avg_days_between_orders == 26.0
        assert assessment.orders_per_month_active == pytest.approx(4 / 3)
        assert assessment.avg_order_value == 50.0
        assert assessment.as_dict()["churn_risk_level"] == assessment.churn_risk_level.value

    def test_same_month_customer_orders_per_month(self):
        facts = CustomerFacts("C1", date(2024, 1, 2), date(2024, 1, 30), 3, 30.0)
        assessment = _score_one(facts, date(2024, 2, 1))
        assert assessment.orders_per_month_active == 3.0

    def test_customers_without_snapshot_are_skipped(self):
        facts = {
            "C1": CustomerFacts("C1", DAY_0, DAY_0, 1, 1.0),
            "C2": CustomerFacts("C2", DAY_0, DAY_0, 1, 1.0),
        }
        snapshots = classify_retention({"C1": facts["C1"]}, _day(5))
        assessments = score_churn_risk(facts, snapshots)
        assert list(assessments) == ["C1"]

    def test_mixed_reference_dates_rejected(self):
        facts = {
            "C1": CustomerFacts("C1", DAY_0, DAY_0, 1, 1.0),
            "C2": CustomerFacts("C2", DAY_0, DAY_0, 1, 1.0),
        }
        snapshots = {
            **classify_retention({"C1": facts["C1"]}, _day(5)),
            **classify_retention({"C2": facts["C2"]}, _day(6)),
        }
        with pytest.raises(ValueError, match="single reference_date"):
            score_churn_risk(facts, snapshots)

    def test_mismatched_snapshot_rejected(self):
        facts = CustomerFacts("C1", DAY_0, DAY_0, 1, 1.0)
        other = CustomerFacts("C2", DAY_0, DAY_0, 1, 1.0)
        snapshot = classify_retention({"C2": other}, _day(5))["C2"]
        with pytest.raises(ValueError, match="cannot be scored"):
            assess_customer(facts, snapshot)

    def test_idempotent(self):
        facts = {
            "C1": CustomerFacts("C1", _day(0), _day(20), 3, 90.0),
            "C2": CustomerFacts("C2", _day(5), _day(5), 1, 10.0),
        }
        snapshots = classify_retention(facts, _day(45))
        first = [a.as_dict() for a in score_churn_risk(facts, snapshots).values()]
        second = [a.as_dict() for a in score_churn_risk(facts, snapshots).values()]
        assert first == second
