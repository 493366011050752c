"""Tests for the AT_RISK share anomaly alert."""

from datetime import date, datetime, timedelta

import pytest

from retention_audit.analyses.retention_status import StatusDistribution
from retention_audit.config import AlertConfig
from retention_audit.monitoring.alerts import (
    AlertMonitor,
    AlertSeverity,
    SuppressionReason,
    classify_severity,
    compute_baseline,
    evaluate_alert,
)
from retention_audit.synthetic import generate_distribution_history

START = date(2024, 3, 1)


def _history(at_risk_pcts, total=500, start=START):
    """One distribution per day with the given AT_RISK percentages."""
    history = []
    for offset, pct in enumerate(at_risk_pcts):
        at_risk = round(total * pct / 100)
        history.append(
            StatusDistribution.from_counts(
                start + timedelta(days=offset),
                {"AT_RISK": at_risk, "ACTIVE": total - at_risk},
            )
        )
    return history


class TestExampleScenarios:
    """Steady 20% for 8 days, then 26% on day 9."""

    def test_critical_alert_is_flagged(self):
        history = _history([20.0] * 8 + [26.0], total=500)

        decision = evaluate_alert(history, START + timedelta(days=8))

        assert decision.baseline_value == 20.0
        assert decision.current_value == 26.0
        assert decision.delta_pct == pytest.approx(6.0)
        assert decision.delta_relative_pct == 30.0
        assert decision.severity is AlertSeverity.CRITICAL
        assert decision.alert_flag is True
        assert decision.sample_size == 500
        assert decision.suppression_reason is None

    def test_small_sample_is_suppressed(self):
        history = _history([20.0] * 8 + [26.0], total=50)

        decision = evaluate_alert(history, START + timedelta(days=8))

        assert decision.severity is AlertSeverity.CRITICAL
        assert decision.alert_flag is False
        assert decision.sample_size == 50
        assert decision.suppression_reason is SuppressionReason.INSUFFICIENT_SAMPLE


class TestWarmUp:
    """No alert can fire before the baseline window is complete."""

    def test_baseline_undefined_during_warm_up(self):
        config = AlertConfig(baseline_window_days=7)
        # Wildly varying values: still nothing may be flagged
        history = _history([5.0, 40.0, 10.0, 60.0, 15.0, 70.0, 20.0, 20.0])

        decisions = AlertMonitor(config).replay(history)

        for decision in decisions[:7]:
            assert decision.baseline_value is None
            assert decision.delta_relative_pct is None
            assert decision.alert_flag is False
            assert decision.severity is AlertSeverity.INFO
            assert decision.suppression_reason is SuppressionReason.WARM_UP
        assert decisions[7].baseline_value is not None

    def test_gap_in_window_keeps_baseline_undefined(self):
        history = _history([20.0] * 9)
        del history[4]

        decision = evaluate_alert(history, START + timedelta(days=8))

        assert decision.baseline_value is None
        assert decision.alert_flag is False
        assert decision.suppression_reason is SuppressionReason.MISSING_HISTORY

    def test_gap_after_warm_up_is_not_warm_up(self):
        history = _history([20.0] * 12)
        del history[9]

        decisions = AlertMonitor().replay(history)

        reasons = [d.suppression_reason for d in decisions]
        assert reasons[:7] == [SuppressionReason.WARM_UP] * 7
        # Days 11 and 12 both have day 10 missing from their window
        assert reasons[-2:] == [SuppressionReason.MISSING_HISTORY] * 2

    def test_days_after_reference_are_ignored(self):
        history = _history([20.0] * 8 + [26.0] + [90.0] * 3)
        decision = evaluate_alert(history, START + timedelta(days=8))
        assert decision.baseline_value == 20.0
        assert decision.current_value == 26.0


class TestSeverity:
    """Grading of relative changes."""

    @pytest.mark.parametrize(
        "delta,expected",
        [
            (None, AlertSeverity.INFO),
            (-40.0, AlertSeverity.INFO),
            (0.0, AlertSeverity.INFO),
            (14.99, AlertSeverity.INFO),
            (15.0, AlertSeverity.WARNING),
            (24.99, AlertSeverity.WARNING),
            (25.0, AlertSeverity.CRITICAL),
            (300.0, AlertSeverity.CRITICAL),
        ],
    )
    def test_default_thresholds(self, delta, expected):
        assert classify_severity(delta) is expected

    def test_warning_alert(self):
        history = _history([20.0] * 7 + [24.0])
        decision = evaluate_alert(history, START + timedelta(days=7))
        assert decision.delta_relative_pct == 20.0
        assert decision.severity is AlertSeverity.WARNING
        assert decision.alert_flag is True

    def test_delta_pct_is_rounded(self):
        history = _history([20.2] * 7 + [20.6])
        decision = evaluate_alert(history, START + timedelta(days=7))
        assert decision.delta_pct == 0.4

    def test_decrease_never_alerts(self):
        history = _history([20.0] * 7 + [10.0])
        decision = evaluate_alert(history, START + timedelta(days=7))
        assert decision.delta_relative_pct == -50.0
        assert decision.severity is AlertSeverity.INFO
        assert decision.alert_flag is False
        assert decision.suppression_reason is None

    def test_custom_thresholds_are_reported(self):
        config = AlertConfig(warning_pct=5.0, critical_pct=10.0)
        history = _history([20.0] * 7 + [21.2])
        decision = evaluate_alert(history, START + timedelta(days=7), config)
        assert decision.severity is AlertSeverity.WARNING
        assert decision.threshold_warning == 5.0
        assert decision.threshold_critical == 10.0


class TestDivisionGuards:
    """Zero baselines and empty days resolve to explicit undefined values."""

    def test_zero_baseline(self):
        history = _history([0.0] * 7 + [10.0])

        decision = evaluate_alert(history, START + timedelta(days=7))

        assert decision.baseline_value == 0.0
        assert decision.delta_pct == 10.0
        assert decision.delta_relative_pct is None
        assert decision.severity is AlertSeverity.INFO
        assert decision.alert_flag is False
        assert decision.suppression_reason is SuppressionReason.ZERO_BASELINE

    def test_no_customers_today(self):
        history = _history([20.0] * 7)
        history.append(StatusDistribution.from_counts(START + timedelta(days=7), {}))

        decision = evaluate_alert(history, START + timedelta(days=7))

        assert decision.current_value is None
        assert decision.sample_size == 0
        assert decision.alert_flag is False
        assert decision.suppression_reason is SuppressionReason.NO_CUSTOMERS

    def test_empty_day_in_window_leaves_baseline_undefined(self):
        history = _history([20.0] * 8)
        history[3] = StatusDistribution.from_counts(history[3].snapshot_date, {})
        indexed = {d.snapshot_date: d for d in history}
        assert compute_baseline(indexed, START + timedelta(days=7), 7) is None


class TestInputErrors:
    """Fatal inputs fail fast."""

    def test_datetime_reference_date_is_truncated(self):
        history = _history([20.0] * 8 + [26.0])
        decision = evaluate_alert(history, datetime(2024, 3, 9, 6, 30))
        assert decision.alert_date == date(2024, 3, 9)
        assert decision.severity is AlertSeverity.CRITICAL

    def test_reference_date_required(self):
        with pytest.raises(ValueError, match="reference_date is required"):
            evaluate_alert(_history([20.0]), None)

    def test_reference_date_must_be_in_history(self):
        with pytest.raises(ValueError, match="No status distribution"):
            evaluate_alert(_history([20.0]), START + timedelta(days=3))

    def test_duplicate_dates_rejected(self):
        history = _history([20.0, 20.0])
        history.append(history[0])
        with pytest.raises(ValueError, match="several distributions"):
            evaluate_alert(history, START + timedelta(days=1))


class TestConsecutiveDays:
    """Optional rule requiring a sustained deviation."""

    def test_single_day_spike_is_held_back(self):
        config = AlertConfig(consecutive_days_required=2)
        history = _history([20.0] * 7 + [26.0])

        decisions = AlertMonitor(config).replay(history)

        assert decisions[-1].severity is AlertSeverity.CRITICAL
        assert decisions[-1].alert_flag is False
        assert (
            decisions[-1].suppression_reason
            is SuppressionReason.AWAITING_CONSECUTIVE_DAYS
        )

    def test_sustained_spike_is_flagged(self):
        config = AlertConfig(consecutive_days_required=2)
        history = _history([20.0] * 7 + [26.0, 27.0])

        decisions = AlertMonitor(config).replay(history)

        assert decisions[-2].alert_flag is False
        assert decisions[-1].severity is not AlertSeverity.INFO
        assert decisions[-1].alert_flag is True


class TestAlertMonitor:
    """Day-by-day evaluation over a sliding history."""

    def test_record_in_order(self):
        monitor = AlertMonitor(AlertConfig(baseline_window_days=3))
        history = _history([20.0, 20.0, 20.0, 30.0])

        decisions = [monitor.record(d) for d in history]

        assert monitor.decisions == tuple(decisions)
        assert monitor.last_date == START + timedelta(days=3)
        assert decisions[-1].delta_relative_pct == 50.0
        assert decisions[-1].alert_flag is True

    def test_out_of_order_rejected(self):
        monitor = AlertMonitor()
        history = _history([20.0, 20.0])
        monitor.record(history[1])
        with pytest.raises(ValueError, match="date order"):
            monitor.record(history[0])

    def test_replay_sorts_history(self):
        history = _history([20.0] * 7 + [26.0])
        decisions = AlertMonitor().replay(reversed(history))
        assert [d.alert_date for d in decisions] == [d.snapshot_date for d in history]
        assert decisions[-1].alert_flag is True

    def test_synthetic_history(self):
        history = generate_distribution_history(
            START, 14, total_customers=1000, at_risk_pct=20.0, spike_day=10, spike_at_risk_pct=30.0
        )
        decisions = AlertMonitor().replay(history)
        flagged = [d.alert_date for d in decisions if d.alert_flag]
        assert flagged[0] == START + timedelta(days=10)
        assert all(not d.alert_flag for d in decisions[:10])

    def test_decisions_are_reproducible(self):
        history = _history([20.0] * 7 + [26.0, 19.0, 25.0])
        first = [d.as_dict() for d in AlertMonitor().replay(history)]
        second = [d.as_dict() for d in AlertMonitor().replay(history)]
        assert first == second

    def test_as_dict_fields(self):
        decision = evaluate_alert(_history([20.0] * 8 + [26.0]), START + timedelta(days=8))
        payload = decision.as_dict()
        assert payload["alert_type"] == "retention_status_degradation"
        assert payload["metric_name"] == "at_risk_pct"
        assert payload["scope"] == "global"
        assert payload["severity"] == "CRITICAL"
        assert payload["alert_date"] == "2024-03-09"
        assert payload["suppression_reason"] is None
