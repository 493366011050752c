"""Rolling-baseline anomaly detection on the share of AT_RISK customers.

The alert answers one business question: *is the percentage of AT_RISK
customers increasing abnormally?* Today's share is compared with the average
share over the preceding days, and the relative increase is graded:

- ``delta_relative_pct >= critical_pct`` (default 25): CRITICAL
- ``delta_relative_pct >= warning_pct`` (default 15): WARNING
- otherwise: INFO

Only increases are graded; a falling AT_RISK share is good news. An alert is
only flagged as actionable when the baseline is defined (no warm-up), enough
customers were evaluated, and the severity is above INFO.

Typical workflow:
1. Classify customers for the day and summarise the status distribution
2. Append the distribution to the daily history
3. Evaluate the alert for the day
4. Hand decisions with ``alert_flag=True`` to the notification layer

Each decision is computed from explicit inputs and never changes afterwards;
the append-only sequence of daily distributions is what the next day's
baseline reads from.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Iterable, Mapping, Sequence

import numpy as np

from retention_audit.analyses.retention_status import (
    RetentionStatus,
    StatusDistribution,
)
from retention_audit.config import AlertConfig

logger = logging.getLogger(__name__)

ALERT_TYPE = "retention_status_degradation"
METRIC_NAME = "at_risk_pct"
TRACKED_STATUS = RetentionStatus.AT_RISK


class AlertSeverity(str, Enum):
    """Severity grades of an alert decision."""

    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class SuppressionReason(str, Enum):
    """Why a decision was not flagged as actionable."""

    WARM_UP = "warm_up"
    MISSING_HISTORY = "missing_history"
    ZERO_BASELINE = "zero_baseline"
    NO_CUSTOMERS = "no_customers"
    INSUFFICIENT_SAMPLE = "insufficient_sample"
    AWAITING_CONSECUTIVE_DAYS = "awaiting_consecutive_days"


@dataclass(frozen=True)
class AlertDecision:
    """Alert evaluation for one reference date.

    Attributes
    ----------
    alert_date:
        Reference date the decision was evaluated for.
    current_value:
        AT_RISK percentage on ``alert_date``. None when no customers exist.
    baseline_value:
        Mean AT_RISK percentage over the baseline window. None during the
        warm-up period or when a day of the window is missing.
    delta_pct:
        ``current_value - baseline_value`` in percentage points, rounded to 2
        decimals.
    delta_relative_pct:
        ``(current_value / baseline_value - 1) * 100`` rounded to 2 decimals.
        None when the baseline is undefined or zero.
    severity:
        INFO, WARNING or CRITICAL.
    alert_flag:
        Whether the decision should trigger an action downstream.
    sample_size:
        Number of customers evaluated on ``alert_date``.
    threshold_warning, threshold_critical:
        Thresholds the decision was graded against.
    suppression_reason:
        Why ``alert_flag`` is False despite a defined comparison, if any.
    """

    alert_date: date
    current_value: float | None
    baseline_value: float | None
    delta_pct: float | None
    delta_relative_pct: float | None
    severity: AlertSeverity
    alert_flag: bool
    sample_size: int
    threshold_warning: float
    threshold_critical: float
    suppression_reason: SuppressionReason | None = None
    alert_type: str = ALERT_TYPE
    metric_name: str = METRIC_NAME
    scope: str = "global"

    def as_dict(self) -> dict[str, object]:
        return {
            "alert_date": self.alert_date.isoformat(),
            "alert_type": self.alert_type,
            "metric_name": self.metric_name,
            "scope": self.scope,
            "current_value": self.current_value,
            "baseline_value": self.baseline_value,
            "delta_pct": self.delta_pct,
            "delta_relative_pct": self.delta_relative_pct,
            "threshold_warning": self.threshold_warning,
            "threshold_critical": self.threshold_critical,
            "severity": self.severity.value,
            "alert_flag": self.alert_flag,
            "sample_size": self.sample_size,
            "suppression_reason": (
                self.suppression_reason.value if self.suppression_reason else None
            ),
        }


def _index_history(
    history: Iterable[StatusDistribution],
) -> dict[date, StatusDistribution]:
    indexed: dict[date, StatusDistribution] = {}
    for distribution in history:
        if distribution.snapshot_date in indexed:
            raise ValueError(
                "History contains several distributions for "
                f"{distribution.snapshot_date.isoformat()}"
            )
        indexed[distribution.snapshot_date] = distribution
    return indexed


def compute_baseline(
    history: Mapping[date, StatusDistribution],
    reference_date: date,
    window_days: int,
    status: RetentionStatus = TRACKED_STATUS,
) -> float | None:
    """Mean share of ``status`` over the ``window_days`` days before ``reference_date``.

    Returns None unless every day of the window is present in ``history``
    with at least one customer.
    """

    values: list[float] = []
    for offset in range(1, window_days + 1):
        distribution = history.get(reference_date - timedelta(days=offset))
        if distribution is None:
            return None
        pct = distribution.status_pct(status)
        if pct is None:
            return None
        values.append(pct)
    return float(np.mean(values))


def classify_severity(
    delta_relative_pct: float | None, config: AlertConfig = AlertConfig()
) -> AlertSeverity:
    """Grade a relative change. Undefined or negative changes are INFO."""

    if delta_relative_pct is None:
        return AlertSeverity.INFO
    if delta_relative_pct >= config.critical_pct:
        return AlertSeverity.CRITICAL
    if delta_relative_pct >= config.warning_pct:
        return AlertSeverity.WARNING
    return AlertSeverity.INFO


def _previous_days_elevated(
    previous_decisions: Sequence[AlertDecision],
    reference_date: date,
    days: int,
) -> bool:
    by_date = {decision.alert_date: decision for decision in previous_decisions}
    for offset in range(1, days + 1):
        decision = by_date.get(reference_date - timedelta(days=offset))
        if decision is None or decision.severity is AlertSeverity.INFO:
            return False
    return True


def evaluate_alert(
    history: Iterable[StatusDistribution],
    reference_date: date,
    config: AlertConfig = AlertConfig(),
    previous_decisions: Sequence[AlertDecision] = (),
) -> AlertDecision:
    """Evaluate the AT_RISK share alert for ``reference_date``.

    Parameters
    ----------
    history:
        Daily status distributions, at most one per date. Must include
        ``reference_date``. Days after ``reference_date`` are ignored.
    reference_date:
        Day to evaluate. Required.
    config:
        Thresholds, baseline window and noise-suppression settings.
    previous_decisions:
        Earlier decisions, only consulted when
        ``config.consecutive_days_required > 1``.

    Returns
    -------
    AlertDecision
        The decision for ``reference_date``.

    Raises
    ------
    ValueError
        If ``reference_date`` is missing, has no distribution in ``history``,
        or ``history`` holds duplicate dates.

    Examples
    --------
    >>> from datetime import date, timedelta
    >>> start = date(2024, 3, 1)
    >>> history = [
    ...     StatusDistribution.from_counts(
    ...         start + timedelta(days=i),
    ...         {"AT_RISK": 100 if i < 8 else 130, "ACTIVE": 400 if i < 8 else 370},
    ...     )
    ...     for i in range(9)
    ... ]
    >>> decision = evaluate_alert(history, start + timedelta(days=8))
    >>> decision.baseline_value, decision.current_value, decision.delta_relative_pct
    (20.0, 26.0, 30.0)
    >>> decision.severity.value, decision.alert_flag
    ('CRITICAL', True)
    """

    if reference_date is None:
        raise ValueError("reference_date is required for alert evaluation")
    if isinstance(reference_date, datetime):
        reference_date = reference_date.date()

    indexed = _index_history(history)
    today = indexed.get(reference_date)
    if today is None:
        raise ValueError(
            f"No status distribution for reference date {reference_date.isoformat()}"
        )

    current_value = today.status_pct(TRACKED_STATUS)
    sample_size = today.total_customers
    baseline_value = compute_baseline(
        indexed, reference_date, config.baseline_window_days
    )

    delta_pct: float | None = None
    delta_relative_pct: float | None = None
    if current_value is not None and baseline_value is not None:
        delta_pct = round(current_value - baseline_value, 2)
        if baseline_value != 0:
            delta_relative_pct = round((current_value / baseline_value - 1) * 100, 2)

    severity = classify_severity(delta_relative_pct, config)

    reason: SuppressionReason | None = None
    if baseline_value is None:
        # Warm-up only while the history is shorter than the window
        window_start = reference_date - timedelta(days=config.baseline_window_days)
        if min(indexed) > window_start:
            reason = SuppressionReason.WARM_UP
        else:
            reason = SuppressionReason.MISSING_HISTORY
    elif current_value is None:
        reason = SuppressionReason.NO_CUSTOMERS
    elif baseline_value == 0:
        reason = SuppressionReason.ZERO_BASELINE
    elif severity is not AlertSeverity.INFO:
        if sample_size < config.min_sample_size:
            reason = SuppressionReason.INSUFFICIENT_SAMPLE
        elif config.consecutive_days_required > 1 and not _previous_days_elevated(
            previous_decisions, reference_date, config.consecutive_days_required - 1
        ):
            reason = SuppressionReason.AWAITING_CONSECUTIVE_DAYS

    alert_flag = (
        sample_size >= config.min_sample_size
        and baseline_value is not None
        and severity is not AlertSeverity.INFO
        and reason is None
    )

    if alert_flag:
        logger.warning(
            f"{severity.value} alert on {reference_date.isoformat()}: {METRIC_NAME} "
            f"{current_value:.2f}% vs baseline {baseline_value:.2f}% "
            f"({delta_relative_pct:+.2f}%)"
        )
    elif severity is not AlertSeverity.INFO:
        logger.info(
            f"{severity.value} deviation on {reference_date.isoformat()} suppressed "
            f"({reason.value if reason else 'unknown'})"
        )

    return AlertDecision(
        alert_date=reference_date,
        current_value=current_value,
        baseline_value=baseline_value,
        delta_pct=delta_pct,
        delta_relative_pct=delta_relative_pct,
        severity=severity,
        alert_flag=alert_flag,
        sample_size=sample_size,
        threshold_warning=float(config.warning_pct),
        threshold_critical=float(config.critical_pct),
        suppression_reason=reason,
    )


class AlertMonitor:
    """Evaluate alerts day after day over a bounded sliding history.

    The monitor keeps the last ``baseline_window_days + 1`` distributions and
    an append-only log of decisions. Days must be recorded in strictly
    increasing date order.

    Examples
    --------
    >>> monitor = AlertMonitor(AlertConfig(baseline_window_days=3))
    >>> decision = monitor.record(
    ...     StatusDistribution.from_counts(date(2024, 1, 1), {"AT_RISK": 20, "ACTIVE": 80})
    ... )
    >>> decision.baseline_value is None
    True
    """

    def __init__(self, config: AlertConfig = AlertConfig()) -> None:
        self.config = config
        self._window: deque[StatusDistribution] = deque(
            maxlen=config.baseline_window_days + 1
        )
        self._decisions: list[AlertDecision] = []

    @property
    def decisions(self) -> tuple[AlertDecision, ...]:
        return tuple(self._decisions)

    @property
    def last_date(self) -> date | None:
        return self._window[-1].snapshot_date if self._window else None

    def record(self, distribution: StatusDistribution) -> AlertDecision:
        """Append ``distribution`` to the history and evaluate its day."""

        last = self.last_date
        if last is not None and distribution.snapshot_date <= last:
            raise ValueError(
                f"Distributions must be recorded in date order: "
                f"{distribution.snapshot_date.isoformat()} is not after "
                f"{last.isoformat()}"
            )

        self._window.append(distribution)
        lookback = self.config.consecutive_days_required - 1
        previous = self._decisions[-lookback:] if lookback else []
        decision = evaluate_alert(
            self._window,
            distribution.snapshot_date,
            self.config,
            previous_decisions=previous,
        )
        self._decisions.append(decision)
        return decision

    def replay(self, history: Iterable[StatusDistribution]) -> list[AlertDecision]:
        """Record every distribution of ``history`` in date order."""

        return [
            self.record(distribution)
            for distribution in sorted(history, key=lambda d: d.snapshot_date)
        ]
