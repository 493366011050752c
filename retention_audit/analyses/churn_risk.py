"""Explainable churn risk scoring from per-customer behavioural signals.

Each customer is compared to their *own* purchase rhythm, never to a
population average. Three boolean signals contribute fixed points:

- **Frequency drop** (default 50): days since last order exceed 1.5x the
  customer's average gap between orders.
- **Value drop** (default 30): last order amount below 0.6x the customer's
  average order value. Disabled by default; when it is not evaluated the
  assessment says so through ``value_drop_evaluated``.
- **Status inconsistency** (default 20): the customer is ACTIVE but either has
  few orders (<= 3) or is already 70% of the way through their usual gap.

The score is the plain sum of the weights of the true signals, so every point
can be traced back to a signal. Customers with a single order have no gap to
compare against; they never trigger the frequency signal or the gap-based
part of the inconsistency signal.

Quick Start
-----------
>>> from datetime import date
>>> from retention_audit.foundation.customer_facts import CustomerFacts
>>> from retention_audit.analyses.retention_status import classify_retention
>>> from retention_audit.analyses.churn_risk import score_churn_risk
>>> facts = {
...     "C1": CustomerFacts("C1", date(2024, 1, 1), date(2024, 1, 21), 3, 90.0),
... }
>>> snapshots = classify_retention(facts, date(2024, 2, 15))
>>> assessment = score_churn_risk(facts, snapshots)["C1"]
>>> assessment.churn_risk_score, assessment.churn_risk_level.value
(70, 'HIGH')
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Mapping

from retention_audit.analyses.retention_status import (
    RetentionSnapshot,
    RetentionStatus,
)
from retention_audit.config import ChurnSignalConfig
from retention_audit.foundation.customer_facts import CustomerFacts
from retention_audit.foundation.periods import days_between, month_diff

logger = logging.getLogger(__name__)


class ChurnRiskLevel(str, Enum):
    """Risk bands derived from the churn risk score."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass(frozen=True)
class ChurnSignals:
    """Boolean signal values for one customer.

    ``value_drop_evaluated`` distinguishes "evaluated and false" from "not
    computable": when it is False, ``is_value_drop`` is always False.
    """

    is_frequency_drop: bool
    is_value_drop: bool
    is_status_inconsistent: bool
    value_drop_evaluated: bool = False

    def __post_init__(self) -> None:
        if self.is_value_drop and not self.value_drop_evaluated:
            raise ValueError("is_value_drop cannot be True when it was not evaluated")


@dataclass(frozen=True)
class ChurnAssessment:
    """Churn risk assessment of one customer.

    Attributes
    ----------
    customer_id:
        Unique customer identifier.
    reference_date:
        Reference date of the retention snapshot the assessment is based on.
    retention_status:
        Status from the retention snapshot.
    days_since_last_order:
        Signed recency from the retention snapshot.
    total_orders, total_revenue, avg_order_value:
        Lifetime facts, carried for CRM exports.
    customer_lifetime_days:
        Days between the first and the last order.
    avg_days_between_orders:
        Average gap between consecutive orders. None for single-order
        customers.
    orders_per_month_active:
        Orders per calendar month between first and last order (total orders
        for customers whose orders all fall in one month).
    signals:
        Signal values that produced the score.
    churn_risk_score:
        Sum of the weights of the true signals, 0-100.
    churn_risk_level:
        LOW, MEDIUM or HIGH band of the score.
    """

    customer_id: str
    reference_date: date
    retention_status: RetentionStatus
    days_since_last_order: int
    total_orders: int
    total_revenue: float
    avg_order_value: float
    customer_lifetime_days: int
    avg_days_between_orders: float | None
    orders_per_month_active: float
    signals: ChurnSignals
    churn_risk_score: int
    churn_risk_level: ChurnRiskLevel

    def __post_init__(self) -> None:
        if not 0 <= self.churn_risk_score <= 100:
            raise ValueError(
                f"churn_risk_score must be between 0 and 100, got "
                f"{self.churn_risk_score} (customer_id={self.customer_id})"
            )

    @property
    def is_frequency_drop(self) -> bool:
        return self.signals.is_frequency_drop

    @property
    def is_value_drop(self) -> bool:
        return self.signals.is_value_drop

    @property
    def value_drop_evaluated(self) -> bool:
        return self.signals.value_drop_evaluated

    @property
    def is_status_inconsistent(self) -> bool:
        return self.signals.is_status_inconsistent

    def as_dict(self) -> dict[str, object]:
        return {
            "customer_id": self.customer_id,
            "reference_date": self.reference_date.isoformat(),
            "retention_status": self.retention_status.value,
            "days_since_last_order": self.days_since_last_order,
            "total_orders": self.total_orders,
            "total_revenue": self.total_revenue,
            "avg_order_value": self.avg_order_value,
            "customer_lifetime_days": self.customer_lifetime_days,
            "avg_days_between_orders": self.avg_days_between_orders,
            "orders_per_month_active": self.orders_per_month_active,
            "is_frequency_drop": self.is_frequency_drop,
            "is_value_drop": self.is_value_drop,
            "value_drop_evaluated": self.value_drop_evaluated,
            "is_status_inconsistent": self.is_status_inconsistent,
            "churn_risk_score": self.churn_risk_score,
            "churn_risk_level": self.churn_risk_level.value,
        }


def average_days_between_orders(facts: CustomerFacts) -> float | None:
    """Average inter-order gap in days, or None with fewer than two orders."""

    if facts.total_orders <= 1:
        return None
    lifetime_days = days_between(facts.first_order_date, facts.last_order_date)
    return lifetime_days / (facts.total_orders - 1)


def detect_signals(
    facts: CustomerFacts,
    snapshot: RetentionSnapshot,
    config: ChurnSignalConfig = ChurnSignalConfig(),
) -> ChurnSignals:
    """Evaluate the three churn signals for one customer."""

    avg_gap = average_days_between_orders(facts)
    days = snapshot.days_since_last_order

    is_frequency_drop = (
        avg_gap is not None and days > avg_gap * config.frequency_drop_multiplier
    )

    value_drop_evaluated = (
        config.evaluate_value_drop and facts.last_order_amount is not None
    )
    is_value_drop = value_drop_evaluated and (
        facts.last_order_amount < facts.avg_order_value * config.value_drop_ratio
    )

    is_status_inconsistent = snapshot.retention_status is RetentionStatus.ACTIVE and (
        facts.total_orders <= config.low_engagement_max_orders
        or (avg_gap is not None and days > avg_gap * config.pattern_break_multiplier)
    )

    return ChurnSignals(
        is_frequency_drop=bool(is_frequency_drop),
        is_value_drop=bool(is_value_drop),
        is_status_inconsistent=bool(is_status_inconsistent),
        value_drop_evaluated=bool(value_drop_evaluated),
    )


def risk_score(
    signals: ChurnSignals, config: ChurnSignalConfig = ChurnSignalConfig()
) -> int:
    """Sum of the weights of the true signals."""

    score = 0
    if signals.is_frequency_drop:
        score += config.frequency_drop_weight
    if signals.is_value_drop:
        score += config.value_drop_weight
    if signals.is_status_inconsistent:
        score += config.status_inconsistent_weight
    return score


def risk_level(
    score: int, config: ChurnSignalConfig = ChurnSignalConfig()
) -> ChurnRiskLevel:
    """Band a score into LOW / MEDIUM / HIGH."""

    if score >= config.high_risk_min_score:
        return ChurnRiskLevel.HIGH
    if score >= config.medium_risk_min_score:
        return ChurnRiskLevel.MEDIUM
    return ChurnRiskLevel.LOW


def assess_customer(
    facts: CustomerFacts,
    snapshot: RetentionSnapshot,
    config: ChurnSignalConfig = ChurnSignalConfig(),
) -> ChurnAssessment:
    """Build the :class:`ChurnAssessment` of a single customer."""

    if facts.customer_id != snapshot.customer_id:
        raise ValueError(
            f"Facts for {facts.customer_id} cannot be scored against the "
            f"snapshot of {snapshot.customer_id}"
        )

    signals = detect_signals(facts, snapshot, config)
    score = risk_score(signals, config)
    months_active = month_diff(facts.first_order_date, facts.last_order_date)
    orders_per_month = (
        facts.total_orders / months_active
        if months_active > 0
        else float(facts.total_orders)
    )

    return ChurnAssessment(
        customer_id=facts.customer_id,
        reference_date=snapshot.reference_date,
        retention_status=snapshot.retention_status,
        days_since_last_order=snapshot.days_since_last_order,
        total_orders=facts.total_orders,
        total_revenue=facts.total_revenue,
        avg_order_value=facts.avg_order_value,
        customer_lifetime_days=days_between(
            facts.first_order_date, facts.last_order_date
        ),
        avg_days_between_orders=average_days_between_orders(facts),
        orders_per_month_active=orders_per_month,
        signals=signals,
        churn_risk_score=score,
        churn_risk_level=risk_level(score, config),
    )


def score_churn_risk(
    facts: Mapping[str, CustomerFacts],
    snapshots: Mapping[str, RetentionSnapshot],
    config: ChurnSignalConfig = ChurnSignalConfig(),
) -> dict[str, ChurnAssessment]:
    """Score every customer present in both ``facts`` and ``snapshots``.

    Parameters
    ----------
    facts:
        Customer fact table keyed by customer id.
    snapshots:
        Retention snapshots for one reference date, keyed by customer id.
    config:
        Signal multipliers, weights and level cut-offs.

    Returns
    -------
    dict[str, ChurnAssessment]
        Assessments keyed by customer id, in customer id order.

    Raises
    ------
    ValueError
        If the snapshots span several reference dates.
    """

    reference_dates = {snapshot.reference_date for snapshot in snapshots.values()}
    if len(reference_dates) > 1:
        raise ValueError(
            "Snapshots must share a single reference_date, got "
            f"{sorted(d.isoformat() for d in reference_dates)}"
        )

    assessments: dict[str, ChurnAssessment] = {}
    for customer_id in sorted(facts):
        snapshot = snapshots.get(customer_id)
        if snapshot is None:
            logger.debug(f"No retention snapshot for customer {customer_id}; skipped")
            continue
        assessments[customer_id] = assess_customer(facts[customer_id], snapshot, config)

    orphaned = len(set(snapshots) - set(facts))
    if orphaned:
        logger.debug(f"{orphaned} snapshots have no matching customer facts; skipped")

    levels = [assessment.churn_risk_level for assessment in assessments.values()]
    logger.info(
        f"Scored churn risk for {len(assessments)} customers: "
        f"{levels.count(ChurnRiskLevel.HIGH)} HIGH, "
        f"{levels.count(ChurnRiskLevel.MEDIUM)} MEDIUM, "
        f"{levels.count(ChurnRiskLevel.LOW)} LOW"
    )
    return assessments
