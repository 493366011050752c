"""Retention status classification against an explicit reference date.

Each customer receives exactly one status per reference date, based on the
number of days since their last order:

=====================  ===========================================
days_since_last_order  status
=====================  ===========================================
``< 0``                DATA_QUALITY_ISSUE (order after reference date)
``<= active_days``     ACTIVE
``<= at_risk_days``    AT_RISK
otherwise              INACTIVE
=====================  ===========================================

The rules are evaluated in that order, so the four ranges are mutually
exclusive and exhaustive. The reference date is always passed in by the
caller; nothing here reads the system clock, which keeps a snapshot for a
given date reproducible.

Quick Start
-----------
>>> from retention_audit.analyses.retention_status import classify_status
>>> classify_status(25)
<RetentionStatus.ACTIVE: 'ACTIVE'>
>>> classify_status(-3)
<RetentionStatus.DATA_QUALITY_ISSUE: 'DATA_QUALITY_ISSUE'>
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Iterable, Mapping

from retention_audit.config import RetentionThresholds
from retention_audit.foundation.customer_facts import CustomerFacts
from retention_audit.foundation.periods import days_between

logger = logging.getLogger(__name__)


class RetentionStatus(str, Enum):
    """Closed set of retention statuses."""

    ACTIVE = "ACTIVE"
    AT_RISK = "AT_RISK"
    INACTIVE = "INACTIVE"
    DATA_QUALITY_ISSUE = "DATA_QUALITY_ISSUE"


@dataclass(frozen=True)
class RetentionSnapshot:
    """Retention state of one customer at one reference date.

    Attributes
    ----------
    customer_id:
        Unique customer identifier.
    reference_date:
        Date the recency was measured against.
    last_order_date:
        Date of the customer's most recent order.
    days_since_last_order:
        Signed day count. Negative values indicate an order dated after the
        reference date (clock skew or ingestion lag).
    retention_status:
        Status assigned from ``days_since_last_order``.
    """

    customer_id: str
    reference_date: date
    last_order_date: date
    days_since_last_order: int
    retention_status: RetentionStatus

    def as_dict(self) -> dict[str, object]:
        return {
            "customer_id": self.customer_id,
            "reference_date": self.reference_date.isoformat(),
            "last_order_date": self.last_order_date.isoformat(),
            "days_since_last_order": self.days_since_last_order,
            "retention_status": self.retention_status.value,
        }


@dataclass(frozen=True)
class StatusDistribution:
    """Share of the customer base in each status on one reference date.

    Attributes
    ----------
    snapshot_date:
        Reference date the snapshots were computed for.
    counts:
        Number of customers per status. Statuses with no customers are 0.
    total_customers:
        Number of customers evaluated (the alert sample size).
    """

    snapshot_date: date
    counts: Mapping[RetentionStatus, int] = field(default_factory=dict)
    total_customers: int = 0

    def __post_init__(self) -> None:
        if any(count < 0 for count in self.counts.values()):
            raise ValueError(f"Status counts cannot be negative: {dict(self.counts)}")
        if sum(self.counts.values()) != self.total_customers:
            raise ValueError(
                f"Status counts ({sum(self.counts.values())}) do not add up to "
                f"total_customers ({self.total_customers}) "
                f"for {self.snapshot_date.isoformat()}"
            )

    def count(self, status: RetentionStatus) -> int:
        return self.counts.get(status, 0)

    def status_pct(self, status: RetentionStatus) -> float | None:
        """Percentage of customers in ``status``, rounded to 2 decimals.

        Returns None when no customers were evaluated.
        """

        if self.total_customers == 0:
            return None
        return round(self.count(status) * 100.0 / self.total_customers, 2)

    def as_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "snapshot_date": self.snapshot_date.isoformat(),
            "total_customers": self.total_customers,
        }
        for status in RetentionStatus:
            payload[f"{status.value.lower()}_count"] = self.count(status)
            payload[f"{status.value.lower()}_pct"] = self.status_pct(status)
        return payload

    @classmethod
    def from_counts(
        cls, snapshot_date: date, counts: Mapping[str | RetentionStatus, int]
    ) -> "StatusDistribution":
        """Build a distribution from precomputed per-status counts."""

        normalised = {RetentionStatus(status): int(value) for status, value in counts.items()}
        return cls(
            snapshot_date=snapshot_date,
            counts=normalised,
            total_customers=sum(normalised.values()),
        )


def classify_status(
    days_since_last_order: int,
    thresholds: RetentionThresholds = RetentionThresholds(),
) -> RetentionStatus:
    """Map a signed recency to a status. First matching rule wins."""

    if days_since_last_order < 0:
        return RetentionStatus.DATA_QUALITY_ISSUE
    if days_since_last_order <= thresholds.active_days:
        return RetentionStatus.ACTIVE
    if days_since_last_order <= thresholds.at_risk_days:
        return RetentionStatus.AT_RISK
    return RetentionStatus.INACTIVE


def classify_retention(
    facts: Mapping[str, CustomerFacts],
    reference_date: date,
    thresholds: RetentionThresholds = RetentionThresholds(),
) -> dict[str, RetentionSnapshot]:
    """Compute one :class:`RetentionSnapshot` per customer.

    Parameters
    ----------
    facts:
        Customer fact table keyed by customer id.
    reference_date:
        Point in time recency is measured against. Required; passing None
        raises instead of defaulting to today.
    thresholds:
        Recency thresholds for ACTIVE and AT_RISK.

    Returns
    -------
    dict[str, RetentionSnapshot]
        Snapshots keyed by customer id, in customer id order.
    """

    if reference_date is None:
        raise ValueError("reference_date is required for retention classification")
    if not isinstance(reference_date, date):
        raise TypeError(
            "reference_date must be a date instance", {"value": reference_date}
        )
    if isinstance(reference_date, datetime):
        reference_date = reference_date.date()

    snapshots: dict[str, RetentionSnapshot] = {}
    for customer_id in sorted(facts):
        customer_facts = facts[customer_id]
        days = days_between(customer_facts.last_order_date, reference_date)
        snapshots[customer_id] = RetentionSnapshot(
            customer_id=customer_id,
            reference_date=reference_date,
            last_order_date=customer_facts.last_order_date,
            days_since_last_order=days,
            retention_status=classify_status(days, thresholds),
        )

    dq_issues = sum(
        1
        for snapshot in snapshots.values()
        if snapshot.retention_status is RetentionStatus.DATA_QUALITY_ISSUE
    )
    if dq_issues:
        logger.warning(
            f"{dq_issues}/{len(snapshots)} customers have a last order after "
            f"reference date {reference_date.isoformat()} (DATA_QUALITY_ISSUE)"
        )
    return snapshots


def summarize_status_distribution(
    snapshots: Iterable[RetentionSnapshot],
    reference_date: date,
) -> StatusDistribution:
    """Count snapshots per status for ``reference_date``.

    Raises
    ------
    ValueError
        If any snapshot was computed for a different reference date.
    """

    counts: Counter[RetentionStatus] = Counter()
    for snapshot in snapshots:
        if snapshot.reference_date != reference_date:
            raise ValueError(
                f"Snapshot for customer {snapshot.customer_id} was computed for "
                f"{snapshot.reference_date.isoformat()}, expected "
                f"{reference_date.isoformat()}"
            )
        counts[snapshot.retention_status] += 1

    return StatusDistribution(
        snapshot_date=reference_date,
        counts={status: counts.get(status, 0) for status in RetentionStatus},
        total_customers=sum(counts.values()),
    )
