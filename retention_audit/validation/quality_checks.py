"""Post-build quality checks for each pipeline stage.

Every check returns a :class:`ValidationResult` instead of raising, so that a
scheduled job can run them all and report every failure at once. They are
meant to run after a table has been produced; the builders themselves
already reject malformed input.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Mapping, Sequence

from retention_audit.analyses.churn_risk import (
    ChurnAssessment,
    ChurnRiskLevel,
    risk_level,
    risk_score,
)
from retention_audit.analyses.cohort_retention import CohortRecord
from retention_audit.analyses.retention_status import (
    RetentionSnapshot,
    RetentionStatus,
    classify_status,
)
from retention_audit.config import ChurnSignalConfig, RetentionThresholds
from retention_audit.foundation.customer_facts import CustomerFacts


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    message: str = ""


def check_fact_integrity(facts: Mapping[str, CustomerFacts]) -> ValidationResult:
    """Facts are keyed by their own customer id with coherent dates and totals."""
    for customer_id, f in facts.items():
        if f.customer_id != customer_id:
            return ValidationResult(
                False, f"facts keyed as {customer_id} belong to {f.customer_id}"
            )
        if f.first_order_date > f.last_order_date:
            return ValidationResult(
                False, f"first_order_date after last_order_date for {customer_id}"
            )
        if f.total_orders < 1:
            return ValidationResult(False, f"total_orders < 1 for {customer_id}")
        if f.total_revenue < 0:
            return ValidationResult(False, f"negative total_revenue for {customer_id}")
    return ValidationResult(True, f"{len(facts)} customer facts are coherent")


def check_status_exclusivity(
    snapshots: Mapping[str, RetentionSnapshot],
    thresholds: RetentionThresholds = RetentionThresholds(),
) -> ValidationResult:
    """Every snapshot carries exactly the status its recency maps to.

    Also fails when snapshots mix reference dates, since a distribution must
    describe a single day.
    """
    reference_dates = {s.reference_date for s in snapshots.values()}
    if len(reference_dates) > 1:
        return ValidationResult(
            False, f"snapshots span {len(reference_dates)} reference dates"
        )
    for customer_id, snapshot in snapshots.items():
        expected = classify_status(snapshot.days_since_last_order, thresholds)
        if snapshot.retention_status is not expected:
            return ValidationResult(
                False,
                f"{customer_id} is {snapshot.retention_status.value} with "
                f"{snapshot.days_since_last_order} days since last order, "
                f"expected {expected.value}",
            )
    return ValidationResult(True, f"{len(snapshots)} snapshots have consistent statuses")


def check_no_data_quality_issues(
    snapshots: Mapping[str, RetentionSnapshot],
) -> ValidationResult:
    flagged = sorted(
        customer_id
        for customer_id, s in snapshots.items()
        if s.retention_status is RetentionStatus.DATA_QUALITY_ISSUE
    )
    if flagged:
        return ValidationResult(
            False,
            f"{len(flagged)} customers have orders after the reference date: "
            f"{flagged[:5]}",
        )
    return ValidationResult(True, "no orders after the reference date")


def check_score_consistency(
    assessments: Mapping[str, ChurnAssessment],
    config: ChurnSignalConfig = ChurnSignalConfig(),
) -> ValidationResult:
    """Scores equal the weighted signal sum and levels match their bands."""
    for customer_id, a in assessments.items():
        expected_score = risk_score(a.signals, config)
        if a.churn_risk_score != expected_score:
            return ValidationResult(
                False,
                f"{customer_id} has score {a.churn_risk_score}, signals give "
                f"{expected_score}",
            )
        if a.churn_risk_level is not risk_level(a.churn_risk_score, config):
            return ValidationResult(
                False,
                f"{customer_id} has level {a.churn_risk_level.value} for score "
                f"{a.churn_risk_score}",
            )
    return ValidationResult(True, f"{len(assessments)} assessments are consistent")


def check_risk_adds_signal(assessments: Mapping[str, ChurnAssessment]) -> ValidationResult:
    """Fail when risk levels merely restate retention statuses.

    If every ACTIVE customer is LOW and every INACTIVE customer is HIGH, the
    signals add nothing beyond recency and their thresholds need tuning.
    """
    by_status: dict[RetentionStatus, set[ChurnRiskLevel]] = defaultdict(set)
    for a in assessments.values():
        by_status[a.retention_status].add(a.churn_risk_level)

    active = by_status.get(RetentionStatus.ACTIVE)
    inactive = by_status.get(RetentionStatus.INACTIVE)
    if not active or not inactive:
        return ValidationResult(True, "not enough statuses to compare")
    if active == {ChurnRiskLevel.LOW} and inactive == {ChurnRiskLevel.HIGH}:
        return ValidationResult(
            False, "risk levels mirror retention statuses; signals add no information"
        )
    return ValidationResult(True, "risk levels differ from retention statuses")


def check_cohort_size_consistency(records: Sequence[CohortRecord]) -> ValidationResult:
    sizes: dict[date, set[int]] = defaultdict(set)
    for r in records:
        sizes[r.cohort_month].add(r.cohort_size)
    varying = sorted(m.strftime("%Y-%m") for m, s in sizes.items() if len(s) > 1)
    if varying:
        return ValidationResult(False, f"cohort_size varies for cohorts {varying}")
    return ValidationResult(True, f"{len(sizes)} cohorts have a constant size")


def check_retention_rate_bounds(records: Sequence[CohortRecord]) -> ValidationResult:
    for r in records:
        if r.retention_rate is None:
            continue
        if not 0 <= r.retention_rate <= 100:
            return ValidationResult(
                False,
                f"retention_rate {r.retention_rate} out of bounds for "
                f"{r.cohort_id} M+{r.months_since_acquisition}",
            )
    return ValidationResult(True, "retention rates within [0, 100]")


def check_acquisition_month_complete(
    records: Sequence[CohortRecord],
) -> ValidationResult:
    """Every cohort retains 100% of its customers at M+0."""
    for r in records:
        if r.months_since_acquisition == 0 and r.active_customers != r.cohort_size:
            return ValidationResult(
                False,
                f"cohort {r.cohort_id} has {r.active_customers}/{r.cohort_size} "
                f"customers active in its acquisition month",
            )
    return ValidationResult(True, "all cohorts fully active at M+0")
