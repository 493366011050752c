"""End-to-end composition of the retention stages.

The daily pipeline runs the stages in dependency order for one reference
date::

    orders -> customer facts -> retention snapshots -> churn assessments
                                       |
                                       +-> status distribution -> alert

Cohort retention has no reference date and runs on its own schedule from the
same order feed. Each stage only reads the outputs of earlier stages, so any
stage can be rerun for a past reference date without touching the others.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Mapping, Sequence

from retention_audit.analyses.churn_risk import ChurnAssessment, score_churn_risk
from retention_audit.analyses.cohort_retention import (
    CohortRecord,
    build_cohort_retention,
    limit_maturity,
    validate_cohort_records,
)
from retention_audit.analyses.retention_status import (
    RetentionSnapshot,
    StatusDistribution,
    classify_retention,
    summarize_status_distribution,
)
from retention_audit.config import PipelineConfig
from retention_audit.foundation.customer_facts import (
    CustomerFacts,
    CustomerFactsBuilder,
    OrderLike,
    build_activity_periods,
)
from retention_audit.foundation.customer_profile import (
    CustomerProfile,
    EnrichedCustomer,
    enrich_facts,
)
from retention_audit.foundation.periods import to_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DailyPipelineResult:
    """Outputs of one daily run, all computed for ``reference_date``."""

    reference_date: date
    facts: Mapping[str, CustomerFacts]
    snapshots: Mapping[str, RetentionSnapshot]
    assessments: Mapping[str, ChurnAssessment]
    distribution: StatusDistribution
    enriched: Sequence[EnrichedCustomer] = field(default_factory=tuple)

    def as_dict(self) -> dict[str, object]:
        return {
            "reference_date": self.reference_date.isoformat(),
            "distribution": self.distribution.as_dict(),
            "customers": [
                self.assessments[customer_id].as_dict()
                if customer_id in self.assessments
                else self.snapshots[customer_id].as_dict()
                for customer_id in sorted(self.snapshots)
            ],
        }


def run_daily_pipeline(
    orders: Iterable[OrderLike],
    reference_date: date | str,
    config: PipelineConfig | None = None,
    *,
    qualifying_statuses: Sequence[str] | None = None,
    profiles: Mapping[str, CustomerProfile] | None = None,
) -> DailyPipelineResult:
    """Run facts, status classification and churn scoring for one day.

    Parameters
    ----------
    orders:
        Raw order feed rows.
    reference_date:
        Day the snapshot describes. Required; ISO strings are accepted.
    config:
        Stage thresholds. Defaults to :class:`PipelineConfig` defaults.
    qualifying_statuses:
        Optional order status gate applied before aggregation.
    profiles:
        Optional customer master records to left-join onto the facts.

    Returns
    -------
    DailyPipelineResult
        Facts, snapshots, assessments and the status distribution for the day.
    """

    if reference_date is None:
        raise ValueError("reference_date is required for the daily pipeline")
    reference_date = to_date(reference_date, field_name="reference_date")
    config = config or PipelineConfig()

    facts = CustomerFactsBuilder(qualifying_statuses=qualifying_statuses).build(orders)
    snapshots = classify_retention(facts, reference_date, config.retention)
    assessments = score_churn_risk(facts, snapshots, config.churn)
    distribution = summarize_status_distribution(snapshots.values(), reference_date)
    enriched = enrich_facts(facts, profiles) if profiles is not None else ()

    logger.info(
        f"Daily pipeline for {reference_date.isoformat()}: "
        f"{distribution.total_customers} customers, "
        f"AT_RISK share {distribution.as_dict()['at_risk_pct']}%"
    )
    return DailyPipelineResult(
        reference_date=reference_date,
        facts=facts,
        snapshots=snapshots,
        assessments=assessments,
        distribution=distribution,
        enriched=tuple(enriched),
    )


def run_cohort_pipeline(
    orders: Iterable[OrderLike],
    existing_assignments: Mapping[str, date] | None = None,
    *,
    qualifying_statuses: Sequence[str] | None = None,
    max_maturity: int | None = None,
) -> list[CohortRecord]:
    """Build validated cohort retention records from an order feed.

    Facts and activity months are derived from the same qualifying orders so
    that cohort membership and activity agree.
    """

    builder = CustomerFactsBuilder(qualifying_statuses=qualifying_statuses)
    records = builder.prepare(orders)
    facts = builder.build(records)
    activity = build_activity_periods(records)

    cohort_records = build_cohort_retention(facts, activity, existing_assignments)
    validate_cohort_records(cohort_records)
    if max_maturity is not None:
        cohort_records = limit_maturity(cohort_records, max_maturity)
    return cohort_records
