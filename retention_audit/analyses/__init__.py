"""Derived retention datasets.

The analyses build on the customer fact table in dependency order:

1. Retention status - snapshot of each customer at a reference date
2. Churn risk - per-customer behavioural signals and risk score
3. Cohort retention - acquisition cohort curves, free of any reference date
"""

from .churn_risk import (
    ChurnAssessment,
    ChurnRiskLevel,
    ChurnSignals,
    assess_customer,
    score_churn_risk,
)
from .cohort_retention import (
    CohortRecord,
    assign_cohort_months,
    build_cohort_retention,
    limit_maturity,
    retention_curve,
    validate_cohort_records,
)
from .retention_status import (
    RetentionSnapshot,
    RetentionStatus,
    StatusDistribution,
    classify_retention,
    classify_status,
    summarize_status_distribution,
)

__all__ = [
    # Retention status
    "RetentionSnapshot",
    "RetentionStatus",
    "StatusDistribution",
    "classify_retention",
    "classify_status",
    "summarize_status_distribution",
    # Churn risk
    "ChurnAssessment",
    "ChurnRiskLevel",
    "ChurnSignals",
    "assess_customer",
    "score_churn_risk",
    # Cohort retention
    "CohortRecord",
    "assign_cohort_months",
    "build_cohort_retention",
    "limit_maturity",
    "retention_curve",
    "validate_cohort_records",
]
