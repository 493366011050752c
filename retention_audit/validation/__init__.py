"""Quality checks for the tables produced by each retention stage."""

from retention_audit.validation.quality_checks import (
    ValidationResult,
    check_acquisition_month_complete,
    check_cohort_size_consistency,
    check_fact_integrity,
    check_no_data_quality_issues,
    check_retention_rate_bounds,
    check_risk_adds_signal,
    check_score_consistency,
    check_status_exclusivity,
)

__all__ = [
    "ValidationResult",
    "check_acquisition_month_complete",
    "check_cohort_size_consistency",
    "check_fact_integrity",
    "check_no_data_quality_issues",
    "check_retention_rate_bounds",
    "check_risk_adds_signal",
    "check_score_consistency",
    "check_status_exclusivity",
]
