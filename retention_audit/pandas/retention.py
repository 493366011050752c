"""Pandas DataFrame adapters for retention snapshots, churn assessments and alerts."""

from datetime import date
from typing import List, Mapping, Sequence

import pandas as pd  # type: ignore

from retention_audit.pandas._utils import timestamp_to_date
from retention_audit.analyses.churn_risk import ChurnAssessment
from retention_audit.analyses.retention_status import (
    RetentionSnapshot,
    RetentionStatus,
    StatusDistribution,
)
from retention_audit.monitoring.alerts import AlertDecision

SNAPSHOT_COLUMNS = [
    "customer_id",
    "reference_date",
    "last_order_date",
    "days_since_last_order",
    "retention_status",
]


def snapshots_to_dataframe(snapshots: Mapping[str, RetentionSnapshot]) -> pd.DataFrame:
    """Convert retention snapshots to a DataFrame sorted by customer_id.

    Args:
        snapshots: Mapping of customer_id to RetentionSnapshot

    Returns:
        DataFrame with one row per customer; retention_status holds the
        status name as a string
    """
    if not snapshots:
        return pd.DataFrame(columns=SNAPSHOT_COLUMNS)
    df = pd.DataFrame(
        [s.as_dict() for s in snapshots.values()], columns=SNAPSHOT_COLUMNS
    )
    return df.sort_values("customer_id").reset_index(drop=True)


def assessments_to_dataframe(
    assessments: Mapping[str, ChurnAssessment],
) -> pd.DataFrame:
    """Convert churn assessments to a DataFrame for CRM export.

    Undefined averages (single-order customers) become NaN.

    Example:
        >>> assessments_df = assessments_to_dataframe(assessments)
        >>> assessments_df.query("churn_risk_level == 'HIGH'")
    """
    rows = [a.as_dict() for a in assessments.values()]
    df = pd.DataFrame(rows)
    if df.empty:
        return df
    df["avg_days_between_orders"] = df["avg_days_between_orders"].astype(float)
    return df.sort_values("customer_id").reset_index(drop=True)


def distributions_to_dataframe(
    distributions: Sequence[StatusDistribution],
) -> pd.DataFrame:
    """Convert daily status distributions to a DataFrame sorted by date."""
    rows = [d.as_dict() for d in distributions]
    df = pd.DataFrame(rows)
    if df.empty:
        return df
    return df.sort_values("snapshot_date").reset_index(drop=True)


def dataframe_to_distributions(history_df: pd.DataFrame) -> List[StatusDistribution]:
    """Convert a daily status history DataFrame to StatusDistribution objects.

    The DataFrame needs a snapshot_date column plus one ``<status>_count``
    column per status (active_count, at_risk_count, inactive_count,
    data_quality_issue_count). Missing count columns are treated as 0.

    Raises:
        ValueError: If snapshot_date is missing or counts contain nulls
    """
    if "snapshot_date" not in history_df.columns:
        raise ValueError("DataFrame missing required columns: {'snapshot_date'}")

    count_columns = {
        status: f"{status.value.lower()}_count" for status in RetentionStatus
    }
    present = [col for col in count_columns.values() if col in history_df.columns]
    if not present:
        raise ValueError(
            f"DataFrame needs at least one of the count columns: "
            f"{sorted(count_columns.values())}"
        )
    if history_df[present].isnull().any().any():
        raise ValueError("Null/NaN values found in status count columns")

    distributions = []
    for record in history_df.to_dict("records"):
        snapshot_date = timestamp_to_date(record["snapshot_date"])
        if snapshot_date is None:
            raise ValueError("Null snapshot_date found in status history")
        if not isinstance(snapshot_date, date):
            snapshot_date = pd.to_datetime(snapshot_date).date()
        counts = {
            status: int(record[col])
            for status, col in count_columns.items()
            if col in record
        }
        distributions.append(StatusDistribution.from_counts(snapshot_date, counts))
    return distributions


def alert_decisions_to_dataframe(decisions: Sequence[AlertDecision]) -> pd.DataFrame:
    """Convert alert decisions to a DataFrame, one row per alert_date."""
    return pd.DataFrame([d.as_dict() for d in decisions])
