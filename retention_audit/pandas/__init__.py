"""Pandas DataFrame adapters for retention_audit.

This module provides conversion functions between pandas DataFrames and
retention_audit dataclasses, enabling seamless integration with data science
workflows.

Requires pandas to be installed:
    pip install pandas
"""

from retention_audit.pandas.cohorts import (
    cohort_records_to_dataframe,
    cohort_retention_matrix,
)
from retention_audit.pandas.orders import (
    build_customer_facts_df,
    dataframe_to_orders,
    facts_to_dataframe,
)
from retention_audit.pandas.retention import (
    alert_decisions_to_dataframe,
    assessments_to_dataframe,
    dataframe_to_distributions,
    distributions_to_dataframe,
    snapshots_to_dataframe,
)

__all__ = [
    "alert_decisions_to_dataframe",
    "assessments_to_dataframe",
    "build_customer_facts_df",
    "cohort_records_to_dataframe",
    "cohort_retention_matrix",
    "dataframe_to_distributions",
    "dataframe_to_orders",
    "distributions_to_dataframe",
    "facts_to_dataframe",
    "snapshots_to_dataframe",
]
