"""Pandas DataFrame adapters for cohort retention records."""

from typing import Sequence

import pandas as pd  # type: ignore

from retention_audit.analyses.cohort_retention import CohortRecord

COHORT_COLUMNS = [
    "cohort_month",
    "months_since_acquisition",
    "cohort_size",
    "active_customers",
    "retention_rate",
]


def cohort_records_to_dataframe(records: Sequence[CohortRecord]) -> pd.DataFrame:
    """Convert cohort retention records to a long-format DataFrame.

    Args:
        records: Cohort records as returned by ``build_cohort_retention``

    Returns:
        DataFrame with one row per (cohort_month, months_since_acquisition),
        sorted by cohort then maturity. cohort_month holds ``date`` objects.
    """
    if not records:
        return pd.DataFrame(columns=COHORT_COLUMNS)

    rows = [
        {
            "cohort_month": r.cohort_month,
            "months_since_acquisition": r.months_since_acquisition,
            "cohort_size": r.cohort_size,
            "active_customers": r.active_customers,
            "retention_rate": r.retention_rate,
        }
        for r in records
    ]
    df = pd.DataFrame(rows, columns=COHORT_COLUMNS)
    return df.sort_values(["cohort_month", "months_since_acquisition"]).reset_index(
        drop=True
    )


def cohort_retention_matrix(records: Sequence[CohortRecord]) -> pd.DataFrame:
    """Pivot cohort records into the classic cohort triangle.

    Rows are cohort ids (``YYYY-MM``), columns are months since acquisition
    and cells hold retention rates in percent. Maturities without any active
    customer are NaN.

    Example:
        >>> matrix = cohort_retention_matrix(records)
        >>> matrix.loc["2024-01", 0]
        100.0
    """
    if not records:
        return pd.DataFrame()

    df = pd.DataFrame(
        [
            {
                "cohort": r.cohort_id,
                "months_since_acquisition": r.months_since_acquisition,
                "retention_rate": r.retention_rate,
            }
            for r in records
        ]
    )
    matrix = df.pivot(
        index="cohort", columns="months_since_acquisition", values="retention_rate"
    )
    matrix = matrix.sort_index().sort_index(axis=1)
    matrix.columns.name = "months_since_acquisition"
    return matrix.astype(float)
