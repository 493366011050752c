"""Pandas DataFrame adapters for the order feed and customer facts."""

from typing import List, Mapping, Optional, Sequence

import pandas as pd  # type: ignore

from retention_audit.foundation.customer_facts import (
    CustomerFacts,
    OrderRecord,
    build_customer_facts,
    validate_orders,
)
from retention_audit.pandas._utils import none_if_na, timestamp_to_date

ORDER_COLUMNS = ["customer_id", "order_id", "order_date", "order_amount"]

FACT_COLUMNS = [
    "customer_id",
    "first_order_date",
    "last_order_date",
    "total_orders",
    "total_revenue",
    "avg_order_value",
    "last_order_amount",
]


def dataframe_to_orders(orders_df: pd.DataFrame) -> List[OrderRecord]:
    """Convert an order feed DataFrame to validated order records.

    Args:
        orders_df: DataFrame with columns customer_id, order_id, order_date,
            order_amount and optionally order_status

    Returns:
        List of validated OrderRecord objects, in row order

    Raises:
        ValueError: If required columns are missing, a date is null or an
            amount is negative

    Example:
        >>> orders_df = pd.read_csv("orders.csv", parse_dates=["order_date"])
        >>> orders = dataframe_to_orders(orders_df)
    """
    missing_cols = set(ORDER_COLUMNS) - set(orders_df.columns)
    if missing_cols:
        raise ValueError(f"DataFrame missing required columns: {missing_cols}")

    if orders_df.empty:
        return []

    columns = ORDER_COLUMNS + (
        ["order_status"] if "order_status" in orders_df.columns else []
    )
    rows = []
    for record in orders_df[columns].to_dict("records"):
        record["order_date"] = timestamp_to_date(record["order_date"])
        if "order_status" in record:
            record["order_status"] = none_if_na(record["order_status"])
        rows.append(record)
    return validate_orders(rows)


def facts_to_dataframe(facts: Mapping[str, CustomerFacts]) -> pd.DataFrame:
    """Convert a customer fact table to a DataFrame sorted by customer_id.

    Args:
        facts: Mapping of customer_id to CustomerFacts

    Returns:
        DataFrame with one row per customer
    """
    if not facts:
        return pd.DataFrame(columns=FACT_COLUMNS)

    rows = [
        {
            "customer_id": f.customer_id,
            "first_order_date": f.first_order_date,
            "last_order_date": f.last_order_date,
            "total_orders": f.total_orders,
            "total_revenue": f.total_revenue,
            "avg_order_value": f.avg_order_value,
            "last_order_amount": f.last_order_amount,
        }
        for f in facts.values()
    ]
    df = pd.DataFrame(rows, columns=FACT_COLUMNS)
    return df.sort_values("customer_id").reset_index(drop=True)


def build_customer_facts_df(
    orders_df: pd.DataFrame,
    qualifying_statuses: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """Build the customer fact table from an order feed DataFrame.

    Convenience function combining conversion and aggregation.

    Example:
        >>> facts_df = build_customer_facts_df(orders_df)
        >>> facts_df.to_csv("customer_facts.csv", index=False)
    """
    orders = dataframe_to_orders(orders_df)
    facts = build_customer_facts(orders, qualifying_statuses=qualifying_statuses)
    return facts_to_dataframe(facts)
