"""Shared utilities for pandas conversion operations."""

from datetime import date, datetime
from typing import Optional, Union

import pandas as pd  # type: ignore


def timestamp_to_date(value: object) -> Optional[Union[date, object]]:
    """Convert a pandas cell to a date, mapping NaT/NaN/None to None.

    Strings and other values are returned unchanged so that malformed input
    surfaces from the caller's validation with its own error context.

    Example:
        >>> timestamp_to_date(pd.Timestamp("2024-03-01 14:30"))
        datetime.date(2024, 3, 1)
        >>> timestamp_to_date(pd.NaT) is None
        True
    """
    if none_if_na(value) is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value


def none_if_na(value: object) -> object:
    """Return None for pandas missing values, otherwise the value unchanged."""
    if value is None or isinstance(value, str):
        return value
    try:
        return None if pd.isna(value) else value
    except (TypeError, ValueError):
        # Non-scalar cells (lists, dicts) are never "missing".
        return value
