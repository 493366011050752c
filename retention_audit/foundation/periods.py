"""Calendar helpers shared by the retention stages.

All arithmetic is done on :class:`datetime.date` values at day granularity.
Datetimes are truncated to their date part; timezone handling is the caller's
responsibility (order dates are assumed to already be in one timezone).
"""

from __future__ import annotations

from datetime import date, datetime


def to_date(value: object, *, field_name: str = "date") -> date:
    """Coerce ``value`` into a :class:`date`.

    Accepts ``date``, ``datetime`` (truncated) and ISO 8601 strings. Anything
    else, including ``None``, raises so that a missing date never defaults to
    "today".
    """

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError(f"{field_name} cannot be empty")
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError as exc:
            raise ValueError(f"Invalid ISO date for {field_name}: {value!r}") from exc
    raise TypeError(
        f"{field_name} must be a date, datetime or ISO string",
        {"value": value},
    )


def month_start(value: date) -> date:
    """Truncate ``value`` to the first day of its month."""

    return value.replace(day=1)


def next_month(value: date) -> date:
    """Return the first day of the month after ``value``."""

    if value.month == 12:
        return date(value.year + 1, 1, 1)
    return date(value.year, value.month + 1, 1)


def month_diff(start: date, end: date) -> int:
    """Number of calendar month boundaries between ``start`` and ``end``.

    Matches ``DATEDIFF('month', start, end)``: the day of month is ignored,
    so Jan 31 -> Feb 1 is one month and Jan 1 -> Jan 31 is zero.

    >>> month_diff(date(2024, 1, 31), date(2024, 2, 1))
    1
    >>> month_diff(date(2024, 3, 1), date(2023, 12, 15))
    -3
    """

    return (end.year - start.year) * 12 + (end.month - start.month)


def days_between(start: date, end: date) -> int:
    """Signed number of days from ``start`` to ``end``."""

    return (end - start).days
