"""Acquisition cohort retention curves.

Customers are grouped by the month of their first order (their cohort) and
tracked across months since acquisition (maturity). For every
(cohort_month, months_since_acquisition) pair the module reports how many
cohort members placed at least one order in that month.

This stage has no reference date: given the same order history it produces
identical output no matter when it is run.

Cohort identity is immutable. A customer keeps the cohort they were first
assigned to even if a later backfill moves their first order date; pass the
previously stored assignments as ``existing_assignments`` to keep them fixed.

Quick Start
-----------
>>> from datetime import date
>>> from retention_audit.foundation.customer_facts import build_customer_facts, build_activity_periods
>>> from retention_audit.analyses.cohort_retention import build_cohort_retention
>>> orders = [
...     {"customer_id": "C1", "order_id": "O1", "order_date": date(2024, 1, 3), "order_amount": 10},
...     {"customer_id": "C1", "order_id": "O2", "order_date": date(2024, 2, 7), "order_amount": 10},
...     {"customer_id": "C2", "order_id": "O3", "order_date": date(2024, 1, 20), "order_amount": 10},
... ]
>>> records = build_cohort_retention(build_customer_facts(orders), build_activity_periods(orders))
>>> [(r.months_since_acquisition, r.retention_rate) for r in records]
[(0, 100.0), (1, 50.0)]
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Mapping, Sequence

from retention_audit.foundation.customer_facts import CustomerFacts
from retention_audit.foundation.periods import month_diff, month_start

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CohortRecord:
    """Retention of one cohort at one maturity.

    Attributes
    ----------
    cohort_month:
        First day of the acquisition month.
    months_since_acquisition:
        Maturity (0 = acquisition month).
    cohort_size:
        Number of customers in the cohort. Identical for every maturity of
        the same cohort.
    active_customers:
        Cohort members with at least one order at this maturity.
    retention_rate:
        ``active_customers / cohort_size`` in percent, rounded to 2 decimals.
        None when the cohort is empty.
    """

    cohort_month: date
    months_since_acquisition: int
    cohort_size: int
    active_customers: int
    retention_rate: float | None

    def __post_init__(self) -> None:
        if self.months_since_acquisition < 0:
            raise ValueError(
                "months_since_acquisition must be >= 0, got "
                f"{self.months_since_acquisition}"
            )
        if self.active_customers < 0:
            raise ValueError(
                f"active_customers must be >= 0, got {self.active_customers}"
            )
        if self.active_customers > self.cohort_size:
            raise ValueError(
                f"active_customers ({self.active_customers}) exceeds cohort_size "
                f"({self.cohort_size}) for cohort {self.cohort_month.isoformat()}"
            )

    @property
    def cohort_id(self) -> str:
        return self.cohort_month.strftime("%Y-%m")

    def as_dict(self) -> dict[str, object]:
        return {
            "cohort_month": self.cohort_month.isoformat(),
            "months_since_acquisition": self.months_since_acquisition,
            "cohort_size": self.cohort_size,
            "active_customers": self.active_customers,
            "retention_rate": self.retention_rate,
        }


def _retention_rate(active_customers: int, cohort_size: int) -> float | None:
    if cohort_size == 0:
        return None
    return round(active_customers * 100.0 / cohort_size, 2)


def assign_cohort_months(
    facts: Mapping[str, CustomerFacts],
    existing_assignments: Mapping[str, date] | None = None,
) -> dict[str, date]:
    """Assign each customer to the month of their first order.

    Parameters
    ----------
    facts:
        Customer fact table keyed by customer id.
    existing_assignments:
        Previously stored ``customer_id -> cohort_month`` assignments. These
        always win: a customer is never moved to another cohort.

    Returns
    -------
    dict[str, date]
        Mapping of customer id to cohort month (first day of month).
    """

    existing_assignments = existing_assignments or {}
    assignments: dict[str, date] = {}
    conflicts: list[str] = []
    for customer_id in sorted(facts):
        derived = month_start(facts[customer_id].first_order_date)
        stored = existing_assignments.get(customer_id)
        if stored is None:
            assignments[customer_id] = derived
            continue
        stored = month_start(stored)
        if stored != derived:
            conflicts.append(customer_id)
        assignments[customer_id] = stored

    if conflicts:
        logger.warning(
            f"{len(conflicts)} customers have a first order month that differs from "
            f"their stored cohort; keeping stored cohorts. "
            f"First 5: {conflicts[:5]}"
        )
    return assignments


def build_cohort_retention(
    facts: Mapping[str, CustomerFacts],
    activity_periods: Iterable[tuple[str, date]],
    existing_assignments: Mapping[str, date] | None = None,
) -> list[CohortRecord]:
    """Compute retention rates per (cohort_month, months_since_acquisition).

    Parameters
    ----------
    facts:
        Customer fact table keyed by customer id.
    activity_periods:
        ``(customer_id, activity_month)`` pairs for months in which the
        customer placed at least one qualifying order. Any day inside the
        month is accepted; it is truncated to the month start.
    existing_assignments:
        Optional previously stored cohort assignments (see
        :func:`assign_cohort_months`).

    Returns
    -------
    list[CohortRecord]
        Records sorted by cohort month then maturity. Only maturities with at
        least one active customer appear.
    """

    assignments = assign_cohort_months(facts, existing_assignments)

    cohort_sizes: dict[date, int] = defaultdict(int)
    for cohort_month in assignments.values():
        cohort_sizes[cohort_month] += 1

    active: dict[tuple[date, int], set[str]] = defaultdict(set)
    pre_acquisition = 0
    for customer_id, activity_month in activity_periods:
        cohort_month = assignments.get(customer_id)
        if cohort_month is None:
            continue
        maturity = month_diff(cohort_month, month_start(activity_month))
        if maturity < 0:
            pre_acquisition += 1
            continue
        active[(cohort_month, maturity)].add(customer_id)

    if pre_acquisition:
        logger.warning(
            f"Ignored {pre_acquisition} activity months dated before the "
            f"customer's cohort month"
        )

    records = [
        CohortRecord(
            cohort_month=cohort_month,
            months_since_acquisition=maturity,
            cohort_size=cohort_sizes[cohort_month],
            active_customers=len(customers),
            retention_rate=_retention_rate(len(customers), cohort_sizes[cohort_month]),
        )
        for (cohort_month, maturity), customers in sorted(active.items())
    ]
    logger.info(
        f"Built {len(records)} cohort retention records across "
        f"{len(cohort_sizes)} cohorts"
    )
    return records


def validate_cohort_records(records: Sequence[CohortRecord]) -> None:
    """Check cohort-level invariants of a set of records.

    Raises
    ------
    ValueError
        If a cohort reports different sizes at different maturities, a
        retention rate falls outside [0, 100], or a (cohort, maturity) pair
        appears twice.
    """

    sizes: dict[date, int] = {}
    seen: set[tuple[date, int]] = set()
    for record in records:
        key = (record.cohort_month, record.months_since_acquisition)
        if key in seen:
            raise ValueError(
                f"Duplicate cohort record for {record.cohort_id} "
                f"M+{record.months_since_acquisition}"
            )
        seen.add(key)

        expected = sizes.setdefault(record.cohort_month, record.cohort_size)
        if record.cohort_size != expected:
            raise ValueError(
                f"cohort_size for {record.cohort_id} varies across maturities: "
                f"{expected} vs {record.cohort_size}"
            )
        if record.retention_rate is not None and not 0 <= record.retention_rate <= 100:
            raise ValueError(
                f"retention_rate must be between 0 and 100, got "
                f"{record.retention_rate} for {record.cohort_id} "
                f"M+{record.months_since_acquisition}"
            )


def limit_maturity(
    records: Iterable[CohortRecord], max_maturity: int = 12
) -> list[CohortRecord]:
    """Keep records up to ``max_maturity`` months for cohort comparability."""

    if max_maturity < 0:
        raise ValueError(f"max_maturity must be >= 0, got {max_maturity}")
    return [r for r in records if r.months_since_acquisition <= max_maturity]


def retention_curve(
    records: Iterable[CohortRecord], cohort_month: date
) -> dict[int, float | None]:
    """Extract ``maturity -> retention_rate`` for a single cohort."""

    cohort_month = month_start(cohort_month)
    return {
        record.months_since_acquisition: record.retention_rate
        for record in sorted(records, key=lambda r: r.months_since_acquisition)
        if record.cohort_month == cohort_month
    }
