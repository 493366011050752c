from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
import math
import random
from typing import List, Optional, Sequence

from retention_audit.analyses.retention_status import (
    RetentionStatus,
    StatusDistribution,
)
from retention_audit.foundation.customer_facts import OrderRecord
from retention_audit.foundation.periods import month_diff, month_start, next_month


@dataclass(frozen=True)
class Customer:
    customer_id: str
    acquisition_date: date


@dataclass(frozen=True)
class OrderScenario:
    """Configuration for the synthetic order feed.

    Attributes
    ----------
    churn_hazard: Monthly probability that an active customer stops ordering.
    base_orders_per_month: Average orders per active customer per month.
    mean_order_amount: Average order amount, split across the order's lines.
    amount_variability: Coefficient in (0, 1] controlling amount variance.
    max_lines_per_order: Orders are split into 1..N line-item rows.
    cancelled_rate: Share of orders emitted with status ``cancelled``.
    seed: Optional RNG seed for reproducibility.
    """

    churn_hazard: float = 0.08
    base_orders_per_month: float = 1.2
    mean_order_amount: float = 45.0
    amount_variability: float = 0.4
    max_lines_per_order: int = 3
    cancelled_rate: float = 0.0
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if not 0 <= self.churn_hazard <= 1:
            raise ValueError(f"churn_hazard must be in [0, 1], got {self.churn_hazard}")
        if not 0 <= self.cancelled_rate <= 1:
            raise ValueError(
                f"cancelled_rate must be in [0, 1], got {self.cancelled_rate}"
            )
        if self.max_lines_per_order < 1:
            raise ValueError(
                f"max_lines_per_order must be >= 1, got {self.max_lines_per_order}"
            )


def generate_customers(
    n: int,
    start: date,
    end: date,
    *,
    seed: Optional[int] = None,
) -> List[Customer]:
    """Generate ``n`` customers with acquisition dates uniformly between start/end."""

    if n <= 0:
        return []
    if start > end:
        raise ValueError("start date must be <= end date")

    rng = random.Random(seed)
    total_days = (end - start).days + 1
    return [
        Customer(
            customer_id=f"C-{i + 1:05d}",
            acquisition_date=start + timedelta(days=rng.randrange(total_days)),
        )
        for i in range(n)
    ]


def _poisson(rng: random.Random, lam: float) -> int:
    # Knuth's algorithm, fine for the small rates used here
    if lam <= 0:
        return 0
    limit = math.exp(-lam)
    k = 0
    p = 1.0
    while p > limit:
        k += 1
        p *= rng.random()
    return k - 1


def _sample_amount(rng: random.Random, mean: float, variability: float) -> float:
    sigma = min(max(variability, 0.01), 1.0)
    mu = math.log(max(mean, 0.01)) - 0.5 * sigma * sigma
    return round(max(math.exp(rng.normalvariate(mu, sigma)), 0.01), 2)


def _split_amount(rng: random.Random, amount: float, lines: int) -> List[float]:
    if lines == 1:
        return [amount]
    cuts = sorted(rng.random() for _ in range(lines - 1))
    shares = [b - a for a, b in zip([0.0] + cuts, cuts + [1.0])]
    parts = [round(amount * share, 2) for share in shares[:-1]]
    parts.append(round(amount - sum(parts), 2))
    return [max(part, 0.0) for part in parts]


def generate_orders(
    customers: Sequence[Customer],
    start: date,
    end: date,
    *,
    scenario: Optional[OrderScenario] = None,
) -> List[OrderRecord]:
    """Generate a line-item order feed for ``customers`` between ``start`` and ``end``.

    Every customer places a first order on their acquisition date, then
    orders at a Poisson rate each month until they churn. Orders are split
    across several rows sharing an ``order_id``, like a line-item feed.
    """

    if start > end:
        raise ValueError("start date must be <= end date")
    scenario = scenario or OrderScenario()
    rng = random.Random(scenario.seed)

    rows: List[OrderRecord] = []
    order_seq = 1

    def emit(customer_id: str, order_date: date) -> None:
        nonlocal order_seq
        order_id = f"O-{order_seq:07d}"
        order_seq += 1
        status = "cancelled" if rng.random() < scenario.cancelled_rate else "completed"
        amount = _sample_amount(
            rng, scenario.mean_order_amount, scenario.amount_variability
        )
        lines = 1 + rng.randrange(scenario.max_lines_per_order)
        for part in _split_amount(rng, amount, lines):
            rows.append(
                OrderRecord(
                    customer_id=customer_id,
                    order_id=order_id,
                    order_date=order_date,
                    order_amount=part,
                    order_status=status,
                )
            )

    for customer in customers:
        acquired = customer.acquisition_date
        if acquired < start or acquired > end:
            continue
        emit(customer.customer_id, acquired)

        month = month_start(acquired)
        for _ in range(month_diff(acquired, end) + 1):
            if rng.random() < scenario.churn_hazard:
                break
            for _order in range(_poisson(rng, scenario.base_orders_per_month)):
                day = month + timedelta(days=rng.randrange(28))
                if acquired < day <= end:
                    emit(customer.customer_id, day)
            month = next_month(month)

    rows.sort(key=lambda r: (r.customer_id, r.order_date, r.order_id))
    return rows


def generate_distribution_history(
    start: date,
    days: int,
    *,
    total_customers: int = 1000,
    at_risk_pct: float = 20.0,
    jitter_pct: float = 0.0,
    spike_day: Optional[int] = None,
    spike_at_risk_pct: Optional[float] = None,
    seed: Optional[int] = None,
) -> List[StatusDistribution]:
    """Generate a daily status history with an optional AT_RISK spike.

    Days before ``spike_day`` hover around ``at_risk_pct`` (+/- ``jitter_pct``
    percentage points); from ``spike_day`` on (0-based) the AT_RISK share is
    ``spike_at_risk_pct``. Remaining customers are split between ACTIVE and
    INACTIVE.
    """

    if days < 0:
        raise ValueError(f"days must be >= 0, got {days}")
    if total_customers < 0:
        raise ValueError(f"total_customers must be >= 0, got {total_customers}")
    if spike_day is not None and spike_at_risk_pct is None:
        raise ValueError("spike_at_risk_pct is required when spike_day is set")

    rng = random.Random(seed)
    history: List[StatusDistribution] = []
    for offset in range(days):
        if spike_day is not None and offset >= spike_day:
            pct = float(spike_at_risk_pct)  # type: ignore[arg-type]
        else:
            pct = at_risk_pct + (rng.uniform(-jitter_pct, jitter_pct) if jitter_pct else 0.0)
        at_risk = min(total_customers, max(0, round(total_customers * pct / 100)))
        rest = total_customers - at_risk
        active = rest // 2
        history.append(
            StatusDistribution.from_counts(
                start + timedelta(days=offset),
                {
                    RetentionStatus.ACTIVE: active,
                    RetentionStatus.AT_RISK: at_risk,
                    RetentionStatus.INACTIVE: rest - active,
                },
            )
        )
    return history
