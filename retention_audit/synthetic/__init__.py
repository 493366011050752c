"""Synthetic data generation utilities.

This package produces realistic-but-fake order feeds and daily status
histories to exercise the retention pipeline without production data.
"""

from .generator import (
    Customer,
    OrderScenario,
    generate_customers,
    generate_distribution_history,
    generate_orders,
)
from .scenarios import (
    BASELINE_SCENARIO,
    DIRTY_FEED_SCENARIO,
    HIGH_CHURN_SCENARIO,
    STABLE_SCENARIO,
)

__all__ = [
    "Customer",
    "OrderScenario",
    "generate_customers",
    "generate_distribution_history",
    "generate_orders",
    "BASELINE_SCENARIO",
    "DIRTY_FEED_SCENARIO",
    "HIGH_CHURN_SCENARIO",
    "STABLE_SCENARIO",
]
