"""Foundational building blocks for the retention pipeline.

This package exposes order feed validation, the per-customer fact table,
customer master enrichment and the calendar helpers every later stage uses.
"""

from .customer_facts import (
    CustomerFacts,
    CustomerFactsBuilder,
    OrderRecord,
    build_activity_periods,
    build_customer_facts,
    filter_qualifying_orders,
    validate_orders,
)
from .customer_profile import (
    CustomerProfile,
    CustomerProfileContract,
    EnrichedCustomer,
    enrich_facts,
)
from .periods import month_diff, month_start, to_date

__all__ = [
    "CustomerFacts",
    "CustomerFactsBuilder",
    "OrderRecord",
    "build_activity_periods",
    "build_customer_facts",
    "filter_qualifying_orders",
    "validate_orders",
    "CustomerProfile",
    "CustomerProfileContract",
    "EnrichedCustomer",
    "enrich_facts",
    "month_diff",
    "month_start",
    "to_date",
]
