"""Pre-configured order feed scenarios for tests and demos.

Examples
--------
>>> from datetime import date
>>> from retention_audit.synthetic import generate_customers, generate_orders
>>> from retention_audit.synthetic.scenarios import HIGH_CHURN_SCENARIO
>>>
>>> customers = generate_customers(500, date(2024, 1, 1), date(2024, 6, 30), seed=7)
>>> orders = generate_orders(
...     customers, date(2024, 1, 1), date(2024, 12, 31), scenario=HIGH_CHURN_SCENARIO
... )
"""

from retention_audit.synthetic.generator import OrderScenario

# Moderate behaviour, useful for general testing
BASELINE_SCENARIO = OrderScenario(
    churn_hazard=0.08,
    base_orders_per_month=1.2,
    mean_order_amount=45.0,
    amount_variability=0.4,
    seed=42,
)

# Customers drift away quickly; most end up AT_RISK or INACTIVE
HIGH_CHURN_SCENARIO = OrderScenario(
    churn_hazard=0.30,
    base_orders_per_month=0.8,
    mean_order_amount=35.0,
    amount_variability=0.5,
    seed=42,
)

# Loyal base with frequent repeat orders
STABLE_SCENARIO = OrderScenario(
    churn_hazard=0.02,
    base_orders_per_month=2.0,
    mean_order_amount=60.0,
    amount_variability=0.3,
    seed=42,
)

# Feed that still contains cancelled orders, to exercise status gating
DIRTY_FEED_SCENARIO = OrderScenario(
    churn_hazard=0.08,
    base_orders_per_month=1.2,
    mean_order_amount=45.0,
    amount_variability=0.4,
    cancelled_rate=0.15,
    seed=42,
)
