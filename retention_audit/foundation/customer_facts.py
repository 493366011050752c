"""Customer fact table construction from the raw order feed.

The fact table holds one record per customer with lifetime counts, sums and
dates only. It carries no reference date: everything time-relative (recency,
status, risk) is derived downstream, so a fact table stays valid until the
next refresh replaces it wholesale.

Quick Start
-----------
>>> from datetime import date
>>> from retention_audit.foundation.customer_facts import build_customer_facts
>>> facts = build_customer_facts(
...     [
...         {"customer_id": "C1", "order_id": "O1", "order_date": date(2024, 1, 5), "order_amount": 40.0},
...         {"customer_id": "C1", "order_id": "O2", "order_date": date(2024, 2, 9), "order_amount": 60.0},
...     ]
... )
>>> facts["C1"].total_orders, facts["C1"].avg_order_value
(2, 50.0)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Mapping, Sequence, Union

from retention_audit.foundation.periods import month_start, to_date

logger = logging.getLogger(__name__)

#: Order statuses treated as genuine customer engagement by default.
DEFAULT_QUALIFYING_STATUSES = frozenset({"completed", "delivered", "paid"})


@dataclass(frozen=True, slots=True)
class OrderRecord:
    """A single validated row of the order feed.

    Attributes
    ----------
    customer_id:
        Identifier of the purchasing customer.
    order_id:
        Identifier of the order. Several rows may share an order id when the
        feed is at line-item level; they are summed into one order.
    order_date:
        Calendar date of the order.
    order_amount:
        Non-negative amount of the row.
    order_status:
        Optional upstream status. Only used by :func:`filter_qualifying_orders`.
    """

    customer_id: str
    order_id: str
    order_date: date
    order_amount: float
    order_status: str | None = None


OrderLike = Union[OrderRecord, Mapping[str, object]]


@dataclass(frozen=True)
class CustomerFacts:
    """Lifetime facts for one customer.

    ``avg_order_value`` is derived from ``total_revenue`` and ``total_orders``
    on access and never stored independently.
    """

    customer_id: str
    first_order_date: date
    last_order_date: date
    total_orders: int
    total_revenue: float
    last_order_amount: float | None = None

    def __post_init__(self) -> None:
        if self.first_order_date > self.last_order_date:
            raise ValueError(
                f"first_order_date ({self.first_order_date.isoformat()}) is after "
                f"last_order_date ({self.last_order_date.isoformat()}) "
                f"(customer_id={self.customer_id})"
            )
        if self.total_orders < 1:
            raise ValueError(
                f"total_orders must be >= 1: {self.total_orders} "
                f"(customer_id={self.customer_id})"
            )
        if self.total_revenue < 0:
            raise ValueError(
                f"total_revenue cannot be negative: {self.total_revenue} "
                f"(customer_id={self.customer_id})"
            )

    @property
    def avg_order_value(self) -> float:
        return self.total_revenue / self.total_orders

    def as_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the facts."""

        return {
            "customer_id": self.customer_id,
            "first_order_date": self.first_order_date.isoformat(),
            "last_order_date": self.last_order_date.isoformat(),
            "total_orders": self.total_orders,
            "total_revenue": self.total_revenue,
            "avg_order_value": self.avg_order_value,
            "last_order_amount": self.last_order_amount,
        }


def _coerce_amount(raw: object, idx: int) -> Decimal:
    try:
        amount = Decimal(str(raw))
    except InvalidOperation as exc:
        raise ValueError(
            "Order amount must be numeric",
            {"index": idx, "order_amount": raw},
        ) from exc
    if not amount.is_finite():
        raise ValueError(
            "Order amount must be a finite number",
            {"index": idx, "order_amount": raw},
        )
    if amount < 0:
        raise ValueError(
            "Order amount cannot be negative",
            {"index": idx, "order_amount": amount},
        )
    return amount


def _coerce_order(row: OrderLike, idx: int) -> OrderRecord:
    if isinstance(row, OrderRecord):
        if row.order_date is None:
            raise ValueError("Order order_date cannot be null", {"index": idx})
        _coerce_amount(row.order_amount, idx)
        return row

    try:
        customer_id = row["customer_id"]
        order_id = row["order_id"]
        raw_amount = row["order_amount"]
    except KeyError as exc:
        raise KeyError(f"Order at index {idx} missing key {exc.args[0]}") from exc
    if customer_id is None or str(customer_id) == "":
        raise ValueError("Order customer_id cannot be empty", {"index": idx})
    if order_id is None or str(order_id) == "":
        raise ValueError("Order order_id cannot be empty", {"index": idx})

    raw_date = row.get("order_date")
    if raw_date is None:
        raise ValueError("Order order_date cannot be null", {"index": idx})
    order_date = to_date(raw_date, field_name=f"order_date at index {idx}")

    amount = _coerce_amount(raw_amount, idx)

    status = row.get("order_status")
    return OrderRecord(
        customer_id=str(customer_id),
        order_id=str(order_id),
        order_date=order_date,
        order_amount=float(amount),
        order_status=str(status) if status is not None else None,
    )


def validate_orders(rows: Iterable[OrderLike]) -> list[OrderRecord]:
    """Validate raw order rows, failing fast on the first malformed row.

    Raises
    ------
    KeyError
        If a row lacks ``customer_id``, ``order_id`` or ``order_amount``.
    ValueError
        If ``order_date`` is null or ``order_amount`` is not a finite,
        non-negative number.
    TypeError
        If ``order_date`` is not a date-like value.
    """

    return [_coerce_order(row, idx) for idx, row in enumerate(rows)]


def filter_qualifying_orders(
    orders: Iterable[OrderRecord],
    statuses: Iterable[str] = DEFAULT_QUALIFYING_STATUSES,
) -> list[OrderRecord]:
    """Keep orders whose status is in ``statuses`` (case-insensitive).

    Orders without a status are kept: feeds that carry no status are assumed
    to be pre-filtered upstream.
    """

    allowed = {status.lower() for status in statuses}
    kept = [
        order
        for order in orders
        if order.order_status is None or order.order_status.lower() in allowed
    ]
    return kept


def build_activity_periods(orders: Iterable[OrderLike]) -> set[tuple[str, date]]:
    """Return the (customer_id, activity_month) pairs with at least one order."""

    return {
        (order.customer_id, month_start(order.order_date))
        for order in validate_orders(orders)
    }


class CustomerFactsBuilder:
    """Aggregate an order feed into one :class:`CustomerFacts` per customer."""

    def __init__(self, qualifying_statuses: Sequence[str] | None = None) -> None:
        # None leaves status gating to the upstream feed.
        self.qualifying_statuses = (
            frozenset(qualifying_statuses) if qualifying_statuses is not None else None
        )

    def prepare(self, orders: Iterable[OrderLike]) -> list[OrderRecord]:
        """Validate the feed and apply the optional status gate."""

        records = validate_orders(orders)
        if self.qualifying_statuses is not None:
            kept = filter_qualifying_orders(records, self.qualifying_statuses)
            dropped = len(records) - len(kept)
            if dropped:
                logger.info(
                    f"Excluded {dropped}/{len(records)} order rows with "
                    f"non-qualifying status"
                )
            records = kept
        return records

    def build(self, orders: Iterable[OrderLike]) -> dict[str, CustomerFacts]:
        records = self.prepare(orders)
        grouped_orders = self._aggregate_orders(records)
        facts = self._aggregate_customers(grouped_orders)
        logger.info(
            f"Built customer facts for {len(facts)} customers "
            f"from {len(grouped_orders)} orders"
        )
        return facts

    @staticmethod
    def _aggregate_orders(
        records: Iterable[OrderRecord],
    ) -> dict[str, dict[str, object]]:
        grouped: dict[str, dict[str, object]] = {}
        for record in records:
            bucket = grouped.setdefault(
                record.order_id,
                {
                    "customer_id": record.customer_id,
                    "order_date": record.order_date,
                    "amount": Decimal("0"),
                },
            )
            if bucket["customer_id"] != record.customer_id:
                raise ValueError(
                    f"Order {record.order_id} is attributed to several customers: "
                    f"{bucket['customer_id']} and {record.customer_id}"
                )
            bucket["order_date"] = min(bucket["order_date"], record.order_date)
            bucket["amount"] += Decimal(str(record.order_amount))
        return grouped

    @staticmethod
    def _aggregate_customers(
        grouped_orders: Mapping[str, Mapping[str, object]],
    ) -> dict[str, CustomerFacts]:
        buckets: dict[str, dict[str, object]] = {}
        for order_id, order in grouped_orders.items():
            customer_id = str(order["customer_id"])
            order_date = order["order_date"]
            amount = order["amount"]
            bucket = buckets.get(customer_id)
            if bucket is None:
                buckets[customer_id] = {
                    "first_order_date": order_date,
                    "last_order_date": order_date,
                    "total_orders": 1,
                    "total_revenue": amount,
                    "last_key": (order_date, order_id),
                    "last_amount": amount,
                }
                continue

            bucket["first_order_date"] = min(bucket["first_order_date"], order_date)
            bucket["last_order_date"] = max(bucket["last_order_date"], order_date)
            bucket["total_orders"] += 1
            bucket["total_revenue"] += amount
            # Most recent order wins; same-day ties go to the highest order id.
            if (order_date, order_id) > bucket["last_key"]:
                bucket["last_key"] = (order_date, order_id)
                bucket["last_amount"] = amount

        facts: dict[str, CustomerFacts] = {}
        for customer_id in sorted(buckets):
            payload = buckets[customer_id]
            if payload["total_orders"] < 1 or payload["first_order_date"] is None:
                continue
            facts[customer_id] = CustomerFacts(
                customer_id=customer_id,
                first_order_date=payload["first_order_date"],
                last_order_date=payload["last_order_date"],
                total_orders=int(payload["total_orders"]),
                total_revenue=float(
                    payload["total_revenue"].quantize(
                        Decimal("0.01"), rounding=ROUND_HALF_UP
                    )
                ),
                last_order_amount=float(
                    payload["last_amount"].quantize(
                        Decimal("0.01"), rounding=ROUND_HALF_UP
                    )
                ),
            )
        return facts


def build_customer_facts(
    orders: Iterable[OrderLike],
    qualifying_statuses: Sequence[str] | None = None,
) -> dict[str, CustomerFacts]:
    """Aggregate ``orders`` into a ``customer_id -> CustomerFacts`` mapping.

    Parameters
    ----------
    orders:
        Order rows as :class:`OrderRecord` instances or mappings with
        ``customer_id``, ``order_id``, ``order_date`` and ``order_amount``.
    qualifying_statuses:
        Optional set of order statuses to keep. By default no status gate is
        applied and the feed is assumed to contain only validated orders.

    Returns
    -------
    dict[str, CustomerFacts]
        Facts keyed by customer id, in customer id order.
    """

    return CustomerFactsBuilder(qualifying_statuses=qualifying_statuses).build(orders)
