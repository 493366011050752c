from datetime import date, datetime

import pytest

from retention_audit.foundation import (
    CustomerFacts,
    CustomerFactsBuilder,
    OrderRecord,
    build_activity_periods,
    build_customer_facts,
    filter_qualifying_orders,
    validate_orders,
)


def _order(customer_id, order_id, order_date, amount, status=None):
    row = {
        "customer_id": customer_id,
        "order_id": order_id,
        "order_date": order_date,
        "order_amount": amount,
    }
    if status is not None:
        row["order_status"] = status
    return row


def test_build_customer_facts_aggregates_per_customer() -> None:
    facts = build_customer_facts(
        [
            _order("C2", "O3", date(2024, 3, 1), 15.0),
            _order("C1", "O1", date(2024, 1, 5), 40.0),
            _order("C1", "O2", date(2024, 2, 9), 60.0),
        ]
    )

    assert list(facts) == ["C1", "C2"]
    c1 = facts["C1"]
    assert c1.first_order_date == date(2024, 1, 5)
    assert c1.last_order_date == date(2024, 2, 9)
    assert c1.total_orders == 2
    assert c1.total_revenue == 100.0
    assert c1.avg_order_value == 50.0
    assert c1.last_order_amount == 60.0
    assert facts["C2"].total_orders == 1


def test_line_items_of_one_order_are_summed() -> None:
    facts = build_customer_facts(
        [
            _order("C1", "O1", date(2024, 1, 5), 10.10),
            _order("C1", "O1", date(2024, 1, 5), 20.20),
            _order("C1", "O2", date(2024, 1, 9), 5.0),
        ]
    )

    assert facts["C1"].total_orders == 2
    assert facts["C1"].total_revenue == 35.3
    assert facts["C1"].last_order_amount == 5.0


def test_last_order_amount_tie_breaks_on_order_id() -> None:
    facts = build_customer_facts(
        [
            _order("C1", "O9", date(2024, 1, 5), 80.0),
            _order("C1", "O1", date(2024, 1, 5), 20.0),
        ]
    )
    assert facts["C1"].last_order_amount == 80.0


def test_order_attributed_to_two_customers_rejected() -> None:
    with pytest.raises(ValueError, match="several customers"):
        build_customer_facts(
            [
                _order("C1", "O1", date(2024, 1, 5), 10.0),
                _order("C2", "O1", date(2024, 1, 5), 10.0),
            ]
        )


def test_datetimes_and_iso_strings_are_truncated_to_dates() -> None:
    facts = build_customer_facts(
        [
            _order("C1", "O1", datetime(2024, 1, 5, 23, 30), 10.0),
            _order("C1", "O2", "2024-01-20T08:00:00", 10.0),
        ]
    )
    assert facts["C1"].first_order_date == date(2024, 1, 5)
    assert facts["C1"].last_order_date == date(2024, 1, 20)


def test_empty_feed_yields_empty_facts() -> None:
    assert build_customer_facts([]) == {}


class TestOrderValidation:
    """Malformed rows fail fast with a descriptive error."""

    def test_missing_key(self):
        with pytest.raises(KeyError, match="missing key"):
            validate_orders([{"order_id": "O1", "order_date": date(2024, 1, 1)}])

    def test_null_order_date(self):
        with pytest.raises(ValueError, match="order_date cannot be null"):
            validate_orders([_order("C1", "O1", None, 10.0)])

    def test_negative_amount(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            validate_orders([_order("C1", "O1", date(2024, 1, 1), -1)])

    def test_non_numeric_amount(self):
        with pytest.raises(ValueError, match="must be numeric"):
            validate_orders([_order("C1", "O1", date(2024, 1, 1), "ten")])

    def test_nan_amount(self):
        with pytest.raises(ValueError, match="finite"):
            validate_orders([_order("C1", "O1", date(2024, 1, 1), float("nan"))])

    def test_empty_customer_id(self):
        with pytest.raises(ValueError, match="customer_id cannot be empty"):
            validate_orders([_order("", "O1", date(2024, 1, 1), 1.0)])

    def test_bad_date_type(self):
        with pytest.raises(TypeError):
            validate_orders([_order("C1", "O1", 20240101, 1.0)])

    def test_missing_amount(self):
        with pytest.raises(KeyError, match="index 0 missing key order_amount"):
            build_customer_facts(
                [{"customer_id": "C1", "order_id": "O1", "order_date": date(2024, 1, 1)}]
            )

    def test_order_record_with_null_date(self):
        records = [
            OrderRecord("C1", "O1", date(2024, 1, 1), 10.0),
            OrderRecord("C1", "O2", None, 10.0),
        ]
        with pytest.raises(ValueError, match="order_date cannot be null") as excinfo:
            build_customer_facts(records)
        assert excinfo.value.args[1] == {"index": 1}

    def test_order_record_with_nan_amount(self):
        with pytest.raises(ValueError, match="finite"):
            build_customer_facts([OrderRecord("C1", "O1", date(2024, 1, 1), float("nan"))])

    def test_order_record_with_negative_amount(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            validate_orders([OrderRecord("C1", "O1", date(2024, 1, 1), -3.0)])

    def test_order_records_pass_through(self):
        record = OrderRecord("C1", "O1", date(2024, 1, 1), 12.5)
        assert validate_orders([record]) == [record]


class TestCustomerFactsInvariants:
    """CustomerFacts rejects incoherent values."""

    def test_first_after_last_rejected(self):
        with pytest.raises(ValueError, match="is after last_order_date"):
            CustomerFacts("C1", date(2024, 2, 1), date(2024, 1, 1), 1, 10.0)

    def test_zero_orders_rejected(self):
        with pytest.raises(ValueError, match="total_orders must be >= 1"):
            CustomerFacts("C1", date(2024, 1, 1), date(2024, 1, 1), 0, 0.0)

    def test_negative_revenue_rejected(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            CustomerFacts("C1", date(2024, 1, 1), date(2024, 1, 1), 1, -5.0)

    def test_as_dict(self):
        facts = CustomerFacts("C1", date(2024, 1, 1), date(2024, 1, 31), 2, 30.0)
        assert facts.as_dict() == {
            "customer_id": "C1",
            "first_order_date": "2024-01-01",
            "last_order_date": "2024-01-31",
            "total_orders": 2,
            "total_revenue": 30.0,
            "avg_order_value": 15.0,
            "last_order_amount": None,
        }


class TestQualifyingStatuses:
    """Optional status gate in front of aggregation."""

    def test_filter_is_case_insensitive_and_keeps_missing_status(self):
        orders = validate_orders(
            [
                _order("C1", "O1", date(2024, 1, 1), 10.0, status="Completed"),
                _order("C1", "O2", date(2024, 1, 2), 10.0, status="cancelled"),
                _order("C1", "O3", date(2024, 1, 3), 10.0),
            ]
        )
        kept = filter_qualifying_orders(orders)
        assert [o.order_id for o in kept] == ["O1", "O3"]

    def test_builder_excludes_non_qualifying_orders(self):
        facts = CustomerFactsBuilder(qualifying_statuses=["paid"]).build(
            [
                _order("C1", "O1", date(2024, 1, 1), 10.0, status="paid"),
                _order("C1", "O2", date(2024, 3, 1), 99.0, status="refunded"),
                _order("C2", "O3", date(2024, 1, 1), 5.0, status="refunded"),
            ]
        )
        assert list(facts) == ["C1"]
        assert facts["C1"].last_order_date == date(2024, 1, 1)
        assert facts["C1"].total_revenue == 10.0

    def test_no_gate_by_default(self):
        facts = build_customer_facts(
            [_order("C1", "O1", date(2024, 1, 1), 10.0, status="cancelled")]
        )
        assert "C1" in facts


def test_build_activity_periods_truncates_to_month() -> None:
    periods = build_activity_periods(
        [
            _order("C1", "O1", date(2024, 1, 5), 10.0),
            _order("C1", "O2", date(2024, 1, 25), 10.0),
            _order("C1", "O3", date(2024, 3, 2), 10.0),
        ]
    )
    assert periods == {("C1", date(2024, 1, 1)), ("C1", date(2024, 3, 1))}


def test_rebuild_is_deterministic() -> None:
    orders = [
        _order("C3", "O5", date(2024, 4, 1), 7.5),
        _order("C1", "O1", date(2024, 1, 5), 40.0),
        _order("C2", "O2", date(2024, 2, 9), 60.0),
    ]
    first = build_customer_facts(orders)
    second = build_customer_facts(list(reversed(orders)))
    assert [f.as_dict() for f in first.values()] == [f.as_dict() for f in second.values()]
