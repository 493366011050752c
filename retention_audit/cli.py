"""Command line entry points for the retention audit pipeline."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any

import pandas as pd

from retention_audit.config import PipelineConfig, load_pipeline_config
from retention_audit.foundation.customer_facts import build_customer_facts
from retention_audit.foundation.periods import to_date
from retention_audit.monitoring.alerts import AlertMonitor
from retention_audit.monitoring.exports import (
    export_alert_decisions_csv,
    export_alert_decisions_json,
    export_alert_report_markdown,
    get_alert_summary,
)
from retention_audit.pandas import (
    assessments_to_dataframe,
    cohort_records_to_dataframe,
    cohort_retention_matrix,
    dataframe_to_distributions,
)
from retention_audit.pipeline import run_cohort_pipeline, run_daily_pipeline

logger = logging.getLogger(__name__)


MAX_INPUT_BYTES = 25 * 1024 * 1024  # 25 MiB cap to avoid accidental OOM

#: Exit code returned by ``evaluate_alert_cli --fail-on-alert`` when flagged.
ALERT_EXIT_CODE = 2


def _read_json(path: Path) -> Any:
    resolved = path.resolve()
    size = resolved.stat().st_size
    if size > MAX_INPUT_BYTES:
        raise ValueError(
            f"Input file {resolved} is {size} bytes; exceeds limit of {MAX_INPUT_BYTES} bytes"
        )
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def _load_orders(path: Path) -> list[dict[str, Any]]:
    payload = _read_json(path)
    if not isinstance(payload, list):
        raise ValueError("Expected a list of orders in the input file")
    return [dict(item) for item in payload]


def _load_config(path: Path | None) -> PipelineConfig:
    if path is None:
        return PipelineConfig()
    return load_pipeline_config(path)


def _parse_date(value: str) -> date:
    try:
        return to_date(value, field_name="date argument")
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _configure_logging() -> None:
    # stderr keeps stdout free for the JSON payloads
    logging.basicConfig(
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        level=logging.INFO,
    )


def _write_json(payload: Any, output: Path | None) -> None:
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        with output.open("w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2, sort_keys=True)
    else:  # stdout fallback enables piping in shell usage.
        json.dump(payload, fp=sys.stdout, indent=2, sort_keys=True)
        print()


def build_facts_cli(argv: list[str] | None = None) -> int:
    """Build the customer fact table from a JSON order feed."""

    parser = argparse.ArgumentParser(description=build_facts_cli.__doc__)
    parser.add_argument("input", type=Path, help="Path to JSON file with raw orders")
    parser.add_argument(
        "--qualifying-status",
        dest="statuses",
        action="append",
        help="Order status to keep (repeatable). Defaults to keeping every order.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Optional path for writing the fact table as JSON.",
    )

    args = parser.parse_args(argv)
    _configure_logging()
    orders = _load_orders(args.input)
    facts = build_customer_facts(orders, qualifying_statuses=args.statuses)

    _write_json({"customers": [f.as_dict() for f in facts.values()]}, args.output)
    return 0


def retention_snapshot_cli(argv: list[str] | None = None) -> int:
    """Classify customers and score churn risk for one reference date.

    Writes one row per customer (status, signals, score, level) to CSV and
    prints the status distribution of the day as JSON.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = argparse.ArgumentParser(
        description="Classify retention status and churn risk for a reference date"
    )
    parser.add_argument("input", type=Path, help="Path to JSON file with raw orders")
    parser.add_argument(
        "--reference-date",
        type=_parse_date,
        required=True,
        help="Snapshot date (ISO format: YYYY-MM-DD). Never defaults to today.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        required=True,
        help="Path for output CSV file with per-customer assessments",
    )
    parser.add_argument(
        "--config", type=Path, help="Optional JSON file with pipeline thresholds"
    )
    parser.add_argument(
        "--qualifying-status",
        dest="statuses",
        action="append",
        help="Order status to keep (repeatable). Defaults to keeping every order.",
    )

    args = parser.parse_args(argv)
    _configure_logging()
    config = _load_config(args.config)

    logger.info(f"Loading orders from {args.input}")
    orders = _load_orders(args.input)
    if not orders:
        logger.error("No orders found in input file")
        return 1

    result = run_daily_pipeline(
        orders,
        args.reference_date,
        config,
        qualifying_statuses=args.statuses,
    )

    df = assessments_to_dataframe(result.assessments)
    args.output.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(args.output, index=False)
    logger.info(f"Exported {len(df)} customer assessments to {args.output}")

    _write_json(result.distribution.as_dict(), None)
    return 0


def cohort_retention_cli(argv: list[str] | None = None) -> int:
    """Compute acquisition cohort retention from a JSON order feed."""

    parser = argparse.ArgumentParser(description=cohort_retention_cli.__doc__)
    parser.add_argument("input", type=Path, help="Path to JSON file with raw orders")
    parser.add_argument(
        "--output",
        type=Path,
        required=True,
        help="Path for output CSV file with cohort retention records",
    )
    parser.add_argument(
        "--assignments",
        type=Path,
        help="Optional JSON object of stored customer_id -> cohort month",
    )
    parser.add_argument(
        "--max-maturity",
        type=int,
        default=None,
        help="Keep months since acquisition up to this value (e.g. 12)",
    )
    parser.add_argument(
        "--matrix",
        action="store_true",
        help="Write the cohort x maturity retention matrix instead of long format",
    )
    parser.add_argument(
        "--qualifying-status",
        dest="statuses",
        action="append",
        help="Order status to keep (repeatable). Defaults to keeping every order.",
    )

    args = parser.parse_args(argv)
    _configure_logging()
    orders = _load_orders(args.input)

    existing = None
    if args.assignments:
        payload = _read_json(args.assignments)
        if not isinstance(payload, dict):
            raise ValueError("Expected a JSON object of cohort assignments")
        existing = {
            str(customer_id): to_date(month, field_name=f"cohort of {customer_id}")
            for customer_id, month in payload.items()
        }

    records = run_cohort_pipeline(
        orders,
        existing,
        qualifying_statuses=args.statuses,
        max_maturity=args.max_maturity,
    )

    args.output.parent.mkdir(parents=True, exist_ok=True)
    if args.matrix:
        cohort_retention_matrix(records).to_csv(args.output)
    else:
        cohort_records_to_dataframe(records).to_csv(args.output, index=False)
    logger.info(f"Exported {len(records)} cohort records to {args.output}")
    return 0


def _load_history(path: Path) -> pd.DataFrame:
    if path.suffix.lower() == ".csv":
        return pd.read_csv(path)
    payload = _read_json(path)
    if not isinstance(payload, list):
        raise ValueError("Expected a list of daily status counts in the input file")
    return pd.DataFrame(payload)


def evaluate_alert_cli(argv: list[str] | None = None) -> int:
    """Evaluate the AT_RISK share alert over a daily status history.

    The history holds one row per day with ``snapshot_date`` and per-status
    count columns (``active_count``, ``at_risk_count``, ...), as CSV or as a
    JSON list of objects. Days after ``--reference-date`` are ignored.
    """

    parser = argparse.ArgumentParser(
        description="Evaluate the retention degradation alert"
    )
    parser.add_argument(
        "input", type=Path, help="Path to CSV or JSON daily status history"
    )
    parser.add_argument(
        "--reference-date",
        type=_parse_date,
        required=True,
        help="Day to evaluate (ISO format: YYYY-MM-DD)",
    )
    parser.add_argument(
        "--config", type=Path, help="Optional JSON file with pipeline thresholds"
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Optional report path; .json, .csv or .md selects the format",
    )
    parser.add_argument(
        "--fail-on-alert",
        action="store_true",
        help=f"Exit with code {ALERT_EXIT_CODE} when the day is flagged",
    )

    args = parser.parse_args(argv)
    _configure_logging()
    config = _load_config(args.config)

    history = [
        distribution
        for distribution in dataframe_to_distributions(_load_history(args.input))
        if distribution.snapshot_date <= args.reference_date
    ]
    if not any(d.snapshot_date == args.reference_date for d in history):
        logger.error(
            f"No status counts for reference date {args.reference_date.isoformat()}"
        )
        return 1

    monitor = AlertMonitor(config.alert)
    decisions = monitor.replay(history)
    decision = decisions[-1]

    if args.output:
        suffix = args.output.suffix.lower()
        metadata = {"reference_date": args.reference_date.isoformat()}
        if suffix == ".csv":
            export_alert_decisions_csv(decisions, args.output)
        elif suffix == ".md":
            export_alert_report_markdown(decisions, args.output, metadata=metadata)
        else:
            export_alert_decisions_json(decisions, args.output, metadata=metadata)

    _write_json(
        {"decision": decision.as_dict(), "summary": get_alert_summary(decisions)},
        None,
    )

    if args.fail_on_alert and decision.alert_flag:
        return ALERT_EXIT_CODE
    return 0


def main() -> None:
    raise SystemExit(retention_snapshot_cli())


if __name__ == "__main__":  # pragma: no cover
    main()
