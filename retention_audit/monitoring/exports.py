"""Export alert decisions to various formats.

This module provides utilities for saving and reporting alert decisions for
notification dispatch, dashboards and audit trails. Exports never send
anything themselves; delivery is left to whatever consumes the files.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Sequence

import pandas as pd

from retention_audit.monitoring.alerts import (
    AlertDecision,
    AlertSeverity,
    SuppressionReason,
)

logger = logging.getLogger(__name__)


def export_alert_decisions_json(
    decisions: Sequence[AlertDecision],
    output_path: str | Path,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Export alert decisions to JSON format.

    Parameters
    ----------
    decisions:
        Alert decisions in date order.
    output_path:
        Path where the JSON file will be saved.
    metadata:
        Optional metadata to include in the report (e.g., data source,
        pipeline version). Kept out of the decisions so that re-exporting the
        same decisions yields the same ``decisions`` payload.

    Examples
    --------
    >>> export_alert_decisions_json(
    ...     monitor.decisions,
    ...     "alerts_2024-01-15.json",
    ...     metadata={"source": "warehouse"},
    ... )
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    report_data = {
        "metadata": metadata or {},
        "decisions": [decision.as_dict() for decision in decisions],
    }

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(report_data, f, indent=2)

    logger.info(f"Alert report exported to {output_path}")


def export_alert_decisions_csv(
    decisions: Sequence[AlertDecision],
    output_path: str | Path,
) -> None:
    """Export alert decisions to CSV, one row per reference date."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    df = pd.DataFrame([decision.as_dict() for decision in decisions])
    df.to_csv(output_path, index=False)

    logger.info(f"Alert report exported to {output_path}")


def _format_value(value: float | None, suffix: str = "%") -> str:
    if value is None:
        return "n/a"
    return f"{value:.2f}{suffix}"


def export_alert_report_markdown(
    decisions: Sequence[AlertDecision],
    output_path: str | Path,
    title: str = "Retention Alert Report",
    metadata: dict[str, Any] | None = None,
) -> None:
    """Export alert decisions to a human-readable Markdown report.

    Parameters
    ----------
    decisions:
        Alert decisions in date order.
    output_path:
        Path where the Markdown file will be saved.
    title:
        Report title (default: "Retention Alert Report").
    metadata:
        Optional metadata to include in the report header.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    lines = []
    lines.append(f"# {title}\n")

    if metadata:
        lines.append("## Metadata\n")
        for key, value in metadata.items():
            lines.append(f"- **{key}:** {value}")
        lines.append("")

    summary = get_alert_summary(decisions)
    lines.append("## Summary\n")
    lines.append(f"- **Days Evaluated:** {summary['total_days']}")
    lines.append(f"- **Actionable Alerts:** {summary['flagged_count']}")
    lines.append(f"- **Warm-up Days:** {summary['warm_up_days']}")
    lines.append(
        f"- **Suppressed Deviations:** {summary['suppressed_count']}\n"
    )

    flagged = [d for d in decisions if d.alert_flag]
    if flagged:
        lines.append("## Actionable Alerts\n")
        lines.append("| Date | Severity | Current | Baseline | Relative Change | Sample |")
        lines.append("|------|----------|---------|----------|-----------------|--------|")
        for decision in flagged:
            lines.append(
                f"| {decision.alert_date.isoformat()} | {decision.severity.value} "
                f"| {_format_value(decision.current_value)} "
                f"| {_format_value(decision.baseline_value)} "
                f"| {_format_value(decision.delta_relative_pct)} "
                f"| {decision.sample_size} |"
            )
        lines.append("")

    lines.append("## Daily Decisions\n")
    lines.append("| Date | Severity | Flag | Current | Baseline | Note |")
    lines.append("|------|----------|------|---------|----------|------|")
    for decision in decisions:
        note = decision.suppression_reason.value if decision.suppression_reason else ""
        lines.append(
            f"| {decision.alert_date.isoformat()} | {decision.severity.value} "
            f"| {'yes' if decision.alert_flag else 'no'} "
            f"| {_format_value(decision.current_value)} "
            f"| {_format_value(decision.baseline_value)} | {note} |"
        )
    lines.append("")

    if decisions:
        lines.append("## Thresholds\n")
        lines.append(
            f"- **WARNING:** +{decisions[-1].threshold_warning:.1f}% vs baseline"
        )
        lines.append(
            f"- **CRITICAL:** +{decisions[-1].threshold_critical:.1f}% vs baseline"
        )

    with open(output_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines))

    logger.info(f"Alert report exported to {output_path}")


def get_alert_summary(decisions: Sequence[AlertDecision]) -> dict[str, Any]:
    """Get a summary of alert decisions suitable for dashboards.

    Examples
    --------
    >>> summary = get_alert_summary(monitor.decisions)
    >>> print(f"{summary['flagged_count']} alerts over {summary['total_days']} days")
    """
    severity_counts = {severity.value: 0 for severity in AlertSeverity}
    for decision in decisions:
        severity_counts[decision.severity.value] += 1

    flagged = [d for d in decisions if d.alert_flag]
    return {
        "total_days": len(decisions),
        "flagged_count": len(flagged),
        "warm_up_days": sum(
            1 for d in decisions if d.suppression_reason is SuppressionReason.WARM_UP
        ),
        "suppressed_count": sum(
            1
            for d in decisions
            if not d.alert_flag and d.severity is not AlertSeverity.INFO
        ),
        "severity_counts": severity_counts,
        "flagged_dates": [d.alert_date.isoformat() for d in flagged],
    }
