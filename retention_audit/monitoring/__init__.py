"""Monitoring module for retention anomaly alerts.

This module evaluates the daily AT_RISK share against a rolling baseline and
exports the resulting decisions for notification and audit tooling.
"""

from retention_audit.monitoring.alerts import (
    AlertDecision,
    AlertMonitor,
    AlertSeverity,
    SuppressionReason,
    classify_severity,
    compute_baseline,
    evaluate_alert,
)
from retention_audit.monitoring.exports import (
    export_alert_decisions_csv,
    export_alert_decisions_json,
    export_alert_report_markdown,
    get_alert_summary,
)

__all__ = [
    "AlertDecision",
    "AlertMonitor",
    "AlertSeverity",
    "SuppressionReason",
    "classify_severity",
    "compute_baseline",
    "evaluate_alert",
    "export_alert_decisions_csv",
    "export_alert_decisions_json",
    "export_alert_report_markdown",
    "get_alert_summary",
]
