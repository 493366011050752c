"""Customer retention audit toolkit.

Turns a raw order feed into per-customer facts, daily retention snapshots,
explainable churn risk scores, acquisition cohort curves and an anomaly alert
on the share of AT_RISK customers. Every time-relative computation takes an
explicit reference date; nothing reads the system clock.
"""

from retention_audit.config import (
    AlertConfig,
    ChurnSignalConfig,
    PipelineConfig,
    RetentionThresholds,
    load_pipeline_config,
)
from retention_audit.pipeline import (
    DailyPipelineResult,
    run_cohort_pipeline,
    run_daily_pipeline,
)

__all__ = [
    "AlertConfig",
    "ChurnSignalConfig",
    "DailyPipelineResult",
    "PipelineConfig",
    "RetentionThresholds",
    "load_pipeline_config",
    "run_cohort_pipeline",
    "run_daily_pipeline",
]

__version__ = "0.1.0"
