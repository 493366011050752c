"""Threshold configuration for every stage of the retention pipeline.

All business thresholds (recency cut-offs, signal multipliers and weights,
alert percentages) live in these dataclasses and are injected into the stage
functions. Nothing in the pipeline hardcodes them, so a business with a
different purchase cadence can tune them without touching signal logic.

Examples
--------
>>> from retention_audit.config import PipelineConfig
>>> config = PipelineConfig.from_mapping(
...     {"retention": {"active_days": 45, "at_risk_days": 120}}
... )
>>> config.retention.active_days
45
>>> config.alert.baseline_window_days
7
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping


@dataclass(frozen=True)
class RetentionThresholds:
    """Recency thresholds (in days) used to classify retention status.

    Attributes
    ----------
    active_days:
        Customers whose last order is at most this many days old are ACTIVE.
    at_risk_days:
        Customers past ``active_days`` but within this many days are AT_RISK.
        Anything older is INACTIVE.
    """

    active_days: int = 30
    at_risk_days: int = 90

    def __post_init__(self) -> None:
        if self.active_days < 0:
            raise ValueError(f"active_days must be >= 0, got {self.active_days}")
        if self.at_risk_days < self.active_days:
            raise ValueError(
                f"at_risk_days ({self.at_risk_days}) must be >= "
                f"active_days ({self.active_days})"
            )


@dataclass(frozen=True)
class ChurnSignalConfig:
    """Multipliers, weights and level cut-offs for churn risk scoring.

    Attributes
    ----------
    frequency_drop_multiplier:
        A customer shows a frequency drop when days since last order exceeds
        this multiple of their own average inter-order gap.
    pattern_break_multiplier:
        Fraction of the average gap after which an ACTIVE customer is
        considered to be drifting away from their rhythm.
    low_engagement_max_orders:
        ACTIVE customers with at most this many orders count as inconsistent.
    value_drop_ratio:
        Last order amount below this fraction of the average order value is a
        value drop.
    evaluate_value_drop:
        Whether the value-drop signal is evaluated at all. When False the
        assessment reports ``value_drop_evaluated=False``.
    frequency_drop_weight, value_drop_weight, status_inconsistent_weight:
        Points contributed by each signal. They must sum to at most 100.
    high_risk_min_score, medium_risk_min_score:
        Lower bounds (inclusive) of the HIGH and MEDIUM risk levels.
    """

    frequency_drop_multiplier: float = 1.5
    pattern_break_multiplier: float = 0.7
    low_engagement_max_orders: int = 3
    value_drop_ratio: float = 0.6
    evaluate_value_drop: bool = False
    frequency_drop_weight: int = 50
    value_drop_weight: int = 30
    status_inconsistent_weight: int = 20
    high_risk_min_score: int = 51
    medium_risk_min_score: int = 21

    def __post_init__(self) -> None:
        weights = (
            self.frequency_drop_weight,
            self.value_drop_weight,
            self.status_inconsistent_weight,
        )
        if any(weight < 0 for weight in weights):
            raise ValueError(f"Signal weights cannot be negative: {weights}")
        if sum(weights) > 100:
            raise ValueError(
                f"Signal weights must sum to at most 100, got {sum(weights)}"
            )
        if self.frequency_drop_multiplier <= 0 or self.pattern_break_multiplier <= 0:
            raise ValueError("Signal multipliers must be positive")
        if not 0 < self.value_drop_ratio <= 1:
            raise ValueError(
                f"value_drop_ratio must be in (0, 1], got {self.value_drop_ratio}"
            )
        if not 0 <= self.medium_risk_min_score <= self.high_risk_min_score <= 100:
            raise ValueError(
                "Risk level cut-offs must satisfy "
                "0 <= medium_risk_min_score <= high_risk_min_score <= 100"
            )


@dataclass(frozen=True)
class AlertConfig:
    """Anomaly detection settings for the AT_RISK share alert.

    Attributes
    ----------
    warning_pct:
        Relative increase (in %) over baseline that raises a WARNING.
    critical_pct:
        Relative increase (in %) over baseline that raises a CRITICAL.
    baseline_window_days:
        Number of days strictly preceding the reference date averaged into
        the baseline.
    min_sample_size:
        Minimum number of evaluated customers for an alert to be actionable.
    consecutive_days_required:
        Number of consecutive non-INFO days needed before the alert flag is
        raised. 1 disables the rule.
    """

    warning_pct: float = 15.0
    critical_pct: float = 25.0
    baseline_window_days: int = 7
    min_sample_size: int = 100
    consecutive_days_required: int = 1

    def __post_init__(self) -> None:
        if self.warning_pct < 0:
            raise ValueError(f"warning_pct must be >= 0, got {self.warning_pct}")
        if self.critical_pct < self.warning_pct:
            raise ValueError(
                f"critical_pct ({self.critical_pct}) must be >= "
                f"warning_pct ({self.warning_pct})"
            )
        if self.baseline_window_days < 1:
            raise ValueError(
                f"baseline_window_days must be >= 1, got {self.baseline_window_days}"
            )
        if self.min_sample_size < 0:
            raise ValueError(
                f"min_sample_size must be >= 0, got {self.min_sample_size}"
            )
        if self.consecutive_days_required < 1:
            raise ValueError(
                "consecutive_days_required must be >= 1, "
                f"got {self.consecutive_days_required}"
            )


@dataclass(frozen=True)
class PipelineConfig:
    """Bundle of per-stage configuration objects."""

    retention: RetentionThresholds = field(default_factory=RetentionThresholds)
    churn: ChurnSignalConfig = field(default_factory=ChurnSignalConfig)
    alert: AlertConfig = field(default_factory=AlertConfig)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "PipelineConfig":
        """Build a configuration from a nested mapping.

        Sections that are absent fall back to their defaults. Unknown sections
        or keys raise ``ValueError`` so that typos do not silently revert a
        threshold to its default.
        """

        sections = {
            "retention": RetentionThresholds,
            "churn": ChurnSignalConfig,
            "alert": AlertConfig,
        }
        unknown = set(payload) - set(sections)
        if unknown:
            raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

        kwargs: dict[str, Any] = {}
        for name, section_cls in sections.items():
            values = payload.get(name) or {}
            if not isinstance(values, Mapping):
                raise TypeError(
                    f"Configuration section '{name}' must be a mapping",
                    {"value": values},
                )
            allowed = {f.name for f in fields(section_cls)}
            bad_keys = set(values) - allowed
            if bad_keys:
                raise ValueError(
                    f"Unknown keys in configuration section '{name}': {sorted(bad_keys)}"
                )
            kwargs[name] = section_cls(**values)
        return cls(**kwargs)

    def as_dict(self) -> dict[str, dict[str, Any]]:
        """Return a JSON-serialisable representation of the configuration."""

        def serialise(section: Any) -> dict[str, Any]:
            return {f.name: getattr(section, f.name) for f in fields(section)}

        return {
            "retention": serialise(self.retention),
            "churn": serialise(self.churn),
            "alert": serialise(self.alert),
        }


def load_pipeline_config(path: str | Path) -> PipelineConfig:
    """Load a :class:`PipelineConfig` from a JSON file."""

    path = Path(path)
    with path.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if not isinstance(payload, Mapping):
        raise ValueError(f"Expected a JSON object in configuration file {path}")
    return PipelineConfig.from_mapping(payload)
