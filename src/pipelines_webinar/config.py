"""Deployment settings shared by the CDK stack, the hooks and the gate model."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from typing import Any

SHIFT_TYPES = ("canary", "linear", "all_at_once")
MISSING_DATA_POLICIES = ("breaching", "notBreaching", "ignore", "missing")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass
class DeploymentSettings:
    """Tunable values for the canary-gated deployment.

    Attributes:
        stage_name: Deployment stage, appended to hook function names.
        alias_name: Name of the alias the gateway points at.
        canary_rate_minutes: Fixed rate of the synthetic probe.
        alarm_threshold: Success percentage under which the alarm fires.
        alarm_period_minutes: Length of one metric period.
        alarm_evaluation_periods: Trailing periods the alarm looks at.
        missing_data: How the alarm treats periods without datapoints.
        shift_type: Traffic shifting style (canary, linear, all_at_once).
        shift_percentage: Share moved on the first (or every linear) step.
        shift_interval_minutes: Bake time between steps.
        hook_timeout_seconds: Upper bound for one hook invocation.
        hook_max_attempts: Attempts per canary API call before failing.
    """

    stage_name: str = "prod"
    alias_name: str = "Current"
    canary_rate_minutes: int = 1
    alarm_threshold: float = 90
    alarm_period_minutes: int = 1
    alarm_evaluation_periods: int = 1
    missing_data: str = "notBreaching"
    shift_type: str = "canary"
    shift_percentage: int = 99
    shift_interval_minutes: int = 5
    hook_timeout_seconds: int = 300
    hook_max_attempts: int = 2

    def __post_init__(self) -> None:
        if self.shift_type not in SHIFT_TYPES:
            raise ValueError(
                f"shift_type must be one of {', '.join(SHIFT_TYPES)}, got {self.shift_type!r}"
            )
        if self.missing_data not in MISSING_DATA_POLICIES:
            raise ValueError(
                f"missing_data must be one of {', '.join(MISSING_DATA_POLICIES)}, "
                f"got {self.missing_data!r}"
            )
        if not 1 <= self.shift_percentage <= 100:
            raise ValueError(
                f"shift_percentage must be between 1 and 100, got {self.shift_percentage}"
            )
        for field_name in (
            "canary_rate_minutes",
            "alarm_period_minutes",
            "alarm_evaluation_periods",
            "shift_interval_minutes",
            "hook_timeout_seconds",
            "hook_max_attempts",
        ):
            if getattr(self, field_name) <= 0:
                raise ValueError(f"{field_name} must be positive, got {getattr(self, field_name)}")

    @classmethod
    def from_env(cls, **overrides: Any) -> DeploymentSettings:
        """Build settings from PIPELINE_* environment variables.

        Keyword overrides take precedence over the environment.
        """
        values: dict[str, Any] = {
            "stage_name": os.environ.get("PIPELINE_STAGE", "prod"),
            "alias_name": os.environ.get("PIPELINE_ALIAS_NAME", "Current"),
            "canary_rate_minutes": _env_int("PIPELINE_CANARY_RATE_MINUTES", 1),
            "alarm_threshold": _env_float("PIPELINE_ALARM_THRESHOLD", 90),
            "alarm_period_minutes": _env_int("PIPELINE_ALARM_PERIOD_MINUTES", 1),
            "alarm_evaluation_periods": _env_int("PIPELINE_ALARM_EVALUATION_PERIODS", 1),
            "missing_data": os.environ.get("PIPELINE_MISSING_DATA", "notBreaching"),
            "shift_type": os.environ.get("PIPELINE_SHIFT_TYPE", "canary").lower(),
            "shift_percentage": _env_int("PIPELINE_SHIFT_PERCENTAGE", 99),
            "shift_interval_minutes": _env_int("PIPELINE_SHIFT_INTERVAL_MINUTES", 5),
            "hook_timeout_seconds": _env_int("PIPELINE_HOOK_TIMEOUT_SECONDS", 300),
            "hook_max_attempts": _env_int("PIPELINE_HOOK_MAX_ATTEMPTS", 2),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)
