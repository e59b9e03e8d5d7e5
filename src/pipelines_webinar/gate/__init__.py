"""Model of the canary-gated deployment: alias, alarm, shifting and hooks."""

from pipelines_webinar.gate.alarm import (
    AlarmEvaluation,
    AlarmState,
    ComparisonOperator,
    MissingDataPolicy,
    ThresholdAlarm,
)
from pipelines_webinar.gate.alias import AliasSnapshot, StaleAliasError, VersionedAlias
from pipelines_webinar.gate.deployment_gate import (
    DeploymentGate,
    DeploymentInProgressError,
    MetricSource,
)
from pipelines_webinar.gate.executor import HookContext, HookExecutor, HookResult, HookStatus
from pipelines_webinar.gate.state import DeploymentResult, GateState
from pipelines_webinar.gate.traffic import ShiftType, TrafficShiftPolicy

__all__ = [
    "AlarmEvaluation",
    "AlarmState",
    "AliasSnapshot",
    "ComparisonOperator",
    "DeploymentGate",
    "DeploymentInProgressError",
    "DeploymentResult",
    "GateState",
    "HookContext",
    "HookExecutor",
    "HookResult",
    "HookStatus",
    "MetricSource",
    "MissingDataPolicy",
    "ShiftType",
    "StaleAliasError",
    "ThresholdAlarm",
    "TrafficShiftPolicy",
    "VersionedAlias",
]
