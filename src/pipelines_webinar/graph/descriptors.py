"""Declarative records for every resource of the canary-gated service.

Each descriptor names the descriptors it depends on in `depends_on`; values
that come from another resource's outputs are `Ref`s to one of those.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Literal


@dataclass(frozen=True)
class Ref:
    """Reference to an output attribute of another descriptor, e.g. Gateway.url."""

    node: str
    attribute: str

    def __str__(self) -> str:
        return f"{self.node}.{self.attribute}"


@dataclass(frozen=True)
class Descriptor:
    """Base class: a named resource with explicit dependencies."""

    name: str
    depends_on: tuple[str, ...] = ()

    def refs(self) -> list[Ref]:
        """All Refs held by this descriptor, including inside tuples and dicts."""
        found: list[Ref] = []
        for f in fields(self):
            found.extend(_collect_refs(getattr(self, f.name)))
        return found


def _collect_refs(value: Any) -> list[Ref]:
    if isinstance(value, Ref):
        return [value]
    if isinstance(value, (list, tuple)):
        return [r for item in value for r in _collect_refs(item)]
    if isinstance(value, dict):
        return [r for item in value.values() for r in _collect_refs(item)]
    return []


@dataclass(frozen=True)
class FunctionDescriptor(Descriptor):
    """Stateless request handler, its versioned artifact and a stable alias."""

    handler: str = "pipelines_webinar.mangum_handler.handler"
    code_path: str = "src"
    runtime: str = "python3.11"
    alias_name: str = "Current"
    memory_size: int = 256
    timeout_seconds: int = 30


@dataclass(frozen=True)
class GatewayDescriptor(Descriptor):
    """HTTP front door forwarding every request to the function alias."""

    target: Ref | None = None
    description: str = "Endpoint for a simple Lambda-powered web service"
    stage_name: str = "prod"


@dataclass(frozen=True)
class CanaryDescriptor(Descriptor):
    """Scheduled synthetic probe of the gateway URL, disabled at creation."""

    target_url: Ref | None = None
    rate_minutes: int = 1
    handler: str = "api_call.handler"
    code_path: str = "infra/canary"
    url_variable: str = "API_URL"
    start_after_creation: bool = False


@dataclass(frozen=True)
class AlarmDescriptor(Descriptor):
    """Threshold rule over one of the canary's CloudWatchSynthetics metrics."""

    canary: Ref | None = None
    metric_name: str = "SuccessPercent"
    statistic: str = "Average"
    period_minutes: int = 1
    evaluation_periods: int = 1
    threshold: float = 90
    comparison: str = "LessThanThreshold"
    missing_data: str = "notBreaching"


@dataclass(frozen=True)
class HookDescriptor(Descriptor):
    """Lifecycle hook function that starts or stops the canary."""

    phase: Literal["pre", "post"] = "pre"
    handler: str = "pipelines_webinar.hooks.handlers.pre_traffic_hook"
    code_path: str = "src"
    canary: Ref | None = None
    actions: tuple[str, ...] = ("synthetics:GetCanary", "synthetics:StartCanary", "synthetics:StopCanary")
    timeout_seconds: int = 300
    max_attempts: int = 2


@dataclass(frozen=True)
class DeploymentGateDescriptor(Descriptor):
    """Traffic-shifting policy for the alias, gated by alarms and hooks."""

    alias: Ref | None = None
    shift_type: str = "canary"
    percentage: int = 99
    interval_minutes: int = 5
    alarms: tuple[Ref, ...] = field(default_factory=tuple)
    pre_hook: Ref | None = None
    post_hook: Ref | None = None
