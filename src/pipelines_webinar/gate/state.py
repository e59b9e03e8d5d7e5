"""States and results of a gated deployment."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pipelines_webinar.gate.alarm import AlarmEvaluation
from pipelines_webinar.gate.executor import HookResult


class GateState(Enum):
    """Deployment lifecycle states."""

    INIT = "INIT"
    PRE_HOOK = "PRE_HOOK"
    SHIFTING = "SHIFTING"
    POST_HOOK = "POST_HOOK"
    SUCCEEDED = "SUCCEEDED"
    ROLLED_BACK = "ROLLED_BACK"

    @property
    def is_terminal(self) -> bool:
        return self in (GateState.SUCCEEDED, GateState.ROLLED_BACK)


ALLOWED_TRANSITIONS: dict[GateState, frozenset[GateState]] = {
    GateState.INIT: frozenset({GateState.PRE_HOOK}),
    GateState.PRE_HOOK: frozenset({GateState.SHIFTING, GateState.POST_HOOK, GateState.ROLLED_BACK}),
    GateState.SHIFTING: frozenset({GateState.POST_HOOK}),
    GateState.POST_HOOK: frozenset({GateState.SUCCEEDED, GateState.ROLLED_BACK}),
    GateState.SUCCEEDED: frozenset(),
    GateState.ROLLED_BACK: frozenset(),
}


@dataclass
class DeploymentResult:
    """Outcome of one deployment through the gate.

    Attributes:
        deployment_id: Identifier of the deployment.
        old_version: Version the alias pointed at before the deployment.
        new_version: Version that was deployed.
        state: Final state (SUCCEEDED or ROLLED_BACK).
        alias_version: Version the alias points at once the deployment ends.
        transitions: Every state the deployment went through, in order.
        traffic_steps: Percentages of traffic routed to new_version.
        evaluations: Alarm evaluations made while shifting.
        hook_results: Results of the pre and post hooks.
        reason: Why the deployment was rolled back, if it was.
    """

    deployment_id: str
    old_version: str
    new_version: str
    state: GateState = GateState.INIT
    alias_version: str | None = None
    transitions: list[GateState] = field(default_factory=lambda: [GateState.INIT])
    traffic_steps: list[int] = field(default_factory=list)
    evaluations: list[AlarmEvaluation] = field(default_factory=list)
    hook_results: list[HookResult] = field(default_factory=list)
    reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == GateState.SUCCEEDED

    @property
    def rolled_back(self) -> bool:
        return self.state == GateState.ROLLED_BACK

    @property
    def entered_shifting(self) -> bool:
        return GateState.SHIFTING in self.transitions

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "deployment_id": self.deployment_id,
            "old_version": self.old_version,
            "new_version": self.new_version,
            "state": self.state.value,
            "alias_version": self.alias_version,
            "transitions": [s.value for s in self.transitions],
            "traffic_steps": self.traffic_steps,
            "evaluations": [e.to_dict() for e in self.evaluations],
            "hook_results": [h.to_dict() for h in self.hook_results],
            "reason": self.reason,
        }
