"""Canary-gated deployment of a new function version behind an alias.

The gate runs a pre hook, shifts traffic step by step while re-evaluating
its alarms once per metric period, and runs a post hook. Any alarm in ALARM
during a bake interval reverts the alias to the version it pointed at when
the deployment started.
"""

from __future__ import annotations

import logging
import threading
import uuid
import weakref
from collections.abc import Sequence
from typing import Protocol

from pipelines_webinar.gate.alarm import AlarmState, ThresholdAlarm
from pipelines_webinar.gate.alias import StaleAliasError, VersionedAlias
from pipelines_webinar.gate.executor import Hook, HookContext, HookExecutor, HookResult
from pipelines_webinar.gate.state import ALLOWED_TRANSITIONS, DeploymentResult, GateState
from pipelines_webinar.gate.traffic import TrafficShiftPolicy

logger = logging.getLogger(__name__)

# One in-flight deployment per alias, shared by every gate instance.
_alias_locks: weakref.WeakKeyDictionary[VersionedAlias, threading.Lock] = weakref.WeakKeyDictionary()
_registry_lock = threading.Lock()


def _deployment_lock(alias: VersionedAlias) -> threading.Lock:
    with _registry_lock:
        lock = _alias_locks.get(alias)
        if lock is None:
            lock = threading.Lock()
            _alias_locks[alias] = lock
        return lock


class DeploymentInProgressError(Exception):
    """Raised when a deployment starts while another one holds the alias."""


class MetricSource(Protocol):
    """Supplies one datapoint per metric period, None when nothing was emitted."""

    def next_datapoint(self) -> float | None:
        ...


class DeploymentGate:
    """Moves an alias from its current version to a new one, gated by alarms.

    Attributes:
        alias: The alias being shifted.
        policy: Traffic shifting schedule.
        alarms: Alarms that must stay out of ALARM while shifting.
        pre_hook: Called before any traffic moves.
        post_hook: Called after shifting completes or is rolled back.
        metrics: Source of one datapoint per evaluation tick.
        executor: Runs hooks with a timeout and bounded retries.
        period_minutes: Alarm period; one datapoint is pulled per period.
    """

    def __init__(
        self,
        alias: VersionedAlias,
        policy: TrafficShiftPolicy,
        alarms: Sequence[ThresholdAlarm],
        pre_hook: Hook,
        post_hook: Hook,
        metrics: MetricSource,
        executor: HookExecutor | None = None,
        period_minutes: int = 1,
    ) -> None:
        if period_minutes <= 0:
            raise ValueError(f"period_minutes must be positive, got {period_minutes}")
        self.alias = alias
        self.policy = policy
        self.alarms = list(alarms)
        self.pre_hook = pre_hook
        self.post_hook = post_hook
        self.metrics = metrics
        self.executor = executor or HookExecutor()
        self.period_minutes = period_minutes
        self._datapoints: list[float | None] = []
        self._revision = alias.revision

    def deploy(self, new_version: str, deployment_id: str | None = None) -> DeploymentResult:
        """Run one deployment to a terminal state.

        Raises:
            DeploymentInProgressError: If the alias is already being shifted.
            ValueError: If the alias already points at new_version.
        """
        lock = _deployment_lock(self.alias)
        if not lock.acquire(blocking=False):
            raise DeploymentInProgressError(f"A deployment is already in progress for alias {self.alias.name}")
        try:
            return self._deploy(new_version, deployment_id or f"d-{uuid.uuid4().hex[:9].upper()}")
        finally:
            lock.release()

    def _deploy(self, new_version: str, deployment_id: str) -> DeploymentResult:
        old_version = self.alias.version
        if new_version == old_version:
            raise ValueError(f"Alias {self.alias.name} already points at version {new_version}")

        result = DeploymentResult(
            deployment_id=deployment_id,
            old_version=old_version,
            new_version=new_version,
        )
        self._datapoints = []
        self._revision = self.alias.revision
        logger.info(
            "Deployment %s: %s %s -> %s (%s)",
            deployment_id,
            self.alias.name,
            old_version,
            new_version,
            self.policy.shift_type.value,
        )

        self._transition(result, GateState.PRE_HOOK)
        pre = self._run_hook(result, "pre", rolled_back=False)
        if not pre.is_success:
            return self._roll_back(result, f"Pre hook failed: {pre.error_message}")

        self._transition(result, GateState.SHIFTING)
        reason = self._shift(result)
        if reason is not None:
            return self._roll_back(result, reason)

        self._transition(result, GateState.POST_HOOK)
        post = self._run_hook(result, "post", rolled_back=False)
        if not post.is_success:
            result.reason = f"Post hook failed: {post.error_message}"
            self._revert(result)
            return self._finish(result, GateState.ROLLED_BACK)
        return self._finish(result, GateState.SUCCEEDED)

    def _shift(self, result: DeploymentResult) -> str | None:
        """Route traffic step by step; return a rollback reason or None."""
        steps = self.policy.steps()
        for index, percentage in enumerate(steps):
            try:
                snapshot = self.alias.route(self._revision, result.old_version, result.new_version, percentage)
            except StaleAliasError as e:
                return f"Alias changed during deployment: {e}"
            self._revision = snapshot.revision
            result.traffic_steps.append(percentage)
            logger.info("Deployment %s: %d%% of traffic on %s", result.deployment_id, percentage, result.new_version)

            if index == len(steps) - 1:
                break
            # At least one tick per step, even when the period outlasts the interval.
            for _ in range(max(1, self.policy.interval_minutes // self.period_minutes)):
                breached = self._evaluate_alarms(result)
                if breached:
                    return f"Alarm {', '.join(breached)} in ALARM at {percentage}% traffic"
        return None

    def _evaluate_alarms(self, result: DeploymentResult) -> list[str]:
        self._datapoints.append(self.metrics.next_datapoint())
        breached = []
        for alarm in self.alarms:
            evaluation = alarm.evaluate(self._datapoints)
            result.evaluations.append(evaluation)
            if evaluation.state == AlarmState.ALARM:
                breached.append(alarm.name)
        return breached

    def _roll_back(self, result: DeploymentResult, reason: str) -> DeploymentResult:
        logger.warning("Deployment %s rolling back: %s", result.deployment_id, reason)
        result.reason = reason
        self._revert(result)
        self._transition(result, GateState.POST_HOOK)
        post = self._run_hook(result, "post", rolled_back=True)
        if not post.is_success:
            logger.error(
                "Deployment %s: post hook failed during rollback: %s",
                result.deployment_id,
                post.error_message,
            )
        return self._finish(result, GateState.ROLLED_BACK)

    def _revert(self, result: DeploymentResult) -> None:
        snapshot = self.alias.snapshot()
        if snapshot.version == result.old_version and snapshot.additional_version is None:
            return
        try:
            self.alias.revert(self._revision, result.old_version)
        except StaleAliasError:
            # Someone else owns the alias now; their write stands.
            logger.error(
                "Deployment %s: alias %s was changed outside the deployment (revision %d, version %s), not reverting",
                result.deployment_id,
                self.alias.name,
                snapshot.revision,
                snapshot.version,
            )
            result.reason = f"{result.reason}; alias left at revision {snapshot.revision}, changed outside the deployment"
            return
        self._revision = self.alias.revision

    def _run_hook(self, result: DeploymentResult, phase: str, rolled_back: bool) -> HookResult:
        hook = self.pre_hook if phase == "pre" else self.post_hook
        # A timed-out hook may still be running; let it finish before the next one.
        self.executor.settle()
        context = HookContext(
            deployment_id=result.deployment_id,
            phase=phase,  # type: ignore[arg-type]
            old_version=result.old_version,
            new_version=result.new_version,
            rolled_back=rolled_back,
        )
        hook_result = self.executor.run(hook, context)
        result.hook_results.append(hook_result)
        return hook_result

    def _transition(self, result: DeploymentResult, state: GateState) -> None:
        if state not in ALLOWED_TRANSITIONS[result.state]:
            raise RuntimeError(f"Illegal transition {result.state.value} -> {state.value}")
        logger.debug("Deployment %s: %s -> %s", result.deployment_id, result.state.value, state.value)
        result.state = state
        result.transitions.append(state)

    def _finish(self, result: DeploymentResult, state: GateState) -> DeploymentResult:
        self._transition(result, state)
        result.alias_version = self.alias.version
        logger.info(
            "Deployment %s finished %s, alias %s -> %s",
            result.deployment_id,
            state.value,
            self.alias.name,
            result.alias_version,
        )
        return result
