"""Idempotent start/stop of a CloudWatch Synthetics canary."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

RUNNING_STATES = frozenset({"RUNNING", "STARTING"})
STARTABLE_STATES = frozenset({"READY", "STOPPED", "ERROR"})
STOPPED_STATES = frozenset({"STOPPED", "STOPPING", "READY", "ERROR"})
# States the service is still moving out of on its own.
TRANSIENT_STATES = frozenset({"CREATING", "UPDATING", "STOPPING", "STARTING"})


class CanaryControlError(Exception):
    """Raised when a canary cannot be brought to the requested state."""


class CanaryController:
    """Starts and stops a canary, tolerating repeated calls.

    Calling start on a running canary, or stop on a stopped one, succeeds
    without touching the service. Errors other than state conflicts are
    retried up to `max_attempts` in total before a CanaryControlError.
    """

    def __init__(
        self,
        synthetics_client: Any | None = None,
        max_attempts: int = 2,
        retry_delay: float = 1.0,
        wait_timeout: float = 60.0,
        poll_interval: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError(f"max_attempts must be positive, got {max_attempts}")
        self._synthetics = synthetics_client or boto3.client("synthetics")
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._wait_timeout = wait_timeout
        self._poll_interval = poll_interval
        self._sleep = sleep

    def state(self, name: str) -> str:
        """Return the canary's current Synthetics state (e.g. RUNNING)."""
        resp = self._call("GetCanary", self._synthetics.get_canary, Name=name)
        return resp["Canary"]["Status"]["State"]

    def start(self, name: str) -> str:
        """Make sure the canary is running. Returns the resulting state."""
        state = self.state(name)
        if state in RUNNING_STATES:
            logger.info("Canary %s already %s, nothing to start", name, state)
            return state
        if state not in STARTABLE_STATES:
            state = self._wait_for(name, STARTABLE_STATES | RUNNING_STATES)
            if state in RUNNING_STATES:
                return state

        try:
            self._call("StartCanary", self._synthetics.start_canary, Name=name)
        except ClientError as e:
            if e.response["Error"]["Code"] != "ConflictException":
                raise
            state = self.state(name)
            if state in RUNNING_STATES:
                logger.info("Canary %s was started concurrently (%s)", name, state)
                return state
            raise CanaryControlError(f"Cannot start canary {name} in state {state}") from e

        logger.info("Started canary %s", name)
        return "STARTING"

    def stop(self, name: str) -> str:
        """Make sure the canary is stopped. Returns the resulting state."""
        state = self.state(name)
        if state in STOPPED_STATES:
            if state == "ERROR":
                logger.warning("Canary %s is in ERROR, treating as stopped", name)
            else:
                logger.info("Canary %s already %s, nothing to stop", name, state)
            return state
        if state != "RUNNING":
            state = self._wait_for(name, STOPPED_STATES | {"RUNNING"})
            if state in STOPPED_STATES:
                return state

        try:
            self._call("StopCanary", self._synthetics.stop_canary, Name=name)
        except ClientError as e:
            if e.response["Error"]["Code"] != "ConflictException":
                raise
            state = self.state(name)
            if state in STOPPED_STATES:
                logger.info("Canary %s was stopped concurrently (%s)", name, state)
                return state
            raise CanaryControlError(f"Cannot stop canary {name} in state {state}") from e

        logger.info("Stopped canary %s", name)
        return "STOPPING"

    def _wait_for(self, name: str, targets: frozenset[str] | set[str]) -> str:
        """Poll until the canary reaches one of `targets` or time runs out."""
        deadline = time.monotonic() + self._wait_timeout
        state = self.state(name)
        while state not in targets:
            if state not in TRANSIENT_STATES or time.monotonic() >= deadline:
                raise CanaryControlError(f"Canary {name} stuck in state {state}")
            logger.debug("Waiting for canary %s to leave %s", name, state)
            self._sleep(self._poll_interval)
            state = self.state(name)
        return state

    def _call(self, operation: str, fn: Callable[..., dict], **kwargs: Any) -> dict:
        """Invoke a Synthetics API call with a bounded number of attempts.

        ConflictException is re-raised immediately for the caller to inspect.
        """
        for attempt in range(1, self._max_attempts + 1):
            try:
                return fn(**kwargs)
            except ClientError as e:
                code = e.response["Error"]["Code"]
                if code == "ConflictException":
                    raise
                logger.warning(
                    "%s failed with %s (attempt %d/%d)",
                    operation,
                    code,
                    attempt,
                    self._max_attempts,
                )
                if attempt == self._max_attempts:
                    raise CanaryControlError(f"{operation} failed: {code}: {e}") from e
                self._sleep(self._retry_delay)
        raise CanaryControlError(f"{operation} failed")


def canary_hooks(controller: CanaryController, canary_name: str) -> tuple[Callable, Callable]:
    """Build the gate's pre/post hooks: start the canary, then stop it."""

    def start_canary(context: Any) -> str:
        return controller.start(canary_name)

    def stop_canary(context: Any) -> str:
        if getattr(context, "rolled_back", False):
            logger.info("Stopping canary %s after rollback", canary_name)
        return controller.stop(canary_name)

    return start_canary, stop_canary
