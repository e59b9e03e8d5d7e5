"""In-memory stand-ins for the Synthetics API and the canary's metric stream.

Used by the `simulate` CLI command to run the gate model end to end without
an AWS account.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from botocore.exceptions import ClientError


def _conflict(operation: str, message: str) -> ClientError:
    return ClientError(
        {"Error": {"Code": "ConflictException", "Message": message}},
        operation,
    )


class InMemorySyntheticsClient:
    """Subset of the boto3 `synthetics` client backed by a dict.

    Start and stop complete immediately; calls that the real service rejects
    because of the canary's state raise ConflictException the same way.
    """

    def __init__(self, canaries: Iterable[str] = (), denied: Iterable[str] = ()) -> None:
        self._states: dict[str, str] = {name: "READY" for name in canaries}
        self._denied = set(denied)
        self.calls: list[tuple[str, str]] = []

    def deny(self, operation: str) -> None:
        """Make an operation (e.g. "start_canary") fail with AccessDeniedException."""
        self._denied.add(operation)

    def _check_access(self, operation: str, api_name: str) -> None:
        if operation in self._denied:
            raise ClientError(
                {"Error": {"Code": "AccessDeniedException", "Message": f"Not authorized to perform {api_name}"}},
                api_name,
            )

    def create_canary(self, Name: str, **_: Any) -> dict[str, Any]:
        self._states[Name] = "READY"
        return {"Canary": self._describe(Name)}

    def set_state(self, name: str, state: str) -> None:
        self._states[name] = state

    def _describe(self, name: str) -> dict[str, Any]:
        if name not in self._states:
            raise ClientError(
                {"Error": {"Code": "ResourceNotFoundException", "Message": f"Canary {name} not found"}},
                "GetCanary",
            )
        return {"Name": name, "Status": {"State": self._states[name]}}

    def get_canary(self, Name: str) -> dict[str, Any]:
        self.calls.append(("get_canary", Name))
        return {"Canary": self._describe(Name)}

    def start_canary(self, Name: str) -> dict[str, Any]:
        self.calls.append(("start_canary", Name))
        self._check_access("start_canary", "StartCanary")
        state = self._describe(Name)["Status"]["State"]
        if state not in ("READY", "STOPPED", "ERROR"):
            raise _conflict("StartCanary", f"Canary {Name} is in state {state}")
        self._states[Name] = "RUNNING"
        return {}

    def stop_canary(self, Name: str) -> dict[str, Any]:
        self.calls.append(("stop_canary", Name))
        self._check_access("stop_canary", "StopCanary")
        state = self._describe(Name)["Status"]["State"]
        if state != "RUNNING":
            raise _conflict("StopCanary", f"Canary {Name} is in state {state}")
        self._states[Name] = "STOPPED"
        return {}

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)


class CanaryMetricFeed:
    """SuccessPercent datapoints emitted by a canary, one per period.

    A stopped canary emits nothing, so the feed yields None while the canary
    is not RUNNING. Once the scripted values run out, `default` is used.
    """

    def __init__(
        self,
        client: InMemorySyntheticsClient,
        canary_name: str,
        values: Iterable[float | None] = (),
        default: float | None = 100.0,
    ) -> None:
        self._client = client
        self._canary_name = canary_name
        self._values = list(values)
        self._default = default
        self.emitted: list[float | None] = []

    def next_datapoint(self) -> float | None:
        if self._client._describe(self._canary_name)["Status"]["State"] != "RUNNING":
            value = None
        elif self._values:
            value = self._values.pop(0)
        else:
            value = self._default
        self.emitted.append(value)
        return value
