"""Shared fixtures for the gate, hook and controller tests."""

from __future__ import annotations

import pytest
from botocore.exceptions import ClientError

from pipelines_webinar.gate.simulation import InMemorySyntheticsClient
from pipelines_webinar.hooks.canary_controller import CanaryController

CANARY = "RegressionTesting"


def client_error(code: str, operation: str = "StartCanary") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def canary_response(state: str, name: str = CANARY) -> dict:
    return {"Canary": {"Name": name, "Status": {"State": state}}}


@pytest.fixture()
def synthetics() -> InMemorySyntheticsClient:
    return InMemorySyntheticsClient(canaries=[CANARY])


@pytest.fixture()
def sleeps() -> list[float]:
    return []


@pytest.fixture()
def controller(synthetics: InMemorySyntheticsClient, sleeps: list[float]) -> CanaryController:
    return CanaryController(synthetics_client=synthetics, sleep=sleeps.append)
