"""Tests for the CodeDeploy lifecycle hook Lambdas."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from pipelines_webinar.hooks import handlers
from pipelines_webinar.hooks.canary_controller import CanaryControlError

EVENT = {
    "DeploymentId": "d-ABCDEF123",
    "LifecycleEventHookExecutionId": "exec-42",
}


@pytest.fixture()
def codedeploy(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    client = MagicMock()
    monkeypatch.setattr(handlers, "_codedeploy", client)
    return client


@pytest.fixture()
def controller(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    ctrl = MagicMock()
    monkeypatch.setattr(handlers, "_controller", ctrl)
    monkeypatch.setenv("CANARY_NAME", "regressiontesting")
    return ctrl


class TestPreTrafficHook:
    def test_starts_canary_and_reports_success(self, codedeploy: MagicMock, controller: MagicMock) -> None:
        controller.start.return_value = "STARTING"
        result = handlers.pre_traffic_hook(EVENT, None)

        controller.start.assert_called_once_with("regressiontesting")
        codedeploy.put_lifecycle_event_hook_execution_status.assert_called_once_with(
            deploymentId="d-ABCDEF123",
            lifecycleEventHookExecutionId="exec-42",
            status="Succeeded",
        )
        assert result == {"status": "Succeeded", "canaryState": "STARTING"}

    def test_failure_is_reported(self, codedeploy: MagicMock, controller: MagicMock) -> None:
        controller.start.side_effect = CanaryControlError("StartCanary failed: AccessDeniedException")
        result = handlers.pre_traffic_hook(EVENT, None)

        assert result == {"status": "Failed"}
        codedeploy.put_lifecycle_event_hook_execution_status.assert_called_once_with(
            deploymentId="d-ABCDEF123",
            lifecycleEventHookExecutionId="exec-42",
            status="Failed",
        )

    def test_missing_canary_name_is_reported(
        self, codedeploy: MagicMock, controller: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("CANARY_NAME")
        result = handlers.pre_traffic_hook(EVENT, None)
        assert result["status"] == "Failed"
        controller.start.assert_not_called()

    def test_report_failure_propagates(self, codedeploy: MagicMock, controller: MagicMock) -> None:
        codedeploy.put_lifecycle_event_hook_execution_status.side_effect = RuntimeError("throttled")
        with pytest.raises(RuntimeError):
            handlers.pre_traffic_hook(EVENT, None)


class TestPostTrafficHook:
    def test_stops_canary_and_reports_success(self, codedeploy: MagicMock, controller: MagicMock) -> None:
        controller.stop.return_value = "STOPPING"
        result = handlers.post_traffic_hook(EVENT, None)

        controller.stop.assert_called_once_with("regressiontesting")
        kwargs = codedeploy.put_lifecycle_event_hook_execution_status.call_args.kwargs
        assert kwargs["status"] == "Succeeded"
        assert result["canaryState"] == "STOPPING"


class TestManualInvocation:
    def test_runs_without_reporting(self, codedeploy: MagicMock, controller: MagicMock) -> None:
        controller.stop.return_value = "STOPPED"
        result = handlers.post_traffic_hook({}, None)
        assert result == {"status": "Succeeded", "canaryState": "STOPPED"}
        codedeploy.put_lifecycle_event_hook_execution_status.assert_not_called()

    def test_errors_propagate(self, codedeploy: MagicMock, controller: MagicMock) -> None:
        controller.start.side_effect = CanaryControlError("nope")
        with pytest.raises(CanaryControlError):
            handlers.pre_traffic_hook({}, None)


class TestControllerSetup:
    @pytest.mark.parametrize("max_attempts", ["abc", "0"])
    def test_bad_max_attempts_is_reported(
        self, codedeploy: MagicMock, monkeypatch: pytest.MonkeyPatch, max_attempts: str
    ) -> None:
        monkeypatch.setattr(handlers, "_controller", None)
        monkeypatch.setenv("CANARY_NAME", "regressiontesting")
        monkeypatch.setenv("HOOK_MAX_ATTEMPTS", max_attempts)

        result = handlers.pre_traffic_hook(EVENT, None)

        assert result == {"status": "Failed"}
        codedeploy.put_lifecycle_event_hook_execution_status.assert_called_once_with(
            deploymentId="d-ABCDEF123",
            lifecycleEventHookExecutionId="exec-42",
            status="Failed",
        )
