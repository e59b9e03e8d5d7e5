"""CodeDeploy lifecycle hook Lambdas that start and stop the regression canary.

CodeDeploy invokes the pre hook (BeforeAllowTraffic) before it shifts any
traffic and the post hook (AfterAllowTraffic) once shifting ends. Each hook
must report Succeeded or Failed back with PutLifecycleEventHookExecutionStatus;
a Failed status makes CodeDeploy stop and roll back the deployment.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Literal

import boto3

from pipelines_webinar.hooks.canary_controller import CanaryController

logger = logging.getLogger(__name__)
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO"))

_codedeploy: Any | None = None
_controller: CanaryController | None = None


def _get_codedeploy() -> Any:
    global _codedeploy
    if _codedeploy is None:
        _codedeploy = boto3.client("codedeploy")
    return _codedeploy


def _get_controller() -> CanaryController:
    global _controller
    if _controller is None:
        _controller = CanaryController(
            max_attempts=int(os.environ.get("HOOK_MAX_ATTEMPTS", "2")),
        )
    return _controller


def _canary_name() -> str:
    name = os.environ.get("CANARY_NAME")
    if not name:
        raise RuntimeError("CANARY_NAME is not set")
    return name


def report_status(deployment_id: str, execution_id: str, status: str) -> None:
    """Tell CodeDeploy whether the lifecycle hook succeeded."""
    _get_codedeploy().put_lifecycle_event_hook_execution_status(
        deploymentId=deployment_id,
        lifecycleEventHookExecutionId=execution_id,
        status=status,
    )
    logger.info("Reported %s for deployment %s", status, deployment_id)


def _run_hook(event: dict, action: Literal["start", "stop"], phase: str) -> dict[str, str]:
    deployment_id = event.get("DeploymentId")
    execution_id = event.get("LifecycleEventHookExecutionId")

    if not deployment_id or not execution_id:
        # Manual invocation: nobody to report to, so let errors propagate.
        state = getattr(_get_controller(), action)(_canary_name())
        return {"status": "Succeeded", "canaryState": state}

    try:
        state = getattr(_get_controller(), action)(_canary_name())
    except Exception:
        logger.exception("%s hook failed for deployment %s", phase, deployment_id)
        report_status(deployment_id, execution_id, "Failed")
        return {"status": "Failed"}

    report_status(deployment_id, execution_id, "Succeeded")
    return {"status": "Succeeded", "canaryState": state}


def pre_traffic_hook(event: dict, context: Any) -> dict[str, str]:
    """BeforeAllowTraffic: start the canary so it probes the new version."""
    return _run_hook(event, "start", "pre")


def post_traffic_hook(event: dict, context: Any) -> dict[str, str]:
    """AfterAllowTraffic: stop the canary once shifting has finished."""
    return _run_hook(event, "stop", "post")
