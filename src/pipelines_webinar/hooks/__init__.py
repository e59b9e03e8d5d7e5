"""Canary control and CodeDeploy lifecycle hooks."""

from pipelines_webinar.hooks.canary_controller import (
    CanaryControlError,
    CanaryController,
    canary_hooks,
)

__all__ = [
    "CanaryControlError",
    "CanaryController",
    "canary_hooks",
]
