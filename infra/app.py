#!/usr/bin/env python3
"""CDK app entry point for the canary-gated Lambda web service."""

import aws_cdk as cdk

from pipelines_webinar.config import DeploymentSettings
from stacks.pipelines_webinar_stack import PipelinesWebinarStack

app = cdk.App()
settings = DeploymentSettings.from_env(stage_name=app.node.try_get_context("stage"))
PipelinesWebinarStack(app, "PipelinesWebinarStack", settings=settings)
app.synth()
