"""AWS CDK stack for the canary-gated Lambda web service."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import aws_cdk as cdk
from aws_cdk import (
    ArnFormat,
    BundlingOptions,
    Duration,
    Stack,
    aws_apigateway as apigw,
    aws_cloudwatch as cloudwatch,
    aws_codedeploy as codedeploy,
    aws_iam as iam,
    aws_lambda as lambda_,
    aws_logs as logs,
    aws_synthetics as synthetics,
)
from constructs import Construct

from pipelines_webinar.config import DeploymentSettings
from pipelines_webinar.graph import (
    AlarmDescriptor,
    CanaryDescriptor,
    DeploymentGateDescriptor,
    FunctionDescriptor,
    GatewayDescriptor,
    HookDescriptor,
    Resolver,
    pipeline_graph,
)

REPO_ROOT = Path(__file__).resolve().parents[2]

ASSET_EXCLUDES = [
    "**/__pycache__",
    "*.pyc",
    "*.egg-info",
]

RUNTIMES = {
    "python3.11": lambda_.Runtime.PYTHON_3_11,
    "python3.12": lambda_.Runtime.PYTHON_3_12,
}

MISSING_DATA = {
    "breaching": cloudwatch.TreatMissingData.BREACHING,
    "notBreaching": cloudwatch.TreatMissingData.NOT_BREACHING,
    "ignore": cloudwatch.TreatMissingData.IGNORE,
    "missing": cloudwatch.TreatMissingData.MISSING,
}

COMPARISONS = {
    "LessThanThreshold": cloudwatch.ComparisonOperator.LESS_THAN_THRESHOLD,
    "LessThanOrEqualToThreshold": cloudwatch.ComparisonOperator.LESS_THAN_OR_EQUAL_TO_THRESHOLD,
    "GreaterThanThreshold": cloudwatch.ComparisonOperator.GREATER_THAN_THRESHOLD,
    "GreaterThanOrEqualToThreshold": cloudwatch.ComparisonOperator.GREATER_THAN_OR_EQUAL_TO_THRESHOLD,
}


class PipelinesWebinarStack(Stack):
    """Provisions the web service, its regression canary and the gated deployment.

    Resources are created by walking the descriptor graph in dependency
    order, so a builder only ever sees outputs of resources that exist.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        settings: DeploymentSettings | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.settings = settings or DeploymentSettings()

        graph = pipeline_graph(self.settings)
        self.resources = graph.build(
            {
                FunctionDescriptor: self._function,
                GatewayDescriptor: self._gateway,
                CanaryDescriptor: self._canary,
                AlarmDescriptor: self._alarm,
                HookDescriptor: self._hook,
                DeploymentGateDescriptor: self._deployment_group,
            }
        )
        self.api: apigw.LambdaRestApi = self.resources["Gateway"]["construct"]
        self.canary: synthetics.Canary = self.resources["RegressionTesting"]["construct"]

        # ---------------------------------------------------------------
        # Outputs
        # ---------------------------------------------------------------
        self.url_output = cdk.CfnOutput(self, "url", value=self.api.url)

    # -------------------------------------------------------------------
    # Lambda function + alias
    # -------------------------------------------------------------------
    def _function(self, desc: FunctionDescriptor, resolve: Resolver) -> dict[str, Any]:
        handler = lambda_.Function(
            self,
            desc.name,
            runtime=RUNTIMES[desc.runtime],
            handler=desc.handler,
            code=lambda_.Code.from_asset(
                str(REPO_ROOT / desc.code_path),
                exclude=ASSET_EXCLUDES,
                bundling=BundlingOptions(
                    image=RUNTIMES[desc.runtime].bundling_image,
                    command=[
                        "bash",
                        "-c",
                        "pip install -r requirements.txt -t /asset-output && cp -au pipelines_webinar /asset-output/",
                    ],
                ),
            ),
            memory_size=desc.memory_size,
            timeout=Duration.seconds(desc.timeout_seconds),
            log_retention=logs.RetentionDays.TWO_WEEKS,
        )
        # Publishing is left to the deployment group; the alias only tracks
        # the version CloudFormation creates for the current code.
        alias = lambda_.Alias(
            self,
            "x",
            alias_name=desc.alias_name,
            version=handler.current_version,
        )
        return {"construct": handler, "function": handler, "alias": alias}

    # -------------------------------------------------------------------
    # API Gateway REST API
    # -------------------------------------------------------------------
    def _gateway(self, desc: GatewayDescriptor, resolve: Resolver) -> dict[str, Any]:
        api = apigw.LambdaRestApi(
            self,
            desc.name,
            description=desc.description,
            handler=resolve(desc.target),
            proxy=True,
            deploy_options=apigw.StageOptions(stage_name=desc.stage_name),
        )
        return {"construct": api, "api": api, "url": api.url}

    # -------------------------------------------------------------------
    # Synthetics canary
    # -------------------------------------------------------------------
    def _canary(self, desc: CanaryDescriptor, resolve: Resolver) -> dict[str, Any]:
        canary = synthetics.Canary(
            self,
            desc.name,
            schedule=synthetics.Schedule.rate(Duration.minutes(desc.rate_minutes)),
            test=synthetics.Test.custom(
                code=synthetics.Code.from_asset(str(REPO_ROOT / desc.code_path)),
                handler=desc.handler,
            ),
            runtime=synthetics.Runtime.SYNTHETICS_PYTHON_SELENIUM_3_0,
            environment_variables={desc.url_variable: resolve(desc.target_url)},
            start_after_creation=desc.start_after_creation,
        )
        # The URL includes the deployed stage, so wait for the whole API.
        for dep in desc.depends_on:
            canary.node.add_dependency(resolve.output(dep)["construct"])
        arn = self.format_arn(
            service="synthetics",
            resource="canary",
            resource_name=canary.canary_name,
            arn_format=ArnFormat.COLON_RESOURCE_NAME,
        )
        return {"construct": canary, "canary": canary, "name": canary.canary_name, "arn": arn}

    # -------------------------------------------------------------------
    # CloudWatch alarm on the canary success rate
    # -------------------------------------------------------------------
    def _alarm(self, desc: AlarmDescriptor, resolve: Resolver) -> dict[str, Any]:
        canary: synthetics.Canary = resolve(desc.canary)
        alarm = cloudwatch.Alarm(
            self,
            desc.name,
            metric=cloudwatch.Metric(
                namespace="CloudWatchSynthetics",
                metric_name=desc.metric_name,
                dimensions_map={"CanaryName": canary.canary_name},
                period=Duration.minutes(desc.period_minutes),
                statistic=desc.statistic,
            ),
            evaluation_periods=desc.evaluation_periods,
            threshold=desc.threshold,
            comparison_operator=COMPARISONS[desc.comparison],
            treat_missing_data=MISSING_DATA[desc.missing_data],
        )
        return {"construct": alarm, "alarm": alarm}

    # -------------------------------------------------------------------
    # CodeDeploy lifecycle hooks
    # -------------------------------------------------------------------
    def _hook(self, desc: HookDescriptor, resolve: Resolver) -> dict[str, Any]:
        canary_outputs = resolve.output(desc.canary.node)
        prefix = "Pre" if desc.phase == "pre" else "Post"
        hook = lambda_.Function(
            self,
            desc.name,
            function_name=f"CodeDeployHook_{prefix}-{self.stack_name}-{self.settings.stage_name}",
            runtime=lambda_.Runtime.PYTHON_3_11,
            handler=desc.handler,
            code=lambda_.Code.from_asset(str(REPO_ROOT / desc.code_path), exclude=ASSET_EXCLUDES),
            timeout=Duration.seconds(desc.timeout_seconds),
            environment={
                "CANARY_NAME": canary_outputs["name"],
                "HOOK_MAX_ATTEMPTS": str(desc.max_attempts),
                "LOG_LEVEL": "INFO",
            },
            log_retention=logs.RetentionDays.TWO_WEEKS,
        )
        # Only this canary, not every canary in the account.
        hook.add_to_role_policy(
            iam.PolicyStatement(
                actions=list(desc.actions),
                resources=[canary_outputs["arn"]],
            )
        )
        return {"construct": hook, "function": hook}

    # -------------------------------------------------------------------
    # CodeDeploy deployment group
    # -------------------------------------------------------------------
    def _deployment_group(self, desc: DeploymentGateDescriptor, resolve: Resolver) -> dict[str, Any]:
        if desc.shift_type == "canary":
            routing = codedeploy.TimeBasedCanaryTrafficRouting(
                interval=Duration.minutes(desc.interval_minutes),
                percentage=desc.percentage,
            )
        elif desc.shift_type == "linear":
            routing = codedeploy.TimeBasedLinearTrafficRouting(
                interval=Duration.minutes(desc.interval_minutes),
                percentage=desc.percentage,
            )
        else:
            routing = codedeploy.AllAtOnceTrafficRouting.all_at_once()

        config = codedeploy.LambdaDeploymentConfig(self, "CustomConfig", traffic_routing=routing)
        group = codedeploy.LambdaDeploymentGroup(
            self,
            desc.name,
            alias=resolve(desc.alias),
            deployment_config=config,
            alarms=[resolve(ref) for ref in desc.alarms],
            pre_hook=resolve(desc.pre_hook),
            post_hook=resolve(desc.post_hook),
        )
        return {"construct": group, "group": group, "config": config}
