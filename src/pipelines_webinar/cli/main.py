"""CLI for inspecting the synthesis plan, simulating deployments and driving the canary."""

from __future__ import annotations

import json
import logging
import sys

import click

from pipelines_webinar.config import DeploymentSettings
from pipelines_webinar.gate import (
    DeploymentGate,
    DeploymentResult,
    HookExecutor,
    MissingDataPolicy,
    ThresholdAlarm,
    TrafficShiftPolicy,
    VersionedAlias,
)
from pipelines_webinar.gate.simulation import CanaryMetricFeed, InMemorySyntheticsClient
from pipelines_webinar.graph import pipeline_graph
from pipelines_webinar.hooks import CanaryController, canary_hooks

CANARY_NAME = "RegressionTesting"


def _parse_metrics(raw: str) -> list[float | None]:
    values: list[float | None] = []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        if item.lower() in ("-", "none", "missing"):
            values.append(None)
            continue
        try:
            values.append(float(item))
        except ValueError:
            raise click.BadParameter(f"not a number: {item!r}", param_hint="--metrics") from None
    return values


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Pipelines Webinar - canary-gated Lambda deployments."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.option("--json-output", "-j", is_flag=True, help="Output as JSON.")
def plan(json_output: bool) -> None:
    """Show the order resources are synthesized in.

    Example: pipelines-webinar plan
    """
    try:
        graph = pipeline_graph(DeploymentSettings.from_env())
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if json_output:
        click.echo(json.dumps(graph.to_dict(), indent=2))
        return

    for index, name in enumerate(graph.order(), start=1):
        descriptor = graph[name]
        deps = ", ".join(descriptor.depends_on) or "-"
        click.echo(f"{index}. {name} ({type(descriptor).__name__}) <- {deps}")


@cli.command()
@click.argument("new_version")
@click.option("--current", "-c", default="1", show_default=True, help="Version the alias points at now.")
@click.option(
    "--metrics",
    "-m",
    default="",
    help="Comma-separated SuccessPercent per minute, e.g. 100,100,50. '-' marks a missing period.",
)
@click.option(
    "--shift-type",
    type=click.Choice(["canary", "linear", "all_at_once"], case_sensitive=False),
    default=None,
    help="Traffic shifting style (default from settings).",
)
@click.option("--percentage", "-p", type=int, default=None, help="Percentage per step.")
@click.option("--interval", "-i", type=int, default=None, help="Minutes between steps.")
@click.option(
    "--missing-data",
    type=click.Choice(["breaching", "notBreaching", "ignore", "missing"]),
    default=None,
    help="How the alarm treats missing datapoints.",
)
@click.option("--deny-start", is_flag=True, help="Simulate the pre hook lacking StartCanary permission.")
@click.option("--json-output", "-j", is_flag=True, help="Output as JSON.")
def simulate(
    new_version: str,
    current: str,
    metrics: str,
    shift_type: str | None,
    percentage: int | None,
    interval: int | None,
    missing_data: str | None,
    deny_start: bool,
    json_output: bool,
) -> None:
    """Run a deployment of NEW_VERSION through the gate model.

    Examples:
        pipelines-webinar simulate 2
        pipelines-webinar simulate 2 -m 100,100,50
        pipelines-webinar simulate 2 --deny-start -j
    """
    try:
        settings = DeploymentSettings.from_env(
            shift_type=shift_type.lower() if shift_type else None,
            shift_percentage=percentage,
            shift_interval_minutes=interval,
            missing_data=missing_data,
        )
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    client = InMemorySyntheticsClient(canaries=[CANARY_NAME])
    if deny_start:
        client.deny("start_canary")
    controller = CanaryController(
        synthetics_client=client,
        max_attempts=settings.hook_max_attempts,
        sleep=lambda _: None,
    )
    pre_hook, post_hook = canary_hooks(controller, CANARY_NAME)

    gate = DeploymentGate(
        alias=VersionedAlias(settings.alias_name, current),
        policy=TrafficShiftPolicy.from_settings(
            settings.shift_type, settings.shift_percentage, settings.shift_interval_minutes
        ),
        alarms=[
            ThresholdAlarm(
                "CanaryAlarm",
                threshold=settings.alarm_threshold,
                evaluation_periods=settings.alarm_evaluation_periods,
                missing_data=MissingDataPolicy(settings.missing_data),
            )
        ],
        pre_hook=pre_hook,
        post_hook=post_hook,
        metrics=CanaryMetricFeed(client, CANARY_NAME, _parse_metrics(metrics)),
        executor=HookExecutor(settings.hook_timeout_seconds, settings.hook_max_attempts),
        period_minutes=settings.alarm_period_minutes,
    )

    try:
        result = gate.deploy(new_version)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if json_output:
        click.echo(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        _print_result(result)
    if result.rolled_back:
        sys.exit(1)


@cli.group()
def canary() -> None:
    """Start or stop a deployed Synthetics canary."""


@canary.command()
@click.argument("name")
def start(name: str) -> None:
    """Start canary NAME (no-op when already running)."""
    _control(name, "start")


@canary.command()
@click.argument("name")
def stop(name: str) -> None:
    """Stop canary NAME (no-op when already stopped)."""
    _control(name, "stop")


def _control(name: str, action: str) -> None:
    try:
        controller = CanaryController()
        state = getattr(controller, action)(name)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Canary {name}: {state}")


def _print_result(result: DeploymentResult) -> None:
    """Pretty-print a deployment result."""
    color = "green" if result.succeeded else "red"
    click.secho(
        f"Deployment {result.deployment_id}: {result.old_version} -> {result.new_version} "
        f"[{result.state.value}]",
        fg=color,
    )
    click.echo("-" * 60)
    click.echo(f"States:  {' -> '.join(s.value for s in result.transitions)}")
    steps = ", ".join(f"{p}%" for p in result.traffic_steps) or "none"
    click.echo(f"Traffic: {steps}")
    for hook in result.hook_results:
        context = " (rollback)" if hook.rolled_back else ""
        line = f"Hook:    {hook.phase}{context} {hook.status.value}"
        if hook.error_message:
            line += f" - {hook.error_message}"
        click.echo(line)
    breaches = [e for e in result.evaluations if e.is_alarm]
    click.echo(f"Alarm:   {len(result.evaluations)} evaluations, {len(breaches)} in ALARM")
    if result.reason:
        click.echo(f"Reason:  {result.reason}")
    click.echo("-" * 60)
    click.echo(f"Alias now points at version {result.alias_version}")
