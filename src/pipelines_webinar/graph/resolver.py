"""Explicit dependency graph of descriptors, resolved in topological order."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from graphlib import CycleError, TopologicalSorter
from typing import Any

from pipelines_webinar.config import DeploymentSettings
from pipelines_webinar.graph.descriptors import (
    AlarmDescriptor,
    CanaryDescriptor,
    DeploymentGateDescriptor,
    Descriptor,
    FunctionDescriptor,
    GatewayDescriptor,
    HookDescriptor,
    Ref,
)

logger = logging.getLogger(__name__)


class GraphError(Exception):
    """Base class for descriptor graph errors."""


class DuplicateDescriptorError(GraphError):
    pass


class UnknownDependencyError(GraphError):
    pass


class UndeclaredDependencyError(GraphError):
    pass


class DependencyCycleError(GraphError):
    pass


class UnresolvedReferenceError(GraphError):
    pass


class Resolver:
    """Looks up Ref values among the outputs built so far.

    Builders only get access to outputs of descriptors they declared in
    depends_on.
    """

    def __init__(self, descriptor: Descriptor, built: Mapping[str, Any]) -> None:
        self._descriptor = descriptor
        self._built = built

    def output(self, node: str) -> Any:
        """Return the whole built output of a dependency."""
        if node not in self._descriptor.depends_on:
            raise UndeclaredDependencyError(f"{self._descriptor.name} does not depend on {node}")
        if node not in self._built:
            raise UnresolvedReferenceError(f"{node} has not been built before {self._descriptor.name}")
        return self._built[node]

    def __call__(self, ref: Ref) -> Any:
        """Resolve a Ref to an attribute (or mapping key) of a built output."""
        value = self.output(ref.node)
        if isinstance(value, Mapping):
            if ref.attribute not in value:
                raise UnresolvedReferenceError(f"{ref.node} has no output {ref.attribute!r}")
            return value[ref.attribute]
        try:
            return getattr(value, ref.attribute)
        except AttributeError:
            raise UnresolvedReferenceError(f"{ref.node} has no output {ref.attribute!r}") from None


Builder = Callable[[Any, Resolver], Any]


class DescriptorGraph:
    """Directed acyclic graph of descriptors keyed by name."""

    def __init__(self) -> None:
        self._nodes: dict[str, Descriptor] = {}

    def add(self, descriptor: Descriptor) -> Descriptor:
        if descriptor.name in self._nodes:
            raise DuplicateDescriptorError(f"Descriptor {descriptor.name!r} already added")
        self._nodes[descriptor.name] = descriptor
        return descriptor

    def __getitem__(self, name: str) -> Descriptor:
        return self._nodes[name]

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def validate(self) -> None:
        """Check that every dependency exists and every Ref is declared."""
        for descriptor in self._nodes.values():
            for dep in descriptor.depends_on:
                if dep not in self._nodes:
                    raise UnknownDependencyError(f"{descriptor.name} depends on unknown descriptor {dep!r}")
            for ref in descriptor.refs():
                if ref.node not in descriptor.depends_on:
                    raise UndeclaredDependencyError(
                        f"{descriptor.name} references {ref} without declaring a dependency on {ref.node}"
                    )

    def order(self) -> list[str]:
        """Names in an order where every descriptor follows its dependencies.

        Ties are broken by insertion order so the result is deterministic.
        """
        self.validate()
        sorter: TopologicalSorter[str] = TopologicalSorter()
        for name, descriptor in self._nodes.items():
            sorter.add(name, *descriptor.depends_on)
        try:
            sorter.prepare()
        except CycleError as e:
            raise DependencyCycleError(f"Dependency cycle: {' -> '.join(e.args[1])}") from e

        position = {name: i for i, name in enumerate(self._nodes)}
        ordered: list[str] = []
        while sorter.is_active():
            ready = sorted(sorter.get_ready(), key=position.__getitem__)
            ordered.extend(ready)
            sorter.done(*ready)
        return ordered

    def build(self, builders: Mapping[type, Builder]) -> dict[str, Any]:
        """Call the builder for each descriptor type in dependency order.

        Args:
            builders: Maps a descriptor class to a callable taking the
                descriptor and a Resolver for its Refs.

        Returns:
            Built outputs keyed by descriptor name.
        """
        built: dict[str, Any] = {}
        for name in self.order():
            descriptor = self._nodes[name]
            builder = builders.get(type(descriptor))
            if builder is None:
                raise GraphError(f"No builder registered for {type(descriptor).__name__}")
            logger.debug("Building %s (%s)", name, type(descriptor).__name__)
            built[name] = builder(descriptor, Resolver(descriptor, built))
        return built

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization, in build order."""
        return {
            "order": self.order(),
            "nodes": {
                name: {
                    "type": type(self._nodes[name]).__name__,
                    "depends_on": list(self._nodes[name].depends_on),
                    "refs": [str(r) for r in self._nodes[name].refs()],
                }
                for name in self.order()
            },
        }


def pipeline_graph(settings: DeploymentSettings | None = None) -> DescriptorGraph:
    """The descriptor graph of the canary-gated web service."""
    settings = settings or DeploymentSettings()
    graph = DescriptorGraph()
    graph.add(FunctionDescriptor(name="Handler", alias_name=settings.alias_name))
    graph.add(
        GatewayDescriptor(
            name="Gateway",
            depends_on=("Handler",),
            target=Ref("Handler", "alias"),
            stage_name=settings.stage_name,
        )
    )
    graph.add(
        CanaryDescriptor(
            name="RegressionTesting",
            depends_on=("Gateway",),
            target_url=Ref("Gateway", "url"),
            rate_minutes=settings.canary_rate_minutes,
        )
    )
    graph.add(
        AlarmDescriptor(
            name="CanaryAlarm",
            depends_on=("RegressionTesting",),
            canary=Ref("RegressionTesting", "canary"),
            period_minutes=settings.alarm_period_minutes,
            evaluation_periods=settings.alarm_evaluation_periods,
            threshold=settings.alarm_threshold,
            missing_data=settings.missing_data,
        )
    )
    for name, phase, handler in (
        ("startCanary", "pre", "pipelines_webinar.hooks.handlers.pre_traffic_hook"),
        ("stopCanary", "post", "pipelines_webinar.hooks.handlers.post_traffic_hook"),
    ):
        graph.add(
            HookDescriptor(
                name=name,
                depends_on=("RegressionTesting",),
                phase=phase,  # type: ignore[arg-type]
                handler=handler,
                canary=Ref("RegressionTesting", "canary"),
                timeout_seconds=settings.hook_timeout_seconds,
                max_attempts=settings.hook_max_attempts,
            )
        )
    graph.add(
        DeploymentGateDescriptor(
            name="DeploymentGroup",
            depends_on=("Handler", "CanaryAlarm", "startCanary", "stopCanary"),
            alias=Ref("Handler", "alias"),
            shift_type=settings.shift_type,
            percentage=settings.shift_percentage,
            interval_minutes=settings.shift_interval_minutes,
            alarms=(Ref("CanaryAlarm", "alarm"),),
            pre_hook=Ref("startCanary", "function"),
            post_hook=Ref("stopCanary", "function"),
        )
    )
    return graph
