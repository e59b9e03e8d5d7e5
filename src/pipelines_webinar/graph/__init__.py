"""Descriptor graph the CDK stack is synthesized from."""

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
from pipelines_webinar.graph.resolver import (
    DependencyCycleError,
    DescriptorGraph,
    DuplicateDescriptorError,
    GraphError,
    Resolver,
    UndeclaredDependencyError,
    UnknownDependencyError,
    UnresolvedReferenceError,
    pipeline_graph,
)

__all__ = [
    "AlarmDescriptor",
    "CanaryDescriptor",
    "DependencyCycleError",
    "DeploymentGateDescriptor",
    "Descriptor",
    "DescriptorGraph",
    "DuplicateDescriptorError",
    "FunctionDescriptor",
    "GatewayDescriptor",
    "GraphError",
    "HookDescriptor",
    "Ref",
    "Resolver",
    "UndeclaredDependencyError",
    "UnknownDependencyError",
    "UnresolvedReferenceError",
    "pipeline_graph",
]
