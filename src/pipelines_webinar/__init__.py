"""Canary-gated Lambda deployment: CDK descriptors, hooks and gate model."""

__version__ = "0.1.0"
