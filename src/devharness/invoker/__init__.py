"""Invocation coordinator: state, workflow graph and TestInvocation."""

from devharness.invoker.configuration import Configuration
from devharness.invoker.invocation import TestInvocation
from devharness.invoker.nodes.report import DEVICE_LOG_NAME, HARNESS_LOG_NAME
from devharness.invoker.state import FailureKind, InvocationState

__all__ = [
    "Configuration",
    "TestInvocation",
    "DEVICE_LOG_NAME",
    "HARNESS_LOG_NAME",
    "FailureKind",
    "InvocationState",
]
