"""Result listeners and the value types they exchange."""

from devharness.result.collecting import CollectingListener, TestRunResult
from devharness.result.listener import InvocationListener, ResultForwarder
from devharness.result.types import (
    InvocationStatus,
    LogDataType,
    TestFailure,
    TestIdentifier,
)

__all__ = [
    "CollectingListener",
    "TestRunResult",
    "InvocationListener",
    "ResultForwarder",
    "InvocationStatus",
    "LogDataType",
    "TestFailure",
    "TestIdentifier",
]
