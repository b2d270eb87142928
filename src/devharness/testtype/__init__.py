"""Test payload interfaces and the payload adapter."""

from devharness.testtype.adapter import run_test
from devharness.testtype.bridge import ListenerTestResult
from devharness.testtype.interfaces import (
    ConfigurationReceiver,
    DeviceTest,
    RemoteTest,
)

__all__ = [
    "run_test",
    "ListenerTestResult",
    "ConfigurationReceiver",
    "DeviceTest",
    "RemoteTest",
]
