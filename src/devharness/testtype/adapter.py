"""Runs a test payload of either supported shape against a listener.

Self-reporting payloads are ``RemoteTest`` instances. Passive
payloads are ``unittest`` suites or cases, which are run through
``ListenerTestResult`` so every case outcome reaches the listener
one at a time.
"""

from __future__ import annotations

import time
import unittest
from typing import Any

from devharness.core.errors import ConfigurationError
from devharness.core.log import logger
from devharness.device.interface import TestDevice
from devharness.result.listener import InvocationListener
from devharness.testtype.bridge import ListenerTestResult
from devharness.testtype.interfaces import (
    ConfigurationReceiver,
    DeviceTest,
    RemoteTest,
)

PassiveTest = unittest.TestSuite | unittest.TestCase


def inject_capabilities(
    test: Any, device: TestDevice, configuration: Any
) -> None:
    """Hand the device and configuration to payloads that accept them.

    Suites pass both down to every case they contain.
    """
    if isinstance(test, unittest.TestSuite):
        for child in test:
            inject_capabilities(child, device, configuration)
    if isinstance(test, DeviceTest):
        test.set_device(device)
    if isinstance(test, ConfigurationReceiver):
        test.set_configuration(configuration)


def run_passive(
    test: PassiveTest, listener: InvocationListener, run_name: str
) -> None:
    """Run a unittest collection as one test run."""
    result = ListenerTestResult(listener)
    listener.test_run_started(run_name, test.countTestCases())
    start = time.monotonic()
    try:
        test.run(result)
        if result.device_error is not None:
            listener.test_run_failed(str(result.device_error))
            raise result.device_error
    finally:
        elapsed_ms = int((time.monotonic() - start) * 1000)
        listener.test_run_ended(elapsed_ms, {})


def run_test(
    test: Any,
    device: TestDevice,
    configuration: Any,
    listener: InvocationListener,
) -> None:
    """Run one payload, dispatching on its shape.

    Raises:
        ConfigurationError: The payload is of neither supported shape
        DeviceNotAvailableError: The device was lost mid-run
    """
    inject_capabilities(test, device, configuration)

    if isinstance(test, RemoteTest):
        logger.debug(f"Running self-reporting test {type(test).__name__}")
        test.run(listener)
    elif isinstance(test, (unittest.TestSuite, unittest.TestCase)):
        run_name = type(test).__name__
        logger.debug(f"Running unittest collection {run_name}")
        run_passive(test, listener, run_name)
    else:
        raise ConfigurationError(
            f"Unsupported test payload type {type(test).__name__}"
        )


__all__ = ["inject_capabilities", "run_passive", "run_test"]
