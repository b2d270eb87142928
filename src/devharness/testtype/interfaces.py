"""Capabilities a test payload can declare."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Protocol, runtime_checkable

from devharness.device.interface import TestDevice
from devharness.result.listener import InvocationListener


class RemoteTest(ABC):
    """A payload that reports its own results.

    The payload owns every run and test callback it sends; the
    invocation passes the listener through untouched.
    """

    @abstractmethod
    def run(self, listener: InvocationListener) -> None:
        """Run the tests, reporting each result to ``listener``.

        Raises:
            DeviceNotAvailableError: The device was lost mid-run
        """
        pass


@runtime_checkable
class DeviceTest(Protocol):
    """Payload that wants the device handle before it runs."""

    def set_device(self, device: TestDevice) -> None:
        ...


@runtime_checkable
class ConfigurationReceiver(Protocol):
    """Payload that wants the invocation configuration before it runs."""

    def set_configuration(self, configuration: Any) -> None:
        ...


__all__ = ["RemoteTest", "DeviceTest", "ConfigurationReceiver"]
