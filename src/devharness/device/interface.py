"""Interfaces of the device handle and its recovery strategy.

The harness never talks to hardware directly. Everything it needs
from a device goes through the TestDevice protocol below; concrete
transports (adb/fastboot, serial, emulators) live outside this
package. Every blocking operation takes a timeout and reports an
exceeded timeout or a lost device as DeviceNotAvailableError.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Protocol, runtime_checkable

from devharness.core.result import CommandResult


@runtime_checkable
class DeviceRecovery(Protocol):
    """Strategy that tries to bring an unresponsive device back."""

    @abstractmethod
    def recover_device(self, device: TestDevice) -> None:
        """Restore ``device`` to a usable state.

        Raises:
            DeviceNotAvailableError: If the device cannot be recovered
        """
        pass


@runtime_checkable
class TestDevice(Protocol):
    """Handle on one device, owned by a single invocation at a time."""

    @property
    @abstractmethod
    def serial_number(self) -> str:
        """Stable identity of the physical unit."""
        pass

    @abstractmethod
    def get_product_type(self) -> str | None:
        """Board identifier of the device, or None if unknown."""
        pass

    @abstractmethod
    def set_recovery(self, recovery: DeviceRecovery | None) -> None:
        """Install the strategy used when the device stops responding."""
        pass

    @abstractmethod
    def execute_shell_command(
        self, command: str, timeout: float | None = None
    ) -> str:
        """Run a shell command on the device and return its output."""
        pass

    @abstractmethod
    def get_logcat(self) -> bytes:
        """Return the device's own log captured so far."""
        pass

    @abstractmethod
    def reboot_into_bootloader(self, timeout: float | None = None) -> None:
        """Reboot into the flashing interface and wait for it."""
        pass

    @abstractmethod
    def reboot(self, timeout: float | None = None) -> None:
        """Reboot into normal runtime mode and wait until online."""
        pass

    @abstractmethod
    def wait_for_device_available(self, timeout: float | None = None) -> None:
        """Block until the device is fully booted and responsive.

        Raises:
            DeviceUnresponsiveError: Device is visible but never
                became responsive
            DeviceNotAvailableError: Device disappeared
        """
        pass

    @abstractmethod
    def execute_fastboot_command(
        self, *args: str, timeout: float | None = None
    ) -> CommandResult:
        """Run a short bootloader command (getvar, erase, ...)."""
        pass

    @abstractmethod
    def execute_long_fastboot_command(
        self, *args: str, timeout: float | None = None
    ) -> CommandResult:
        """Run a long bootloader command (flash, update, ...)."""
        pass
