"""Device handle and recovery interfaces."""

from devharness.device.interface import DeviceRecovery, TestDevice

__all__ = ["DeviceRecovery", "TestDevice"]
