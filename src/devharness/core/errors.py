"""Exception taxonomy for invocations and target preparation."""

from __future__ import annotations


class HarnessError(Exception):
    """Base class for all devharness errors."""

    pass


class DeviceNotAvailableError(HarnessError):
    """The device stopped responding or disappeared.

    Always propagated to the caller of an invocation so that
    device-level recovery can be applied there.
    """

    def __init__(self, message: str = "", serial: str | None = None):
        super().__init__(message)
        self.serial = serial


class DeviceUnresponsiveError(DeviceNotAvailableError):
    """The device is visible but does not respond to commands."""

    pass


class TargetSetupError(HarnessError):
    """The environment could not prepare the device for the build.

    Board mismatches, missing flashing resources and failed
    flash commands all end up here.
    """

    pass


class BuildError(HarnessError):
    """The build under test is itself defective."""

    pass


class ConfigurationError(HarnessError):
    """An option or collaborator was configured with an invalid value."""

    pass


__all__ = [
    "HarnessError",
    "DeviceNotAvailableError",
    "DeviceUnresponsiveError",
    "TargetSetupError",
    "BuildError",
    "ConfigurationError",
]
