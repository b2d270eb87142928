"""Target preparers: make a device ready to run a build."""

from __future__ import annotations

from abc import ABC, abstractmethod

from devharness.build.info import BuildInfo, DeviceBuildInfo
from devharness.core.config import PreparerConfig
from devharness.core.errors import ConfigurationError
from devharness.core.log import logger
from devharness.device.interface import TestDevice
from devharness.targetprep.flasher import DeviceFlasher


class TargetPreparer(ABC):
    """Prepares a device for a build before tests run."""

    @abstractmethod
    def set_up(self, device: TestDevice, build: BuildInfo) -> None:
        """Prepare ``device`` to run ``build``.

        Raises:
            TargetSetupError: The environment could not prepare the device
            BuildError: The build itself is unusable
            DeviceNotAvailableError: The device was lost
        """
        pass


class DeviceFlashPreparer(TargetPreparer):
    """Flashes the build onto the device and waits for it to boot."""

    def __init__(
        self,
        flasher: DeviceFlasher | None = None,
        config: PreparerConfig | None = None,
    ):
        self.flasher = flasher or DeviceFlasher()
        self.config = config or PreparerConfig()

    def set_up(self, device: TestDevice, build: BuildInfo) -> None:
        if not isinstance(build, DeviceBuildInfo):
            raise ConfigurationError(
                f"DeviceFlashPreparer needs a DeviceBuildInfo, got "
                f"{type(build).__name__}"
            )

        if self.config.skip_flash:
            logger.info(f"Skipping flash of build {build.build_id}")
        else:
            self.flasher.flash(device, build)

        device.wait_for_device_available(timeout=self.config.boot_timeout)
        logger.info(
            f"Device {device.serial_number} is ready with build "
            f"{build.build_id}"
        )
