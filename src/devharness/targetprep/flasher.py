"""Flash a device with the images of a DeviceBuildInfo.

Flashing is slow and risky, so firmware components (bootloader and
baseband) are only flashed when the version installed on the device
differs from the version the build requires. The system image is
always flashed. User data is handled according to the configured
UserDataFlashOption.

Order is fixed: bootloader, baseband, system image, user data.
A DeviceNotAvailableError at any step aborts the whole flash; no
rollback of components already flashed is attempted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from devharness.build.info import DeviceBuildInfo
from devharness.core.config import FlasherConfig, UserDataFlashOption
from devharness.core.errors import DeviceUnresponsiveError, TargetSetupError
from devharness.core.log import logger
from devharness.core.result import CommandResult
from devharness.device.interface import TestDevice
from devharness.targetprep import requirements
from devharness.targetprep.requirements import FirmwareRequirements


class FlashingResourcesRetriever(Protocol):
    """Fetches firmware images that a build does not ship itself."""

    def retrieve_file(self, prefix: str, version: str) -> Path:
        """Return a local file holding image ``prefix`` at ``version``.

        Raises:
            TargetSetupError: If the image cannot be retrieved
        """
        ...


class TestsZipInstaller(Protocol):
    """Installs a build's tests archive onto the data partition."""

    def push_tests_zip_onto_data(
        self, device: TestDevice, build: DeviceBuildInfo
    ) -> None:
        ...


@dataclass(frozen=True)
class FirmwareComponent:
    """One independently versioned firmware image.

    Attributes:
        name: Component name used in ``getvar version-<name>``
        partition: Partition the image is flashed to
        required_version: Version the build requires
    """

    name: str
    partition: str
    required_version: str

    @property
    def version_variable(self) -> str:
        return f"version-{self.name}"


BOOTLOADER = "bootloader"
BASEBAND = "baseband"

# (component name, partition, build image attribute)
_FIRMWARE_COMPONENTS = (
    (BOOTLOADER, "bootloader", DeviceBuildInfo.BOOTLOADER_IMAGE),
    (BASEBAND, "radio", DeviceBuildInfo.BASEBAND_IMAGE),
)


class DeviceFlasher:
    """Flashes builds onto devices through their bootloader."""

    def __init__(
        self,
        config: FlasherConfig | None = None,
        resource_retriever: FlashingResourcesRetriever | None = None,
        tests_zip_installer: TestsZipInstaller | None = None,
    ):
        self.config = config.model_copy() if config else FlasherConfig()
        self.resource_retriever = resource_retriever
        self.tests_zip_installer = tests_zip_installer

    @property
    def user_data_option(self) -> UserDataFlashOption:
        return self.config.user_data_option

    def set_user_data_flash_option(
        self, option: UserDataFlashOption | str
    ) -> None:
        """Choose how user data is handled by the next flash.

        Raises:
            ValueError: If option names no known option
        """
        if not isinstance(option, UserDataFlashOption):
            option = UserDataFlashOption.from_string(option)
        self.config.user_data_option = option

    def set_tests_zip_installer(self, installer: TestsZipInstaller) -> None:
        self.tests_zip_installer = installer

    def flash(self, device: TestDevice, build: DeviceBuildInfo) -> None:
        """Flash ``build`` onto ``device``.

        On return the device is booted into normal runtime mode.

        Raises:
            TargetSetupError: If the device cannot enter its flashing
                mode, the metadata is unreadable, the board does not
                match, a firmware version cannot be determined, or a
                flashing command fails
            DeviceNotAvailableError: If the device is lost
        """
        serial = device.serial_number
        with logger.span("Flashing device", serial=serial,
                         build_id=build.build_id):
            logger.info(f"Flashing device {serial} with build {build.build_id}")

            try:
                device.reboot_into_bootloader(
                    timeout=self.config.command_timeout
                )
            except DeviceUnresponsiveError as e:
                raise TargetSetupError(
                    f"Device {serial} did not enter its bootloader"
                ) from e

            reqs = self.create_requirements(build)
            self.verify_required_boards(device, reqs)
            components = self.plan_firmware(build, reqs)

            for component in components:
                self.check_and_flash_component(device, build, component)

            self.flash_system(device, build)
            booted = self.flash_user_data(device, build)

            if not booted:
                device.reboot(timeout=self.config.flash_timeout)
            logger.info(f"Finished flashing device {serial}")

    def create_requirements(
        self, build: DeviceBuildInfo
    ) -> FirmwareRequirements:
        """Parse the firmware requirements shipped with ``build``."""
        image = build.device_image_file
        if image is None:
            raise TargetSetupError(
                f"Build {build.build_id} has no device image"
            )
        try:
            return requirements.load(image, self.config.metadata_file_name)
        except ValueError as e:
            raise TargetSetupError(
                f"Could not parse firmware requirements of build "
                f"{build.build_id}: {e}"
            ) from e

    def verify_required_boards(
        self, device: TestDevice, reqs: FirmwareRequirements
    ) -> None:
        """Refuse to flash a device whose board the build does not
        support."""
        if not reqs.required_boards:
            raise TargetSetupError(
                "Build does not declare which boards it supports"
            )
        board = device.get_product_type()
        if not reqs.accepts_board(board):
            boards = ", ".join(sorted(reqs.required_boards))
            raise TargetSetupError(
                f"Device {device.serial_number} has board {board!r}; "
                f"build requires one of: {boards}"
            )

    def plan_firmware(
        self, build: DeviceBuildInfo, reqs: FirmwareRequirements
    ) -> list[FirmwareComponent]:
        """Work out which firmware components this build requires.

        A component nobody asks for is skipped. A component whose
        image is present but whose version cannot be determined is
        an error.
        """
        declared = {
            BOOTLOADER: (reqs.bootloader_version, build.bootloader_version),
            BASEBAND: (reqs.baseband_version, build.baseband_version),
        }
        components = []
        for name, partition, image_key in _FIRMWARE_COMPONENTS:
            required, built = declared[name]
            version = required or built
            if version is None:
                if build.get_file(image_key) is not None:
                    raise TargetSetupError(
                        f"Cannot determine the {name} version of build "
                        f"{build.build_id}"
                    )
                logger.debug(f"Build does not require a {name} version")
                continue
            components.append(FirmwareComponent(name, partition, version))
        return components

    def get_image_version(
        self, device: TestDevice, component: str
    ) -> str | None:
        """Query the version of ``component`` installed on the device.

        A rejected query, such as a board without that component,
        counts as an unknown version.

        Returns:
            The version, or None when the device reports none
        """
        variable = f"version-{component}"
        result = device.execute_fastboot_command(
            "getvar", variable, timeout=self.config.command_timeout
        )
        if not result.success or "FAILED" in result.stderr:
            logger.warning(
                f"fastboot getvar {variable} failed on "
                f"{device.serial_number}: {result.stderr.strip()}"
            )
            return None

        # getvar answers on stderr
        pattern = re.compile(rf"^{re.escape(variable)}:[ \t]*(.*)$", re.MULTILINE)
        match = pattern.search(result.stderr) or pattern.search(result.stdout)
        if not match:
            return None
        version = match.group(1).strip()
        return version or None

    def check_and_flash_component(
        self,
        device: TestDevice,
        build: DeviceBuildInfo,
        component: FirmwareComponent,
    ) -> bool:
        """Flash ``component`` unless the device already runs the
        required version.

        An unknown current version always leads to a flash.

        Returns:
            True if the component was flashed
        """
        current = self.get_image_version(device, component.name)
        if current is not None and current == component.required_version:
            logger.info(
                f"Device {device.serial_number} already has {component.name} "
                f"{current}, skipping"
            )
            return False

        logger.info(
            f"Flashing {component.name} {component.required_version} "
            f"(device has {current or 'unknown'})"
        )
        image = self._resolve_image(build, component)
        self.flash_partition(device, image, component.partition)
        device.reboot_into_bootloader(timeout=self.config.command_timeout)

        flashed = self.get_image_version(device, component.name)
        if flashed != component.required_version:
            raise TargetSetupError(
                f"Device {device.serial_number} reports {component.name} "
                f"{flashed or 'unknown'} after flashing "
                f"{component.required_version}"
            )
        return True

    def _resolve_image(
        self, build: DeviceBuildInfo, component: FirmwareComponent
    ) -> Path:
        """Return the image file for ``component``, fetching it when
        the build does not carry one."""
        if component.name == BOOTLOADER:
            image = build.bootloader_image_file
        else:
            image = build.baseband_image_file
        if image is not None:
            return image

        if self.resource_retriever is None:
            raise TargetSetupError(
                f"Build {build.build_id} has no {component.name} image "
                f"for version {component.required_version}"
            )
        image = self.resource_retriever.retrieve_file(
            component.name, component.required_version
        )
        # The build owns the retrieved file from now on
        if component.name == BOOTLOADER:
            build.set_bootloader_image(image, component.required_version)
        else:
            build.set_baseband_image(image, component.required_version)
        return image

    def flash_partition(
        self, device: TestDevice, image: Path, partition: str
    ) -> None:
        logger.debug(f"fastboot flash {partition} {image}")
        result = device.execute_long_fastboot_command(
            "flash", partition, str(image), timeout=self.config.flash_timeout
        )
        self._check_result(device, result, f"flash {partition}")

    def erase_partition(self, device: TestDevice, partition: str) -> None:
        result = device.execute_long_fastboot_command(
            "erase", partition, timeout=self.config.flash_timeout
        )
        self._check_result(device, result, f"erase {partition}")

    def flash_system(self, device: TestDevice, build: DeviceBuildInfo) -> None:
        """Flash the device image; it is not version checked."""
        logger.info(f"Flashing system image {build.device_image_file}")
        result = device.execute_long_fastboot_command(
            "--skip-reboot", "update", str(build.device_image_file),
            timeout=self.config.flash_timeout,
        )
        self._check_result(device, result, "update")

        if self.config.erase_cache:
            result = device.execute_fastboot_command(
                "erase", "cache", timeout=self.config.command_timeout
            )
            if not result.success:
                logger.warn(
                    f"Could not erase cache on {device.serial_number}: "
                    f"{result.stderr.strip()}"
                )

    def flash_user_data(
        self, device: TestDevice, build: DeviceBuildInfo
    ) -> bool:
        """Handle the user data partition.

        Returns:
            True if the device was left booted in runtime mode
        """
        option = self.config.user_data_option
        userdata = build.userdata_image_file

        if option == UserDataFlashOption.RETAIN:
            logger.info("Retaining existing user data")
            return False

        if option == UserDataFlashOption.TESTS_ZIP:
            if self.tests_zip_installer is None:
                raise TargetSetupError(
                    "User data option tests_zip needs a tests zip installer"
                )
            # Pushing files needs a running device
            device.reboot(timeout=self.config.flash_timeout)
            self.tests_zip_installer.push_tests_zip_onto_data(device, build)
            return True

        if option == UserDataFlashOption.FORCE_WIPE:
            self.erase_partition(device, "userdata")
            if userdata is not None:
                self.flash_partition(device, userdata, "userdata")
            return False

        # WIPE
        if userdata is not None:
            self.flash_partition(device, userdata, "userdata")
        else:
            self.erase_partition(device, "userdata")
        return False

    def _check_result(
        self, device: TestDevice, result: CommandResult, description: str
    ) -> None:
        # fastboot can exit 0 and still report FAILED
        if not result.success or "FAILED" in result.stderr:
            raise TargetSetupError(
                f"fastboot {description} failed on {device.serial_number}: "
                f"{result.status.value} {result.stderr.strip()}"
            )
