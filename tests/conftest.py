"""Pytest configuration and shared fakes for devharness tests."""

import zipfile
from pathlib import Path

import pytest

from devharness.build.info import DeviceBuildInfo
from devharness.build.provider import BuildProvider
from devharness.core.errors import (
    DeviceNotAvailableError,
    DeviceUnresponsiveError,
)
from devharness.core.log import ConsoleSink, FileSink, Logger
from devharness.core.result import CommandResult, CommandStatus
from devharness.invoker.configuration import Configuration

# Partition name -> firmware component reported by getvar
PARTITION_COMPONENTS = {"bootloader": "bootloader", "radio": "baseband"}


class FakeDevice:
    """In-memory device that records every bootloader command.

    ``versions`` is what ``getvar version-<name>`` reports.
    ``installs`` maps a component to the version the device reports
    after that component is flashed; components missing from it keep
    reporting their old version.
    """

    def __init__(
        self,
        serial="FAKE0001",
        product_type="crespo",
        versions=None,
        installs=None,
        logcat=b"I/fake: boot completed\n",
    ):
        self.serial_number = serial
        self.product_type = product_type
        self.versions = dict(versions or {})
        self.installs = dict(installs or {})
        self.logcat = logcat
        self.recovery = None
        self.commands = []
        self.failing_commands = set()
        self.lost = False
        self.logcat_lost = False
        self.unresponsive_after_boot = False

    def _check(self):
        if self.lost:
            raise DeviceNotAvailableError("device went away", self.serial_number)

    def get_product_type(self):
        self._check()
        return self.product_type

    def set_recovery(self, recovery):
        self.recovery = recovery

    def execute_shell_command(self, command, timeout=None):
        self._check()
        self.commands.append(("shell", command))
        return ""

    def get_logcat(self):
        if self.lost or self.logcat_lost:
            raise DeviceNotAvailableError("no logcat", self.serial_number)
        return self.logcat

    def reboot_into_bootloader(self, timeout=None):
        self._check()
        self.commands.append(("reboot-bootloader",))

    def reboot(self, timeout=None):
        self._check()
        self.commands.append(("reboot",))

    def wait_for_device_available(self, timeout=None):
        self._check()
        if self.unresponsive_after_boot:
            raise DeviceUnresponsiveError("not responding", self.serial_number)

    def _result(self, args, stderr=""):
        if args[0] in self.failing_commands:
            return CommandResult(
                status=CommandStatus.FAILED,
                stderr=f"FAILED (remote: {args[0]} refused)",
                returncode=1,
            )
        return CommandResult(
            status=CommandStatus.SUCCESS, stderr=stderr, returncode=0
        )

    def execute_fastboot_command(self, *args, timeout=None):
        self._check()
        self.commands.append(args)
        if args[0] == "getvar":
            name = args[1].removeprefix("version-")
            version = self.versions.get(name, "")
            return self._result(
                args, f"{args[1]}: {version}\nfinished. total time: 0.001s\n"
            )
        return self._result(args)

    def execute_long_fastboot_command(self, *args, timeout=None):
        self._check()
        self.commands.append(args)
        if args[0] == "flash":
            component = PARTITION_COMPONENTS.get(args[1])
            if component in self.installs:
                self.versions[component] = self.installs[component]
        return self._result(args)

    def commands_named(self, name):
        return [c for c in self.commands if c[0] == name]


class FakeBuildProvider(BuildProvider):
    """Hands out one build and records what happens to it."""

    def __init__(self, build=None, error=None):
        self.build = build
        self.error = error
        self.not_tested = []
        self.cleaned = []

    def get_build(self):
        if self.error is not None:
            raise self.error
        return self.build

    def build_not_tested(self, build):
        self.not_tested.append(build)

    def clean_up(self, build):
        self.cleaned.append(build)
        super().clean_up(build)


def write_device_image(path: Path, info: str) -> Path:
    """Write a device image zip holding android-info.txt."""
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("android-info.txt", info)
        archive.writestr("system.img", b"\0" * 16)
    return path


@pytest.fixture
def device():
    return FakeDevice()


@pytest.fixture
def make_device_build(tmp_path):
    """Factory for DeviceBuildInfo objects backed by real files."""

    def factory(
        info="require board=crespo\n",
        build_id="1234",
        bootloader=None,
        baseband=None,
        userdata=False,
    ):
        build = DeviceBuildInfo(build_id, "smoke", "crespo-userdebug")
        image = write_device_image(tmp_path / f"device-{build_id}.zip", info)
        build.set_device_image_file(image)
        if bootloader is not None:
            path = tmp_path / "bootloader.img"
            path.write_bytes(b"bootloader")
            build.set_bootloader_image(path, bootloader)
        if baseband is not None:
            path = tmp_path / "radio.img"
            path.write_bytes(b"radio")
            build.set_baseband_image(path, baseband)
        if userdata:
            path = tmp_path / "userdata.img"
            path.write_bytes(b"userdata")
            build.set_userdata_image_file(path)
        return build

    return factory


@pytest.fixture
def quiet_log(tmp_path):
    """Logger template that only writes the harness log file."""
    return Logger(
        level="debug",
        console=ConsoleSink(enabled=False),
        file=FileSink(enabled=True),
    )


@pytest.fixture
def make_configuration(tmp_path, quiet_log):
    """Factory for invocation configurations that log under tmp_path."""

    def factory(**kwargs):
        kwargs.setdefault("log", quiet_log)
        kwargs.setdefault("log_root", tmp_path / "logs")
        return Configuration(**kwargs)

    return factory
