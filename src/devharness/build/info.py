"""Build descriptors: the unit of software an invocation tests.

A BuildInfo owns its artifact files. They stay valid until
``clean_up()`` runs at the end of the invocation; nothing may hold
on to them after that. ``clone()`` deep-copies every artifact into
fresh temporary locations, so a clone and its source can be released
independently.
"""

from __future__ import annotations

import shutil
import stat
import tempfile
from pathlib import Path

from devharness.core.log import logger
from devharness.core.runner import Runner

UNKNOWN_BUILD_ID = "-1"


class BuildInfo:
    """Generic build descriptor.

    Attributes:
        build_id: Build identifier (integers are stored as strings)
        test_tag: Logical name of the test suite run against the build
        build_target_name: Name of the build target
    """

    def __init__(
        self,
        build_id: str | int = UNKNOWN_BUILD_ID,
        test_tag: str = "stub",
        build_target_name: str = "stub",
    ):
        self.build_id = str(build_id)
        self.test_tag = test_tag
        self.build_target_name = build_target_name
        self._attributes: dict[str, str] = {}
        self._files: dict[str, Path] = {}
        self._temp_dirs: list[Path] = []
        self._released = False

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(build_id={self.build_id!r}, "
            f"test_tag={self.test_tag!r}, "
            f"build_target_name={self.build_target_name!r})"
        )

    # Attributes

    def add_build_attribute(self, name: str, value: str) -> None:
        self._attributes[name] = str(value)

    def add_all_build_attributes(self, other: BuildInfo) -> None:
        """Copy every attribute of ``other`` into this build."""
        for name, value in other.build_attributes.items():
            self.add_build_attribute(name, value)

    @property
    def build_attributes(self) -> dict[str, str]:
        return dict(self._attributes)

    # Artifact files

    def set_file(self, name: str, path: Path | str | None) -> None:
        """Attach (or with None, detach) a named artifact."""
        if path is None:
            self._files.pop(name, None)
        else:
            self._files[name] = Path(path)

    def get_file(self, name: str) -> Path | None:
        return self._files.get(name)

    @property
    def files(self) -> dict[str, Path]:
        return dict(self._files)

    @property
    def released(self) -> bool:
        return self._released

    def clean_up(self) -> None:
        """Delete all owned artifacts. Safe to call more than once."""
        if self._released:
            return
        for path in self._owned_paths():
            _delete(path)
        for temp_dir in self._temp_dirs:
            _delete(temp_dir)
        self._files.clear()
        self._temp_dirs.clear()
        self._released = True

    def _owned_paths(self) -> list[Path]:
        return list(self._files.values())

    # Cloning

    def _new_instance(self) -> BuildInfo:
        return type(self)(
            self.build_id, self.test_tag, self.build_target_name
        )

    def _copy_fields(self, clone: BuildInfo) -> None:
        """Copy non-file state into ``clone``. Subclasses extend."""
        pass

    def clone(self) -> BuildInfo:
        """Return a deep copy that owns its own artifact copies.

        Raises:
            RuntimeError: If the artifacts cannot be copied
        """
        if self._released:
            raise RuntimeError(f"Cannot clone released build {self!r}")

        clone = self._new_instance()
        clone.add_all_build_attributes(self)
        self._copy_fields(clone)
        try:
            for name, path in self._files.items():
                clone._files[name] = clone._copy_artifact(name, path)
        except OSError as e:
            clone.clean_up()
            raise RuntimeError(f"Could not clone build {self!r}") from e
        return clone

    def _copy_artifact(self, name: str, path: Path) -> Path:
        """Copy one artifact into a new temporary location.

        A directory becomes the new temporary directory itself; a
        file is placed inside a new temporary directory that this
        build then owns.
        """
        if path.is_dir():
            target = Path(tempfile.mkdtemp(prefix=f"clone-{name}-"))
            shutil.copytree(path, target, dirs_exist_ok=True)
            return target

        temp_dir = Path(tempfile.mkdtemp(prefix=f"clone-{name}-"))
        self._temp_dirs.append(temp_dir)
        target = temp_dir / path.name
        shutil.copy2(path, target)
        return target


class DeviceBuildInfo(BuildInfo):
    """Build for a physical device: images plus firmware versions."""

    DEVICE_IMAGE = "device_image"
    USERDATA_IMAGE = "userdata_image"
    BASEBAND_IMAGE = "baseband_image"
    BOOTLOADER_IMAGE = "bootloader_image"
    TESTS_ZIP = "tests_zip"

    def __init__(
        self,
        build_id: str | int = UNKNOWN_BUILD_ID,
        test_tag: str = "stub",
        build_target_name: str = "stub",
    ):
        super().__init__(build_id, test_tag, build_target_name)
        self.baseband_version: str | None = None
        self.bootloader_version: str | None = None

    def _copy_fields(self, clone: BuildInfo) -> None:
        clone.baseband_version = self.baseband_version
        clone.bootloader_version = self.bootloader_version

    @property
    def device_image_file(self) -> Path | None:
        return self.get_file(self.DEVICE_IMAGE)

    def set_device_image_file(self, path: Path | str | None) -> None:
        self.set_file(self.DEVICE_IMAGE, path)

    @property
    def userdata_image_file(self) -> Path | None:
        return self.get_file(self.USERDATA_IMAGE)

    def set_userdata_image_file(self, path: Path | str | None) -> None:
        self.set_file(self.USERDATA_IMAGE, path)

    @property
    def baseband_image_file(self) -> Path | None:
        return self.get_file(self.BASEBAND_IMAGE)

    def set_baseband_image(
        self, path: Path | str | None, version: str | None
    ) -> None:
        self.set_file(self.BASEBAND_IMAGE, path)
        self.baseband_version = version

    @property
    def bootloader_image_file(self) -> Path | None:
        return self.get_file(self.BOOTLOADER_IMAGE)

    def set_bootloader_image(
        self, path: Path | str | None, version: str | None
    ) -> None:
        self.set_file(self.BOOTLOADER_IMAGE, path)
        self.bootloader_version = version

    @property
    def tests_zip_file(self) -> Path | None:
        return self.get_file(self.TESTS_ZIP)

    def set_tests_zip_file(self, path: Path | str | None) -> None:
        self.set_file(self.TESTS_ZIP, path)


class SdkBuildInfo(BuildInfo):
    """Build of the SDK and its IDE tooling (ADT)."""

    SDK_DIR = "sdk_dir"
    ADT_DIR = "adt_dir"
    ANDROID_TIMEOUT = 15

    def __init__(
        self,
        build_id: str | int = UNKNOWN_BUILD_ID,
        test_tag: str = "stub",
        build_target_name: str = "stub",
    ):
        super().__init__(build_id, test_tag, build_target_name)
        self._delete_sdk_dir_parent = False
        self._runner: Runner | None = None

    @property
    def sdk_dir(self) -> Path | None:
        return self.get_file(self.SDK_DIR)

    def set_sdk_dir(
        self, sdk_dir: Path | str | None, delete_parent: bool = False
    ) -> None:
        """Set the SDK directory.

        Args:
            sdk_dir: Directory holding the unpacked SDK
            delete_parent: Delete the parent directory on cleanup,
                for SDKs unpacked into a dedicated temp directory
        """
        self.set_file(self.SDK_DIR, sdk_dir)
        self._delete_sdk_dir_parent = delete_parent

    @property
    def adt_dir(self) -> Path | None:
        return self.get_file(self.ADT_DIR)

    def set_adt_dir(self, adt_dir: Path | str | None) -> None:
        self.set_file(self.ADT_DIR, adt_dir)

    def _owned_paths(self) -> list[Path]:
        paths = []
        for name, path in self._files.items():
            if name == self.SDK_DIR and self._delete_sdk_dir_parent:
                paths.append(path.parent)
            else:
                paths.append(path)
        return paths

    def _require_sdk_dir(self) -> Path:
        if self.sdk_dir is None:
            raise RuntimeError("sdk dir is not set")
        return self.sdk_dir

    @property
    def android_tool_path(self) -> Path:
        return self._require_sdk_dir() / "tools" / "android"

    @property
    def emulator_tool_path(self) -> Path:
        return self._require_sdk_dir() / "tools" / "emulator"

    def make_tools_executable(self) -> None:
        """Set the executable bits on every SDK tool."""
        sdk_dir = self._require_sdk_dir()
        for tools_dir in (sdk_dir / "tools", sdk_dir / "platform-tools"):
            if not tools_dir.is_dir():
                continue
            for tool in tools_dir.iterdir():
                if tool.is_file():
                    mode = tool.stat().st_mode
                    tool.chmod(
                        mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH
                    )

    def get_runner(self) -> Runner:
        if self._runner is None:
            self._runner = Runner()
        return self._runner

    def get_sdk_targets(self) -> list[str] | None:
        """List the platform targets the SDK provides.

        Returns:
            Target names, or None if the android tool failed
        """
        tool = self.android_tool_path
        result = self.get_runner().run_timed_cmd(
            self.ANDROID_TIMEOUT, str(tool), "list", "targets", "--compact"
        )
        if not result.success:
            logger.error(
                f"Unable to get list of SDK targets using {tool}. "
                f"Result {result.status.value}, err {result.stderr}"
            )
            return None
        return result.stdout.splitlines()


def _delete(path: Path) -> None:
    if path.is_dir():
        shutil.rmtree(path, ignore_errors=True)
    elif path.exists():
        path.unlink()
