"""Everything one invocation needs besides the device."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import ConfigDict, Field

from devharness.build.provider import BuildProvider
from devharness.core.base import BaseConfig
from devharness.core.config import HarnessSettings, temporary_log_root
from devharness.core.log import Logger
from devharness.device.interface import DeviceRecovery
from devharness.result.listener import InvocationListener, ResultForwarder
from devharness.targetprep.flasher import DeviceFlasher
from devharness.targetprep.preparer import DeviceFlashPreparer, TargetPreparer


class Configuration(BaseConfig):
    """Collaborators of one invocation.

    Target preparers and test payloads run in list order. ``log`` is
    a template: each invocation sets up its own copy under
    ``log_root``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    build_provider: BuildProvider = Field(
        description="Source of the build under test"
    )
    target_preparers: list[TargetPreparer] = Field(
        default_factory=list,
        description="Preparers run in order before the tests",
    )
    device_recovery: DeviceRecovery | None = Field(
        default=None,
        description="Recovery strategy installed on the device",
    )
    tests: list[Any] = Field(
        default_factory=list,
        description="RemoteTest instances or unittest collections",
    )
    listeners: list[InvocationListener] = Field(
        default_factory=list,
        description="Receivers of lifecycle and result callbacks",
    )
    log: Logger = Field(
        default_factory=Logger,
        description="Template for the invocation's logger",
    )
    log_root: Path = Field(
        default_factory=temporary_log_root,
        description="Root directory for invocation log files",
    )

    @classmethod
    def from_settings(
        cls, settings: HarnessSettings, **kwargs
    ) -> Configuration:
        """Build a configuration from loaded settings.

        Without explicit ``target_preparers`` the build is flashed by a
        DeviceFlashPreparer using the ``flasher`` and ``preparer``
        sections.
        """
        kwargs.setdefault("log", settings.log)
        kwargs.setdefault("log_root", settings.log_root)
        if "target_preparers" not in kwargs:
            kwargs["target_preparers"] = [
                DeviceFlashPreparer(
                    DeviceFlasher(settings.flasher), settings.preparer
                )
            ]
        return cls(**kwargs)

    def get_listener(self) -> InvocationListener:
        return ResultForwarder(self.listeners)

    def new_logger(self, run_name: str) -> Logger:
        log = self.log.model_copy(deep=True)
        return log.setup(self.log_root, run_name)
