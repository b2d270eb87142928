"""Runtime state of one invocation and its failure classification."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from pydantic import ConfigDict, Field

from devharness.build.info import BuildInfo
from devharness.core.base import BaseState
from devharness.core.errors import (
    BuildError,
    ConfigurationError,
    DeviceNotAvailableError,
    TargetSetupError,
)
from devharness.core.log import Logger
from devharness.invoker.configuration import Configuration
from devharness.result.listener import InvocationListener
from devharness.result.types import InvocationStatus


class FailureKind(str, Enum):
    """Why an invocation phase stopped, if it did."""

    NONE = "none"
    BUILD_ERROR = "build_error"
    SETUP_ERROR = "setup_error"
    CONFIGURATION_ERROR = "configuration_error"
    DEVICE_UNAVAILABLE = "device_unavailable"
    UNEXPECTED = "unexpected"

    @classmethod
    def from_exception(cls, error: BaseException) -> FailureKind:
        if isinstance(error, DeviceNotAvailableError):
            return cls.DEVICE_UNAVAILABLE
        if isinstance(error, BuildError):
            return cls.BUILD_ERROR
        if isinstance(error, TargetSetupError):
            return cls.SETUP_ERROR
        if isinstance(error, (ConfigurationError, ValueError)):
            return cls.CONFIGURATION_ERROR
        return cls.UNEXPECTED

    @property
    def status(self) -> InvocationStatus:
        match self:
            case FailureKind.NONE:
                return InvocationStatus.SUCCESS
            case FailureKind.BUILD_ERROR:
                return InvocationStatus.BUILD_ERROR
            case _:
                return InvocationStatus.FAILED


class InvocationState(BaseState):
    """State flowing through the invocation workflow graph.

    Phases never raise out of the graph. They record the first
    failure here and the reporting phase reads it back.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    device: Any = Field(description="TestDevice under test")
    configuration: Configuration
    build: BuildInfo
    listener: InvocationListener
    log: Logger
    start_time: float = Field(default_factory=time.monotonic)
    failure: FailureKind = FailureKind.NONE
    cause: BaseException | None = None

    @property
    def status(self) -> InvocationStatus:
        return self.failure.status

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.start_time) * 1000)

    @property
    def device_error(self) -> DeviceNotAvailableError | None:
        if self.failure is FailureKind.DEVICE_UNAVAILABLE:
            return self.cause
        return None

    def record_failure(self, error: BaseException) -> FailureKind:
        """Classify ``error`` and keep it as the invocation's cause."""
        self.failure = FailureKind.from_exception(error)
        self.cause = error
        return self.failure
