"""Listener interface and the fan-out forwarder.

Callbacks for one invocation arrive in a fixed order:
invocation_started, any number of run and test callbacks, the
test_log attachments, then exactly one of invocation_ended,
invocation_build_error or invocation_failed.
"""

from __future__ import annotations

from collections.abc import Iterable

from devharness.build.info import BuildInfo
from devharness.result.types import LogDataType, TestFailure, TestIdentifier


class InvocationListener:
    """Receives invocation lifecycle and test result callbacks.

    Every method is a no-op, so listeners override only what they
    care about.
    """

    def invocation_started(self, build: BuildInfo) -> None:
        pass

    def test_run_started(self, run_name: str, test_count: int) -> None:
        pass

    def test_started(self, test: TestIdentifier) -> None:
        pass

    def test_failed(
        self, status: TestFailure, test: TestIdentifier, trace: str
    ) -> None:
        pass

    def test_ignored(self, test: TestIdentifier) -> None:
        pass

    def test_ended(
        self, test: TestIdentifier, metrics: dict[str, str]
    ) -> None:
        pass

    def test_run_failed(self, message: str) -> None:
        pass

    def test_run_ended(
        self, elapsed_ms: int, metrics: dict[str, str]
    ) -> None:
        pass

    def test_log(
        self, name: str, data_type: LogDataType, data: bytes
    ) -> None:
        pass

    def invocation_ended(self, elapsed_ms: int) -> None:
        pass

    def invocation_build_error(self, elapsed_ms: int, message: str) -> None:
        pass

    def invocation_failed(
        self, elapsed_ms: int, message: str, cause: BaseException
    ) -> None:
        pass


class ResultForwarder(InvocationListener):
    """Forwards every callback to each of its listeners, in order."""

    def __init__(self, listeners: Iterable[InvocationListener] = ()):
        self.listeners = list(listeners)

    def invocation_started(self, build):
        for listener in self.listeners:
            listener.invocation_started(build)

    def test_run_started(self, run_name, test_count):
        for listener in self.listeners:
            listener.test_run_started(run_name, test_count)

    def test_started(self, test):
        for listener in self.listeners:
            listener.test_started(test)

    def test_failed(self, status, test, trace):
        for listener in self.listeners:
            listener.test_failed(status, test, trace)

    def test_ignored(self, test):
        for listener in self.listeners:
            listener.test_ignored(test)

    def test_ended(self, test, metrics):
        for listener in self.listeners:
            listener.test_ended(test, metrics)

    def test_run_failed(self, message):
        for listener in self.listeners:
            listener.test_run_failed(message)

    def test_run_ended(self, elapsed_ms, metrics):
        for listener in self.listeners:
            listener.test_run_ended(elapsed_ms, metrics)

    def test_log(self, name, data_type, data):
        for listener in self.listeners:
            listener.test_log(name, data_type, data)

    def invocation_ended(self, elapsed_ms):
        for listener in self.listeners:
            listener.invocation_ended(elapsed_ms)

    def invocation_build_error(self, elapsed_ms, message):
        for listener in self.listeners:
            listener.invocation_build_error(elapsed_ms, message)

    def invocation_failed(self, elapsed_ms, message, cause):
        for listener in self.listeners:
            listener.invocation_failed(elapsed_ms, message, cause)
