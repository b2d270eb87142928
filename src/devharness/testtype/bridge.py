"""Bridge from unittest results to an invocation listener."""

from __future__ import annotations

import traceback
import unittest

from devharness.core.errors import DeviceNotAvailableError
from devharness.result.listener import InvocationListener
from devharness.result.types import TestFailure, TestIdentifier


class ListenerTestResult(unittest.TestResult):
    """unittest result that forwards each outcome as it happens.

    Nothing is buffered: a listener sees every finished case even if
    a later case aborts the run. A case that loses the device stops
    the run and leaves the error in ``device_error``.

    Failing subtests are reported against the case that owns them.
    """

    def __init__(self, listener: InvocationListener):
        super().__init__()
        self.listener = listener
        self.device_error: DeviceNotAvailableError | None = None

    @staticmethod
    def _identify(test: unittest.TestCase) -> TestIdentifier:
        # Subtests and skips raised inside them carry their parent case
        test = getattr(test, "test_case", test)
        return TestIdentifier.from_id(test.id())

    @staticmethod
    def _trace(err) -> str:
        return "".join(traceback.format_exception(*err))

    def _report(self, status: TestFailure, test, err) -> None:
        self.listener.test_failed(status, self._identify(test), self._trace(err))
        if isinstance(err[1], DeviceNotAvailableError):
            self.device_error = err[1]
            self.stop()

    def startTest(self, test):
        super().startTest(test)
        self.listener.test_started(self._identify(test))

    def stopTest(self, test):
        super().stopTest(test)
        self.listener.test_ended(self._identify(test), {})

    def addFailure(self, test, err):
        super().addFailure(test, err)
        self._report(TestFailure.FAILURE, test, err)

    def addError(self, test, err):
        super().addError(test, err)
        self._report(TestFailure.ERROR, test, err)

    def addSubTest(self, test, subtest, err):
        super().addSubTest(test, subtest, err)
        if err is None:
            return
        if issubclass(err[0], test.failureException):
            self._report(TestFailure.FAILURE, test, err)
        else:
            self._report(TestFailure.ERROR, test, err)

    def addSkip(self, test, reason):
        super().addSkip(test, reason)
        self.listener.test_ignored(self._identify(test))

    def addUnexpectedSuccess(self, test):
        super().addUnexpectedSuccess(test)
        self.listener.test_failed(
            TestFailure.FAILURE,
            self._identify(test),
            "Unexpected success",
        )
