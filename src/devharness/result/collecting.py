"""Listener that keeps every result in memory."""

from __future__ import annotations

from dataclasses import dataclass, field

from devharness.build.info import BuildInfo
from devharness.result.listener import InvocationListener
from devharness.result.types import (
    InvocationStatus,
    LogDataType,
    TestFailure,
    TestIdentifier,
)

PASSED = "passed"
IGNORED = "ignored"


@dataclass
class TestResult:
    """Outcome of one test case."""

    __test__ = False

    status: str = PASSED
    trace: str | None = None
    metrics: dict[str, str] = field(default_factory=dict)


@dataclass
class TestRunResult:
    """All results of one test run."""

    __test__ = False

    name: str
    expected_count: int
    results: dict[TestIdentifier, TestResult] = field(default_factory=dict)
    metrics: dict[str, str] = field(default_factory=dict)
    elapsed_ms: int | None = None
    failure_message: str | None = None

    @property
    def complete(self) -> bool:
        return self.elapsed_ms is not None

    def _count(self, status: str) -> int:
        return sum(1 for r in self.results.values() if r.status == status)

    @property
    def num_passed(self) -> int:
        return self._count(PASSED)

    @property
    def num_failed(self) -> int:
        return self._count(TestFailure.FAILURE.value)

    @property
    def num_errors(self) -> int:
        return self._count(TestFailure.ERROR.value)

    @property
    def num_ignored(self) -> int:
        return self._count(IGNORED)


class CollectingListener(InvocationListener):
    """Records runs, test results, logs and the invocation outcome.

    ``events`` keeps the name of every callback in arrival order.
    """

    def __init__(self):
        self.build: BuildInfo | None = None
        self.runs: list[TestRunResult] = []
        self.logs: dict[str, tuple[LogDataType, bytes]] = {}
        self.status: InvocationStatus | None = None
        self.elapsed_ms: int | None = None
        self.failure_message: str | None = None
        self.failure_cause: BaseException | None = None
        self.events: list[str] = []

    @property
    def current_run(self) -> TestRunResult | None:
        return self.runs[-1] if self.runs else None

    def invocation_started(self, build):
        self.events.append("invocation_started")
        self.build = build

    def test_run_started(self, run_name, test_count):
        self.events.append("test_run_started")
        self.runs.append(TestRunResult(run_name, test_count))

    def test_started(self, test):
        self.events.append("test_started")
        self.current_run.results[test] = TestResult()

    def test_failed(self, status, test, trace):
        self.events.append("test_failed")
        result = self.current_run.results.setdefault(test, TestResult())
        result.status = TestFailure(status).value
        result.trace = trace

    def test_ignored(self, test):
        self.events.append("test_ignored")
        result = self.current_run.results.setdefault(test, TestResult())
        result.status = IGNORED

    def test_ended(self, test, metrics):
        self.events.append("test_ended")
        result = self.current_run.results.setdefault(test, TestResult())
        result.metrics.update(metrics)

    def test_run_failed(self, message):
        self.events.append("test_run_failed")
        self.current_run.failure_message = message

    def test_run_ended(self, elapsed_ms, metrics):
        self.events.append("test_run_ended")
        self.current_run.elapsed_ms = elapsed_ms
        self.current_run.metrics.update(metrics)

    def test_log(self, name, data_type, data):
        self.events.append("test_log")
        self.logs[name] = (data_type, data)

    def invocation_ended(self, elapsed_ms):
        self.events.append("invocation_ended")
        self.status = InvocationStatus.SUCCESS
        self.elapsed_ms = elapsed_ms

    def invocation_build_error(self, elapsed_ms, message):
        self.events.append("invocation_build_error")
        self.status = InvocationStatus.BUILD_ERROR
        self.elapsed_ms = elapsed_ms
        self.failure_message = message

    def invocation_failed(self, elapsed_ms, message, cause):
        self.events.append("invocation_failed")
        self.status = InvocationStatus.FAILED
        self.elapsed_ms = elapsed_ms
        self.failure_message = message
        self.failure_cause = cause

    def all_results(self) -> dict[TestIdentifier, TestResult]:
        results = {}
        for run in self.runs:
            results.update(run.results)
        return results
