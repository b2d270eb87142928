"""End-to-end tests for TestInvocation.invoke."""

import unittest
from unittest.mock import MagicMock

import pytest
from conftest import FakeBuildProvider, FakeDevice

from devharness.core.errors import (
    BuildError,
    DeviceNotAvailableError,
    DeviceUnresponsiveError,
    TargetSetupError,
)
from devharness.core.log import LogRegistry
from devharness.invoker import DEVICE_LOG_NAME, HARNESS_LOG_NAME
from devharness.invoker.invocation import TestInvocation
from devharness.result.collecting import CollectingListener
from devharness.result.listener import InvocationListener
from devharness.result.types import (
    InvocationStatus,
    LogDataType,
    TestIdentifier,
)
from devharness.targetprep.flasher import DeviceFlasher
from devharness.targetprep.preparer import DeviceFlashPreparer, TargetPreparer
from devharness.testtype.interfaces import RemoteTest

TERMINAL_EVENTS = {
    "invocation_ended",
    "invocation_build_error",
    "invocation_failed",
}


class PassAndFail(unittest.TestCase):
    __test__ = False

    def test_a_passes(self):
        pass

    def test_b_fails(self):
        self.fail("wrong screen brightness")


class LosesDeviceMidRun(RemoteTest):
    """Reports one finished test, then loses the device."""

    def run(self, listener):
        listener.test_run_started("flaky", 2)
        first = TestIdentifier("lab.Suite", "test_first")
        listener.test_started(first)
        listener.test_ended(first, {})
        listener.test_started(TestIdentifier("lab.Suite", "test_second"))
        raise DeviceNotAvailableError("usb disconnect", "FAKE0001")


class RaisingPreparer(TargetPreparer):
    def __init__(self, error):
        self.error = error
        self.calls = 0

    def set_up(self, device, build):
        self.calls += 1
        raise self.error


class CleanupWatcher(InvocationListener):
    """Notes whether the build was already released at terminal time."""

    def __init__(self, build):
        self.build = build
        self.released_at_terminal = None

    def invocation_ended(self, elapsed_ms):
        self.released_at_terminal = self.build.released

    def invocation_build_error(self, elapsed_ms, message):
        self.released_at_terminal = self.build.released

    def invocation_failed(self, elapsed_ms, message, cause):
        self.released_at_terminal = self.build.released


@pytest.fixture
def registry():
    return LogRegistry()


@pytest.fixture
def invocation(registry):
    return TestInvocation(log_registry=registry)


@pytest.fixture
def build(make_device_build):
    return make_device_build()


def terminal_events(listener):
    return [e for e in listener.events if e in TERMINAL_EVENTS]


def test_no_build_means_no_callbacks(invocation, registry, make_configuration):
    listener = CollectingListener()
    provider = FakeBuildProvider(build=None)
    configuration = make_configuration(
        build_provider=provider, listeners=[listener]
    )

    status = invocation.invoke(FakeDevice(), configuration)

    assert status is None
    assert listener.events == []
    assert provider.cleaned == []
    assert registry.current() is None


def test_failing_build_provider_is_logged(invocation, make_configuration):
    listener = CollectingListener()
    configuration = make_configuration(
        build_provider=FakeBuildProvider(error=RuntimeError("server down")),
        listeners=[listener],
    )

    assert invocation.invoke(FakeDevice(), configuration) is None
    assert listener.events == []


def test_build_provider_losing_device_propagates(
    invocation, registry, make_configuration
):
    configuration = make_configuration(
        build_provider=FakeBuildProvider(error=DeviceNotAvailableError("gone")),
    )

    with pytest.raises(DeviceNotAvailableError):
        invocation.invoke(FakeDevice(), configuration)

    assert registry.current() is None


def test_pass_and_fail_run(invocation, registry, build, make_configuration):
    listener = CollectingListener()
    provider = FakeBuildProvider(build)
    recovery = MagicMock()
    device = FakeDevice()
    configuration = make_configuration(
        build_provider=provider,
        device_recovery=recovery,
        tests=[unittest.defaultTestLoader.loadTestsFromTestCase(PassAndFail)],
        listeners=[listener],
    )

    status = invocation.invoke(device, configuration)

    assert status is InvocationStatus.SUCCESS
    assert listener.events == [
        "invocation_started",
        "test_run_started",
        "test_started", "test_ended",
        "test_started", "test_failed", "test_ended",
        "test_run_ended",
        "test_log", "test_log",
        "invocation_ended",
    ]
    run = listener.current_run
    assert run.expected_count == 2
    assert (run.num_passed, run.num_failed) == (1, 1)
    assert listener.status is InvocationStatus.SUCCESS
    assert listener.elapsed_ms >= 0

    assert build.build_attributes["device_serial"] == "FAKE0001"
    assert device.recovery is recovery
    assert provider.not_tested == []
    assert provider.cleaned == [build]
    assert build.released
    assert registry.current() is None


def test_logs_are_attached(invocation, build, make_configuration):
    listener = CollectingListener()
    configuration = make_configuration(
        build_provider=FakeBuildProvider(build), listeners=[listener]
    )

    invocation.invoke(FakeDevice(logcat=b"I/boot: ok\n"), configuration)

    assert listener.logs[DEVICE_LOG_NAME] == (LogDataType.TEXT, b"I/boot: ok\n")
    data_type, harness_log = listener.logs[HARNESS_LOG_NAME]
    assert data_type is LogDataType.TEXT
    assert b"Starting invocation of build 1234" in harness_log


def test_board_mismatch_fails_without_build_not_tested(
    invocation, make_device_build, make_configuration
):
    listener = CollectingListener()
    build = make_device_build(info="require board=Y\n")
    provider = FakeBuildProvider(build)
    device = FakeDevice(product_type="X")
    payload = MagicMock(spec=RemoteTest)
    configuration = make_configuration(
        build_provider=provider,
        target_preparers=[DeviceFlashPreparer(DeviceFlasher())],
        tests=[payload],
        listeners=[listener],
    )

    status = invocation.invoke(device, configuration)

    assert status is InvocationStatus.FAILED
    assert terminal_events(listener) == ["invocation_failed"]
    assert isinstance(listener.failure_cause, TargetSetupError)
    assert device.commands_named("getvar") == []
    assert device.commands_named("flash") == []
    payload.run.assert_not_called()
    assert provider.not_tested == []
    assert provider.cleaned == [build]


def test_build_error_notifies_provider(invocation, build, make_configuration):
    listener = CollectingListener()
    provider = FakeBuildProvider(build)
    configuration = make_configuration(
        build_provider=provider,
        target_preparers=[RaisingPreparer(BuildError("does not boot"))],
        listeners=[listener],
    )

    status = invocation.invoke(FakeDevice(), configuration)

    assert status is InvocationStatus.BUILD_ERROR
    assert terminal_events(listener) == ["invocation_build_error"]
    assert listener.failure_message == "does not boot"
    assert provider.not_tested == [build]


def test_configuration_error_is_failed(invocation, build, make_configuration):
    listener = CollectingListener()
    configuration = make_configuration(
        build_provider=FakeBuildProvider(build),
        target_preparers=[RaisingPreparer(ValueError("bad option"))],
        listeners=[listener],
    )

    status = invocation.invoke(FakeDevice(), configuration)

    assert status is InvocationStatus.FAILED
    assert listener.failure_message == "bad option"


def test_later_preparers_skipped_after_failure(
    invocation, build, make_configuration
):
    first = RaisingPreparer(TargetSetupError("no firmware"))
    second = RaisingPreparer(TargetSetupError("unreachable"))
    configuration = make_configuration(
        build_provider=FakeBuildProvider(build),
        target_preparers=[first, second],
    )

    invocation.invoke(FakeDevice(), configuration)

    assert (first.calls, second.calls) == (1, 0)


def test_unexpected_test_error_is_absorbed(
    invocation, build, make_configuration
):
    listener = CollectingListener()
    payload = MagicMock(spec=RemoteTest)
    payload.run.side_effect = KeyError("surprise")
    configuration = make_configuration(
        build_provider=FakeBuildProvider(build),
        tests=[payload],
        listeners=[listener],
    )

    status = invocation.invoke(FakeDevice(), configuration)

    assert status is InvocationStatus.FAILED
    assert isinstance(listener.failure_cause, KeyError)


def test_unsupported_payload_fails_invocation(
    invocation, build, make_configuration
):
    listener = CollectingListener()
    configuration = make_configuration(
        build_provider=FakeBuildProvider(build),
        tests=["not a payload"],
        listeners=[listener],
    )

    assert invocation.invoke(FakeDevice(), configuration) is (
        InvocationStatus.FAILED
    )


def test_device_lost_mid_run(invocation, registry, build, make_configuration):
    listener = CollectingListener()
    provider = FakeBuildProvider(build)
    configuration = make_configuration(
        build_provider=provider,
        tests=[LosesDeviceMidRun()],
        listeners=[listener],
    )

    with pytest.raises(DeviceNotAvailableError, match="usb disconnect"):
        invocation.invoke(FakeDevice(), configuration)

    names = [test.test_name for test in listener.all_results()]
    assert names == ["test_first", "test_second"]
    assert listener.events[-3:] == ["test_log", "test_log", "invocation_failed"]
    assert listener.status is InvocationStatus.FAILED
    assert isinstance(listener.failure_cause, DeviceNotAvailableError)
    assert provider.cleaned == [build]
    assert registry.current() is None


def test_missing_device_log_is_skipped(invocation, build, make_configuration):
    listener = CollectingListener()
    device = FakeDevice()
    device.logcat_lost = True
    configuration = make_configuration(
        build_provider=FakeBuildProvider(build), listeners=[listener]
    )

    status = invocation.invoke(device, configuration)

    assert status is InvocationStatus.SUCCESS
    assert set(listener.logs) == {HARNESS_LOG_NAME}
    assert terminal_events(listener) == ["invocation_ended"]


def test_every_listener_gets_callbacks(invocation, build, make_configuration):
    listeners = [CollectingListener(), CollectingListener()]
    configuration = make_configuration(
        build_provider=FakeBuildProvider(build), listeners=listeners
    )

    invocation.invoke(FakeDevice(), configuration)

    assert listeners[0].events == listeners[1].events
    assert listeners[0].events[-1] == "invocation_ended"


def test_build_released_after_terminal_callback(
    invocation, build, make_configuration
):
    watcher = CleanupWatcher(build)
    configuration = make_configuration(
        build_provider=FakeBuildProvider(build),
        target_preparers=[RaisingPreparer(TargetSetupError("no"))],
        listeners=[watcher],
    )

    invocation.invoke(FakeDevice(), configuration)

    assert watcher.released_at_terminal is False
    assert build.released


def test_build_released_when_listener_raises(
    invocation, registry, build, make_configuration
):
    provider = FakeBuildProvider(build)
    broken = MagicMock(spec=InvocationListener)
    broken.invocation_ended.side_effect = RuntimeError("listener bug")
    configuration = make_configuration(
        build_provider=provider, listeners=[broken]
    )

    with pytest.raises(RuntimeError, match="listener bug"):
        invocation.invoke(FakeDevice(), configuration)

    assert provider.cleaned == [build]
    assert registry.current() is None



def test_device_lost_mid_flash(invocation, registry, make_device_build,
                               make_configuration):
    listener = CollectingListener()
    build = make_device_build(bootloader="2.0")
    provider = FakeBuildProvider(build)
    device = FakeDevice(versions={"bootloader": "1.0"})
    device.execute_long_fastboot_command = MagicMock(
        side_effect=DeviceNotAvailableError("usb reset", "FAKE0001")
    )
    payload = MagicMock(spec=RemoteTest)
    configuration = make_configuration(
        build_provider=provider,
        target_preparers=[DeviceFlashPreparer(DeviceFlasher())],
        tests=[payload],
        listeners=[listener],
    )

    with pytest.raises(DeviceNotAvailableError, match="usb reset"):
        invocation.invoke(device, configuration)

    assert terminal_events(listener) == ["invocation_failed"]
    assert isinstance(listener.failure_cause, DeviceNotAvailableError)
    payload.run.assert_not_called()
    assert provider.not_tested == []
    assert provider.cleaned == [build]
    assert registry.current() is None


def test_device_unresponsive_after_flash(invocation, build, make_configuration):
    listener = CollectingListener()
    provider = FakeBuildProvider(build)
    device = FakeDevice()
    device.unresponsive_after_boot = True
    configuration = make_configuration(
        build_provider=provider,
        target_preparers=[DeviceFlashPreparer(DeviceFlasher())],
        listeners=[listener],
    )

    with pytest.raises(DeviceUnresponsiveError):
        invocation.invoke(device, configuration)

    assert terminal_events(listener) == ["invocation_failed"]
    assert listener.status is InvocationStatus.FAILED
    assert provider.not_tested == []
    assert provider.cleaned == [build]


def test_broken_device_log_transfer_is_skipped(
    invocation, build, make_configuration
):
    listener = CollectingListener()
    device = FakeDevice()
    device.get_logcat = MagicMock(side_effect=OSError("pipe closed"))
    configuration = make_configuration(
        build_provider=FakeBuildProvider(build), listeners=[listener]
    )

    status = invocation.invoke(device, configuration)

    assert status is InvocationStatus.SUCCESS
    assert set(listener.logs) == {HARNESS_LOG_NAME}
    assert terminal_events(listener) == ["invocation_ended"]
