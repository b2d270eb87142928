"""Drives one invocation: acquire a build, prepare, test, report."""

from __future__ import annotations

from datetime import datetime

from devharness.build.info import BuildInfo
from devharness.core.errors import DeviceNotAvailableError
from devharness.core.log import LogRegistry, get_log_registry, logger
from devharness.device.interface import TestDevice
from devharness.invoker.configuration import Configuration
from devharness.invoker.state import InvocationState
from devharness.result.types import InvocationStatus

DEVICE_SERIAL_ATTRIBUTE = "device_serial"


class TestInvocation:
    """Runs invocations of a configuration against a device.

    ``invoke`` raises only DeviceNotAvailableError. Every other
    failure becomes a FAILED or BUILD_ERROR terminal callback.
    """

    __test__ = False

    def __init__(self, log_registry: LogRegistry | None = None):
        self.log_registry = log_registry or get_log_registry()

    def invoke(
        self, device: TestDevice, configuration: Configuration
    ) -> InvocationStatus | None:
        """Run one invocation of ``configuration`` on ``device``.

        Returns:
            The final status, or None if there was no build to test

        Raises:
            DeviceNotAvailableError: The device was lost, after the
                results were reported and the build released
        """
        log = configuration.new_logger(self._run_name(device))
        with self.log_registry.registered(log):
            build = self._get_build(configuration)
            if build is None:
                logger.info("No build to test")
                return None

            listener = configuration.get_listener()
            try:
                build.add_build_attribute(
                    DEVICE_SERIAL_ATTRIBUTE, device.serial_number
                )
                device.set_recovery(configuration.device_recovery)
                listener.invocation_started(build)
            except BaseException:
                # Report has not run yet, so it cannot release the build
                configuration.build_provider.clean_up(build)
                raise

            state = InvocationState(
                device=device,
                configuration=configuration,
                build=build,
                listener=listener,
                log=log,
            )
            status = self._perform(state)

            if state.device_error is not None:
                raise state.device_error
            return status

    @staticmethod
    def _run_name(device: TestDevice) -> str:
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
        return f"{device.serial_number}-{stamp}"

    @staticmethod
    def _get_build(configuration: Configuration) -> BuildInfo | None:
        try:
            return configuration.build_provider.get_build()
        except DeviceNotAvailableError:
            raise
        except Exception as e:
            logger.exception(f"Failed to get a build: {e}")
            return None

    @staticmethod
    def _perform(state: InvocationState) -> InvocationStatus:
        from devharness.invoker.graph import create_workflow
        from devharness.invoker.nodes.prepare import Prepare

        logger.info(
            f"Starting invocation of build {state.build.build_id} on "
            f"device {state.device.serial_number}"
        )
        workflow = create_workflow()
        result = workflow.run_sync(Prepare(), state=state)
        return result.output
