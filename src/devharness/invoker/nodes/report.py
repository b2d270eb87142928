"""Report node - attach logs, close the invocation, release the build."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from devharness.core.errors import DeviceNotAvailableError
from devharness.core.log import logger
from devharness.invoker.state import InvocationState
from devharness.result.types import InvocationStatus, LogDataType

DEVICE_LOG_NAME = "device_logcat"
HARNESS_LOG_NAME = "harness_log"


@dataclass
class Report(BaseNode[InvocationState, None, InvocationStatus]):
    """Send the logs and the single terminal callback."""

    async def run(
        self, ctx: GraphRunContext[InvocationState]
    ) -> End[InvocationStatus]:
        """Report the outcome recorded on the state.

        The build is handed back to its provider for cleanup even if
        a listener raises.

        Returns:
            End[InvocationStatus]: The invocation's final status
        """
        state = ctx.state
        provider = state.configuration.build_provider
        try:
            self.attach_logs(state)
            self.finish(state)
            if state.status is InvocationStatus.BUILD_ERROR:
                provider.build_not_tested(state.build)
        finally:
            provider.clean_up(state.build)
        return End(state.status)

    @staticmethod
    def attach_logs(state: InvocationState) -> None:
        listener = state.listener
        try:
            device_log = state.device.get_logcat()
        except DeviceNotAvailableError as e:
            logger.warning(f"Could not fetch device log: {e}")
        except Exception as e:
            logger.exception(f"Device log transfer failed: {e}")
        else:
            listener.test_log(DEVICE_LOG_NAME, LogDataType.TEXT, device_log)
        listener.test_log(
            HARNESS_LOG_NAME, LogDataType.TEXT, state.log.get_log()
        )

    @staticmethod
    def finish(state: InvocationState) -> None:
        elapsed_ms = state.elapsed_ms
        status = state.status
        logger.info(f"Invocation finished with status {status.value}")
        match status:
            case InvocationStatus.SUCCESS:
                state.listener.invocation_ended(elapsed_ms)
            case InvocationStatus.BUILD_ERROR:
                state.listener.invocation_build_error(
                    elapsed_ms, str(state.cause)
                )
            case InvocationStatus.FAILED:
                state.listener.invocation_failed(
                    elapsed_ms, str(state.cause), state.cause
                )
