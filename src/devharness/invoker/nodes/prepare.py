"""Prepare node - run the target preparers against the device."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, GraphRunContext

from devharness.core.log import logger
from devharness.invoker.state import FailureKind, InvocationState


@dataclass
class Prepare(BaseNode[InvocationState]):
    """Make the device ready to run the build."""

    async def run(
        self, ctx: GraphRunContext[InvocationState]
    ) -> "RunTests | Report":
        """Run every configured preparer in order.

        Returns:
            RunTests: All preparers succeeded
            Report: A preparer failed; its error is on the state
        """
        state = ctx.state
        for preparer in state.configuration.target_preparers:
            name = type(preparer).__name__
            logger.debug(f"Running target preparer {name}")
            try:
                preparer.set_up(state.device, state.build)
            except Exception as e:
                kind = state.record_failure(e)
                if kind is FailureKind.BUILD_ERROR:
                    logger.warning(
                        f"Build {state.build.build_id} failed on device "
                        f"{state.device.serial_number}: {e}"
                    )
                else:
                    logger.error(f"Target preparer {name} failed: {e}")
                from devharness.invoker.nodes.report import Report
                return Report()

        from devharness.invoker.nodes.run_tests import RunTests
        return RunTests()
