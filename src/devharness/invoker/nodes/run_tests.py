"""RunTests node - run the payloads against the listener."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, GraphRunContext

from devharness.core.log import logger
from devharness.invoker.state import InvocationState
from devharness.testtype.adapter import run_test


@dataclass
class RunTests(BaseNode[InvocationState]):
    """Run each test payload, reporting straight to the listener."""

    async def run(
        self, ctx: GraphRunContext[InvocationState]
    ) -> "Report":
        state = ctx.state
        try:
            for test in state.configuration.tests:
                run_test(
                    test,
                    state.device,
                    state.configuration,
                    state.listener,
                )
        except Exception as e:
            state.record_failure(e)
            logger.error(f"Test run failed: {e}")

        from devharness.invoker.nodes.report import Report
        return Report()
