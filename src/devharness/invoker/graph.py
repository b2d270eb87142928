"""Invocation workflow graph."""

from pydantic_graph import Graph

from devharness.core.log import logger
from devharness.invoker.state import InvocationState


def create_workflow():
    """Create the invocation workflow graph.

    Prepare → RunTests → Report, where a failed Prepare skips
    straight to Report.

    Returns:
        Graph workflow with InvocationState as state_type
    """
    logger.debug("Building invocation workflow graph")

    # Imported here so the graph can resolve the nodes' return hints
    from devharness.invoker.nodes.prepare import Prepare
    from devharness.invoker.nodes.report import Report
    from devharness.invoker.nodes.run_tests import RunTests

    return Graph(
        nodes=(
            Prepare,
            RunTests,
            Report,
        ),
        state_type=InvocationState,
    )
