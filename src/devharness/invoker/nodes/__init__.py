"""Workflow nodes for the invocation graph."""

from devharness.invoker.nodes.prepare import Prepare
from devharness.invoker.nodes.report import Report
from devharness.invoker.nodes.run_tests import RunTests

__all__ = [
    "Prepare",
    "RunTests",
    "Report",
]
