"""Value types shared by listeners and the invocation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class InvocationStatus(str, Enum):
    """Outcome of one invocation; selects its terminal callback."""

    SUCCESS = "success"
    BUILD_ERROR = "build_error"
    FAILED = "failed"


class LogDataType(str, Enum):
    """Content type of a log attached to the results."""

    TEXT = "text"
    XML = "xml"
    PNG = "png"
    ZIP = "zip"
    UNKNOWN = "unknown"


class TestFailure(str, Enum):
    """How a single test case went wrong."""

    __test__ = False

    FAILURE = "failure"
    ERROR = "error"


@dataclass(frozen=True)
class TestIdentifier:
    """Identity of one test case."""

    __test__ = False

    class_name: str
    test_name: str

    def __str__(self) -> str:
        return f"{self.class_name}#{self.test_name}"

    @classmethod
    def from_id(cls, test_id: str) -> TestIdentifier:
        """Build from a dotted unittest id like ``pkg.Class.test_x``."""
        class_name, _, test_name = test_id.rpartition(".")
        return cls(class_name, test_name)
