"""Build provider interface."""

from abc import ABC, abstractmethod

from devharness.build.info import BuildInfo


class BuildProvider(ABC):
    """Supplies builds to test and hears back about untested ones."""

    @abstractmethod
    def get_build(self) -> BuildInfo | None:
        """Return the next build to test, or None if there is nothing
        to test."""
        pass

    def build_not_tested(self, build: BuildInfo) -> None:
        """Called when an invocation failed to test ``build``.

        Providers may retry the build or exclude it from future
        consideration. The default does nothing.
        """
        pass

    def clean_up(self, build: BuildInfo) -> None:
        """Release the build's artifacts at the end of an invocation."""
        build.clean_up()
