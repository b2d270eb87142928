"""Closeable pydantic base models shared by configuration and state.

Kept apart from config.py and log.py, which both build on it.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


@runtime_checkable
class Closeable(Protocol):
    """Anything holding resources released by close()."""

    def close(self) -> None:
        ...


class BaseCloseable(BaseModel):
    """Model that closes its closeable fields when it is closed.

    Fields holding a Closeable, or a list or tuple of them, are
    closed in declaration order. A child that fails to close is
    reported on stderr and the rest are still closed. Models are
    also context managers, closing on exit.

    For an invocation the cascade is
    LogRegistry.registered() → Logger.close() → Sink.close().
    """

    def closeable_children(self) -> Iterator[tuple[str, Closeable]]:
        for field_name in self.__class__.model_fields:
            value = getattr(self, field_name, None)
            items = value if isinstance(value, (list, tuple)) else [value]
            for item in items:
                if isinstance(item, Closeable):
                    yield field_name, item

    def close(self):
        for field_name, child in self.closeable_children():
            try:
                child.close()
            except Exception as e:
                print(f"Warning: Error closing {field_name}: {e}",
                      file=sys.stderr)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):  # noqa: U100
        self.close()
        return False


class BaseConfig(BaseCloseable):
    """Configuration: loaded from YAML or the environment, or built
    in code by the caller."""
    pass


class BaseState(BaseCloseable):
    """Runtime state, mutated while an invocation runs."""
    pass


__all__ = ["Closeable", "BaseCloseable", "BaseConfig", "BaseState"]
