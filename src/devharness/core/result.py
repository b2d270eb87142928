"""Result types for command execution."""

from enum import Enum

from pydantic import BaseModel


class CommandStatus(str, Enum):
    """Outcome of a host or bootloader command."""

    SUCCESS = "success"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    EXCEPTION = "exception"


class CommandResult(BaseModel):
    """Result of a command execution."""

    status: CommandStatus
    stdout: str = ""
    stderr: str = ""
    returncode: int | None = None

    @property
    def success(self) -> bool:
        return self.status == CommandStatus.SUCCESS
