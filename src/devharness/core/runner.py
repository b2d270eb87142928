"""Host command execution using the invoke library."""

import shlex
from pathlib import Path

from invoke import Context, Result
from invoke.exceptions import CommandTimedOut, Failure

from devharness.core.log import logger
from devharness.core.result import CommandResult, CommandStatus


class Runner(Context):
    """Wrapper around invoke.Context with timed command execution.

    Device transports and build helpers use this to run host-side
    tools (fastboot, the SDK ``android`` tool, and so on) with a
    hard timeout.
    """

    def execute(
        self,
        command: str,
        cwd: Path | None = None,
        timeout: float | None = None,
        env: dict[str, str] | None = None,
        log_level: str | None = None,
    ) -> Result:
        """Execute a command, never raising on non-zero exit.

        Args:
            command: Command string to execute
            cwd: Working directory for command execution
            timeout: Maximum execution time in seconds
            env: Environment variables to add to os.environ
            log_level: Log level for the command's output lines

        Returns:
            invoke.Result; ``exited`` is -1 when the command timed out
        """
        kwargs = {
            "hide": True,
            "warn": True,
            "in_stream": False,
        }
        if timeout:
            kwargs["timeout"] = timeout
        if env:
            kwargs["env"] = env

        try:
            if cwd:
                with self.cd(str(cwd)):
                    result = self.run(command, **kwargs)
            else:
                result = self.run(command, **kwargs)
        except CommandTimedOut as e:
            result = e.result
            result.exited = -1

        if log_level:
            for line in (result.stdout + result.stderr).splitlines():
                logger.log(log_level, line.rstrip())

        return result

    def run_timed_cmd(
        self, timeout: float, *args: str, cwd: Path | None = None
    ) -> CommandResult:
        """Run a command given as separate arguments.

        Args:
            timeout: Maximum execution time in seconds
            *args: Program followed by its arguments
            cwd: Optional working directory

        Returns:
            CommandResult describing the outcome
        """
        command = shlex.join(str(a) for a in args)
        logger.spew(f"Running '{command}' with timeout {timeout}s")
        try:
            result = self.execute(command, cwd=cwd, timeout=timeout)
        except (Failure, OSError) as e:
            logger.error(f"Could not run '{command}': {e}")
            return CommandResult(
                status=CommandStatus.EXCEPTION, stderr=str(e)
            )

        if result.exited == -1:
            status = CommandStatus.TIMED_OUT
        elif result.exited == 0:
            status = CommandStatus.SUCCESS
        else:
            status = CommandStatus.FAILED

        return CommandResult(
            status=status,
            stdout=result.stdout,
            stderr=result.stderr,
            returncode=result.exited,
        )
