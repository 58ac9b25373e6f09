"""Run external commands and capture their output.

The runner is a pure capture boundary: it reports the exit code, stdout and
stderr of a finished process and leaves their interpretation to the caller.
"""

import logging
import subprocess
from dataclasses import dataclass
from typing import Protocol

from artifactregistry_auth.auth.exceptions import CommandExecutionError

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 60.0


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a single command invocation."""

    exit_code: int
    stdout: str
    stderr: str


class CommandRunner(Protocol):
    """Anything that can execute a command and return its captured output."""

    def execute(self, command: str, *args: str) -> CommandResult: ...


class SubprocessCommandRunner:
    """Execute commands with :func:`subprocess.run`.

    Both output pipes are read to completion before the call returns, so large
    outputs cannot deadlock the child process.

    Args:
        timeout: Seconds to wait for the command before giving up.
            ``None`` waits indefinitely.
    """

    def __init__(self, timeout: float | None = DEFAULT_COMMAND_TIMEOUT) -> None:
        self.timeout = timeout

    def execute(self, command: str, *args: str) -> CommandResult:
        """Run ``command`` with ``args`` and capture its output.

        Raises:
            CommandExecutionError: If the command cannot be started or does
                not finish within the timeout.
        """
        argv = [command, *args]
        logger.debug(f"Running command: {' '.join(argv)}")
        try:
            completed = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise CommandExecutionError(f"{command} timed out after {self.timeout}s") from e
        except OSError as e:
            raise CommandExecutionError(f"Failed to run {command}: {e}") from e

        return CommandResult(
            exit_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
