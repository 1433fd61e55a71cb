"""Bounded execution of external commands."""

import asyncio
import logging
import os
import shlex
import signal
from collections.abc import Mapping, Sequence

from signed_url_audit.errors import ProcessSpawnError, ProcessTimeoutError
from signed_url_audit.models.result import ProcessResult

log = logging.getLogger(__name__)

REAP_TIMEOUT = 5


async def execute(
    command: Sequence[str],
    env: Mapping[str, str] | None = None,
    timeout: float = 30,
) -> ProcessResult:
    """Run a command to completion and capture its output.

    Args:
        command: Executable followed by its arguments
        env: Variables merged over the current environment
        timeout: Seconds to wait before the child is killed

    Returns:
        Decoded stdout, stderr and the exit code of the child

    Raises:
        ProcessSpawnError: If the executable cannot be started
        ProcessTimeoutError: If the child did not exit within timeout

    """
    if not command:
        raise ValueError("Command must not be empty")
    if timeout <= 0:
        raise ValueError(f"Timeout must be positive, got {timeout}")

    display = shlex.join(command)
    log.info("Running: %s (timeout=%ss)", display, timeout)

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            env={**os.environ, **(env or {})},
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as e:
        raise ProcessSpawnError(f"Failed to start {command[0]!r}: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except TimeoutError:
        await _kill(process)
        raise ProcessTimeoutError(display, timeout) from None
    except asyncio.CancelledError:
        await _kill(process)
        raise

    exit_code = await process.wait()
    log.debug("Process %s exited with %d", process.pid, exit_code)

    return ProcessResult(
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
        exit_code=exit_code,
    )


async def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill the child's whole session and reap the child.

    The child leads its own process group, so wrappers that run their worker
    without exec (the gcloud launcher does) are killed along with it.
    """
    log.warning("Killing process group %s", process.pid)
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    try:
        await asyncio.wait_for(process.wait(), REAP_TIMEOUT)
    except TimeoutError:
        log.warning("Process %s still holds its pipes after kill", process.pid)
