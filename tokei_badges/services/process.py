"""
Subprocess helper for the external git and tokei executables.

The child process is killed whenever the awaiting task stops waiting for
it, whether through a timeout or cancellation, so abandoned computations
never leave processes behind.
"""

import asyncio
import logging

logger = logging.getLogger(__name__)


class CommandFailed(Exception):
    """External command could not be started or exited non-zero."""

    def __init__(self, command: str, returncode: int | None, stderr: str):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"{command} failed (exit {returncode}): {stderr}")


async def run_command(
    *args: str,
    timeout: float,
    cwd: str | None = None,
) -> bytes:
    """
    Run a command and return its stdout.

    Raises:
        CommandFailed: if the executable is missing or exits non-zero
        TimeoutError: if the command outlives ``timeout`` (process is killed)
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise CommandFailed(args[0], None, str(e)) from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except BaseException:
        if proc.returncode is None:
            logger.debug(f"Killing {args[0]} (pid {proc.pid})")
            proc.kill()
            await proc.wait()
        raise

    if proc.returncode != 0:
        message = stderr.decode(errors="replace").strip()[-500:]
        raise CommandFailed(args[0], proc.returncode, message)
    return stdout
