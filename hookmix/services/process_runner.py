"""Async runner for external command-line tools (ffmpeg, ffprobe).

Commands are always passed as argv lists, never through a shell. stdout and
stderr are merged so a failure carries everything the tool printed.
"""

import asyncio
import logging

from hookmix.exceptions import ProcessFailure

logger = logging.getLogger(__name__)

# How much captured output to keep on a failure (the tail is what matters).
MAX_CAPTURED_OUTPUT = 8000


def _tail(output: bytes) -> str:
    text = output.decode("utf-8", errors="replace")
    if len(text) > MAX_CAPTURED_OUTPUT:
        return "..." + text[-MAX_CAPTURED_OUTPUT:]
    return text


class ProcessRunner:
    """Run one external process to completion or timeout.

    No retries: a failure is reported once and the caller decides.
    """

    def __init__(self, kill_grace_s: float = 5.0) -> None:
        self.kill_grace_s = kill_grace_s

    async def run(self, cmd: list[str], timeout: float) -> str:
        """Run ``cmd`` and return its combined output.

        Args:
            cmd: Program and arguments
            timeout: Seconds to wait before the process is killed

        Returns:
            Decoded stdout+stderr of the process

        Raises:
            ProcessFailure: On non-zero exit, spawn error, or timeout
        """
        logger.debug("Running command: %s", " ".join(cmd))
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise ProcessFailure(f"spawn failed: {e}", command=cmd) from e

        try:
            output, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await self._terminate(proc)
            logger.warning("Process timed out after %ss: %s", timeout, cmd[0])
            raise ProcessFailure(f"timeout after {timeout:g}s", command=cmd) from None
        except asyncio.CancelledError:
            await self._terminate(proc)
            raise

        captured = _tail(output or b"")
        if proc.returncode != 0:
            raise ProcessFailure(
                f"exit code {proc.returncode}",
                captured,
                returncode=proc.returncode,
                command=cmd,
            )
        return captured

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        """Stop a still-running process, escalating to SIGKILL."""
        if proc.returncode is not None:
            return
        try:
            proc.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.kill_grace_s)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
