"""
Async helpers for invoking external utilities with a hard deadline.
"""

import asyncio
import contextlib
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)

# Seconds to wait for a killed child to exit before giving up on reaping it
REAP_TIMEOUT = 2.0


@dataclass
class ProcessResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass


async def run_process(program: str, *args: str, timeout: float = 10.0) -> ProcessResult:
    """Run ``program`` and capture its output

    The child is killed when the deadline passes or when the calling task is
    cancelled, so a hung utility never outlives the collection cycle.

    Raises:
        FileNotFoundError: If the program is not installed
        TimeoutError: If the program did not finish within ``timeout`` seconds
    """
    process = await asyncio.create_subprocess_exec(
        program,
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except TimeoutError:
        _kill(process)
        await process.wait()
        raise TimeoutError(f"{program} timed out after {timeout:g}s") from None
    except asyncio.CancelledError:
        _kill(process)
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(asyncio.shield(process.wait()), timeout=REAP_TIMEOUT)
        raise

    return ProcessResult(
        returncode=process.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


async def run_command(program: str, *args: str, timeout: float = 10.0) -> str:
    """Run a system utility and return its stdout, or "" if it cannot be run"""
    try:
        result = await run_process(program, *args, timeout=timeout)
    except (OSError, TimeoutError) as e:
        logger.debug("Command unavailable", program=program, error=str(e))
        return ""
    return result.stdout
