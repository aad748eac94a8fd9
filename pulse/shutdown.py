"""Stop a service process and everything in its process group."""

from __future__ import annotations

import asyncio
import contextlib
import os
import signal


def _signal_group(pid: int, sig: int) -> None:
    with contextlib.suppress(ProcessLookupError, PermissionError):
        os.killpg(pid, sig)


async def terminate(process: asyncio.subprocess.Process, grace: float) -> None:
    """SIGTERM the process group, wait up to `grace` seconds, then SIGKILL it.

    The process is expected to lead its own session, so its pid is its group id.
    """
    if os.name != "posix":
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()
        return

    pid = process.pid
    _signal_group(pid, signal.SIGTERM)
    try:
        await asyncio.wait_for(process.wait(), grace)
        timed_out = False
    except asyncio.TimeoutError:
        timed_out = True
    # a shell does not always pass SIGTERM on to its children, so the whole
    # group is killed regardless
    _signal_group(pid, signal.SIGKILL)
    if timed_out:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()