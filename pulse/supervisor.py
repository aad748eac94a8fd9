"""Spawn service processes, stream their output and pace restarts."""

from __future__ import annotations

import asyncio
import os
import shlex
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pulse.service import Origin

# after this many consecutive quick crashes auto-restart gives up
CRASH_GIVE_UP = 5

# seconds of uptime after which a running service counts as healthy again
HEALTHY_WINDOW = 30.0

_QUICK_CRASH_WINDOW = 2.0
_READER_DRAIN_TIMEOUT = 1.0


class SupervisorError(RuntimeError):
    """A service's command could not be parsed or started."""


@dataclass(frozen=True)
class Started:
    idx: int
    pid: int


@dataclass(frozen=True)
class Log:
    idx: int
    origin: Origin
    line: str


@dataclass(frozen=True)
class Exited:
    idx: int
    code: int | None


@dataclass(frozen=True)
class SpawnError:
    idx: int
    msg: str


SupEvent = Started | Log | Exited | SpawnError


def parse_cmd(cmd: str) -> list[str]:
    """Split a command line the way a POSIX shell would; raises ValueError if unusable."""
    parts = shlex.split(cmd)
    if not parts:
        raise ValueError("empty cmd")
    return parts


async def _pump(
    stream: asyncio.StreamReader, idx: int, origin: Origin, queue: asyncio.Queue
) -> None:
    while True:
        try:
            raw = await stream.readline()
        except (ValueError, OSError):
            return
        if not raw:
            return
        line = raw.decode("utf-8", errors="replace").removesuffix("\n").removesuffix("\r")
        queue.put_nowait(Log(idx=idx, origin=origin, line=line))


@dataclass
class SpawnedChild:
    process: asyncio.subprocess.Process
    pid: int
    started: float
    _readers: list[asyncio.Task] = field(default_factory=list, repr=False)

    async def watch(self, idx: int, queue: asyncio.Queue) -> None:
        """Wait for the process to end and report how it exited."""
        try:
            code = await self.process.wait()
        except OSError as exc:
            queue.put_nowait(SpawnError(idx=idx, msg=str(exc)))
            return
        if self._readers:
            # let buffered output land before the exit event
            await asyncio.wait(self._readers, timeout=_READER_DRAIN_TIMEOUT)
        queue.put_nowait(Exited(idx=idx, code=code if code >= 0 else None))


async def spawn_one(idx: int, spec: Any, queue: asyncio.Queue) -> SpawnedChild:
    """Start the process for `spec` in its own session and stream its lines to `queue`.

    `spec` needs `name`, `cmd`, `cwd` and `env`. Raises SupervisorError on failure.
    """
    try:
        argv = parse_cmd(spec.cmd)
    except ValueError as exc:
        raise SupervisorError(f"bad cmd for {spec.name}: {exc}") from exc

    env: Mapping[str, str] = {**os.environ, **dict(spec.env or {})}
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=spec.cwd,
            env=env,
            start_new_session=True,
        )
    except OSError as exc:
        raise SupervisorError(f"spawn failed for `{spec.name}`: {exc}") from exc

    pid = process.pid or 0
    queue.put_nowait(Started(idx=idx, pid=pid))

    readers = [
        asyncio.create_task(_pump(stream, idx, origin, queue))
        for stream, origin in (
            (process.stdout, Origin.STDOUT),
            (process.stderr, Origin.STDERR),
        )
        if stream is not None
    ]
    return SpawnedChild(process=process, pid=pid, started=time.monotonic(), _readers=readers)


def is_quick_crash(last_start: float | None) -> bool:
    """True if the last start (a monotonic timestamp) was under two seconds ago."""
    if last_start is None:
        return False
    return time.monotonic() - last_start < _QUICK_CRASH_WINDOW


def backoff_delay(last_start: float | None, restart_count: int) -> float:
    """Seconds to wait before a restart: exponential when crashing fast, else short."""
    if is_quick_crash(last_start):
        return 0.5 * (1 << min(restart_count, 5))
    return 0.1


_CRASH_LADDER = (1.0, 2.0, 4.0, 8.0)


def crash_backoff(streak: int) -> float:
    """Auto-restart delay in seconds: 1, 2, 4, 8, then 15 from there on."""
    if streak < len(_CRASH_LADDER):
        return _CRASH_LADDER[streak]
    return 15.0