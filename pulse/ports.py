"""TCP port probing and a small `lsof` wrapper for listing listeners."""

from __future__ import annotations

import asyncio
import os
import re
import socket
import subprocess
import time
from dataclasses import dataclass

CHECK_INTERVAL = 2.0
_CONNECT_TIMEOUT = 0.2


@dataclass(frozen=True)
class PortResult:
    idx: int
    port: int
    bound: bool


@dataclass
class PortState:
    last_bound: bool | None = None
    last_checked: float | None = None

    def record(self, result: PortResult) -> None:
        self.last_bound = result.bound
        self.last_checked = time.monotonic()


def is_bound(port: int) -> bool:
    """True if something accepts a TCP connection on localhost:port."""
    for host in ("127.0.0.1", "0.0.0.0"):
        try:
            with socket.create_connection((host, port), timeout=_CONNECT_TIMEOUT):
                return True
        except OSError:
            continue
    return False


async def run(idx: int, port: int, queue: asyncio.Queue) -> None:
    """Check `port` every two seconds, putting results on `queue` until cancelled."""
    loop = asyncio.get_running_loop()
    next_tick = loop.time()
    while True:
        delay = next_tick - loop.time()
        if delay > 0:
            await asyncio.sleep(delay)
        tick = loop.time()
        bound = await asyncio.to_thread(is_bound, port)
        await queue.put(PortResult(idx=idx, port=port, bound=bound))
        next_tick = tick + CHECK_INTERVAL


@dataclass(frozen=True)
class ListenEntry:
    command: str
    pid: int
    port: int


def listeners() -> list[ListenEntry]:
    """LISTEN sockets reported by `lsof`; empty if it is unavailable or fails."""
    if os.name != "posix":
        return []
    try:
        out = subprocess.run(
            ["lsof", "-i", "-P", "-n"], capture_output=True, check=False
        )
    except OSError:
        return []
    if out.returncode != 0:
        return []
    return parse_lsof(out.stdout.decode("utf-8", errors="replace"))


_UINT = re.compile(r"\+?[0-9]+")


def _parse_uint(text: str, limit: int) -> int | None:
    if not _UINT.fullmatch(text):
        return None
    value = int(text)
    return value if value <= limit else None


def _port_from_lsof_name(name: str) -> int | None:
    # forms seen: *:3000, 127.0.0.1:5432, [::1]:8080
    colon = name.rfind(":")
    if colon < 0:
        return None
    tail = name[colon + 1 :].split(" ")[0]
    while tail.endswith("(LISTEN)"):
        tail = tail[: -len("(LISTEN)")]
    return _parse_uint(tail.strip(), 0xFFFF)


def parse_lsof(text: str) -> list[ListenEntry]:
    """Parse `lsof -i -P -n` output into LISTEN entries sorted by port."""
    entries: list[ListenEntry] = []
    for line in text.splitlines()[1:]:
        if "LISTEN" not in line:
            continue
        cols = line.split()
        if len(cols) < 9:
            continue
        pid = _parse_uint(cols[1], 0xFFFFFFFF)
        if pid is None:
            continue
        port = _port_from_lsof_name(cols[8])
        if port is not None:
            entries.append(ListenEntry(command=cols[0], pid=pid, port=port))
    entries.sort(key=lambda e: e.port)
    deduped: list[ListenEntry] = []
    for entry in entries:
        if deduped and deduped[-1].port == entry.port and deduped[-1].pid == entry.pid:
            continue
        deduped.append(entry)
    return deduped