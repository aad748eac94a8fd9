"""HTTP health probes and the rolling state they feed."""

from __future__ import annotations

import asyncio
import http.client
import time
import urllib.error
import urllib.request
from collections import deque
from dataclasses import dataclass, field
from datetime import timedelta

HISTORY_CAP = 60


@dataclass(frozen=True)
class ProbeResult:
    idx: int
    status: int | None
    latency_ms: int
    ok: bool


@dataclass
class ProbeState:
    """Rolling probe state attached to a service."""

    last_status: int | None = None
    last_latency: timedelta | None = None
    last_checked: float | None = None
    history: deque[bool] = field(default_factory=lambda: deque(maxlen=HISTORY_CAP))
    status_history: deque[int | None] = field(
        default_factory=lambda: deque(maxlen=HISTORY_CAP)
    )
    consecutive_fails: int = 0

    def record(self, result: ProbeResult) -> None:
        self.last_status = result.status
        self.last_latency = timedelta(milliseconds=result.latency_ms)
        self.last_checked = time.monotonic()
        self.history.append(result.ok)
        self.status_history.append(result.status)
        self.consecutive_fails = 0 if result.ok else self.consecutive_fails + 1

    def success_rate(self) -> float | None:
        """Fraction of successful probes in the window, or None if empty."""
        if not self.history:
            return None
        return sum(self.history) / len(self.history)

    def healthy(self) -> bool:
        return self.consecutive_fails == 0 and self.last_status is not None


def _fetch_status(url: str, timeout: float) -> int | None:
    try:
        with urllib.request.urlopen(url, timeout=timeout) as resp:
            return resp.status
    except urllib.error.HTTPError as exc:
        code = exc.code
        exc.close()
        return code
    except (OSError, ValueError, http.client.HTTPException):
        return None


async def run(
    idx: int,
    url: str,
    interval: float,
    timeout: float,
    expect: int | None,
    queue: asyncio.Queue,
) -> None:
    """Probe `url` every `interval` seconds, putting results on `queue` until cancelled."""
    loop = asyncio.get_running_loop()
    next_tick = loop.time()
    while True:
        delay = next_tick - loop.time()
        if delay > 0:
            await asyncio.sleep(delay)
        tick = loop.time()
        start = time.monotonic()
        status = await asyncio.to_thread(_fetch_status, url, timeout)
        latency_ms = int((time.monotonic() - start) * 1000)
        if status is None:
            ok = False
        elif expect is not None:
            ok = status == expect
        else:
            ok = 200 <= status < 300
        await queue.put(ProbeResult(idx=idx, status=status, latency_ms=latency_ms, ok=ok))
        next_tick = tick + interval