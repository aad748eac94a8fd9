"""Runtime state of one supervised service: status, log ring and counters."""

from __future__ import annotations

import enum
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pulse.ports import PortState
from pulse.probe import ProbeState

LOG_CAP = 2000


class Status(enum.Enum):
    STARTING = "starting"
    RUNNING = "running"
    STOPPED = "stopped"
    CRASHED = "crashed"
    CRASHED_TOO_MANY = "crashed-too-many"

    def dot(self) -> str:
        """Single-glyph status marker for the sidebar."""
        return _DOTS[self]

    def label(self) -> str:
        return self.value


_DOTS = {
    Status.RUNNING: "●",
    Status.STARTING: "◐",
    Status.STOPPED: "○",
    Status.CRASHED: "✗",
    Status.CRASHED_TOO_MANY: "✗",
}


class Origin(enum.Enum):
    STDOUT = "stdout"
    STDERR = "stderr"
    SYSTEM = "system"


@dataclass(frozen=True)
class LogLine:
    ts: datetime
    origin: Origin
    text: str


@dataclass(eq=False)
class Service:
    """A configured service plus everything observed about it at runtime.

    `spec` is the service's configuration; only its `name` is relied on here.
    """

    spec: Any
    log_cap: int = LOG_CAP
    agent: Any = None
    status: Status = Status.STOPPED
    started_at: float | None = None
    last_start: float | None = None
    restart_count: int = 0
    # consecutive crashes for auto-restart backoff; reset on manual restart
    # or after a healthy stretch of uptime.
    crash_streak: int = 0
    pid: int | None = None
    probe: ProbeState = field(default_factory=ProbeState)
    port: PortState = field(default_factory=PortState)
    last_activity: float | None = None
    # lines scrolled up from the tail; zero means pinned to the bottom.
    log_scroll: int = 0
    unhealthy: bool = False
    # last time each error pattern fired, to rate-limit alerts.
    pattern_cooldowns: dict[str, float] = field(default_factory=dict)
    logs: deque[LogLine] = field(init=False, repr=False, default_factory=deque)

    def __post_init__(self) -> None:
        self.log_cap = max(1, self.log_cap)
        self.logs = deque(maxlen=self.log_cap)

    def push_log(self, origin: Origin, text: str) -> None:
        """Append a line, dropping the oldest once the ring is full."""
        self.logs.append(LogLine(ts=datetime.now().astimezone(), origin=origin, text=text))
        if origin in (Origin.STDOUT, Origin.STDERR):
            self.last_activity = time.monotonic()

    def clear_logs(self) -> None:
        self.logs.clear()
        self.log_scroll = 0

    def uptime(self) -> float | None:
        """Seconds since the current run started, or None if not started."""
        if self.started_at is None:
            return None
        return time.monotonic() - self.started_at

    def is_scrolled(self) -> bool:
        """Whether the log view is scrolled away from the tail."""
        return self.log_scroll > 0