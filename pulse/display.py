"""Text and colour choices for the sidebar, status bar, tap panel and help overlay."""

from __future__ import annotations

from datetime import timedelta

from pulse.probe import ProbeState
from pulse.service import Status
from pulse.tap import TapEvent
from pulse.theme import CRASHED, DIM, RGB, RUNNING, STARTING, STOPPED

# grouped to match the shape of the sidebar so nobody has to re-learn groupings
SECTIONS: tuple[tuple[str, tuple[tuple[str, str], ...]], ...] = (
    (
        "navigation",
        (
            ("j / ↓", "next service"),
            ("k / ↑", "prev service"),
            ("enter", "toggle logs focus"),
            ("/", "filter logs"),
        ),
    ),
    (
        "actions",
        (
            ("r", "restart service"),
            ("x", "stop service"),
            ("S", "stop all"),
            ("c", "clear logs"),
            ("s", "share snapshot now"),
            ("q / ctrl+c", "quit pulse"),
        ),
    ),
    (
        "logs",
        (
            ("u / pgup", "scroll up a page"),
            ("d / pgdn", "scroll down a page"),
            ("G / end", "jump to tail"),
            ("home / ctrl+g", "jump to top"),
        ),
    ),
    (
        "views",
        (
            ("t", "tap panel"),
            ("T", "tap request detail"),
            ("g", "dep graph"),
            ("?", "show this help"),
            ("esc", "close overlay"),
        ),
    ),
)

SEPARATOR = " │ "

_STATUS_COLORS: dict[Status, RGB] = {
    Status.RUNNING: RUNNING,
    Status.STARTING: STARTING,
    Status.CRASHED: CRASHED,
    Status.CRASHED_TOO_MANY: CRASHED,
    Status.STOPPED: STOPPED,
}

_FADE_FROM: RGB = (192, 202, 245)
_FADE_TO: RGB = (26, 27, 38)

_TAP_PATH_WIDTH = 48


def status_color(status: Status) -> RGB:
    """Colour of the status dot in the sidebar."""
    return _STATUS_COLORS[status]


def probe_color(probe: ProbeState) -> RGB:
    """Green when healthy and above 90%, amber above 60%, red otherwise."""
    rate = probe.success_rate() or 0.0
    if probe.healthy() and rate > 0.9:
        return RUNNING
    if rate > 0.6:
        return STARTING
    return CRASHED


def fmt_uptime(seconds: float) -> str:
    """Whole seconds as HH:MM:SS."""
    secs = int(seconds)
    return f"{secs // 3600:02}:{secs % 3600 // 60:02}:{secs % 60:02}"


def fmt_latency(ms: int) -> str:
    """Milliseconds below one second, tenths of seconds above."""
    if ms < 1000:
        return f"{ms}ms"
    return f"{ms / 1000:.1f}s"


def probe_badge(probe: ProbeState) -> str:
    """The sidebar line under a probed service: status, latency and success rate."""
    if probe.last_status is None or probe.last_latency is None:
        return "   probing..."
    ms = probe.last_latency // timedelta(milliseconds=1)
    rate = (probe.success_rate() or 0.0) * 100.0
    return f"   {probe.last_status} · {fmt_latency(ms)} · {rate:.0f}%"


def fade(age_ratio: float) -> RGB:
    """Blend the foreground toward the background as a message ages (0 fresh, 1 gone)."""
    r = min(max(age_ratio, 0.0), 1.0)
    return tuple(int(a + (b - a) * r) for a, b in zip(_FADE_FROM, _FADE_TO))  # type: ignore[return-value]


def _key(key: str, label: str) -> str:
    return f"{key} {label}"


def keybind_text(filter_mode: bool, filter_input: str) -> str:
    """The status bar's key hints, or the filter prompt while filtering."""
    if filter_mode:
        return (
            f"  filter: /{filter_input}_  "
            + SEPARATOR
            + _key("enter", "apply")
            + SEPARATOR
            + _key("esc", "cancel")
        )
    hints = (
        ("j/k", "nav"),
        ("r", "restart"),
        ("s", "stop"),
        ("S", "stop all"),
        ("/", "filter"),
        ("c", "clear"),
        ("q", "quit"),
    )
    return "  " + SEPARATOR.join(_key(k, label) for k, label in hints)


def truncate(text: str, width: int) -> str:
    """Pad to `width`, or cut to `width` characters ending in an ellipsis."""
    if len(text) <= width:
        return text.ljust(width)
    return text[: max(width - 1, 0)] + "…"


def tap_status_color(status: int | None) -> RGB:
    """Green for 2xx, red for 4xx and 5xx, amber for anything else, dim when unknown."""
    if status is None:
        return DIM
    if 200 <= status < 300:
        return RUNNING
    if 400 <= status < 600:
        return CRASHED
    return STARTING


def tap_line(event: TapEvent) -> str:
    """One row of the tap panel."""
    status = str(event.status) if event.status is not None else "---"
    return (
        f"{event.ts.strftime('%H:%M:%S')} "
        f"{event.method:<5}"
        f"{truncate(event.path, _TAP_PATH_WIDTH)}"
        f"  {status}"
        f"  {event.latency_ms}ms  {event.req_bytes}→{event.resp_bytes}B"
    )


def help_text(version: str) -> str:
    """The help overlay's contents, one keybind per line, grouped by section."""
    lines = [f"  pulse v{version}", ""]
    for title, binds in SECTIONS:
        lines.append(f"  {title}")
        lines.extend(f"    {key:<12}{desc}" for key, desc in binds)
        lines.append("")
    lines.append("  press ? or esc to close")
    return "\n".join(lines)