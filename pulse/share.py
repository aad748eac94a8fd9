"""Snapshot a stack's state into a self-contained HTML page."""

from __future__ import annotations

import html
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from pulse.service import Service, Status
from pulse.tap import TapEvent, TapRing

TAP_EVENTS_SHOWN = 50

_DASH = "—"

_CSS = """
body { background:#0f1116; color:#c0caf5; font-family: ui-monospace, SFMono-Regular, Menlo, Consolas, monospace; max-width: 960px; margin: 2rem auto; padding: 0 1.5rem; line-height: 1.5; }
h1 { color:#5eead4; margin: 0 0 0.2rem; font-size: 1.4rem; }
h2 { color:#5eead4; margin: 2rem 0 0.5rem; font-size: 1.1rem; }
.sub { color:#828bac; margin: 0 0 1.5rem; font-size: 0.85rem; }
table { width: 100%; border-collapse: collapse; margin: 0.5rem 0 1rem; font-size: 0.9rem; }
th, td { text-align: left; padding: 0.35rem 0.6rem; border-bottom: 1px solid #252839; }
th { color:#828bac; font-weight: normal; }
.name { color:#5eead4; }
.st-running { color:#9ece6a; }
.st-crashed { color:#f7768e; }
.st-starting { color:#e0af68; }
.st-stopped { color:#828bac; }
footer { color:#565f89; font-size: 0.8rem; margin-top: 3rem; text-align: center; }
"""

FOOTER = "<footer>snapshot written by pulse</footer>"


@dataclass
class ServiceSnapshot:
    """What the exported page shows about one service."""

    name: str
    status: Status
    uptime: float | None = None
    restart_count: int = 0
    probe_ok_rate: float | None = None
    probe_last_status: int | None = None
    probe_last_ms: int | None = None
    tap: list[TapEvent] = field(default_factory=list)


def collect(
    services: Sequence[Service], tap_rings: Sequence[TapRing | None]
) -> list[ServiceSnapshot]:
    """Take a snapshot of each service, with the last 50 tap events where a ring exists."""
    snapshots = []
    for i, service in enumerate(services):
        ring = tap_rings[i] if i < len(tap_rings) else None
        tap = ring.snapshot()[-TAP_EVENTS_SHOWN:] if ring is not None else []
        latency = service.probe.last_latency
        snapshots.append(
            ServiceSnapshot(
                name=service.spec.name,
                status=service.status,
                uptime=service.uptime(),
                restart_count=service.restart_count,
                probe_ok_rate=service.probe.success_rate(),
                probe_last_status=service.probe.last_status,
                probe_last_ms=None if latency is None else latency // timedelta(milliseconds=1),
                tap=tap,
            )
        )
    return snapshots


def fmt_dur(seconds: float) -> str:
    """Whole seconds as HH:MM:SS."""
    secs = int(seconds)
    return f"{secs // 3600:02}:{secs % 3600 // 60:02}:{secs % 60:02}"


def _esc(text: str) -> str:
    return html.escape(text, quote=False)


def _summary_row(snap: ServiceSnapshot) -> str:
    uptime = fmt_dur(snap.uptime) if snap.uptime is not None else _DASH
    if (
        snap.probe_last_status is not None
        and snap.probe_last_ms is not None
        and snap.probe_ok_rate is not None
    ):
        probe = f"{snap.probe_last_status} · {snap.probe_last_ms}ms · {snap.probe_ok_rate * 100:.0f}%"
    else:
        probe = _DASH
    label = snap.status.label()
    return (
        f'<tr><td class="name">{_esc(snap.name)}</td><td class="st-{label}">{label}</td>'
        f"<td>{uptime}</td><td>{snap.restart_count}</td><td>{_esc(probe)}</td></tr>"
    )


def _tap_section(snap: ServiceSnapshot) -> str:
    parts = [
        f"<h2>{_esc(snap.name)} · last {len(snap.tap)} tap events</h2>",
        '<table class="tap"><thead><tr><th>time</th><th>method</th><th>path</th>'
        "<th>status</th><th>ms</th><th>bytes in/out</th></tr></thead><tbody>",
    ]
    for ev in snap.tap:
        status = str(ev.status) if ev.status is not None else _DASH
        parts.append(
            f"<tr><td>{ev.ts.strftime('%H:%M:%S')}</td><td>{_esc(ev.method)}</td>"
            f"<td>{_esc(ev.path)}</td><td>{status}</td><td>{ev.latency_ms}</td>"
            f"<td>{ev.req_bytes}/{ev.resp_bytes}</td></tr>"
        )
    parts.append("</tbody></table>")
    return "".join(parts)


def render(snapshots: Sequence[ServiceSnapshot]) -> str:
    """Render snapshots into a standalone HTML document with inline CSS."""
    captured = datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S %z")
    body = [
        f'<h1>pulse snapshot</h1><p class="sub">captured {captured}</p>',
        '<table class="summary"><thead><tr><th>service</th><th>status</th><th>uptime</th>'
        "<th>restarts</th><th>probe</th></tr></thead><tbody>",
    ]
    body.extend(_summary_row(snap) for snap in snapshots)
    body.append("</tbody></table>")
    body.extend(_tap_section(snap) for snap in snapshots if snap.tap)
    body.append(FOOTER)
    return (
        "<!doctype html><html lang=en><head><meta charset=utf-8><title>pulse snapshot</title>"
        f"<style>{_CSS}</style></head><body>{''.join(body)}</body></html>"
    )