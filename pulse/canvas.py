"""Character canvas for the dependency-graph overlay, plus the stack's overall health."""

from __future__ import annotations

import enum
from collections.abc import Iterable
from typing import Any

from pulse.service import Service, Status


class Canvas:
    """A fixed-size grid of characters that boxes, labels and edges are drawn onto."""

    def __init__(self, width: int, height: int) -> None:
        if width < 0 or height < 0:
            raise ValueError("canvas dimensions must not be negative")
        self.width = width
        self.height = height
        self._rows: list[list[str]] = [[" "] * width for _ in range(height)]

    def write_str(self, x: int, y: int, text: str) -> None:
        """Write `text` starting at (x, y), clipped at the right edge."""
        if y >= self.height:
            return
        row = self._rows[y]
        for offset, ch in enumerate(text):
            if x + offset >= self.width:
                break
            row[x + offset] = ch

    def draw_box(
        self,
        x: int,
        y: int,
        width: int,
        height: int,
        name: str,
        glyph: str,
        status: str,
        extra: str,
    ) -> None:
        """Draw a service box with its name on the top border and status inside.

        A box that would touch or cross the canvas edge is not drawn at all.
        """
        if width < 1 or height < 1:
            raise ValueError("box dimensions must be positive")
        if not self._rows or y + height >= self.height or x + width >= self.width:
            return
        top = self._rows[y]
        bottom = self._rows[y + height - 1]
        top[x : x + width] = ["─"] * width
        bottom[x : x + width] = ["─"] * width
        for row in self._rows[y : y + height]:
            row[x] = "│"
            row[x + width - 1] = "│"
        top[x] = "┌"
        top[x + width - 1] = "┐"
        bottom[x] = "└"
        bottom[x + width - 1] = "┘"

        self.write_str(x + 2, y, f" {name} ")
        self.write_str(x + 1, y + 1, f" {glyph} {status} ")
        if extra:
            self.write_str(x + 1, y + 2, extra)

    def draw_edge(self, x1: int, y1: int, x2: int, y2: int) -> None:
        """Draw an arrow from (x1, y1) down to just above (x2, y2), never over drawn cells."""
        target_y = max(y2 - 1, 0)
        for y in range(y1, target_y):
            if y < self.height and x1 < self.width and self._rows[y][x1] == " ":
                self._rows[y][x1] = "│"
        if x1 != x2:
            mid_y = (y1 + y2) // 2
            lo, hi = sorted((x1, x2))
            if mid_y < self.height:
                row = self._rows[mid_y]
                for x in range(lo, min(hi + 1, self.width)):
                    if row[x] == " ":
                        row[x] = "─"
        if y2 > 0 and y2 - 1 < self.height and x2 < self.width:
            self._rows[y2 - 1][x2] = "↓"

    def lines(self) -> list[str]:
        """The canvas as one string per row."""
        return ["".join(row) for row in self._rows]


class Health(enum.Enum):
    OK = "ok"
    WARN = "warn"
    BAD = "bad"

    def label(self) -> str:
        return _HEALTH_LABELS[self]


_HEALTH_LABELS = {
    Health.OK: "all healthy",
    Health.WARN: "some probes failing",
    Health.BAD: "crash present",
}


def overall_health(services: Iterable[Service]) -> Health:
    """BAD if any service has crashed, WARN if a configured probe is failing, else OK."""
    worst = Health.OK
    for service in services:
        if service.status is Status.CRASHED:
            return Health.BAD
        probe_spec: Any = getattr(service.spec, "probe", None)
        if probe_spec is not None and service.probe.consecutive_fails > 0:
            worst = Health.WARN
    return worst