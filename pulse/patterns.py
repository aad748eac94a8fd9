"""Scan log lines for alarming words and rate-limit the resulting alerts."""

from __future__ import annotations

import time
import unicodedata
from typing import Any

from pulse.service import Service

# first match wins, so the reported key stays stable for cooldown bookkeeping
PATTERNS: tuple[str, ...] = (
    "panic",
    "PANIC",
    "Panic!",
    "fatal",
    "FATAL",
    "Error:",
    "error[",
    "exception",
    "Exception",
    "uncaught",
    "segfault",
    "assertion failed",
    "stack overflow",
)

# one alert per pattern per service within this many seconds
COOLDOWN = 30.0

_CLIP = 80

_TEMPLATES = {
    "goblin": "{name} screamed: {line}",
    "cat": "{name} knocked over: {line}",
    "ghost": "{name} whispers: {line}",
    "robot": "{name}: LOG_ANOMALY: {line}",
    "blob": "{name} made a mess: {line}",
}


def scan(line: str) -> tuple[str, str] | None:
    """Return the first matching pattern and a cleaned snippet, or None."""
    for pattern in PATTERNS:
        if pattern in line:
            return pattern, clean(line)
    return None


def clean(line: str) -> str:
    """Strip ANSI escapes, collapse whitespace and clip to 80 characters."""
    chars: list[str] = []
    in_escape = False
    for ch in line:
        if ch == "\x1b":
            in_escape = True
            continue
        if in_escape:
            # a CSI sequence ends on a letter; good enough for log noise
            if ch.isascii() and ch.isalpha():
                in_escape = False
            continue
        chars.append(" " if unicodedata.category(ch) == "Cc" else ch)
    collapsed = " ".join("".join(chars).split())
    if len(collapsed) > _CLIP:
        return collapsed[: _CLIP - 1] + "…"
    return collapsed


def alert_template(species: Any) -> str:
    """Species-flavoured alert phrase with `{name}` and `{line}` placeholders.

    `species` is a species name or an enum member whose name is one.
    """
    key = species if isinstance(species, str) else getattr(species, "name", str(species))
    try:
        return _TEMPLATES[key.lower()]
    except KeyError:
        raise ValueError(f"unknown species: {key!r}") from None


def may_fire(service: Service, pattern: str) -> bool:
    """Stamp and allow an alert for `pattern` unless it fired within the cooldown."""
    now = time.monotonic()
    previous = service.pattern_cooldowns.get(pattern)
    if previous is not None and now - previous < COOLDOWN:
        return False
    service.pattern_cooldowns[pattern] = now
    return True