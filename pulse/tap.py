"""A small reverse-proxy tap that records each HTTP round trip's framing.

Only enough HTTP/1.1 is parsed to pull the method, path and status; after
the first request and response heads everything is copied verbatim.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import re
import threading
import time
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime

RING_CAP = 500
HEADER_MAX = 16 * 1024
BODY_PREVIEW_MAX = 4096
_READ_CHUNK = 4096
_READ_TIMEOUT = 30.0

_U16 = re.compile(r"\+?[0-9]+")


@dataclass(frozen=True)
class TapEvent:
    method: str
    path: str
    status: int | None
    latency_ms: int
    req_bytes: int
    resp_bytes: int
    req_headers: str = ""
    resp_headers: str = ""
    req_body_preview: bytes = b""
    resp_body_preview: bytes = b""
    ts: datetime = field(default_factory=lambda: datetime.now().astimezone())


class TapRing:
    """Thread-safe ring of the most recent tap events."""

    def __init__(self) -> None:
        self._events: deque[TapEvent] = deque(maxlen=RING_CAP)
        self._lock = threading.Lock()

    def push(self, event: TapEvent) -> None:
        with self._lock:
            self._events.append(event)

    def get(self, index: int) -> TapEvent | None:
        with self._lock:
            if 0 <= index < len(self._events):
                return self._events[index]
            return None

    def snapshot(self) -> list[TapEvent]:
        """A copy of the events, oldest first."""
        with self._lock:
            return list(self._events)

    @staticmethod
    def cap() -> int:
        return RING_CAP

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def __iter__(self) -> Iterator[TapEvent]:
        return iter(self.snapshot())


def new_ring() -> TapRing:
    return TapRing()


class Mode(enum.Enum):
    PROXY = "proxy"
    PASSIVE = "passive"

    @staticmethod
    def parse(value: str) -> Mode:
        """`passive` selects passive mode; anything else is proxy."""
        return Mode.PASSIVE if value == "passive" else Mode.PROXY


def _parse_u16(text: str) -> int | None:
    if not _U16.fullmatch(text):
        return None
    value = int(text)
    return value if value <= 0xFFFF else None


def derive_target(
    target: int | None, port: int | None, probe_url: str | None
) -> int | None:
    """Pick the upstream port: explicit target, else expected port, else the probe URL's port."""
    if target is not None:
        return target
    if port is not None:
        return port
    if probe_url is not None and "://" in probe_url:
        rest = probe_url.split("://", 1)[1]
        host_port = rest.split("/", 1)[0]
        if ":" in host_port:
            return _parse_u16(host_port.rsplit(":", 1)[1])
    return None


def find_double_crlf(buf: bytes) -> int | None:
    """Offset of the first blank line separator, or None."""
    pos = buf.find(b"\r\n\r\n")
    return None if pos < 0 else pos


def _first_line(text: str) -> str:
    return text.split("\n", 1)[0].removesuffix("\r")


def parse_request_head(head: bytes) -> tuple[str, str, str]:
    """Method, path and the full head text of a request."""
    text = head.decode("utf-8", errors="replace")
    parts = _first_line(text).split()
    method = parts[0] if parts else ""
    path = parts[1] if len(parts) > 1 else ""
    return method, path, text


def parse_response_head(head: bytes) -> tuple[int | None, str]:
    """Status code (if parseable) and the full head text of a response."""
    text = head.decode("utf-8", errors="replace")
    parts = _first_line(text).split()
    status = _parse_u16(parts[1]) if len(parts) > 1 else None
    return status, text


def slice_body_preview(buf: bytes, head_end: int) -> bytes:
    """Up to 4 KiB of the body that follows the head."""
    return bytes(buf[head_end : head_end + BODY_PREVIEW_MAX])


async def _read_until_headers(reader: asyncio.StreamReader) -> tuple[bytearray, int | None]:
    """Read until the end of a head; returns what was read and the head length."""
    buf = bytearray()
    deadline = time.monotonic() + _READ_TIMEOUT
    while True:
        if len(buf) > HEADER_MAX or time.monotonic() >= deadline:
            return buf, None
        try:
            chunk = await asyncio.wait_for(reader.read(_READ_CHUNK), _READ_TIMEOUT)
        except (asyncio.TimeoutError, OSError):
            return buf, None
        if not chunk:
            return buf, None
        buf.extend(chunk)
        pos = find_double_crlf(buf)
        if pos is not None:
            return buf, pos + 4


async def _copy(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> int:
    total = 0
    try:
        while chunk := await reader.read(65536):
            writer.write(chunk)
            await writer.drain()
            total += len(chunk)
    except OSError:
        return 0
    with contextlib.suppress(OSError, RuntimeError):
        if writer.can_write_eof():
            writer.write_eof()
    return total


async def _close(writer: asyncio.StreamWriter) -> None:
    writer.close()
    with contextlib.suppress(OSError, RuntimeError):
        await writer.wait_closed()


async def _handle_conn(
    client_reader: asyncio.StreamReader,
    client_writer: asyncio.StreamWriter,
    target: int,
    ring: TapRing,
) -> None:
    upstream_writer: asyncio.StreamWriter | None = None
    try:
        req_buf, header_end = await _read_until_headers(client_reader)
        if header_end is None:
            return
        method, path, req_headers = parse_request_head(bytes(req_buf[:header_end]))

        start = time.monotonic()
        try:
            upstream_reader, upstream_writer = await asyncio.open_connection(
                "127.0.0.1", target
            )
        except OSError:
            return
        upstream_writer.write(req_buf)
        await upstream_writer.drain()

        resp_buf, resp_head_end = await _read_until_headers(upstream_reader)
        if resp_buf:
            client_writer.write(resp_buf)
            await client_writer.drain()

        if resp_head_end is not None:
            status, resp_headers = parse_response_head(bytes(resp_buf[:resp_head_end]))
            resp_preview = slice_body_preview(resp_buf, resp_head_end)
        else:
            status, resp_headers, resp_preview = None, "", b""
        req_preview = slice_body_preview(req_buf, header_end)

        req_extra, resp_extra = await asyncio.gather(
            _copy(client_reader, upstream_writer),
            _copy(upstream_reader, client_writer),
        )

        ring.push(
            TapEvent(
                method=method,
                path=path,
                status=status,
                latency_ms=int((time.monotonic() - start) * 1000),
                req_bytes=len(req_buf) + req_extra,
                resp_bytes=len(resp_buf) + resp_extra,
                req_headers=req_headers,
                resp_headers=resp_headers,
                req_body_preview=req_preview,
                resp_body_preview=resp_preview,
            )
        )
    except OSError:
        pass
    finally:
        if upstream_writer is not None:
            await _close(upstream_writer)
        await _close(client_writer)


_servers: set[asyncio.AbstractServer] = set()


async def run_proxy(listen: int, target: int, ring: TapRing) -> int:
    """Start a proxy on 127.0.0.1:`listen` forwarding to `target`; returns the bound port.

    Raises OSError if the listening port cannot be bound.
    """

    async def handler(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        await _handle_conn(reader, writer, target, ring)

    server = await asyncio.start_server(handler, "127.0.0.1", listen)
    _servers.add(server)
    return server.sockets[0].getsockname()[1]