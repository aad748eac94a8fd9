import asyncio

import pytest

from pulse.tap import (
    BODY_PREVIEW_MAX,
    RING_CAP,
    Mode,
    TapEvent,
    TapRing,
    derive_target,
    find_double_crlf,
    new_ring,
    parse_request_head,
    parse_response_head,
    run_proxy,
    slice_body_preview,
)


def _event(i: int) -> TapEvent:
    return TapEvent(
        method="GET",
        path=f"/{i}",
        status=200,
        latency_ms=1,
        req_bytes=50,
        resp_bytes=100,
    )


def test_ring_caps_at_500():
    ring = TapRing()
    for i in range(RING_CAP + 10):
        ring.push(_event(i))
    assert len(ring) == RING_CAP
    assert ring.get(0).path == "/10"


def test_ring_starts_empty():
    ring = TapRing()
    assert len(ring) == 0
    assert ring.snapshot() == []
    assert ring.get(0) is None


def test_ring_cap_value():
    assert TapRing.cap() == 500


def test_shared_ring_push_keeps_order():
    ring = new_ring()
    ring.push(_event(1))
    ring.push(_event(2))
    assert len(ring) == 2
    assert ring.get(0).path == "/1"
    assert [e.path for e in ring] == ["/1", "/2"]


def test_many_pushes_respect_cap():
    ring = new_ring()
    for i in range(600):
        ring.push(_event(i))
    assert len(ring) == 500
    assert ring.get(0).path == "/100"
    assert ring.snapshot()[-1].path == "/599"


def test_get_out_of_range_is_none():
    ring = new_ring()
    ring.push(_event(0))
    assert ring.get(1) is None
    assert ring.get(-1) is None


def test_parses_request_head():
    method, path, head = parse_request_head(b"GET /foo HTTP/1.1\r\nHost: x\r\n\r\n")
    assert method == "GET"
    assert path == "/foo"
    assert "Host: x" in head


def test_parses_empty_request_head():
    assert parse_request_head(b"") == ("", "", "")


def test_parses_response_status():
    status, _ = parse_response_head(b"HTTP/1.1 204 No Content\r\nServer: x\r\n\r\n")
    assert status == 204


def test_unparseable_response_status():
    status, text = parse_response_head(b"garbage\r\n\r\n")
    assert status is None
    assert text.startswith("garbage")


def test_finds_body_preview():
    buf = b"HTTP/1.1 200 OK\r\nContent-Length: 3\r\n\r\nhi!"
    end = find_double_crlf(buf) + 4
    assert slice_body_preview(buf, end) == b"hi!"
    head_only = buf[:end]
    assert slice_body_preview(head_only, end) == b""


def test_body_preview_is_capped():
    buf = b"H\r\n\r\n" + b"a" * (BODY_PREVIEW_MAX + 100)
    end = find_double_crlf(buf) + 4
    assert len(slice_body_preview(buf, end)) == BODY_PREVIEW_MAX


def test_find_double_crlf_missing():
    assert find_double_crlf(b"GET / HTTP/1.1\r\n") is None


def test_mode_parses():
    assert Mode.parse("proxy") is Mode.PROXY
    assert Mode.parse("passive") is Mode.PASSIVE
    assert Mode.parse("") is Mode.PROXY


def test_derives_target_from_probe_url():
    assert derive_target(None, None, "http://127.0.0.1:3000/health") == 3000


def test_derives_target_from_port_expect():
    assert derive_target(None, 8080, None) == 8080


def test_explicit_target_wins():
    assert derive_target(9999, 3000, None) == 9999


def test_no_target_derivable():
    assert derive_target(None, None, "http://localhost/health") is None
    assert derive_target(None, None, None) is None
    assert derive_target(None, None, "http://localhost:99999/") is None


async def _upstream(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    await reader.readuntil(b"\r\n\r\n")
    writer.write(b"HTTP/1.1 201 Created\r\nContent-Length: 2\r\n\r\nok")
    await writer.drain()
    writer.close()
    await writer.wait_closed()


@pytest.mark.asyncio
async def test_proxy_records_round_trip():
    upstream = await asyncio.start_server(_upstream, "127.0.0.1", 0)
    upstream_port = upstream.sockets[0].getsockname()[1]
    ring = new_ring()
    listen_port = await run_proxy(0, upstream_port, ring)
    assert listen_port > 0

    reader, writer = await asyncio.open_connection("127.0.0.1", listen_port)
    writer.write(b"GET /v1/things HTTP/1.1\r\nHost: x\r\n\r\n")
    await writer.drain()
    response = await asyncio.wait_for(reader.read(), 5)
    writer.close()
    await writer.wait_closed()

    for _ in range(100):
        if len(ring):
            break
        await asyncio.sleep(0.05)

    upstream.close()
    await upstream.wait_closed()

    assert response.startswith(b"HTTP/1.1 201 Created")
    assert response.endswith(b"ok")
    event = ring.get(0)
    assert event.method == "GET"
    assert event.path == "/v1/things"
    assert event.status == 201
    assert event.resp_body_preview == b"ok"
    assert "Host: x" in event.req_headers
    assert event.resp_bytes == len(response)