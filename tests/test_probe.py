import asyncio
import contextlib
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from pulse import probe
from pulse.probe import HISTORY_CAP, ProbeResult, ProbeState


def r(ok, status, ms):
    return ProbeResult(idx=0, status=status, latency_ms=ms, ok=ok)


def test_rate_starts_empty():
    assert ProbeState().success_rate() is None


def test_rolling_window_caps_at_60():
    s = ProbeState()
    for i in range(HISTORY_CAP + 20):
        s.record(r(i % 2 == 0, 200, 10))
    assert len(s.history) == HISTORY_CAP


def test_fail_counter_resets_on_success():
    s = ProbeState()
    for _ in range(3):
        s.record(r(False, None, 2000))
    assert s.consecutive_fails == 3
    s.record(r(True, 200, 12))
    assert s.consecutive_fails == 0


def test_rate_over_mixed_history():
    s = ProbeState()
    for i in range(10):
        s.record(r(i % 2 == 0, 200, 30))
    assert abs(s.success_rate() - 0.5) < 1e-6


def test_history_capped():
    s = ProbeState()
    for _ in range(HISTORY_CAP * 3):
        s.record(r(True, 200, 12))
    assert len(s.history) == HISTORY_CAP
    assert len(s.status_history) == HISTORY_CAP


def test_window_keeps_newest():
    s = ProbeState()
    for i in range(HISTORY_CAP):
        s.record(r(True, 200, 1))
    s.record(r(False, 500, 1))
    assert s.history[-1] is False
    assert s.status_history[-1] == 500


def test_healthy_flips_after_consecutive_fails():
    s = ProbeState()
    s.record(r(True, 200, 10))
    assert s.healthy()
    s.record(r(False, 500, 2200))
    assert not s.healthy()
    s.record(r(True, 200, 10))
    assert s.healthy()


def test_not_healthy_before_any_probe():
    assert ProbeState().healthy() is False


def test_latency_tracked():
    s = ProbeState()
    s.record(r(True, 200, 42))
    assert s.last_latency.total_seconds() * 1000 == pytest.approx(42)
    assert s.last_checked is not None


class _Handler(BaseHTTPRequestHandler):
    def do_GET(self):
        code = 200 if self.path == "/health" else 503
        self.send_response(code)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def log_message(self, *args):
        pass


@pytest.fixture
def server_url():
    srv = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=srv.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{srv.server_address[1]}"
    srv.shutdown()
    srv.server_close()


async def _first_result(url, expect=None):
    queue = asyncio.Queue()
    task = asyncio.create_task(probe.run(3, url, 0.05, 2.0, expect, queue))
    try:
        return await asyncio.wait_for(queue.get(), 10)
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


@pytest.mark.asyncio
async def test_run_reports_success(server_url):
    result = await _first_result(server_url + "/health")
    assert result.idx == 3
    assert result.status == 200
    assert result.ok is True


@pytest.mark.asyncio
async def test_run_reports_error_status(server_url):
    result = await _first_result(server_url + "/broken")
    assert result.status == 503
    assert result.ok is False


@pytest.mark.asyncio
async def test_run_honours_expected_status(server_url):
    result = await _first_result(server_url + "/broken", expect=503)
    assert result.ok is True
    mismatch = await _first_result(server_url + "/health", expect=204)
    assert mismatch.ok is False


@pytest.mark.asyncio
async def test_run_unreachable_has_no_status():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    result = await _first_result(f"http://127.0.0.1:{port}/health")
    assert result.status is None
    assert result.ok is False