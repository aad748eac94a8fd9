import re
import time
from dataclasses import dataclass

from pulse.service import LOG_CAP, Origin, Service, Status


@dataclass
class _Spec:
    name: str
    cmd: str = "echo hi"


def _fresh() -> Service:
    return Service(_Spec("t"))


def test_ring_truncates():
    s = _fresh()
    for i in range(LOG_CAP + 50):
        s.push_log(Origin.STDOUT, f"line {i}")
    assert len(s.logs) == LOG_CAP
    assert s.logs[0].text.endswith("50")
    assert s.logs[-1].text.endswith(str(LOG_CAP + 49))


def test_ring_respects_cap():
    s = _fresh()
    for i in range(LOG_CAP * 2):
        s.push_log(Origin.STDOUT, f"n={i}")
    assert len(s.logs) == LOG_CAP
    assert s.logs[0].text == f"n={LOG_CAP}"


def test_clear_empties():
    s = _fresh()
    s.push_log(Origin.STDOUT, "x")
    s.push_log(Origin.STDERR, "y")
    assert len(s.logs) == 2
    s.clear_logs()
    assert len(s.logs) == 0


def test_clear_wipes():
    s = _fresh()
    for _ in range(5):
        s.push_log(Origin.STDERR, "x")
    s.clear_logs()
    assert list(s.logs) == []


def test_status_dots():
    assert Status.RUNNING.dot() == "●"
    assert Status.CRASHED.dot() == "✗"
    assert Status.STARTING.dot() == "◐"
    assert Status.STOPPED.dot() == "○"


def test_status_labels():
    assert Status.RUNNING.label() == "running"
    assert Status.CRASHED_TOO_MANY.label() == "crashed-too-many"


def test_custom_log_cap_bounds_ring():
    s = Service(_Spec("t"), log_cap=50)
    for i in range(100):
        s.push_log(Origin.STDOUT, f"l{i}")
    assert len(s.logs) == 50
    assert s.logs[0].text.endswith("50")
    assert s.logs[-1].text.endswith("99")


def test_log_cap_never_below_one():
    s = Service(_Spec("t"), log_cap=0)
    assert s.log_cap == 1
    s.push_log(Origin.STDOUT, "a")
    s.push_log(Origin.STDOUT, "b")
    assert [line.text for line in s.logs] == ["b"]


def test_scroll_flag_tracks_state():
    s = _fresh()
    assert not s.is_scrolled()
    s.log_scroll = 10
    assert s.is_scrolled()
    s.clear_logs()
    assert not s.is_scrolled()


def test_scroll_state_default_pinned_to_bottom():
    s = _fresh()
    assert s.log_scroll == 0
    assert s.is_scrolled() is False


def test_clear_logs_resets_scroll():
    s = _fresh()
    for i in range(20):
        s.push_log(Origin.STDOUT, f"l{i}")
    s.log_scroll = 10
    assert s.is_scrolled()
    s.clear_logs()
    assert s.log_scroll == 0


def test_regex_filter_matches():
    s = _fresh()
    s.push_log(Origin.STDOUT, "info: booting")
    s.push_log(Origin.STDERR, "ERROR: panic at disco")
    s.push_log(Origin.STDOUT, "info: done")
    pattern = re.compile("error", re.IGNORECASE)
    matches = [line for line in s.logs if pattern.search(line.text)]
    assert len(matches) == 1
    assert "panic" in matches[0].text


def test_distinguishes_origins():
    s = _fresh()
    s.push_log(Origin.STDOUT, "a")
    s.push_log(Origin.STDERR, "b")
    s.push_log(Origin.SYSTEM, "c")
    assert sum(1 for line in s.logs if line.origin is Origin.STDERR) == 1


def test_system_lines_do_not_count_as_activity():
    s = _fresh()
    s.push_log(Origin.SYSTEM, "restarting")
    assert s.last_activity is None
    s.push_log(Origin.STDOUT, "hello")
    assert s.last_activity is not None and s.last_activity <= time.monotonic()


def test_uptime_none_until_started():
    s = _fresh()
    assert s.uptime() is None
    s.started_at = time.monotonic() - 5
    up = s.uptime()
    assert up is not None and up >= 5


def test_new_service_defaults():
    s = _fresh()
    assert s.status is Status.STOPPED
    assert s.restart_count == 0
    assert s.log_cap == LOG_CAP