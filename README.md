# pulse

Building blocks for watching over the processes of a local development
stack: start them and stream their output, pace restarts after crashes,
stop whole process groups, probe HTTP health endpoints, check whether
ports are bound, record HTTP round trips through a small proxy, spot
alarming log lines, and export a stack's state as a standalone HTML page.

## Installation

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Command line

List every process currently listening on a TCP port (uses `lsof`; prints
a notice when nothing is found or `lsof` is unavailable):

```
pulse ports
```

Print the default colour palette as a starter `theme.toml`:

```
pulse theme dump
```

Show where pulse looks for your theme file:

```
pulse theme path
```

Save the output of `pulse theme dump` to that path and edit the hex
values. `pulse.theme.load()` folds the file over the default palette:
hex values that do not parse are skipped, and a file that is not valid
TOML or contains unknown keys is ignored altogether.

## What pulse does not do

There is no interactive terminal dashboard and no stack configuration
file: pulse does not read a list of services from disk, and has no
commands to draft one, to follow a single service's logs, to drop into a
service's shell, or to write a snapshot from the command line. The
pieces below are used from Python; functions that need a service's
configuration take any object with the attributes they name (`name`,
`cmd`, `cwd`, `env`, and for health `probe`).

## Library

### Running services — `pulse.supervisor`, `pulse.shutdown`

```python
import asyncio
from types import SimpleNamespace

from pulse.supervisor import Exited, Log, spawn_one

async def demo():
    spec = SimpleNamespace(name="api", cmd="sh -c 'echo hello'", cwd=None, env={})
    queue = asyncio.Queue()
    child = await spawn_one(0, spec, queue)
    asyncio.create_task(child.watch(0, queue))
    while True:
        event = await queue.get()
        if isinstance(event, Log):
            print(event.origin, event.line)
        elif isinstance(event, Exited):
            return event.code

asyncio.run(demo())
```

`spawn_one` splits `cmd` like a POSIX shell (`parse_cmd`), starts it in
its own session with `env` layered over the current environment, and
puts `Started`, `Log` and `Exited` (or `SpawnError`) events on the queue.
It raises `SupervisorError` when the command is empty, unparseable or
cannot be started.

`crash_backoff(streak)` gives auto-restart delays in seconds — 1, 2, 4,
8, then 15 — and `backoff_delay(last_start, restart_count)` grows
exponentially while `is_quick_crash(last_start)` holds (the last start
was under two seconds ago). `CRASH_GIVE_UP` (5) and `HEALTHY_WINDOW`
(30 seconds) are the thresholds a caller uses to stop restarting and to
reset a streak.

`pulse.shutdown.terminate(process, grace)` sends SIGTERM to the process
group, waits up to `grace` seconds, then SIGKILLs the group.

### Service state and error patterns — `pulse.service`, `pulse.patterns`

`Service` holds a service's `Status`, a bounded log ring (2000 lines by
default, set with `log_cap`), restart counters, scroll position and its
probe and port state.

```python
from pulse import patterns

patterns.scan("thread 'main' panicked at src/main.rs:1:1")
# ("panic", "thread 'main' panicked at src/main.rs:1:1")
```

`scan` returns the first matching pattern and a cleaned snippet (ANSI
escapes stripped, whitespace collapsed, clipped to 80 characters).
`may_fire(service, pattern)` allows one alert per pattern per service
every 30 seconds.

### Health probes and ports — `pulse.probe`, `pulse.ports`

```python
from pulse.probe import ProbeResult, ProbeState

state = ProbeState()
state.record(ProbeResult(idx=0, status=200, latency_ms=12, ok=True))
state.success_rate()   # 1.0
state.healthy()        # True
```

The history keeps the last 60 results. `pulse.probe.run` polls a URL at
a given interval and puts `ProbeResult`s on a queue; a response counts as
ok when it is 2xx, or equals `expect` if one is given. `pulse.ports`
offers `is_bound(port)`, a polling `run`, and `listeners()` /
`parse_lsof(text)` behind `pulse ports`.

### Recording proxy — `pulse.tap`

`run_proxy(listen, target, ring)` listens on `127.0.0.1:listen`, forwards
bytes to `127.0.0.1:target` and records method, path, status, latency,
byte counts, heads and a 4 KiB body preview of each round trip in a
`TapRing` of the last 500 events. It returns the bound port (pass 0 for
any free one). `derive_target` picks the upstream port from an explicit
target, an expected port, or a probe URL.

### HTML snapshots — `pulse.share`

`collect(services, tap_rings)` builds `ServiceSnapshot`s (with up to the
last 50 tap events per service) and `render(snapshots)` turns them into a
single HTML page with inline CSS, no scripts and no external resources.

### Subshell plans — `pulse.shellcmd`

`plan(specs, service, parent_env)` resolves a `ShellPlan`: the shell
from `SHELL` (or `/bin/sh`), the service's working directory, the parent
environment merged with the service's `.env` file and configured
variables (later sources win), and a prompt prefixed with
`[pulse:<service>]`. It raises `UnknownServiceError` for an unknown
name. `prepare_zshrc(ps1)` writes a zshrc setting that prompt and returns
its directory for `ZDOTDIR`.

### Display helpers — `pulse.theme`, `pulse.display`, `pulse.canvas`

`pulse.theme` has the `Palette`, status colours and `from_name` for
service colour names. `pulse.display` formats sidebar badges, uptimes,
latencies, tap panel rows, status-bar key hints and the help text.
`pulse.canvas.Canvas` draws boxes and arrows for a dependency graph as
text, and `overall_health(services)` reports `Health.OK`, `WARN` or `BAD`.