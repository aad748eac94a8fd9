"""Command-line entry point: port listing and theme utilities."""

from __future__ import annotations

import argparse
from collections.abc import Sequence

from pulse import ports, theme


def run_ports() -> int:
    """Print the processes listening on TCP ports."""
    entries = ports.listeners()
    if not entries:
        print("no LISTEN sockets found (or lsof unavailable)")
        return 0
    print(f"{'PORT':<6} {'COMMAND':<18} PID")
    for entry in entries:
        print(f"{entry.port:<6} {entry.command:<18} {entry.pid}")
    return 0


def run_theme(action: str) -> int:
    """`dump` prints the default theme.toml; `path` prints where it is read from."""
    if action == "dump":
        print(theme.dump_default(), end="")
    elif action == "path":
        path = theme.config_path()
        print(path if path is not None else "(no config dir on this platform)")
    else:
        raise ValueError(f"unknown theme action: {action!r}")
    return 0


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pulse",
        description="one terminal window for all your local dev servers",
    )
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True
    commands.add_parser("ports", help="list processes currently listening on tcp ports")
    theme_parser = commands.add_parser("theme", help="theme utilities")
    theme_parser.add_argument(
        "action",
        choices=("dump", "path"),
        help="dump: print the defaults as a starter theme.toml; path: show the theme file path",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    if args.command == "ports":
        return run_ports()
    return run_theme(args.action)