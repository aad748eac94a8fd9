"""Plan a subshell configured like a service: its cwd, its env and a tagged prompt."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_ENV_FILES: tuple[str, ...] = (".env",)


class UnknownServiceError(LookupError):
    """No service with the requested name is configured."""


@dataclass
class ShellPlan:
    """Everything needed to start the shell, resolved without starting it."""

    shell: Path
    cwd: Path
    env: dict[str, str]
    ps1: str
    # a temporary zshrc directory, when one was written
    zshrc: Path | None = None


def parse_dotenv(raw: str) -> list[tuple[str, str]]:
    """Parse `KEY=VALUE` lines; `#` comments and blanks are skipped, outer quotes stripped."""
    pairs = []
    for line in raw.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        pairs.append((key.strip(), value))
    return pairs


def resolve_env(
    spec_env: Mapping[str, str],
    env_files: Iterable[str | os.PathLike[str]],
    parent: Mapping[str, str],
) -> dict[str, str]:
    """Merge the parent env, then .env file contents, then the service env; later wins."""
    merged = dict(parent)
    for path in env_files:
        try:
            raw = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue
        merged.update(parse_dotenv(raw))
    merged.update(spec_env)
    return merged


def _current_dir() -> Path:
    try:
        return Path.cwd()
    except OSError:
        return Path(".")


def plan(
    specs: Iterable[Any],
    service: str,
    parent_env: Mapping[str, str],
    env_files: Iterable[str | os.PathLike[str]] = DEFAULT_ENV_FILES,
) -> ShellPlan:
    """Resolve the shell plan for `service`.

    `specs` are service configurations with `name`, `cwd` and `env`; relative
    `env_files` are looked up in the service's cwd. Raises UnknownServiceError.
    """
    spec = next((s for s in specs if s.name == service), None)
    if spec is None:
        raise UnknownServiceError(f"no service named `{service}` in config")
    shell = Path(parent_env.get("SHELL", "/bin/sh"))
    cwd = Path(spec.cwd) if spec.cwd is not None else _current_dir()
    files = [cwd / f for f in env_files]
    env = resolve_env(dict(spec.env or {}), files, parent_env)
    return ShellPlan(shell=shell, cwd=cwd, env=env, ps1=f"[pulse:{service}] \\$ ")


def prepare_zshrc(ps1: str) -> Path:
    """Write a zshrc that sources the user's own and sets PS1; returns its directory for ZDOTDIR."""
    directory = Path(tempfile.gettempdir()) / f"pulse-zsh-{os.getpid()}"
    directory.mkdir(parents=True, exist_ok=True)
    home = os.environ.get("HOME", "")
    body = f"[ -f {home}/.zshrc ] && source {home}/.zshrc\nPS1='{ps1}'\n"
    (directory / ".zshrc").write_text(body, encoding="utf-8")
    return directory