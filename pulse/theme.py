"""Colour palette, named colours and the optional user theme file."""

from __future__ import annotations

import enum
import re
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path

import platformdirs


class NamedColor(enum.Enum):
    """Terminal colours addressed by name rather than by RGB value."""

    CYAN = "cyan"
    GREEN = "green"
    YELLOW = "yellow"
    MAGENTA = "magenta"
    BLUE = "blue"
    RED = "red"
    WHITE = "white"


RGB = tuple[int, int, int]
Color = RGB | NamedColor


class BorderType(enum.Enum):
    ROUNDED = "rounded"
    DOUBLE = "double"
    PLAIN = "plain"
    THICK = "thick"


@dataclass
class Palette:
    """Dark defaults in the tokyonight family."""

    bg: Color = (15, 17, 22)
    fg: Color = (192, 202, 245)
    accent: Color = (94, 234, 212)
    dim: Color = (130, 139, 172)
    ok: Color = (158, 206, 106)
    warn: Color = (224, 175, 104)
    error: Color = (247, 118, 142)
    sidebar_sel_bg: Color = (40, 44, 60)
    border_color: Color = (86, 95, 137)
    border_type: str = "rounded"

    def border(self) -> BorderType:
        """Resolve the configured border name; unknown names become rounded."""
        try:
            return BorderType(self.border_type)
        except ValueError:
            return BorderType.ROUNDED


BG_SEL: RGB = (40, 44, 60)
BORDER: RGB = (86, 95, 137)
DIM: RGB = (130, 139, 172)
FG: RGB = (192, 202, 245)
ACCENT: RGB = (94, 234, 212)

RUNNING: RGB = (158, 206, 106)
STARTING: RGB = (224, 175, 104)
CRASHED: RGB = (247, 118, 142)
STOPPED: RGB = (86, 95, 137)


def from_name(name: str | None) -> NamedColor:
    """Map a service colour name to a terminal colour, defaulting to cyan."""
    if name is None:
        return NamedColor.CYAN
    try:
        return NamedColor(name.lower())
    except ValueError:
        return NamedColor.CYAN


class ThemeFileError(ValueError):
    """The theme file is not valid TOML or does not match the schema."""


@dataclass
class Colors:
    bg: str | None = None
    fg: str | None = None
    accent: str | None = None
    dim: str | None = None
    ok: str | None = None
    warn: str | None = None
    error: str | None = None


@dataclass
class Styles:
    sidebar_selected_bg: str | None = None
    border_type: str | None = None


@dataclass
class ThemeFile:
    colors: Colors = field(default_factory=Colors)
    styles: Styles = field(default_factory=Styles)


def _section(cls: type, table: object, name: str):
    if not isinstance(table, dict):
        raise ThemeFileError(f"[{name}] must be a table")
    allowed = {f.name for f in fields(cls)}
    for key, value in table.items():
        if key not in allowed:
            raise ThemeFileError(f"unknown field `{key}` in [{name}]")
        if not isinstance(value, str):
            raise ThemeFileError(f"`{name}.{key}` must be a string")
    return cls(**table)


def parse_theme_file(raw: str) -> ThemeFile:
    """Parse theme TOML strictly: unknown keys and non-string values are errors."""
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise ThemeFileError(str(exc)) from exc
    unknown = sorted(set(data) - {"colors", "styles"})
    if unknown:
        raise ThemeFileError(f"unknown field `{unknown[0]}`")
    return ThemeFile(
        colors=_section(Colors, data.get("colors", {}), "colors"),
        styles=_section(Styles, data.get("styles", {}), "styles"),
    )


_HEX6 = re.compile(r"[0-9a-fA-F]{6}")


def parse_hex(value: str | None) -> RGB | None:
    """Parse `#rrggbb` (the `#` is optional); anything else gives None."""
    if value is None:
        return None
    raw = value.strip()
    digits = raw.removeprefix("#")
    if not _HEX6.fullmatch(digits):
        return None
    return (int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))


def apply(palette: Palette, theme_file: ThemeFile) -> None:
    """Fold the valid entries of a theme file over a palette in place."""
    colors = theme_file.colors
    for attr, value in (
        ("bg", colors.bg),
        ("fg", colors.fg),
        ("accent", colors.accent),
        ("dim", colors.dim),
        ("ok", colors.ok),
        ("warn", colors.warn),
        ("error", colors.error),
        ("sidebar_sel_bg", theme_file.styles.sidebar_selected_bg),
    ):
        parsed = parse_hex(value)
        if parsed is not None:
            setattr(palette, attr, parsed)
    if theme_file.styles.border_type is not None:
        palette.border_type = theme_file.styles.border_type


def config_path() -> Path | None:
    """Where the user's theme.toml lives on this platform."""
    return platformdirs.user_config_path("pulse") / "theme.toml"


def load() -> Palette:
    """Default palette with the user's theme file applied, if it is usable."""
    palette = Palette()
    path = config_path()
    if path is None:
        return palette
    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return palette
    try:
        theme_file = parse_theme_file(raw)
    except ThemeFileError:
        return palette
    apply(palette, theme_file)
    return palette


def _hex(color: Color) -> str:
    if isinstance(color, tuple):
        r, g, b = color
        return f"#{r:02x}{g:02x}{b:02x}"
    return "#ffffff"


def dump_default() -> str:
    """The default palette rendered as a starter theme.toml."""
    p = Palette()
    return (
        "[colors]\n"
        f'bg = "{_hex(p.bg)}"\n'
        f'fg = "{_hex(p.fg)}"\n'
        f'accent = "{_hex(p.accent)}"\n'
        f'dim = "{_hex(p.dim)}"\n'
        f'ok = "{_hex(p.ok)}"\n'
        f'warn = "{_hex(p.warn)}"\n'
        f'error = "{_hex(p.error)}"\n'
        "\n"
        "[styles]\n"
        f'sidebar_selected_bg = "{_hex(p.sidebar_sel_bg)}"\n'
        f'border_type = "{p.border_type}"\n'
    )