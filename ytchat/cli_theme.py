# ytchat/cli_theme.py
"""Terminal theme for the YTCHAT CLI.

Red & slate palette:
  - Bold wordmark banner with model badges
  - Numbered section headers ("01 · SECTION NAME")
  - Rounded tables with slate borders
  - Status lines and badges
"""

from __future__ import annotations

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

# ── Brand ─────────────────────────────────────────────────────────

BRAND = "Y T C H A T"
TAGLINE = "Chat with your YouTube channel and CSV data"

# ── Palette ───────────────────────────────────────────────────────

RED = "#E5484D"
SLATE = "#8B95A5"
MUTED = "dim"


# ── Banner ────────────────────────────────────────────────────────


def print_banner(version: str, console: Console, lm: str = "", image_lm: str = "", agent: str = "") -> None:
    """Print the wordmark, tagline and model badges."""
    console.print(f"\n  [bold {RED}]{BRAND}[/bold {RED}]")
    console.print(f"  [{SLATE}]{TAGLINE}[/{SLATE}]")
    console.print(f"  [{MUTED}]v{version}[/{MUTED}]")

    if lm or image_lm:
        lm_short = lm.split("/", 1)[-1] if "/" in lm else lm
        image_short = image_lm.split("/", 1)[-1] if "/" in image_lm else image_lm
        console.print(f"  [{SLATE}]{chr(0x2500) * len(TAGLINE)}[/{SLATE}]")
        line = f"  {badge('chat')} [{MUTED}]▸[/{MUTED}] [{RED}]{lm_short}[/{RED}]"
        if image_short:
            line += f"   {badge('image', 'alt')} [{MUTED}]▸[/{MUTED}] [{RED}]{image_short}[/{RED}]"
        if agent:
            line += f"   [{MUTED}]agent[/{MUTED}] {agent}"
        console.print(line)

    console.print()


def print_version(version: str, console: Console) -> None:
    """Print a compact branded version line."""
    t = Text()
    t.append(BRAND, style=f"bold {RED}")
    t.append(f"  v{version}", style=MUTED)
    console.print(t)


# ── Section headers ──────────────────────────────────────────────


def section(title: str, console: Console, number: str | None = None, uppercase: bool = True) -> None:
    """Print a numbered section header followed by a rule."""
    console.print()
    t = Text()
    if number:
        t.append(f"  {number}", style=f"bold {RED}")
        t.append(" · ", style=MUTED)
    else:
        t.append("  ", style="")
    t.append(title.upper() if uppercase else title, style="bold")
    console.print(t)
    console.print(f"  {chr(0x2500) * len(TAGLINE)}", style=SLATE)


# ── Tables ───────────────────────────────────────────────────────


def make_table(title: str | None = None, **kwargs: object) -> Table:
    """Create a rounded table with slate borders."""
    return Table(
        title=title,
        box=box.ROUNDED,
        border_style=SLATE,
        title_style=f"bold {RED}",
        header_style="bold",
        padding=(0, 1),
        **kwargs,
    )


def make_kv_table() -> Table:
    """Create a headerless two-column key–value table."""
    t = make_table(show_header=False)
    t.add_column("Key", style=f"bold {RED}", no_wrap=True)
    t.add_column("Value")
    return t


# ── Inline badges ───────────────────────────────────────────────


def badge(label: str, variant: str = "default") -> str:
    """Return Rich markup for a filled status badge."""
    colors = {
        "default": RED,
        "alt": SLATE,
        "warn": "yellow",
        "error": "red",
    }
    c = colors.get(variant, RED)
    return f"[reverse {c}] {label} [/reverse {c}]"


# ── Status lines ─────────────────────────────────────────────────


def info(msg: str) -> str:
    """Info-level status line (red arrow, dim text)."""
    return f"  [{RED}]›[/{RED}] [{MUTED}]{msg}[/{MUTED}]"


def ok(msg: str) -> str:
    """Success status line (green check)."""
    return f"  [bold green]✓[/bold green] {msg}"


def warn(msg: str) -> str:
    """Warning status line (yellow bang)."""
    return f"  [bold yellow]![/bold yellow] [yellow]{msg}[/yellow]"


def err(msg: str) -> str:
    """Error status line (red cross)."""
    return f"  [bold red]✗[/bold red] {msg}"

