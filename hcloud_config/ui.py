"""Console output for hcloud-config commands.

Thin wrapper around :mod:`rich`.  Status lines for the user go through
this module; ``logger.*`` calls carry the detailed, debug-level trail.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

console = Console(stderr=False, force_terminal=None)

# ── Symbols ────────────────────────────────────────────────────────────────

_PASS = "[bold green]✓[/]"
_WARN = "[bold yellow]⚠[/]"
_ARROW = "[bold cyan]›[/]"
_DOT = "[dim]·[/]"

# ── Phase headers ──────────────────────────────────────────────────────────


def phase(title: str) -> None:
    """Bold header for a command phase (``GENERATE``, ``APPLY``)."""
    console.print()
    console.print(f"[bold blue]── {escape(title)} ──[/]")


# ── Status lines ───────────────────────────────────────────────────────────


def ok(msg: str) -> None:
    console.print(f"  {_PASS} {escape(msg)}")


def warn(msg: str) -> None:
    console.print(f"  {_WARN} [yellow]{escape(msg)}[/]")


def step(msg: str) -> None:
    """In-progress action."""
    console.print(f"  {_ARROW} {escape(msg)}")


def info(msg: str) -> None:
    console.print(f"  {_DOT} [dim]{escape(msg)}[/]")


def detail(key: str, value: str) -> None:
    """Key-value pair, indented."""
    console.print(f"    [bold]{escape(key)}[/]: {escape(str(value))}")


def error_msg(msg: str) -> None:
    """Bold red error message (not indented)."""
    console.print(f"[bold red]ERROR:[/] {escape(msg)}")


# ── Panels ─────────────────────────────────────────────────────────────────


def error_panel(title: str, body: str) -> None:
    console.print()
    console.print(
        Panel(
            escape(body),
            title=f"[bold red]{escape(title)}[/]",
            border_style="red",
            padding=(1, 2),
        )
    )


def elapsed_str(seconds: float) -> str:
    """Format seconds as ``Xm Ys``."""
    m, s = divmod(int(seconds), 60)
    if m > 0:
        return f"{m}m {s}s"
    return f"{s}s"
