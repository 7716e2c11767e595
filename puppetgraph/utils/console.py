"""
Console output utilities for puppetgraph using Rich.

User-facing output for CLI commands goes through this module; diagnostic
output goes through :mod:`puppetgraph.utils.logger`.
"""

from __future__ import annotations

import os
import sys
import threading
from typing import Any, Callable, Dict, List, Optional

from rich.table import Table
from rich.theme import Theme
from rich.console import Console

# ---------------------------------------------------------------------------
# Theme configuration
# ---------------------------------------------------------------------------

PUPPETGRAPH_THEME = Theme(
    {
        "success": "bold green",
        "error": "bold red",
        "warning": "bold yellow",
        "info": "bold cyan",
        "dim": "dim",
        "module": "bold magenta",
    }
)

_CONFLICT_COLORS = {
    "no-intersection": "red",
    "no-available-version": "yellow",
    "circular": "magenta",
}

# ---------------------------------------------------------------------------
# Console lifecycle management
# ---------------------------------------------------------------------------

_console: Optional[Console] = None
_console_lock = threading.Lock()


def _should_use_color() -> bool:
    if os.environ.get("NO_COLOR") or os.environ.get("CI"):
        return False
    try:
        return sys.stdout.isatty()
    except (AttributeError, OSError):
        return False


def _get_console() -> Console:
    """Return the shared Rich Console, creating it on first use."""
    global _console

    if _console is None:
        with _console_lock:
            if _console is None:
                use_color = _should_use_color()
                _console = Console(
                    theme=PUPPETGRAPH_THEME,
                    no_color=not use_color,
                    highlight=use_color,
                )
    return _console


def reconfigure_console() -> None:
    """Drop the shared console so the next call picks up a changed environment."""
    global _console
    with _console_lock:
        _console = None


def get_raw_console() -> Console:
    return _get_console()


# ---------------------------------------------------------------------------
# Status message helpers
# ---------------------------------------------------------------------------


def print_success(message: str, *, prefix: str = "[OK]") -> None:
    _get_console().print(f"{prefix} {message}", style="success")


def print_error(message: str, *, prefix: str = "[ERROR]") -> None:
    _get_console().print(f"{prefix} {message}", style="error")


def print_warning(message: str, *, prefix: str = "[WARNING]") -> None:
    _get_console().print(f"{prefix} {message}", style="warning")


# ---------------------------------------------------------------------------
# Structured output
# ---------------------------------------------------------------------------


def print_table(
    data: List[Dict[str, Any]],
    *,
    headers: Optional[List[str]] = None,
    title: Optional[str] = None,
    caption: Optional[str] = None,
    column_styles: Optional[Dict[str, Dict[str, Any]]] = None,
    row_styler: Optional[Callable[[Dict[str, Any]], Optional[str]]] = None,
    show_row_lines: bool = False,
) -> None:
    """Render rows of dictionaries as a Rich table.

    Args:
        data: Row dictionaries. Nothing is printed when empty.
        headers: Column order. Defaults to keys of the first row.
        title: Optional table title.
        caption: Optional table caption.
        column_styles: Per-column ``style``/``justify``/``no_wrap``/``width``.
        row_styler: Optional callback returning a style for a row.
        show_row_lines: Draw horizontal lines between rows.
    """
    if not data:
        return

    headers = headers or list(data[0].keys())
    table = Table(
        title=title,
        caption=caption,
        show_header=True,
        header_style="bold",
        show_lines=show_row_lines,
    )

    column_styles = column_styles or {}
    for header in headers:
        config = column_styles.get(header, {})
        table.add_column(
            header,
            style=config.get("style"),
            justify=config.get("justify", "default"),
            no_wrap=config.get("no_wrap", False),
            width=config.get("width"),
            overflow=config.get("overflow", "fold"),
        )

    for row in data:
        style = row_styler(row) if row_styler else None
        table.add_row(*(str(row.get(h, "")) for h in headers), style=style)

    _get_console().print(table)


def colorize_conflict_type(conflict_type: str) -> str:
    """Return Rich markup for a conflict type label.

    Example:
        >>> colorize_conflict_type("circular")
        '[magenta]circular[/magenta]'
    """
    color = _CONFLICT_COLORS.get(conflict_type.lower())
    return f"[{color}]{conflict_type}[/{color}]" if color else conflict_type
