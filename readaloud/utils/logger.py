"""
Rich logging utilities for the read-aloud article reader.
"""

import os
from typing import Optional

from rich.console import Console
from rich.theme import Theme

# Custom theme for the reader
custom_theme = Theme(
    {
        "info": "cyan",
        "success": "green",
        "warning": "yellow",
        "error": "red bold",
        "step": "blue bold",
        "highlight": "black on yellow",
        "debug": "dim",
    }
)

# Global console instance
console = Console(theme=custom_theme)

# Verbose state-machine tracing, off unless READALOUD_DEBUG is set
_debug_enabled = os.environ.get("READALOUD_DEBUG", "").lower() in ["1", "true", "yes"]


def set_debug(enabled: bool) -> None:
    """Turn debug output on or off at runtime."""
    global _debug_enabled
    _debug_enabled = enabled


def debug(message: str) -> None:
    """Print a debug message (only when debug output is enabled)."""
    if _debug_enabled:
        console.print(f"[debug]· {message}[/debug]")


def info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]ℹ[/info] {message}")


def success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]✓[/success] {message}")


def warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[warning]⚠[/warning] {message}")


def error(message: str) -> None:
    """Print an error message."""
    console.print(f"[error]✗[/error] {message}")


def step(message: str, step_num: Optional[int] = None, total: Optional[int] = None) -> None:
    """Print a step message."""
    if step_num and total:
        console.print(f"[step][{step_num}/{total}][/step] {message}")
    else:
        console.print(f"[step]→[/step] {message}")


def header(message: str) -> None:
    """Print a header message."""
    console.print()
    console.rule(f"[bold]{message}[/bold]")
    console.print()
