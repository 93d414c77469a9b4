"""Rich Console factory and theme for divcore output.

Consoles render into a StringIO buffer so renderers stay pure
``ServiceResult -> str`` functions. Rich drops color codes on its own
when the output is not a terminal (CliRunner, pipes).
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

DIV_THEME = Theme(
    {
        "div.ok": "bold green",
        "div.error": "bold red",
        "div.warning": "bold yellow",
        "div.op": "bold cyan",
        "div.key": "dim",
        "div.path": "dim",
        "div.variable": "bold blue",
        "div.type.string": "green",
        "div.type.number": "magenta",
        "div.type.integer": "magenta",
        "div.type.boolean": "yellow",
        "div.type.color": "bright_red",
        "div.type.url": "blue underline",
        "div.type.dict": "cyan",
        "div.type.array": "cyan",
    }
)


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer.

    Args:
        no_color: Disable ANSI escape codes.
        width: Fixed width, for stable output in tests.
    """
    return Console(
        file=StringIO(),
        theme=DIV_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_type(value_type: str) -> str:
    """Rich style for a variable type name; empty for unknown types."""
    style = f"div.type.{value_type}"
    return style if style in DIV_THEME.styles else ""
