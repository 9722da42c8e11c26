"""
elfkit Console Interface
=========================

Rich-powered console abstraction for diagnostics.  Report text (symbol
listings, header dumps, size tables) is written to stdout verbatim by the
CLI; everything meant for a human operator goes through
:class:`ToolConsole` so the styling stays consistent.

Diagnostics follow the classic binutils convention ``tool: message`` on
the error stream.

References:
    - Rich library: https://github.com/Textualize/rich
"""

from __future__ import annotations

from typing import Any, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

_TOOL_THEME = Theme(
    {
        "tool.name": "bold",
        "tool.error": "bold red",
    }
)


class ToolConsole:
    """Unified diagnostic console for all elfkit tools.

    Usage::

        con = ToolConsole()
        con.error("nm", "a.out: bad ELF magic")
        con.table("Sections", ["Nr", "Name"], rows)
    """

    def __init__(self) -> None:
        self._err = Console(
            theme=_TOOL_THEME,
            stderr=True,
            highlight=False,
            soft_wrap=True,
        )
        self._out = Console(theme=_TOOL_THEME, highlight=False)

    # ------------------------------------------------------------------ #
    #  Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def error(self, tool: str, message: str) -> None:
        """Print ``tool: message`` on stderr."""
        self._err.print(
            f"[tool.name]{escape(tool)}[/tool.name]: "
            f"[tool.error]{escape(message)}[/tool.error]"
        )

    # ------------------------------------------------------------------ #
    #  Table display (stdout)
    # ------------------------------------------------------------------ #

    def table(
        self,
        title: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        *,
        caption: str | None = None,
        styles: Sequence[str] | None = None,
    ) -> None:
        """Render a styled Rich table.

        Args:
            title:    Table title.
            columns:  Column header labels.
            rows:     Iterable of row tuples; each element is stringified.
            caption:  Optional footer caption.
            styles:   Optional per-column Rich style strings.
        """
        tbl = Table(
            title=title,
            caption=caption,
            border_style="bright_cyan",
            header_style="bold bright_magenta",
            padding=(0, 1),
        )
        for idx, col_name in enumerate(columns):
            style = styles[idx] if styles and idx < len(styles) else ""
            tbl.add_column(col_name, style=style)

        for row in rows:
            tbl.add_row(*(escape(str(cell)) for cell in row))

        self._out.print(tbl)
