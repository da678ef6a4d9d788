"""
eabitools Console Interface
============================

A thin layer over :class:`rich.console.Console` so that every eabitools
command prints section rules, status messages and summary tables the same
way.  Tag lines go through :meth:`EabiConsole.line`, which never interprets
Rich markup: member names such as ``[odd].o`` print as they are.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

_PALETTE = Theme(
    {
        "eabi.rule": "bold bright_magenta",
        "eabi.ok": "bold green",
        "eabi.warn": "bold yellow",
        "eabi.fail": "bold red",
        "eabi.note": "bold bright_blue",
        "eabi.border": "bright_cyan",
    }
)

# style, label
_STATUS = {
    "success": ("eabi.ok", "[✔] SUCCESS:"),
    "warning": ("eabi.warn", "[⚠] WARNING:"),
    "error": ("eabi.fail", "[✘] ERROR:"),
    "info": ("eabi.note", "[ℹ] INFO:"),
}


class EabiConsole:
    """Console shared by the eabitools commands.

    ``quiet`` silences everything, ``record`` keeps the output for
    :meth:`rich.console.Console.export_text`.
    """

    def __init__(self, *, quiet: bool = False, record: bool = False) -> None:
        self._console = Console(
            theme=_PALETTE, quiet=quiet, record=record, highlight=False
        )

    @property
    def rich(self) -> Console:
        return self._console

    def section(self, title: str) -> None:
        self._console.rule(f"  {title}  ", style="eabi.rule", characters="─")

    def _status(self, kind: str, message: str) -> None:
        style, label = _STATUS[kind]
        self._console.print(f"[{style}]{escape(label)}[/{style}] {message}")

    def success(self, message: str) -> None:
        self._status("success", message)

    def warning(self, message: str) -> None:
        self._status("warning", message)

    def error(self, message: str) -> None:
        self._status("error", message)

    def info(self, message: str) -> None:
        self._status("info", message)

    def table(
        self,
        title: str,
        columns: Sequence[str],
        rows: Iterable[Sequence[Any]],
        *,
        caption: str | None = None,
        styles: Sequence[str] | None = None,
    ) -> None:
        """Print a table; cells are converted with ``str``, markup in them applies."""
        col_styles = list(styles or ())
        col_styles += [""] * (len(columns) - len(col_styles))

        grid = Table(
            title=title,
            caption=caption,
            border_style="eabi.border",
            header_style="eabi.rule",
        )
        for name, style in zip(columns, col_styles):
            grid.add_column(name, style=style)
        for row in rows:
            grid.add_row(*(str(cell) for cell in row))

        self._console.print(grid)

    def line(self, text: str) -> None:
        """Print *text* verbatim."""
        self._console.print(text, markup=False, soft_wrap=True)
