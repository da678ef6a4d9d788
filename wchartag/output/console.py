"""
wchartag Console Output
========================

Terminal rendering of wchartag reports through :class:`EabiConsole`.

A single file prints one plain line per tag occurrence, in the same shape
the batch scripts have always grepped for::

    Tag_ABI_PCS_wchar_t = 4, patched to 0

Archives and trees additionally get a per-file table and a summary.
"""

from __future__ import annotations

from rich.markup import escape

from shared.console import EabiConsole
from shared.models import ProcessStatus

from wchartag.core.models import BatchReport, FileReport


_STATUS_STYLES: dict[ProcessStatus, str] = {
    ProcessStatus.OK: "green",
    ProcessStatus.PATCHED: "bright_green",
    ProcessStatus.REJECTED: "yellow",
    ProcessStatus.FAILED: "bold red",
    ProcessStatus.SKIPPED: "dim",
}


class WcharTagConsoleOutput:
    """Rich terminal display for :class:`FileReport` and :class:`BatchReport`."""

    def __init__(self, console: EabiConsole | None = None) -> None:
        self._console: EabiConsole = console or EabiConsole()

    def display_file(self, report: FileReport) -> None:
        """Print every tag line of *report*, then its failure if any."""
        for tag in report.tags:
            self._console.line(tag.describe())

        if report.status == ProcessStatus.FAILED:
            self._console.error(escape(f"{report.label}: {report.error}"))
        elif report.status == ProcessStatus.REJECTED:
            self._console.warning(escape(f"{report.label}: {report.error}"))
        elif not report.tags:
            self._console.info(escape(f"{report.label}: no Tag_ABI_PCS_wchar_t attribute"))

    def display_batch(self, batch: BatchReport, title: str | None = None) -> None:
        """Print a per-file table and the batch summary."""
        self._console.section(escape(title or batch.target))

        rows = []
        for f in batch.files:
            style = _STATUS_STYLES.get(f.status, "")
            detail = (
                "; ".join(t.describe() for t in f.tags)
                if f.tags and f.error is None
                else (f.error or "no Tag_ABI_PCS_wchar_t attribute")
            )
            rows.append((
                escape(f.member or f.target),
                f"[{style}]{f.status.value}[/{style}]",
                escape(detail),
            ))

        if rows:
            self._console.table(
                title="",
                columns=["File", "Status", "Detail"],
                rows=rows,
            )

        counts = batch.status_counts()
        parts = ", ".join(f"{name}: {n}" for name, n in counts.items() if n)
        if batch.error is not None:
            self._console.error(escape(batch.error))
        elif batch.failed:
            self._console.warning(f"{batch.summary} ({parts})")
        else:
            self._console.success(f"{batch.summary} ({parts or 'nothing to do'})")
