"""
wchartag Engine
================

Entry points that tie the parsers together.

:func:`inspect_or_patch` is the core operation: given an already-open ELF
handle it reports every ``Tag_ABI_PCS_wchar_t`` value and, on request,
rewrites it in place.  :class:`WcharTagEngine` adds the orchestration
around it -- opening files, walking the members of static libraries and
sweeping a whole toolchain tree -- and turns failures into reports so one
bad file never stops a batch.

Files are processed strictly one at a time; the handle for a file is owned
exclusively by the engine for the duration of that file.
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, Optional

from shared.config import EabiConfig
from shared.logger import EabiLogger
from shared.models import ProcessStatus

from wchartag.collectors.tree_walker import TreeWalker
from wchartag.core.errors import PatchTooLargeError, WcharTagError
from wchartag.core.models import BatchReport, FileReport, WcharTagReport
from wchartag.parsers.ar_parser import MemberWindow, read_members
from wchartag.parsers.attributes import check_replacement
from wchartag.parsers.elf_parser import ELF_MAGIC, SectionLocator


# ---------------------------------------------------------------------------
# Core operation
# ---------------------------------------------------------------------------

def inspect_or_patch(
    handle: BinaryIO,
    replacement: Optional[int] = None,
    logger: Optional[EabiLogger] = None,
) -> list[WcharTagReport]:
    """Report, and optionally rewrite, ``Tag_ABI_PCS_wchar_t`` in one ELF file.

    Args:
        handle:      Open, seekable binary handle; must be writable when
                     *replacement* is given.
        replacement: New value in ``[0, 127]``, or ``None`` to only inspect.
        logger:      Optional logger for diagnostics.

    Returns:
        One report per tag occurrence across all ARM attributes sections.

    Raises:
        UsageError: *replacement* is out of range.
        PatchTooLargeError: At least one occurrence could not be patched in
            place.  Raised only after every section was scanned; the reports
            are attached to the exception.
        WcharTagError: Any format or I/O failure, which aborts the scan.
            Occurrences handled before it are attached as ``exc.reports``.
    """
    replacement = check_replacement(replacement)
    reports: list[WcharTagReport] = []
    try:
        SectionLocator(handle, logger=logger).scan(replacement, reports)
    except WcharTagError as exc:
        exc.reports = list(reports)
        raise

    rejected = [r for r in reports if r.rejected]
    if rejected:
        values = ", ".join(str(r.value) for r in rejected)
        raise PatchTooLargeError(
            f"Unable to patch Tag_ABI_PCS_wchar_t: old value is too big ({values})",
            reports,
        )
    return reports


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class WcharTagEngine:
    """Orchestrates inspection and patching of files, archives and trees.

    Usage::

        engine = WcharTagEngine()
        report = engine.process_file("libfoo.so", replacement=0)
        batch = engine.strip_tree(os.environ["NDK_ROOT"])
    """

    def __init__(
        self,
        config: EabiConfig | None = None,
        logger: EabiLogger | None = None,
    ) -> None:
        self._config: EabiConfig = config or EabiConfig()
        self._logger: EabiLogger = logger or EabiLogger("wchartag.engine")

    @property
    def config(self) -> EabiConfig:
        return self._config

    # ------------------------------------------------------------------ #
    #  Single ELF
    # ------------------------------------------------------------------ #

    def process_file(
        self, path: str | Path, replacement: Optional[int] = None
    ) -> FileReport:
        """Inspect or patch one ELF file on disk."""
        replacement = check_replacement(replacement)
        mode = "rb" if replacement is None else "r+b"
        try:
            with open(path, mode) as fh:
                return self.process_handle(fh, str(path), replacement=replacement)
        except OSError as exc:
            self._logger.error("Opening %s failed: %s", path, exc)
            report = FileReport(
                target=str(path),
                status=ProcessStatus.FAILED,
                error=f"Opening file failed: {exc}",
            )
            return report.finalize(report.error)

    def process_handle(
        self,
        handle: BinaryIO,
        target: str,
        member: Optional[str] = None,
        replacement: Optional[int] = None,
    ) -> FileReport:
        """Run :func:`inspect_or_patch` and fold the outcome into a report."""
        report = FileReport(target=target, member=member)

        with self._logger.target(report.label):
            try:
                report.tags = inspect_or_patch(handle, replacement, self._logger)
            except PatchTooLargeError as exc:
                report.tags = exc.reports
                report.status = ProcessStatus.REJECTED
                report.error = str(exc)
            except WcharTagError as exc:
                report.tags = list(exc.reports)
                report.status = ProcessStatus.FAILED
                report.error = str(exc)
                self._logger.error("%s", exc)
            else:
                if any(t.patched_to is not None for t in report.tags):
                    report.status = ProcessStatus.PATCHED

        if report.error is not None:
            summary = report.error
        elif report.tags:
            summary = "; ".join(t.describe() for t in report.tags)
        else:
            summary = "no Tag_ABI_PCS_wchar_t attribute"
        return report.finalize(summary)

    # ------------------------------------------------------------------ #
    #  Static libraries
    # ------------------------------------------------------------------ #

    def process_archive(
        self, path: str | Path, replacement: Optional[int] = None
    ) -> BatchReport:
        """Process every ELF member of an ``ar`` archive in place.

        The archive succeeds when at least one member was processed
        successfully.
        """
        replacement = check_replacement(replacement)
        target = str(path)
        batch = BatchReport(target=target)
        mode = "rb" if replacement is None else "r+b"

        with self._logger.target(target):
            try:
                with open(path, mode) as fh:
                    for member in read_members(fh):
                        if member.special:
                            continue
                        window = MemberWindow.for_member(fh, member)
                        if window.peek_magic(len(ELF_MAGIC)) != ELF_MAGIC:
                            skipped = FileReport(
                                target=target,
                                member=member.name,
                                status=ProcessStatus.SKIPPED,
                                error="not an ELF object",
                            )
                            batch.files.append(skipped.finalize(skipped.error))
                            continue
                        batch.files.append(
                            self.process_handle(
                                window, target, member=member.name,
                                replacement=replacement,
                            )
                        )
            except (OSError, WcharTagError) as exc:
                batch.error = f"Reading archive failed: {exc}"
                self._logger.error("%s", batch.error)

            if batch.error is None and batch.succeeded == 0:
                batch.error = (
                    f"{target} does not contain readable ELF files. "
                    "Is it an ARM library?"
                )
                self._logger.warning("%s", batch.error)

        summary = batch.error or (
            f"{batch.succeeded} of {len(batch.processed)} members processed"
        )
        return batch.finalize(summary)

    # ------------------------------------------------------------------ #
    #  Toolchain tree
    # ------------------------------------------------------------------ #

    def strip_tree(
        self, root: str | Path, replacement: Optional[int] = None
    ) -> BatchReport:
        """Patch every candidate ELF file and archive below *root*.

        *replacement* defaults to ``config.wchartag.default_value``.  A
        failing file is recorded and the walk continues.
        """
        if replacement is None:
            replacement = self._config.wchartag.default_value
        replacement = check_replacement(replacement)

        batch = BatchReport(target=str(root))
        walker = TreeWalker(self._config.wchartag, logger=self._logger)

        with self._logger.timed(f"stripping Tag_ABI_PCS_wchar_t under {root}"):
            for path, kind in walker.walk(root):
                if kind == TreeWalker.KIND_ARCHIVE:
                    sub = self.process_archive(path, replacement)
                    batch.files.extend(sub.files)
                    # Member failures are already counted individually
                    if sub.error is not None and not sub.processed:
                        failed = FileReport(
                            target=str(path),
                            status=ProcessStatus.FAILED,
                            error=sub.error,
                        )
                        batch.files.append(failed.finalize(sub.error))
                else:
                    batch.files.append(self.process_file(path, replacement))

        summary = (
            f"{batch.succeeded} succeeded, {batch.failed} failed, "
            f"{batch.patched} patched"
        )
        return batch.finalize(summary)
