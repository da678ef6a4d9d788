"""
wchartag Error Types
=====================

Every failure raised by the parsers and the engine derives from
:class:`WcharTagError`, so orchestration code can treat "this file could not
be processed" with a single ``except`` clause while still telling the kinds
apart when reporting.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from wchartag.core.models import WcharTagReport


class WcharTagError(Exception):
    """Base class for all wchartag failures.

    ``reports`` lists the tag occurrences handled before the failure when
    :func:`~wchartag.core.engine.inspect_or_patch` raised it.  A patch shown
    there has already been written to the file.
    """

    reports: Sequence[WcharTagReport] = ()


class StreamIOError(WcharTagError):
    """A read, write or seek on the underlying handle failed or came up short.

    The originating :class:`OSError`, if any, is chained as ``__cause__``.
    """


class TruncatedStreamError(WcharTagError):
    """A ULEB128 or NTBS value runs past the bound of its enclosing range."""


class BoundsExceededError(WcharTagError):
    """A declared length would require reading past the enclosing range."""


class BadFormatError(WcharTagError):
    """The file is not a 32-bit ARM ELF with a usable section table, or the
    attributes section has an unknown format version."""


class PatchTooLargeError(WcharTagError):
    """The current tag value is encoded in more than one byte.

    Raised after the whole file has been scanned; *reports* holds every
    occurrence found, including the ones that were patched successfully.
    """

    def __init__(
        self, message: str, reports: Sequence[WcharTagReport] = ()
    ) -> None:
        super().__init__(message)
        self.reports: list[WcharTagReport] = list(reports)


class UsageError(WcharTagError):
    """A caller supplied an argument of the wrong shape or range."""
